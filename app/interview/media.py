import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Union

logger = logging.getLogger("app.interview.media")

DEFAULT_MEDIA_ERROR = "Unknown media stream error"


@dataclass(frozen=True)
class MediaError:
    """Why camera/microphone acquisition failed. Returned, never raised."""
    message: str
    name: str = "MediaError"


class MediaTrack(Protocol):
    kind: str
    id: str

    def stop(self) -> None: ...


class MediaDevices(Protocol):
    async def get_user_media(self, video: bool = True, audio: bool = True) -> List[MediaTrack]: ...


class CaptureHandle:
    def __init__(self, tracks: List[MediaTrack]):
        self.tracks = list(tracks or [])
        self.released = False

    @property
    def track_ids(self) -> List[str]:
        return [str(getattr(track, "id", "")) for track in self.tracks]

    def stop(self) -> None:
        if self.released:
            return
        self.released = True
        for track in self.tracks:
            try:
                track.stop()
            except Exception as exc:
                logger.warning("media track stop failed | track=%s err=%s", getattr(track, "id", "?"), exc)


class MediaCaptureManager:
    """Owns at most one capture handle for a session."""

    def __init__(self, devices: Optional[MediaDevices] = None):
        self.devices = devices
        self.handle: Optional[CaptureHandle] = None
        self.error: Optional[MediaError] = None

    async def acquire(self) -> Union[CaptureHandle, MediaError]:
        if self.devices is None:
            self.error = MediaError("No camera or microphone available", name="NotFoundError")
            return self.error
        try:
            tracks = await self.devices.get_user_media(video=True, audio=True)
        except Exception as exc:
            message = str(exc) or DEFAULT_MEDIA_ERROR
            logger.warning("media acquisition failed | err=%s", message)
            self.error = MediaError(message, name=type(exc).__name__)
            return self.error
        self.handle = CaptureHandle(tracks)
        self.error = None
        return self.handle

    def adopt(self, handle: CaptureHandle) -> None:
        """Take ownership of a handle acquired by the caller."""
        if self.handle is not None and self.handle is not handle:
            self.release()
        self.handle = handle
        self.error = None

    def release(self, handle: Optional[CaptureHandle] = None) -> None:
        target = handle if handle is not None else self.handle
        if target is None:
            return
        target.stop()
        if target is self.handle:
            self.handle = None

    async def retry(self, devices: Optional[MediaDevices] = None) -> bool:
        self.release()
        if devices is not None:
            self.devices = devices
        outcome = await self.acquire()
        return isinstance(outcome, CaptureHandle)


# ---------- browser-reported devices ----------

@dataclass
class ClientTrack:
    id: str
    kind: str = "video"
    stopped: bool = False

    def stop(self) -> None:
        self.stopped = True


class ClientMediaDevices:
    """
    The browser owns the physical camera and microphone. It asks for
    permission itself and sends the outcome; this adapter replays that
    report through the MediaDevices interface. Stopped tracks show up in
    the session snapshot so the client knows which ones to stop.
    """

    def __init__(self, granted: bool, tracks: Optional[List[dict]] = None, error: Optional[str] = None):
        self.granted = bool(granted)
        self.error = error
        self.tracks: List[ClientTrack] = [
            ClientTrack(id=str(item.get("id") or f"track-{index}"), kind=str(item.get("kind") or "video"))
            for index, item in enumerate(tracks or [])
            if isinstance(item, dict)
        ]

    @classmethod
    def from_report(cls, report: Optional[dict]) -> "ClientMediaDevices":
        report = report or {}
        return cls(
            granted=bool(report.get("granted")),
            tracks=list(report.get("tracks") or []),
            error=report.get("error"),
        )

    async def get_user_media(self, video: bool = True, audio: bool = True) -> List[ClientTrack]:
        if not self.granted:
            raise PermissionError(self.error or "Permission denied")
        if not self.tracks:
            raise LookupError(self.error or "Requested device not found")
        return list(self.tracks)

    @property
    def stopped_track_ids(self) -> List[str]:
        return [track.id for track in self.tracks if track.stopped]

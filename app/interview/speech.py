import logging
from typing import Optional, Protocol

from core.logger import log_event

logger = logging.getLogger("app.interview.speech")


class SpeechSynthesizer(Protocol):
    def speak(self, text: str, token: str) -> None: ...

    def cancel(self) -> None: ...


class SpeechRecognizer(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


class SpeechBridge:
    """
    Text-to-speech and speech-to-text for one session.

    Both capabilities are optional. A missing one turns the matching calls
    into no-ops and a failing one is logged and treated as stopped, so the
    interview never aborts because of speech.
    """

    def __init__(
        self,
        synthesizer: Optional[SpeechSynthesizer] = None,
        recognizer: Optional[SpeechRecognizer] = None,
        session_id: str = "",
    ):
        self.synthesizer = synthesizer
        self.recognizer = recognizer
        self.session_id = session_id
        self.speaking = False
        self.speaking_token: Optional[str] = None
        self.capturing = False
        self.final_text = ""
        self.interim_text = ""

    @property
    def can_speak(self) -> bool:
        return self.synthesizer is not None

    @property
    def can_listen(self) -> bool:
        return self.recognizer is not None

    # ---------- text-to-speech ----------

    def speak(self, text: str, token: str) -> bool:
        if self.synthesizer is None or not str(text or "").strip():
            return False
        self.cancel_speech()
        try:
            self.synthesizer.speak(text, token)
        except Exception as exc:
            logger.warning("speech synthesis failed | session=%s err=%s", self.session_id, exc)
            return False
        self.speaking = True
        self.speaking_token = token
        log_event("speech", "speak_started", self.session_id, token=token)
        return True

    def cancel_speech(self) -> None:
        was_speaking = self.speaking
        self.speaking = False
        self.speaking_token = None
        if self.synthesizer is None or not was_speaking:
            return
        try:
            self.synthesizer.cancel()
        except Exception as exc:
            logger.warning("speech cancel failed | session=%s err=%s", self.session_id, exc)

    def handle_speech_end(self, token: str) -> bool:
        """True when ``token`` is the utterance in progress; stale ends are ignored."""
        if not self.speaking or token != self.speaking_token:
            return False
        self.speaking = False
        self.speaking_token = None
        log_event("speech", "speak_finished", self.session_id, token=token)
        return True

    # ---------- speech-to-text ----------

    def start_capture(self) -> bool:
        if self.recognizer is None:
            return False
        if self.capturing:
            return True
        try:
            self.recognizer.start()
        except Exception as exc:
            logger.warning("speech recognition start failed | session=%s err=%s", self.session_id, exc)
            return False
        self.capturing = True
        log_event("speech", "capture_started", self.session_id)
        return True

    def stop_capture(self) -> None:
        if not self.capturing:
            return
        self.capturing = False
        if self.recognizer is None:
            return
        try:
            self.recognizer.stop()
        except Exception as exc:
            logger.warning("speech recognition stop failed | session=%s err=%s", self.session_id, exc)
        log_event("speech", "capture_stopped", self.session_id)

    def on_transcript(self, text: str, is_final: bool) -> None:
        segment = str(text or "")
        if is_final:
            if segment.strip():
                self.final_text = f"{self.final_text} {segment.strip()}".strip()
            self.interim_text = ""
        else:
            self.interim_text = segment

    def load_buffer(self, text: str = "") -> None:
        self.final_text = str(text or "")
        self.interim_text = ""

    @property
    def pending_text(self) -> str:
        interim = self.interim_text.strip()
        if not interim:
            return self.final_text
        return f"{self.final_text} {interim}".strip()

    def take_answer(self) -> str:
        """Fold the interim segment into the buffer and return the merged text."""
        merged = self.pending_text
        self.final_text = merged
        self.interim_text = ""
        return merged

    def to_dict(self) -> dict:
        return {
            "speaking": self.speaking,
            "speakingToken": self.speaking_token,
            "capturing": self.capturing,
            "canSpeak": self.can_speak,
            "canListen": self.can_listen,
            "finalText": self.final_text,
            "interimText": self.interim_text,
        }


# ---------- browser-side engines ----------

class ClientSpeechSynthesizer:
    """Holds the utterance the browser should be speaking."""

    def __init__(self):
        self.utterance: Optional[dict] = None
        self.cancel_count = 0

    def speak(self, text: str, token: str) -> None:
        self.utterance = {"text": text, "token": token}

    def cancel(self) -> None:
        self.utterance = None
        self.cancel_count += 1


class ClientSpeechRecognizer:
    """Tells the browser whether its recognizer should be listening."""

    def __init__(self):
        self.active = False

    def start(self) -> None:
        self.active = True

    def stop(self) -> None:
        self.active = False

import logging
import uuid

from fastapi import APIRouter, HTTPException, Request

from app.auth import get_bearer_token, get_user_id
from app.interview.controller import InterviewSessionController
from app.interview.media import ClientMediaDevices, MediaCaptureManager
from app.interview.models import SessionContext, StartOptions
from app.interview.sources import build_collaborators
from app.interview.speech import ClientSpeechRecognizer, ClientSpeechSynthesizer, SpeechBridge
from app.schemas import (
    AdvanceRequest,
    MediaReport,
    MediaRetryRequest,
    SpeechFinishedRequest,
    StartSessionRequest,
    SubmitAnswerRequest,
    TranscriptRequest,
)
from app.session.registry import session_registry

router = APIRouter(prefix="/api/sessions")
logger = logging.getLogger("app.api.sessions")

MISSING_SELECTION_DETAIL = "Please select both a job role and an experience level"


def _devices_from_report(report: MediaReport | None) -> ClientMediaDevices | None:
    if report is None:
        return None
    return ClientMediaDevices.from_report(report.model_dump())


def _owned_controller(session_id: str, request: Request) -> InterviewSessionController:
    user_id = get_user_id(request)
    entry = session_registry.get(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    if entry.user_id != user_id:
        raise HTTPException(status_code=403, detail="Session belongs to another user")
    session_registry.touch(session_id)
    return entry.controller


@router.post("")
async def start_session(body: StartSessionRequest, request: Request):
    user_id = get_user_id(request)
    if body.job_role is None or body.experience_level is None:
        raise HTTPException(status_code=400, detail=MISSING_SELECTION_DETAIL)

    session_id = uuid.uuid4().hex
    question_source, analyzer, result_sink = build_collaborators()
    controller = InterviewSessionController(
        context=SessionContext(
            user_id=user_id,
            interview_id=body.interview_id,
            auth_token=get_bearer_token(request),
        ),
        question_source=question_source,
        analyzer=analyzer,
        result_sink=result_sink,
        media=MediaCaptureManager(_devices_from_report(body.media)),
        speech=SpeechBridge(ClientSpeechSynthesizer(), ClientSpeechRecognizer(), session_id=session_id),
        session_id=session_id,
        on_complete=session_registry.mark_inactive,
    )
    session_registry.register(session_id, controller, user_id)

    snapshot = await controller.start(StartOptions(
        job_role=body.job_role,
        experience_level=body.experience_level,
        interview_id=body.interview_id,
        duration_seconds=body.duration_seconds,
        is_hr_scheduled=body.is_hr_scheduled,
        require_media=body.require_media,
    ))
    logger.info("session started | session=%s user=%s state=%s", session_id, user_id, snapshot["state"])
    return snapshot


@router.get("/{session_id}")
async def get_session_snapshot(session_id: str, request: Request):
    return _owned_controller(session_id, request).snapshot()


@router.post("/{session_id}/advance")
async def advance(session_id: str, body: AdvanceRequest, request: Request):
    controller = _owned_controller(session_id, request)
    controller.advance(body.direction)
    return controller.snapshot()


@router.post("/{session_id}/answers")
async def submit_answer(session_id: str, body: SubmitAnswerRequest, request: Request):
    controller = _owned_controller(session_id, request)
    answer = await controller.submit_answer(body.question_id, body.text)
    return {
        "answer": answer.to_dict() if answer else None,
        "session": controller.snapshot(),
    }


@router.post("/{session_id}/next")
async def submit_and_advance(session_id: str, request: Request):
    controller = _owned_controller(session_id, request)
    await controller.submit_and_advance()
    return controller.snapshot()


@router.post("/{session_id}/skip")
async def skip_question(session_id: str, request: Request):
    controller = _owned_controller(session_id, request)
    await controller.skip_question()
    return controller.snapshot()


@router.post("/{session_id}/transcript")
async def transcript(session_id: str, body: TranscriptRequest, request: Request):
    controller = _owned_controller(session_id, request)
    controller.on_transcript(body.text, body.is_final)
    return controller.snapshot()


@router.post("/{session_id}/speech/finished")
async def speech_finished(session_id: str, body: SpeechFinishedRequest, request: Request):
    controller = _owned_controller(session_id, request)
    capture_started = controller.speech_finished(body.question_id)
    return {"captureStarted": capture_started, "session": controller.snapshot()}


@router.post("/{session_id}/capture/start")
async def capture_start(session_id: str, request: Request):
    controller = _owned_controller(session_id, request)
    controller.start_capture()
    return controller.snapshot()


@router.post("/{session_id}/capture/stop")
async def capture_stop(session_id: str, request: Request):
    controller = _owned_controller(session_id, request)
    controller.stop_capture()
    return controller.snapshot()


@router.post("/{session_id}/media/retry")
async def retry_media(session_id: str, body: MediaRetryRequest, request: Request):
    controller = _owned_controller(session_id, request)
    ok = await controller.retry_media(_devices_from_report(body.media))
    return {"ok": ok, "session": controller.snapshot()}


@router.post("/{session_id}/finish")
async def finish(session_id: str, request: Request):
    controller = _owned_controller(session_id, request)
    await controller.finish()
    return controller.snapshot()


@router.get("/{session_id}/result")
async def get_result(session_id: str, request: Request):
    controller = _owned_controller(session_id, request)
    if controller.result is None:
        raise HTTPException(status_code=409, detail="Result is not available until the session is complete")
    return {
        "result": controller.result.to_dict(),
        "config": controller.config.to_dict() if controller.config else None,
    }

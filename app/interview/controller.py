import asyncio
import logging
import random
import uuid
from dataclasses import replace
from typing import Callable, Optional

from core.config import (
    ANALYSIS_TIMEOUT_SEC,
    MIN_ANALYZABLE_ANSWER_CHARS,
    QUESTION_TIME_LIMIT_SEC,
    TIMER_TICK_SEC,
)
from core.logger import log_event
from app.interview.media import CaptureHandle, MediaCaptureManager, MediaError
from app.interview.models import (
    Answer,
    InterviewResult,
    Question,
    SessionConfig,
    SessionContext,
    SessionState,
    StartOptions,
)
from app.interview.questions import UNCONFIGURED_QUESTION, fallback_questions, question_count_for
from app.interview.scorer import build_result
from app.interview.sources import AnswerAnalyzer, CollaboratorError, QuestionSource, ResultSink, build_payload
from app.interview.speech import SpeechBridge
from app.interview.timers import Countdown
from app.system_metrics import increment_metric

logger = logging.getLogger("app.interview.controller")

TOO_SHORT_FEEDBACK = "Answer was too short for analysis."
ANALYSIS_FALLBACK_FEEDBACK = "Error analyzing your answer with the AI service. This is fallback feedback."
ANALYSIS_FALLBACK_WEAKNESS = "AI analysis unavailable"


class SessionStateError(Exception):
    """The requested operation is not valid in the session's current state."""


def _new_id() -> str:
    return uuid.uuid4().hex


class InterviewSessionController:
    """
    One candidate's interview, from question loading to the final result.

    All work runs on the event loop. Nothing holds a lock across the
    analyzer call, so answers can come back in any order; each one is
    written under its own question id. Timers, media and speech belong to
    this instance and are released on ``finish`` or ``close``.
    """

    def __init__(
        self,
        context: SessionContext,
        question_source: QuestionSource,
        analyzer: AnswerAnalyzer,
        result_sink: ResultSink,
        media: Optional[MediaCaptureManager] = None,
        speech: Optional[SpeechBridge] = None,
        session_id: Optional[str] = None,
        question_time_limit: int = QUESTION_TIME_LIMIT_SEC,
        tick_interval: float = TIMER_TICK_SEC,
        analysis_timeout: float = ANALYSIS_TIMEOUT_SEC,
        rng: Optional[random.Random] = None,
        on_complete: Optional[Callable[[str], None]] = None,
    ):
        self.session_id = session_id or _new_id()
        self.context = context
        self.question_source = question_source
        self.analyzer = analyzer
        self.result_sink = result_sink
        self.media = media or MediaCaptureManager()
        self.speech = speech or SpeechBridge(session_id=self.session_id)
        self.question_time_limit = max(1, int(question_time_limit))
        self.tick_interval = tick_interval
        self.analysis_timeout = analysis_timeout
        self._rng = rng or random.Random()
        self._on_complete = on_complete

        self.state = SessionState.IDLE
        self.config: Optional[SessionConfig] = None
        self.questions: list[Question] = []
        self.current_index = 0
        self.answers: dict[str, Answer] = {}
        self.result: Optional[InterviewResult] = None
        self.is_hr_scheduled = False
        self.media_error: Optional[str] = None
        self.closed = False

        self.question_timer: Optional[Countdown] = None
        self.session_timer: Optional[Countdown] = None
        self.tasks: list[asyncio.Task] = []
        self._spoken_question_ids: set[str] = set()
        self._in_flight: dict[str, asyncio.Event] = {}
        self._generation = 0

    # ---------- helpers ----------

    def create_task(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self.tasks.append(task)
        task.add_done_callback(self._forget_task)
        return task

    def _forget_task(self, task: asyncio.Task) -> None:
        if task in self.tasks:
            self.tasks.remove(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("background task failed | session=%s err=%s", self.session_id, error)

    async def wait_for_background(self) -> None:
        """Wait until scheduled expiry and persistence work has drained."""
        while True:
            pending = [task for task in self.tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    def _require_in_progress(self, operation: str) -> None:
        if self.closed or self.state != SessionState.IN_PROGRESS:
            raise SessionStateError(f"Cannot {operation} while session is {self.state.value}")

    def _log(self, event: str, **fields) -> None:
        log_event("controller", event, self.session_id, state=self.state.value, **fields)

    # ---------- lifecycle ----------

    def configure(self, config: SessionConfig) -> None:
        if self.state in (SessionState.LOADING, SessionState.IN_PROGRESS, SessionState.FINALIZING):
            raise SessionStateError(f"Cannot configure while session is {self.state.value}")
        self.config = config

    async def start(self, options: Optional[StartOptions] = None) -> dict:
        options = options or StartOptions()
        if self.closed:
            raise SessionStateError("Cannot start a closed session")
        if self.state == SessionState.LOADING:
            raise SessionStateError("Session is already loading")
        if self.state != SessionState.IDLE:
            self._discard()

        self._generation += 1
        generation = self._generation

        if options.interview_id:
            self.context = replace(self.context, interview_id=options.interview_id)
        if options.job_role and options.experience_level:
            self.config = SessionConfig(options.job_role, options.experience_level)

        if options.is_hr_scheduled is not None:
            self.is_hr_scheduled = bool(options.is_hr_scheduled)
        else:
            self.is_hr_scheduled = bool(self.context.interview_id)

        if self.config is None:
            logger.warning("start without role/level | session=%s", self.session_id)
            self.questions = [Question(_new_id(), UNCONFIGURED_QUESTION)]
            self._enter_in_progress()
            return self.snapshot()

        count = question_count_for(self.is_hr_scheduled, options.duration_seconds, self.question_time_limit)
        self.state = SessionState.LOADING
        self._log("start", job_role=self.config.job_role.value, level=self.config.experience_level.value, count=count)

        if isinstance(options.media, CaptureHandle):
            self.media.adopt(options.media)
        else:
            if options.media is not None:
                self.media.devices = options.media
            outcome = await self.media.acquire()
            if generation != self._generation or self.closed:
                self.media.release()
                return self.snapshot()
            if isinstance(outcome, MediaError):
                self.media_error = outcome.message
                self._log("media_unavailable", error_name=outcome.name, required=options.require_media)
                if options.require_media:
                    self.state = SessionState.FAILED
                    return self.snapshot()

        texts = await self._load_questions(self.config, count)
        if generation != self._generation or self.closed:
            return self.snapshot()

        self.questions = [Question(_new_id(), text) for text in texts]
        self._enter_in_progress()
        increment_metric("sessions_started")
        return self.snapshot()

    async def _load_questions(self, config: SessionConfig, count: int) -> list[str]:
        try:
            texts = await self.question_source.fetch_questions(config, count)
            texts = [str(text).strip() for text in (texts or []) if str(text or "").strip()]
            if not texts:
                raise CollaboratorError("question source returned no questions")
            return texts[:count]
        except Exception as exc:
            logger.warning(
                "question source failed, using static questions | session=%s role=%s level=%s err=%s",
                self.session_id,
                config.job_role.value,
                config.experience_level.value,
                exc,
            )
            increment_metric("question_fallbacks")
            return fallback_questions(config.job_role, config.experience_level, count)

    def _enter_in_progress(self) -> None:
        generation = self._generation
        self.state = SessionState.IN_PROGRESS
        self.current_index = 0
        self.question_timer = Countdown(
            "question",
            self.question_time_limit,
            lambda: self._on_question_expired(generation),
            interval=self.tick_interval,
        )
        self.session_timer = Countdown(
            "session",
            len(self.questions) * self.question_time_limit,
            lambda: self._on_session_expired(generation),
            interval=self.tick_interval,
        )
        self.question_timer.start()
        self.session_timer.start()
        self._activate_question(0)
        self._log("in_progress", question_count=len(self.questions))

    def _activate_question(self, index: int) -> None:
        self.current_index = index
        question = self.questions[index]
        if self.question_timer is not None:
            self.question_timer.reset(self.question_time_limit)
        self.speech.stop_capture()
        self.speech.cancel_speech()
        existing = self.answers.get(question.id)
        self.speech.load_buffer(existing.text if existing else "")
        if question.id not in self._spoken_question_ids:
            self._spoken_question_ids.add(question.id)
            self.speech.speak(question.text, question.id)

    def _reset_state(self) -> None:
        self.state = SessionState.IDLE
        self.questions = []
        self.current_index = 0
        self.answers = {}
        self.result = None
        self.media_error = None
        self.question_timer = None
        self.session_timer = None
        self._spoken_question_ids = set()
        self._in_flight = {}
        self.speech.load_buffer("")

    def _discard(self) -> None:
        self._generation += 1
        self._teardown()
        self._reset_state()

    def _teardown(self) -> None:
        releases = (
            ("question_timer", self.question_timer.cancel if self.question_timer else None),
            ("session_timer", self.session_timer.cancel if self.session_timer else None),
            ("speech_to_text", self.speech.stop_capture),
            ("text_to_speech", self.speech.cancel_speech),
            ("media", self.media.release),
        )
        for name, release in releases:
            if release is None:
                continue
            try:
                release()
            except Exception as exc:
                logger.warning("teardown step failed | session=%s step=%s err=%s", self.session_id, name, exc)

    # ---------- navigation ----------

    def advance(self, direction: int) -> bool:
        self._require_in_progress("advance")
        step = 1 if int(direction) > 0 else -1
        target = max(0, min(len(self.questions) - 1, self.current_index + step))
        if target == self.current_index:
            return False
        self._activate_question(target)
        return True

    # ---------- answers ----------

    async def submit_answer(self, question_id: str, raw_text: str) -> Optional[Answer]:
        self._require_in_progress("submit an answer")
        question = self.current_question
        if question is None or question.id != question_id:
            raise SessionStateError("Answers can only be submitted for the current question")

        generation = self._generation
        text = str(raw_text or "")
        if len(text.strip()) > MIN_ANALYZABLE_ANSWER_CHARS:
            done = asyncio.Event()
            self._in_flight[question.id] = done
            try:
                analysis = await self._analyze(question, text)
            finally:
                if self._in_flight.get(question.id) is done:
                    del self._in_flight[question.id]
                done.set()
        else:
            analysis = {"score": 0, "feedback": TOO_SHORT_FEEDBACK, "strengths": [], "weaknesses": []}

        if generation != self._generation or self.state != SessionState.IN_PROGRESS:
            self._log("late_answer_dropped", question_id=question_id)
            return None

        answer = Answer(
            question_id=question.id,
            question_text=question.text,
            text=text,
            score=analysis["score"],
            feedback=analysis["feedback"],
            strengths=list(analysis.get("strengths") or []),
            weaknesses=list(analysis.get("weaknesses") or []),
        )
        self.answers[question.id] = answer
        self._log("answer_recorded", question_id=question.id, score=answer.score, answer_text=text)
        return answer

    async def _analyze(self, question: Question, text: str) -> dict:
        try:
            return await asyncio.wait_for(
                self.analyzer.analyze(question.text, text, self.config),
                timeout=self.analysis_timeout,
            )
        except Exception as exc:
            logger.warning(
                "answer analysis failed, using fallback | session=%s question=%s err=%s",
                self.session_id,
                question.id,
                exc or type(exc).__name__,
            )
            increment_metric("analysis_fallbacks")
            return {
                "score": self._rng.randint(50, 70),
                "feedback": ANALYSIS_FALLBACK_FEEDBACK,
                "strengths": [],
                "weaknesses": [ANALYSIS_FALLBACK_WEAKNESS],
            }

    async def _record_and_move(self, question: Question, text: str) -> None:
        generation = self._generation
        if text.strip():
            await self.submit_answer(question.id, text)
        if generation != self._generation or self.state != SessionState.IN_PROGRESS:
            return
        index = self.questions.index(question)
        if index >= len(self.questions) - 1:
            await self.finish()
        elif self.current_index == index:
            self._activate_question(index + 1)

    def _analysis_pending(self, question: Question) -> bool:
        # the submit already in flight advances once it is scored
        if question.id not in self._in_flight:
            return False
        self._log("submit_ignored", question_id=question.id, reason="analysis_in_flight")
        return True

    async def submit_and_advance(self) -> None:
        self._require_in_progress("submit")
        question = self.current_question
        if self._analysis_pending(question):
            return
        text = self.speech.take_answer()
        self.speech.stop_capture()
        await self._record_and_move(question, text)

    async def skip_question(self) -> None:
        self._require_in_progress("skip")
        question = self.current_question
        if self._analysis_pending(question):
            return
        text = self.speech.take_answer()
        self.speech.stop_capture()
        self._log("question_skipped", question_id=question.id, answer_text=text)
        await self._record_and_move(question, text)

    # ---------- timers ----------

    def _on_question_expired(self, generation: int) -> None:
        if generation == self._generation:
            self.create_task(self._expire_question(generation))

    async def _expire_question(self, generation: int) -> None:
        if generation != self._generation or self.state != SessionState.IN_PROGRESS:
            return
        self._log("question_timer_expired", question_id=self.current_question.id)
        await self.submit_and_advance()

    def _on_session_expired(self, generation: int) -> None:
        if generation == self._generation:
            self.create_task(self._expire_session(generation))

    async def _expire_session(self, generation: int) -> None:
        if generation != self._generation or self.state != SessionState.IN_PROGRESS:
            return
        self._log("session_timer_expired")
        if self.question_timer is not None:
            self.question_timer.cancel()
        question = self.current_question
        pending = self.speech.take_answer()
        self.speech.stop_capture()
        in_flight = list(self._in_flight.values())
        if question is not None and pending.strip() and question.id not in self._in_flight:
            try:
                await self.submit_answer(question.id, pending)
            except SessionStateError as exc:
                logger.warning("pending answer not saved on expiry | session=%s err=%s", self.session_id, exc)
        if in_flight:
            await asyncio.gather(*(done.wait() for done in in_flight))
        if generation == self._generation and self.state == SessionState.IN_PROGRESS:
            await self.finish()

    # ---------- speech / capture ----------

    def on_transcript(self, text: str, is_final: bool) -> None:
        self._require_in_progress("record a transcript")
        self.speech.on_transcript(text, is_final)

    def speech_finished(self, question_id: str) -> bool:
        """Auto-start capture once the current question has been read out."""
        if not self.speech.handle_speech_end(question_id):
            return False
        question = self.current_question
        if self.state != SessionState.IN_PROGRESS or question is None or question.id != question_id:
            return False
        existing = self.answers.get(question_id)
        if (existing and existing.text.strip()) or self.speech.capturing:
            return False
        return self.speech.start_capture()

    def start_capture(self) -> bool:
        self._require_in_progress("start capture")
        return self.speech.start_capture()

    def stop_capture(self) -> None:
        self.speech.stop_capture()

    # ---------- media ----------

    async def retry_media(self, devices=None) -> bool:
        if self.closed or self.state in (SessionState.FINALIZING, SessionState.COMPLETE):
            raise SessionStateError(f"Cannot retry media while session is {self.state.value}")
        ok = await self.media.retry(devices)
        if ok:
            self.media_error = None
        else:
            self.media_error = self.media.error.message if self.media.error else "Unknown media stream error"
        self._log("media_retry", ok=ok)
        return ok

    # ---------- completion ----------

    async def finish(self) -> InterviewResult:
        if self.state in (SessionState.FINALIZING, SessionState.COMPLETE):
            return self.result
        self._require_in_progress("finish")

        self.state = SessionState.FINALIZING
        self._teardown()
        self.result = build_result(self.questions, self.answers, self.is_hr_scheduled)
        self.state = SessionState.COMPLETE
        self._log(
            "complete",
            total_score=self.result.total_score,
            answered=len(self.answers),
            question_count=len(self.questions),
        )
        increment_metric("sessions_completed")
        if self._on_complete is not None:
            try:
                self._on_complete(self.session_id)
            except Exception as exc:
                logger.warning("completion hook failed | session=%s err=%s", self.session_id, exc)
        self.create_task(self._persist(self.result))
        return self.result

    async def _persist(self, result: InterviewResult) -> None:
        payload = build_payload(result, self.config, self.context)
        try:
            await self.result_sink.save(payload, self.context)
            self._log("result_persisted")
        except Exception as exc:
            increment_metric("persistence_failures")
            logger.warning("result persistence failed | session=%s err=%s", self.session_id, exc)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._generation += 1
        self._teardown()
        self._log("closed")

    # ---------- view ----------

    def snapshot(self) -> dict:
        question = self.current_question
        return {
            "sessionId": self.session_id,
            "state": self.state.value,
            "closed": self.closed,
            "config": self.config.to_dict() if self.config else None,
            "interviewId": self.context.interview_id,
            "isHrScheduled": self.is_hr_scheduled,
            "questions": [{"id": q.id, "text": q.text} for q in self.questions],
            "currentIndex": self.current_index,
            "currentQuestionId": question.id if question else None,
            "questionTimeRemaining": self.question_timer.remaining if self.question_timer else None,
            "sessionTimeRemaining": self.session_timer.remaining if self.session_timer else None,
            "answers": [self.answers[q.id].to_dict() for q in self.questions if q.id in self.answers],
            "media": {
                "active": self.media.handle is not None,
                "error": self.media_error,
                "trackIds": self.media.handle.track_ids if self.media.handle else [],
                "stoppedTrackIds": list(getattr(self.media.devices, "stopped_track_ids", []) or []),
            },
            "mediaError": self.media_error,
            "speech": self.speech.to_dict(),
            "result": self.result.to_dict() if self.result else None,
        }

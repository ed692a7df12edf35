import asyncio
import logging
import random

import pytest

from app.interview.controller import (
    ANALYSIS_FALLBACK_FEEDBACK,
    TOO_SHORT_FEEDBACK,
    InterviewSessionController,
    SessionStateError,
)
from app.interview.media import MediaCaptureManager
from app.interview.models import ExperienceLevel, JobRole, SessionContext, SessionState, StartOptions
from app.interview.questions import UNCONFIGURED_QUESTION
from app.interview.speech import ClientSpeechRecognizer, ClientSpeechSynthesizer, SpeechBridge

LONG_ANSWER = "I would start by profiling the slowest requests first."


class _Source:
    def __init__(self, questions=None, error: Exception | None = None):
        self.questions = questions if questions is not None else ["Q one?", "Q two?", "Q three?"]
        self.error = error
        self.calls = []

    async def fetch_questions(self, config, count):
        self.calls.append((config, count))
        if self.error is not None:
            raise self.error
        return list(self.questions)


class _Analyzer:
    def __init__(self, score: int = 80, fail: bool = False, delay: float = 0.0):
        self.score = score
        self.fail = fail
        self.delay = delay
        self.calls = []
        self.gates: dict[str, asyncio.Event] = {}

    async def analyze(self, question, answer, config):
        self.calls.append((question, answer))
        gate = self.gates.get(question)
        if gate is not None:
            await gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("analyzer down")
        return {"score": self.score, "feedback": "Clear answer.", "strengths": ["Structured"], "weaknesses": []}


class _Sink:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved = []

    async def save(self, payload, context):
        if self.fail:
            raise ConnectionError("store unreachable")
        self.saved.append(payload)


class _Track:
    def __init__(self, track_id: str):
        self.id = track_id
        self.kind = "video"
        self.stop_calls = 0

    def stop(self):
        self.stop_calls += 1


class _Devices:
    def __init__(self, granted: bool = True):
        self.granted = granted
        self.tracks = [_Track("cam"), _Track("mic")]

    async def get_user_media(self, video=True, audio=True):
        if not self.granted:
            raise PermissionError("Permission denied")
        return list(self.tracks)


class _BrokenMedia(MediaCaptureManager):
    def release(self, handle=None):
        raise RuntimeError("release exploded")


def _controller(
    source=None,
    analyzer=None,
    sink=None,
    devices=None,
    media=None,
    analysis_timeout: float = 5.0,
):
    speech = SpeechBridge(ClientSpeechSynthesizer(), ClientSpeechRecognizer(), session_id="test")
    return InterviewSessionController(
        context=SessionContext(user_id="u1", auth_token="tok"),
        question_source=source or _Source(),
        analyzer=analyzer or _Analyzer(),
        result_sink=sink or _Sink(),
        media=media or MediaCaptureManager(devices if devices is not None else _Devices()),
        speech=speech,
        session_id="test",
        question_time_limit=180,
        tick_interval=3600,
        analysis_timeout=analysis_timeout,
        rng=random.Random(7),
    )


def _options(**overrides) -> StartOptions:
    values = {"job_role": JobRole.WEB_DEVELOPER, "experience_level": ExperienceLevel.FRESHER}
    values.update(overrides)
    return StartOptions(**values)


@pytest.mark.asyncio
async def test_start_loads_questions_and_runs_timers():
    source = _Source()
    controller = _controller(source=source)

    snapshot = await controller.start(_options())

    assert controller.state == SessionState.IN_PROGRESS
    assert [q.text for q in controller.questions] == ["Q one?", "Q two?", "Q three?"]
    assert source.calls[0][1] == 10
    assert snapshot["questionTimeRemaining"] == 180
    assert snapshot["sessionTimeRemaining"] == 3 * 180
    assert controller.media.handle is not None
    assert controller.speech.synthesizer.utterance["text"] == "Q one?"
    controller.close()


@pytest.mark.asyncio
async def test_scheduled_session_timer_covers_every_question_and_completes_at_zero():
    sink = _Sink()
    controller = _controller(source=_Source([f"Question {i}?" for i in range(5)]), sink=sink)
    await controller.start(_options(interview_id="iv-1"))

    assert controller.is_hr_scheduled is True
    assert controller.session_timer.remaining == 900

    for _ in range(900):
        controller.session_timer.tick()
    await controller.wait_for_background()

    assert controller.state == SessionState.COMPLETE
    assert controller.question_timer.cancelled is True
    assert controller.result is not None
    assert len(sink.saved) == 1
    assert sink.saved[0]["interviewId"] == "iv-1"
    assert sink.saved[0]["isHrScheduled"] is True


@pytest.mark.asyncio
async def test_duration_hint_sets_scheduled_question_count():
    source = _Source()
    controller = _controller(source=source)
    await controller.start(_options(is_hr_scheduled=True, duration_seconds=540))
    assert source.calls[0][1] == 3
    controller.close()


@pytest.mark.asyncio
async def test_question_source_failure_uses_static_questions():
    controller = _controller(source=_Source(error=ConnectionError("offline")))

    await controller.start(_options())

    assert controller.state == SessionState.IN_PROGRESS
    assert controller.questions
    assert controller.questions[0].text == "Tell me about yourself and your interest in web development."
    controller.close()


@pytest.mark.asyncio
async def test_empty_question_list_uses_static_questions():
    controller = _controller(source=_Source(questions=[]))
    await controller.start(_options())
    assert len(controller.questions) == 4
    controller.close()


@pytest.mark.asyncio
async def test_start_without_role_uses_single_generic_question():
    source = _Source()
    controller = _controller(source=source)

    await controller.start(StartOptions())

    assert controller.state == SessionState.IN_PROGRESS
    assert [q.text for q in controller.questions] == [UNCONFIGURED_QUESTION]
    assert source.calls == []
    controller.close()


@pytest.mark.asyncio
async def test_configure_is_used_when_start_omits_role():
    from app.interview.models import SessionConfig

    source = _Source()
    controller = _controller(source=source)
    controller.configure(SessionConfig(JobRole.UX_DESIGNER, ExperienceLevel.SENIOR))

    await controller.start(StartOptions())

    assert source.calls[0][0].job_role == JobRole.UX_DESIGNER
    controller.close()


@pytest.mark.asyncio
async def test_short_answer_is_not_analyzed():
    analyzer = _Analyzer()
    controller = _controller(analyzer=analyzer)
    await controller.start(_options())
    question = controller.current_question

    answer = await controller.submit_answer(question.id, "ok")

    assert answer.score == 0
    assert answer.feedback == TOO_SHORT_FEEDBACK
    assert analyzer.calls == []
    controller.close()


@pytest.mark.asyncio
async def test_analyzer_failure_uses_fallback_score():
    controller = _controller(analyzer=_Analyzer(fail=True))
    await controller.start(_options())
    question = controller.current_question

    answer = await controller.submit_answer(question.id, LONG_ANSWER)

    assert 50 <= answer.score <= 70
    assert answer.feedback == ANALYSIS_FALLBACK_FEEDBACK
    assert answer.weaknesses == ["AI analysis unavailable"]
    controller.close()


@pytest.mark.asyncio
async def test_slow_analyzer_times_out_to_fallback():
    controller = _controller(analyzer=_Analyzer(delay=1.0), analysis_timeout=0.05)
    await controller.start(_options())

    answer = await controller.submit_answer(controller.current_question.id, LONG_ANSWER)

    assert answer.feedback == ANALYSIS_FALLBACK_FEEDBACK
    controller.close()


@pytest.mark.asyncio
async def test_resubmission_replaces_previous_answer():
    controller = _controller()
    await controller.start(_options())
    question = controller.current_question

    await controller.submit_answer(question.id, "first try")
    await controller.submit_answer(question.id, LONG_ANSWER)

    assert list(controller.answers) == [question.id]
    assert controller.answers[question.id].text == LONG_ANSWER
    assert controller.answers[question.id].score == 80
    controller.close()


@pytest.mark.asyncio
async def test_submit_for_other_question_is_rejected():
    controller = _controller()
    await controller.start(_options())

    with pytest.raises(SessionStateError):
        await controller.submit_answer(controller.questions[1].id, LONG_ANSWER)
    controller.close()


@pytest.mark.asyncio
async def test_submit_before_start_is_rejected():
    controller = _controller()
    with pytest.raises(SessionStateError):
        await controller.submit_answer("q", LONG_ANSWER)


@pytest.mark.asyncio
async def test_analysis_resolving_after_advance_lands_on_its_own_question():
    analyzer = _Analyzer()
    controller = _controller(analyzer=analyzer)
    await controller.start(_options())
    first, second = controller.questions[0], controller.questions[1]
    analyzer.gates[first.text] = asyncio.Event()

    pending = asyncio.create_task(controller.submit_answer(first.id, "First answer with plenty of words"))
    await asyncio.sleep(0)
    assert controller.advance(1) is True
    await controller.submit_answer(second.id, "Second answer with plenty of words")
    analyzer.gates[first.text].set()
    await pending

    assert controller.current_index == 1
    assert controller.answers[first.id].text == "First answer with plenty of words"
    assert controller.answers[first.id].question_text == first.text
    assert controller.answers[second.id].text == "Second answer with plenty of words"
    controller.close()


@pytest.mark.asyncio
async def test_advance_clamps_and_reloads_existing_answer():
    controller = _controller()
    await controller.start(_options())
    first = controller.current_question

    assert controller.advance(-1) is False
    await controller.submit_answer(first.id, LONG_ANSWER)
    assert controller.advance(1) is True
    assert controller.speech.pending_text == ""
    assert controller.advance(1) is True
    assert controller.advance(1) is False
    assert controller.current_index == 2

    controller.advance(-1)
    controller.advance(-1)
    assert controller.speech.pending_text == LONG_ANSWER
    assert controller.question_timer.remaining == 180
    controller.close()


@pytest.mark.asyncio
async def test_each_question_is_read_aloud_once():
    controller = _controller()
    await controller.start(_options())
    synth = controller.speech.synthesizer

    controller.advance(1)
    assert synth.utterance["text"] == "Q two?"
    controller.speech.handle_speech_end(controller.current_question.id)
    controller.advance(-1)

    assert synth.utterance["text"] == "Q two?"
    assert controller.speech.speaking is False
    controller.close()


@pytest.mark.asyncio
async def test_speech_end_auto_starts_capture_only_without_answer():
    controller = _controller()
    await controller.start(_options())
    first = controller.current_question

    assert controller.speech_finished(first.id) is True
    assert controller.speech.recognizer.active is True

    controller.advance(1)
    second = controller.current_question
    assert controller.speech.capturing is False
    await controller.submit_answer(second.id, LONG_ANSWER)
    assert controller.speech_finished(second.id) is False
    assert controller.speech.capturing is False
    controller.close()


@pytest.mark.asyncio
async def test_submit_and_advance_uses_transcript_and_finishes_on_last():
    sink = _Sink()
    controller = _controller(source=_Source(["Only one?", "Last one?"]), sink=sink)
    await controller.start(_options())

    controller.on_transcript("I profiled the endpoint", is_final=True)
    controller.on_transcript("and cached the results", is_final=False)
    await controller.submit_and_advance()

    first = controller.questions[0]
    assert controller.answers[first.id].text == "I profiled the endpoint and cached the results"
    assert controller.current_index == 1

    await controller.submit_and_advance()
    await controller.wait_for_background()

    assert controller.state == SessionState.COMPLETE
    assert controller.result.answers[1].text == "Skipped"
    assert len(sink.saved) == 1


@pytest.mark.asyncio
async def test_skip_saves_partial_text_only_when_present():
    controller = _controller()
    await controller.start(_options())
    first, second = controller.questions[0], controller.questions[1]

    await controller.skip_question()
    assert first.id not in controller.answers
    assert controller.current_question.id == second.id

    controller.on_transcript("partial", is_final=True)
    await controller.skip_question()
    assert controller.answers[second.id].text == "partial"
    assert controller.answers[second.id].score == 0

    await controller.skip_question()
    assert controller.state == SessionState.COMPLETE
    await controller.wait_for_background()


@pytest.mark.asyncio
async def test_question_timer_expiry_submits_and_advances():
    controller = _controller()
    await controller.start(_options())
    first = controller.current_question
    controller.on_transcript(LONG_ANSWER, is_final=True)

    for _ in range(180):
        controller.question_timer.tick()
    await controller.wait_for_background()

    assert controller.answers[first.id].text == LONG_ANSWER
    assert controller.current_index == 1
    assert controller.question_timer.remaining == 180
    assert controller.question_timer.expired is False
    controller.close()


@pytest.mark.asyncio
async def test_question_timer_expiry_on_last_question_finishes():
    controller = _controller(source=_Source(["Only question?"]))
    await controller.start(_options())

    for _ in range(180):
        controller.question_timer.tick()
    await controller.wait_for_background()

    assert controller.state == SessionState.COMPLETE
    assert controller.result.answers[0].text == "Skipped"


@pytest.mark.asyncio
async def test_session_expiry_submits_pending_text_first():
    controller = _controller(source=_Source(["One?", "Two?"]))
    await controller.start(_options())
    controller.on_transcript(LONG_ANSWER, is_final=False)

    for _ in range(360):
        controller.session_timer.tick()
    await controller.wait_for_background()

    assert controller.state == SessionState.COMPLETE
    assert controller.result.answers[0].text == LONG_ANSWER
    assert controller.result.answers[0].score == 80
    assert controller.result.total_score == 80


@pytest.mark.asyncio
async def test_finish_twice_releases_once():
    devices = _Devices()
    controller = _controller(devices=devices)
    await controller.start(_options())
    controller.start_capture()

    first = await controller.finish()
    second = await controller.finish()

    assert first is second
    assert controller.state == SessionState.COMPLETE
    assert [t.stop_calls for t in devices.tracks] == [1, 1]
    assert controller.speech.capturing is False
    assert controller.speech.speaking is False
    assert controller.question_timer.cancelled and controller.session_timer.cancelled
    await controller.wait_for_background()


@pytest.mark.asyncio
async def test_teardown_continues_past_failing_release():
    controller = _controller(media=_BrokenMedia(_Devices()))
    await controller.start(_options())
    controller.start_capture()
    question_timer = controller.question_timer

    def _boom():
        raise RuntimeError("timer stuck")

    question_timer.cancel = _boom

    await controller.finish()

    assert controller.state == SessionState.COMPLETE
    assert controller.session_timer.cancelled is True
    assert controller.speech.recognizer.active is False
    assert controller.speech.synthesizer.cancel_count == 1
    await controller.wait_for_background()

    del question_timer.cancel
    question_timer.cancel()


@pytest.mark.asyncio
async def test_finish_scores_recorded_answers():
    controller = _controller()
    await controller.start(_options())

    await controller.submit_answer(controller.current_question.id, LONG_ANSWER)
    controller.advance(1)
    await controller.submit_answer(controller.current_question.id, "ok")
    result = await controller.finish()

    assert result.total_score == 40
    assert [a.text for a in result.answers] == [LONG_ANSWER, "ok", "Skipped"]
    assert result.strengths == ("Structured",)
    assert result.feedback.startswith("You need more practice")
    await controller.wait_for_background()


@pytest.mark.asyncio
async def test_finish_without_answers_still_builds_result():
    controller = _controller()
    await controller.start(_options())
    result = await controller.finish()
    assert result.total_score == 0
    assert all(a.text == "Skipped" for a in result.answers)
    await controller.wait_for_background()


@pytest.mark.asyncio
async def test_late_analysis_after_finish_is_dropped():
    analyzer = _Analyzer()
    controller = _controller(analyzer=analyzer)
    await controller.start(_options())
    first = controller.current_question
    analyzer.gates[first.text] = asyncio.Event()

    pending = asyncio.create_task(controller.submit_answer(first.id, LONG_ANSWER))
    await asyncio.sleep(0)
    await controller.finish()
    analyzer.gates[first.text].set()

    assert await pending is None
    assert first.id not in controller.answers
    assert controller.result.answers[0].text == "Skipped"
    await controller.wait_for_background()


@pytest.mark.asyncio
async def test_persistence_failure_is_swallowed():
    controller = _controller(sink=_Sink(fail=True))
    await controller.start(_options())
    await controller.finish()
    await controller.wait_for_background()
    assert controller.state == SessionState.COMPLETE


@pytest.mark.asyncio
async def test_media_failure_degrades_but_continues():
    controller = _controller(devices=_Devices(granted=False))

    snapshot = await controller.start(_options())

    assert controller.state == SessionState.IN_PROGRESS
    assert snapshot["mediaError"] == "Permission denied"
    controller.close()


@pytest.mark.asyncio
async def test_media_failure_is_fatal_when_required():
    source = _Source()
    controller = _controller(devices=_Devices(granted=False), source=source)

    await controller.start(_options(require_media=True))

    assert controller.state == SessionState.FAILED
    assert source.calls == []


@pytest.mark.asyncio
async def test_retry_media_clears_degraded_flag():
    controller = _controller(devices=_Devices(granted=False))
    await controller.start(_options())

    assert await controller.retry_media(_Devices()) is True
    assert controller.media_error is None
    assert controller.snapshot()["media"]["active"] is True
    controller.close()


@pytest.mark.asyncio
async def test_restart_discards_previous_session():
    devices = _Devices()
    controller = _controller(devices=devices)
    await controller.start(_options())
    old_timer = controller.question_timer
    await controller.submit_answer(controller.current_question.id, LONG_ANSWER)

    await controller.start(_options())

    assert old_timer.cancelled is True
    assert controller.answers == {}
    assert controller.result is None
    assert devices.tracks[0].stop_calls == 1
    assert controller.state == SessionState.IN_PROGRESS
    controller.close()


@pytest.mark.asyncio
async def test_close_tears_down_and_blocks_further_use():
    devices = _Devices()
    controller = _controller(devices=devices)
    await controller.start(_options())

    controller.close()
    controller.close()

    assert controller.question_timer.cancelled is True
    assert [t.stop_calls for t in devices.tracks] == [1, 1]
    with pytest.raises(SessionStateError):
        controller.advance(1)
    with pytest.raises(SessionStateError):
        await controller.start(_options())


@pytest.mark.asyncio
async def test_question_timer_expiry_during_analysis_does_not_resubmit():
    analyzer = _Analyzer()
    controller = _controller(analyzer=analyzer)
    await controller.start(_options())
    first = controller.current_question
    analyzer.gates[first.text] = asyncio.Event()
    controller.on_transcript(LONG_ANSWER, is_final=True)

    submitting = asyncio.create_task(controller.submit_and_advance())
    await asyncio.sleep(0)
    controller.question_timer.remaining = 1
    controller.question_timer.tick()
    await asyncio.sleep(0)
    analyzer.gates[first.text].set()
    await submitting
    await controller.wait_for_background()

    assert len(analyzer.calls) == 1
    assert controller.answers[first.id].text == LONG_ANSWER
    assert controller.current_index == 1
    assert controller.question_timer.expired is False
    controller.close()


@pytest.mark.asyncio
async def test_skip_while_answer_is_being_scored_is_ignored():
    analyzer = _Analyzer()
    controller = _controller(analyzer=analyzer)
    await controller.start(_options())
    first = controller.current_question
    analyzer.gates[first.text] = asyncio.Event()
    controller.on_transcript(LONG_ANSWER, is_final=True)

    submitting = asyncio.create_task(controller.submit_and_advance())
    await asyncio.sleep(0)
    await controller.skip_question()
    analyzer.gates[first.text].set()
    await submitting

    assert len(analyzer.calls) == 1
    assert controller.current_index == 1
    controller.close()


@pytest.mark.asyncio
async def test_session_expiry_waits_for_answer_being_scored():
    analyzer = _Analyzer()
    controller = _controller(source=_Source(["Only one?"]), analyzer=analyzer)
    await controller.start(_options())
    only = controller.current_question
    analyzer.gates[only.text] = asyncio.Event()
    controller.on_transcript(LONG_ANSWER, is_final=True)

    submitting = asyncio.create_task(controller.submit_and_advance())
    await asyncio.sleep(0)
    controller.session_timer.remaining = 1
    controller.session_timer.tick()
    await asyncio.sleep(0)
    analyzer.gates[only.text].set()
    await submitting
    await controller.wait_for_background()

    assert len(analyzer.calls) == 1
    assert controller.state == SessionState.COMPLETE
    assert controller.result.answers[0].text == LONG_ANSWER
    assert controller.result.answers[0].score == 80


@pytest.mark.asyncio
async def test_changing_question_stops_speech_in_progress():
    controller = _controller()
    await controller.start(_options())
    synth = controller.speech.synthesizer

    controller.advance(1)
    assert controller.speech.speaking is True
    controller.advance(-1)

    assert controller.speech.speaking is False
    assert synth.utterance is None
    assert synth.cancel_count == 2
    controller.close()


@pytest.mark.asyncio
async def test_failed_background_task_is_logged(caplog: pytest.LogCaptureFixture):
    controller = _controller()

    async def _broken():
        raise ValueError("persist blew up")

    with caplog.at_level(logging.WARNING, logger="app.interview.controller"):
        task = controller.create_task(_broken())
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0)

    assert "persist blew up" in caplog.text
    assert controller.tasks == []

import asyncio
import logging
from typing import Optional, Protocol

import httpx

from core.config import COLLABORATOR_BASE_URL, COLLABORATOR_TIMEOUT_SEC
from app.db import result_store
from app.interview import evaluator
from app.interview.models import InterviewResult, SessionConfig, SessionContext

logger = logging.getLogger("app.interview.sources")


class CollaboratorError(Exception):
    """A question/analysis/persistence collaborator failed or answered malformed data."""


class QuestionSource(Protocol):
    async def fetch_questions(self, config: SessionConfig, count: int) -> list[str]: ...


class AnswerAnalyzer(Protocol):
    async def analyze(self, question: str, answer: str, config: Optional[SessionConfig]) -> dict: ...


class ResultSink(Protocol):
    async def save(self, payload: dict, context: SessionContext) -> None: ...


def build_payload(result: InterviewResult, config: Optional[SessionConfig], context: SessionContext) -> dict:
    return {
        "interviewId": context.interview_id,
        "jobRole": config.job_role.value if config else None,
        "experienceLevel": config.experience_level.value if config else None,
        "totalScore": result.total_score,
        "feedback": result.feedback,
        "strengths": list(result.strengths),
        "improvements": list(result.improvements),
        "isHrScheduled": result.is_hr_scheduled,
        "date": result.date.isoformat(),
        "answers": [
            {
                "questionId": answer.question_id,
                "questionText": answer.question_text,
                "answerText": answer.text,
                "score": answer.score,
                "feedback": answer.feedback,
                "strengths": list(answer.strengths),
                "weaknesses": list(answer.weaknesses),
            }
            for answer in result.answers
        ],
    }


def _analysis_from_body(body) -> dict:
    if not isinstance(body, dict) or "score" not in body:
        raise CollaboratorError("analysis response missing score")
    try:
        score = float(body["score"])
    except (TypeError, ValueError) as exc:
        raise CollaboratorError(f"analysis score is not numeric: {body['score']!r}") from exc
    return {
        "score": max(0, min(100, int(round(score)))),
        "feedback": str(body.get("feedback") or ""),
        "strengths": [str(item) for item in (body.get("strengths") or []) if str(item or "").strip()],
        "weaknesses": [str(item) for item in (body.get("weaknesses") or []) if str(item or "").strip()],
    }


# ---------- HTTP collaborators ----------

class _HttpCollaborator:
    def __init__(
        self,
        base_url: str,
        timeout_sec: float = COLLABORATOR_TIMEOUT_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = str(base_url or "").rstrip("/")
        self.timeout_sec = timeout_sec
        self.transport = transport

    async def _post(self, path: str, body: dict, token: Optional[str] = None):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self.transport) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"POST {path} failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise CollaboratorError(f"POST {path} returned {response.status_code}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise CollaboratorError(f"POST {path} returned invalid JSON") from exc


class HttpQuestionSource(_HttpCollaborator):
    async def fetch_questions(self, config: SessionConfig, count: int) -> list[str]:
        body = await self._post(
            "/api/interviews/gemini/questions",
            {
                "jobRole": config.job_role.value,
                "experienceLevel": config.experience_level.value,
                "count": count,
            },
        )
        questions = body.get("questions") if isinstance(body, dict) else None
        if not isinstance(questions, list):
            raise CollaboratorError("question response missing 'questions' array")
        return [str(text) for text in questions if str(text or "").strip()]


class HttpAnswerAnalyzer(_HttpCollaborator):
    async def analyze(self, question: str, answer: str, config: Optional[SessionConfig]) -> dict:
        body = await self._post(
            "/api/interviews/gemini/analyze",
            {
                "question": question,
                "answer": answer,
                "jobRole": config.job_role.value if config else None,
                "experienceLevel": config.experience_level.value if config else None,
            },
        )
        return _analysis_from_body(body)


class HttpResultSink(_HttpCollaborator):
    async def save(self, payload: dict, context: SessionContext) -> None:
        await self._post("/api/interview-results", payload, token=context.auth_token)


# ---------- in-process collaborators ----------

class LocalQuestionSource:
    async def fetch_questions(self, config: SessionConfig, count: int) -> list[str]:
        return await evaluator.generate_questions(config.job_role, config.experience_level, count)


class LocalAnswerAnalyzer:
    async def analyze(self, question: str, answer: str, config: Optional[SessionConfig]) -> dict:
        data = await evaluator.analyze_answer(
            question,
            answer,
            config.job_role if config else None,
            config.experience_level if config else None,
        )
        return _analysis_from_body(data)


class LocalResultSink:
    async def save(self, payload: dict, context: SessionContext) -> None:
        await asyncio.to_thread(result_store.save_result, payload, context.user_id)


def build_collaborators(base_url: str = COLLABORATOR_BASE_URL) -> tuple[QuestionSource, AnswerAnalyzer, ResultSink]:
    if base_url:
        logger.info("collaborators | mode=http base_url=%s", base_url)
        return HttpQuestionSource(base_url), HttpAnswerAnalyzer(base_url), HttpResultSink(base_url)
    return LocalQuestionSource(), LocalAnswerAnalyzer(), LocalResultSink()

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class JobRole(str, Enum):
    WEB_DEVELOPER = "web-developer"
    APP_DEVELOPER = "app-developer"
    ML_AI = "ml-ai"
    UX_DESIGNER = "ux-designer"
    DATA_SCIENTIST = "data-scientist"


class ExperienceLevel(str, Enum):
    FRESHER = "fresher"
    JUNIOR = "junior"
    MID_LEVEL = "mid-level"
    SENIOR = "senior"


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionConfig:
    job_role: JobRole
    experience_level: ExperienceLevel

    def to_dict(self) -> dict:
        return {
            "jobRole": self.job_role.value,
            "experienceLevel": self.experience_level.value,
        }


@dataclass(frozen=True)
class SessionContext:
    """
    Who a session runs for. Passed in at construction instead of being
    rediscovered from request or process-wide state later.
    """
    user_id: str
    interview_id: Optional[str] = None
    auth_token: Optional[str] = None


@dataclass(frozen=True)
class Question:
    id: str
    text: str


@dataclass
class Answer:
    question_id: str
    text: str
    question_text: str = ""
    score: Optional[int] = None
    feedback: Optional[str] = None
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "questionText": self.question_text,
            "text": self.text,
            "score": self.score,
            "feedback": self.feedback,
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
        }


@dataclass(frozen=True)
class InterviewResult:
    total_score: int
    answers: tuple
    feedback: str
    strengths: tuple
    improvements: tuple
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_hr_scheduled: bool = False

    def to_dict(self) -> dict:
        return {
            "totalScore": self.total_score,
            "answers": [answer.to_dict() for answer in self.answers],
            "feedback": self.feedback,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "date": self.date.isoformat(),
            "isHrScheduled": self.is_hr_scheduled,
        }


@dataclass
class StartOptions:
    media: object = None
    job_role: Optional[JobRole] = None
    experience_level: Optional[ExperienceLevel] = None
    interview_id: Optional[str] = None
    duration_seconds: Optional[int] = None
    is_hr_scheduled: Optional[bool] = None
    require_media: bool = False

from pydantic import BaseModel, ConfigDict, Field

from app.interview.models import ExperienceLevel, JobRole


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MediaTrackReport(BaseModel):
    id: str
    kind: str = "video"


class MediaReport(BaseModel):
    """What the browser's getUserMedia call produced."""
    granted: bool = False
    tracks: list[MediaTrackReport] = Field(default_factory=list)
    error: str | None = None


class StartSessionRequest(_CamelModel):
    job_role: JobRole | None = Field(default=None, alias="jobRole")
    experience_level: ExperienceLevel | None = Field(default=None, alias="experienceLevel")
    interview_id: str | None = Field(default=None, alias="interviewId")
    duration_seconds: int | None = Field(default=None, alias="durationSeconds", ge=1)
    is_hr_scheduled: bool | None = Field(default=None, alias="isHrScheduled")
    require_media: bool = Field(default=False, alias="requireMedia")
    media: MediaReport | None = None


class AdvanceRequest(BaseModel):
    direction: int = Field(..., description="1 for next question, -1 for previous")


class SubmitAnswerRequest(_CamelModel):
    question_id: str = Field(..., alias="questionId")
    text: str = ""


class TranscriptRequest(_CamelModel):
    text: str = ""
    is_final: bool = Field(default=False, alias="isFinal")


class SpeechFinishedRequest(_CamelModel):
    question_id: str = Field(..., alias="questionId")


class MediaRetryRequest(BaseModel):
    media: MediaReport | None = None


# ---------- evaluator proxy ----------

class QuestionsRequest(_CamelModel):
    job_role: JobRole = Field(..., alias="jobRole")
    experience_level: ExperienceLevel = Field(..., alias="experienceLevel")
    count: int = Field(default=5, ge=1, le=20)


class QuestionsResponse(BaseModel):
    questions: list[str]


class AnalyzeRequest(_CamelModel):
    question: str
    answer: str
    job_role: JobRole | None = Field(default=None, alias="jobRole")
    experience_level: ExperienceLevel | None = Field(default=None, alias="experienceLevel")


class AnalyzeResponse(BaseModel):
    score: int
    feedback: str
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class FetchQuestionsRequest(BaseModel):
    role: str
    num_questions: int = Field(default=5, ge=1, le=20)


class EvaluateAnswerRequest(BaseModel):
    question: str
    answer: str
    role: str = ""


class EvaluateAnswerResponse(BaseModel):
    score: float
    feedback: str


# ---------- result persistence ----------

class ResultAnswer(_CamelModel):
    question_id: str = Field(..., alias="questionId")
    question_text: str = Field(default="", alias="questionText")
    answer_text: str = Field(default="", alias="answerText")
    score: int | None = None
    feedback: str | None = None
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class InterviewResultPayload(_CamelModel):
    interview_id: str | None = Field(default=None, alias="interviewId")
    job_role: JobRole | None = Field(default=None, alias="jobRole")
    experience_level: ExperienceLevel | None = Field(default=None, alias="experienceLevel")
    total_score: int = Field(..., alias="totalScore", ge=0, le=100)
    feedback: str = ""
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    is_hr_scheduled: bool = Field(default=False, alias="isHrScheduled")
    date: str | None = None
    answers: list[ResultAnswer] = Field(default_factory=list)

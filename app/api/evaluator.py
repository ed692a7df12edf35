from fastapi import APIRouter, HTTPException

from app.interview import evaluator
from app.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    EvaluateAnswerRequest,
    EvaluateAnswerResponse,
    FetchQuestionsRequest,
    QuestionsRequest,
    QuestionsResponse,
)

router = APIRouter()


@router.post("/api/interviews/gemini/questions", response_model=QuestionsResponse)
async def generate_questions(body: QuestionsRequest):
    questions = await evaluator.generate_questions(body.job_role, body.experience_level, body.count)
    return {"questions": questions}


@router.post("/api/interviews/gemini/analyze", response_model=AnalyzeResponse)
async def analyze_answer(body: AnalyzeRequest):
    return await evaluator.analyze_answer(body.question, body.answer, body.job_role, body.experience_level)


@router.post("/fetch-questions")
async def fetch_questions(body: FetchQuestionsRequest):
    try:
        return await evaluator.fetch_questions(body.role, body.num_questions)
    except LookupError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/evaluate-answer", response_model=EvaluateAnswerResponse)
async def evaluate_answer(body: EvaluateAnswerRequest):
    return await evaluator.evaluate_answer(body.question, body.answer, body.role)

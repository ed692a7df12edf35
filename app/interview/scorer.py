from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from core.config import MAX_RESULT_HIGHLIGHTS
from app.interview.models import Answer, InterviewResult, Question

SKIPPED_TEXT = "Skipped"
SKIPPED_FEEDBACK = "This question was skipped."


def _safe_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except Exception:
        return default


def total_score(answers: Iterable[Answer]) -> int:
    scored = [_safe_int(answer.score) for answer in answers if answer.score is not None]
    if not scored:
        return 0
    # halves round up
    return max(0, min(100, int(sum(scored) / len(scored) + 0.5)))


def feedback_for(score: int) -> str:
    if score >= 80:
        return "Excellent job! You demonstrated strong communication skills and provided comprehensive answers."
    if score >= 70:
        return "Good job! Your answers were solid with some room for improvement in specific areas."
    if score >= 60:
        return "Satisfactory performance. With some preparation, you can improve your interview skills."
    return "You need more practice with interview questions. Focus on being more specific and structured in your answers."


def unique_highlights(items: Iterable[str], limit: int = MAX_RESULT_HIGHLIGHTS) -> List[str]:
    seen = set()
    out: List[str] = []
    for item in items:
        text = str(item or "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        out.append(text)
        if len(out) >= limit:
            break
    return out


def skipped_answer(question: Question) -> Answer:
    return Answer(
        question_id=question.id,
        question_text=question.text,
        text=SKIPPED_TEXT,
        score=0,
        feedback=SKIPPED_FEEDBACK,
    )


def build_result(
    questions: Sequence[Question],
    answers: Dict[str, Answer],
    is_hr_scheduled: bool = False,
) -> InterviewResult:
    """
    Aggregate recorded answers into the immutable session result.

    The total is the rounded mean over recorded answers that carry a score;
    placeholders for unanswered questions are added afterwards and do not
    pull the mean down. The answer list follows question order.
    """
    recorded = [answers[q.id] for q in questions if q.id in answers]
    score = total_score(recorded)

    final_answers = []
    for question in questions:
        existing = answers.get(question.id)
        if existing is None:
            final_answers.append(skipped_answer(question))
        else:
            final_answers.append(replace(
                existing,
                question_text=question.text,
                strengths=list(existing.strengths),
                weaknesses=list(existing.weaknesses),
            ))

    strengths = unique_highlights(s for answer in recorded for s in answer.strengths)
    improvements = unique_highlights(w for answer in recorded for w in answer.weaknesses)

    return InterviewResult(
        total_score=score,
        answers=tuple(final_answers),
        feedback=feedback_for(score),
        strengths=tuple(strengths),
        improvements=tuple(improvements),
        is_hr_scheduled=bool(is_hr_scheduled),
    )

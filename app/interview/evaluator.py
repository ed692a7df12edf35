import json
import logging
import re

from app.interview.models import ExperienceLevel, JobRole
from app.interview.questions import fallback_questions
from app.router.engine import call_llm

logger = logging.getLogger("app.interview.evaluator")

FALLBACK_EVALUATION = {
    "score": 75,
    "feedback": "This is a mock evaluation. The answer seems plausible.",
    "strengths": [],
    "weaknesses": [],
}

# role keys used by the standalone /fetch-questions route
LEGACY_QUESTIONS = {
    "software_engineer": [
        "Explain the difference between a list and a tuple in Python.",
        "What is a REST API?",
        "Describe the concept of Object-Oriented Programming.",
    ],
    "product_manager": [
        "How do you prioritize features for a new product?",
        "What are some common KPIs for a SaaS product?",
    ],
}

_LIST_PREFIX = re.compile(r"^\s*(?:[-*•]+|\(?\d+[.)]|Q\d+[.:)])\s*", re.IGNORECASE)


def _label(value) -> str:
    return str(getattr(value, "value", value) or "")


def _clamp_score(value, default=50):
    try:
        return max(0, min(100, int(round(float(value)))))
    except Exception:
        return default


def _scaled_score(value, fractional: bool = False, default=None):
    """With ``fractional`` set, replies of 0-1 are read as fractions of 100."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if fractional and 0.0 <= number <= 1.0:
        number *= 100.0
    return _clamp_score(number, default)


def _string_list(value) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if str(item or "").strip()]


def _extract_json_dict(text: str) -> dict | None:
    text = (text or "").strip()
    if not text:
        return None

    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except Exception:
        pass

    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", text, re.IGNORECASE)
    if fenced:
        try:
            parsed = json.loads(fenced.group(1))
            return parsed if isinstance(parsed, dict) else None
        except Exception:
            pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            parsed = json.loads(text[start:end + 1])
            return parsed if isinstance(parsed, dict) else None
        except Exception:
            return None

    return None


def _extract_score_lines(text: str) -> dict | None:
    score_line = None
    feedback_line = None
    for line in (text or "").splitlines():
        stripped = line.strip()
        if score_line is None and stripped.lower().startswith("score:"):
            score_line = stripped[len("score:"):].strip()
        elif feedback_line is None and stripped.lower().startswith("feedback:"):
            feedback_line = stripped[len("feedback:"):].strip()
    if score_line is None or not feedback_line:
        return None
    match = re.search(r"-?\d+(?:\.\d+)?", score_line)
    if not match:
        return None
    return {"score": match.group(0), "feedback": feedback_line}


def parse_question_lines(text: str, count: int) -> list[str]:
    questions = []
    for line in (text or "").splitlines():
        cleaned = _LIST_PREFIX.sub("", line).strip().strip('"').strip()
        if cleaned:
            questions.append(cleaned)
        if len(questions) >= count:
            break
    return questions


def parse_evaluation(text: str, fractional: bool = False) -> dict | None:
    data = _extract_json_dict(text) or _extract_score_lines(text)
    if not data:
        return None
    score = _scaled_score(data.get("score"), fractional)
    feedback = str(data.get("feedback") or "").strip()
    if score is None or not feedback:
        return None
    return {
        "score": score,
        "feedback": feedback,
        "strengths": _string_list(data.get("strengths")),
        "weaknesses": _string_list(data.get("weaknesses")),
    }


async def generate_questions(role: JobRole, level: ExperienceLevel, count: int) -> list[str]:
    count = max(1, int(count or 1))
    prompt = f"""
You are interviewing a {_label(level)} candidate for a {_label(role)} position.

Generate {count} interview questions appropriate for that role and experience level.
Mix technical and behavioural questions.
Provide only the questions, each on a new line, without numbering or commentary.
"""
    text = await call_llm(prompt)
    questions = parse_question_lines(text, count)
    if questions:
        return questions

    logger.warning("question generation fallback | role=%s level=%s", _label(role), _label(level))
    return fallback_questions(JobRole(role), ExperienceLevel(level), count)


async def analyze_answer(question: str, answer: str, role=None, level=None) -> dict:
    prompt = f"""
You are a senior interviewer for a {_label(role) or "general"} position
assessing a {_label(level) or "candidate"} level candidate.

Question:
{question}

Candidate Answer:
{answer}

Give evaluation strictly in JSON:
{{
  "score": 0-100,
  "feedback": "two or three sentences of feedback",
  "strengths": ["..."],
  "weaknesses": ["..."]
}}
"""
    parsed = parse_evaluation(await call_llm(prompt))
    if parsed is not None:
        return parsed

    logger.warning("answer analysis fallback | role=%s level=%s", _label(role), _label(level))
    return dict(FALLBACK_EVALUATION, strengths=[], weaknesses=[])


# ---------- standalone evaluator routes ----------

async def fetch_questions(role: str, num_questions: int = 5) -> list[dict]:
    """Raises LookupError when the model returns nothing and ``role`` has no static set."""
    num_questions = max(1, int(num_questions or 5))
    prompt = (
        f"Generate {num_questions} interview questions for a {role} role. "
        "Provide only the questions, each on a new line."
    )
    questions = parse_question_lines(await call_llm(prompt), num_questions)
    if not questions:
        questions = LEGACY_QUESTIONS.get(str(role or ""), [])[:num_questions]
    if not questions:
        raise LookupError(f"No questions available for role '{role}'")
    return [{"id": index + 1, "text": text} for index, text in enumerate(questions)]


async def evaluate_answer(question: str, answer: str, role: str = "") -> dict:
    prompt = f"""Evaluate the following answer for the question:
Question: "{question}"
Answer: "{answer}"
Role (for context, if applicable): "{role}"

Provide a score from 0.0 to 1.0 (e.g., 0.75) and brief feedback.
Format your response as:
Score: [score]
Feedback: [feedback]"""
    parsed = parse_evaluation(await call_llm(prompt), fractional=True)
    if parsed is None:
        return {"score": 0.75, "feedback": FALLBACK_EVALUATION["feedback"]}
    return {"score": round(parsed["score"] / 100.0, 2), "feedback": parsed["feedback"]}

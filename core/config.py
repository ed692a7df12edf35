import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH)


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    try:
        return max(minimum, int(os.getenv(name, str(default))))
    except ValueError:
        return default


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    try:
        return max(minimum, float(os.getenv(name, str(default))))
    except ValueError:
        return default


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


ENV = str(os.getenv("ENV") or "development").strip().lower()

# ---------- generative model ----------
GEMINI_API_KEY = str(os.getenv("GEMINI_API_KEY") or "").strip()
OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
GEMINI_MODEL = str(os.getenv("GEMINI_MODEL") or "gemini-2.5-flash").strip()
OPENAI_MODEL = str(os.getenv("OPENAI_MODEL") or "gpt-4.1-mini").strip()
LLM_PROVIDER = str(os.getenv("LLM_PROVIDER") or "gemini").strip().lower()
LLM_TIMEOUT_SEC = _env_float("LLM_TIMEOUT_SEC", 15.0, minimum=1.0)
LLM_RETRIES = _env_int("LLM_RETRIES", 1)

# ---------- interview session ----------
QUESTION_TIME_LIMIT_SEC = _env_int("QUESTION_TIME_LIMIT_SEC", 180, minimum=1)  # 3 minutes per question
DEFAULT_PRACTICE_QUESTION_COUNT = _env_int("DEFAULT_PRACTICE_QUESTION_COUNT", 10, minimum=1)
DEFAULT_SCHEDULED_QUESTION_COUNT = _env_int("DEFAULT_SCHEDULED_QUESTION_COUNT", 5, minimum=1)
MIN_ANALYZABLE_ANSWER_CHARS = 10
MAX_RESULT_HIGHLIGHTS = 5
ANALYSIS_TIMEOUT_SEC = _env_float("ANALYSIS_TIMEOUT_SEC", 20.0, minimum=1.0)
TIMER_TICK_SEC = _env_float("TIMER_TICK_SEC", 1.0, minimum=0.01)

# ---------- collaborators ----------
# Empty base url wires the controller to the in-process evaluator and result store.
COLLABORATOR_BASE_URL = str(os.getenv("COLLABORATOR_BASE_URL") or "").strip().rstrip("/")
COLLABORATOR_TIMEOUT_SEC = _env_float("COLLABORATOR_TIMEOUT_SEC", 10.0, minimum=1.0)
RESULT_STORE_PATH = Path(os.getenv("RESULT_STORE_PATH") or (_BACKEND_ROOT / "data" / "interview_results.json"))

# ---------- auth ----------
AUTH_JWT_SECRET = str(os.getenv("AUTH_JWT_SECRET") or "").strip()
ALLOW_UNVERIFIED_JWT_DEV = _env_flag("ALLOW_UNVERIFIED_JWT_DEV")

# ---------- http ----------
CORS_ALLOW_ORIGINS = str(os.getenv("CORS_ALLOW_ORIGINS") or "").strip()
RATE_LIMIT_ENABLED = _env_flag("RATE_LIMIT_ENABLED", "true")
RATE_LIMIT_WINDOW_SEC = _env_int("RATE_LIMIT_WINDOW_SEC", 60, minimum=10)
RATE_LIMIT_MAX_REQUESTS = _env_int("RATE_LIMIT_MAX_REQUESTS", 300, minimum=20)
SESSION_CLEANUP_TTL_SEC = _env_int("SESSION_CLEANUP_TTL_SEC", 1800, minimum=60)
SESSION_CLEANUP_INTERVAL_SEC = _env_int("SESSION_CLEANUP_INTERVAL_SEC", 120, minimum=30)

import base64
import json
import os
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# core.config reads these once at import time
os.environ["ENV"] = "development"
os.environ["ALLOW_UNVERIFIED_JWT_DEV"] = "true"
os.environ["AUTH_JWT_SECRET"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["COLLABORATOR_BASE_URL"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("ALLOW_UNVERIFIED_JWT_DEV", "true")

    from app.db import result_store

    result_store.configure(tmp_path / "interview_results.json")


def _enc(obj: dict) -> str:
    raw = json.dumps(obj, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def make_dev_token(sub: str) -> str:
    header = _enc({"alg": "none", "typ": "JWT"})
    payload = _enc({"sub": sub, "iat": 0})
    return f"{header}.{payload}."


@pytest.fixture
def dev_jwt_token() -> str:
    return make_dev_token("pytest-user")


@pytest.fixture
def other_jwt_token() -> str:
    return make_dev_token("someone-else")

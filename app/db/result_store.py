import json
import logging
import time
import uuid
from pathlib import Path
from threading import Lock
from typing import Any

from core.config import RESULT_STORE_PATH

logger = logging.getLogger("app.db.result_store")

_store_lock = Lock()
_store_path: Path = RESULT_STORE_PATH
_results_by_id: dict[str, dict[str, Any]] = {}


def _read_file(path: Path) -> dict[str, dict[str, Any]]:
    if not path.is_file():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("result store unreadable, starting empty | path=%s err=%s", path, exc)
        return {}
    if not isinstance(raw, dict):
        return {}
    return {key: row for key, row in raw.items() if isinstance(key, str) and isinstance(row, dict)}


def _load() -> None:
    global _results_by_id
    _results_by_id = _read_file(_store_path)


def _persist() -> None:
    # the store file is only ever replaced whole
    scratch = _store_path.with_name(_store_path.name + ".partial")
    _store_path.parent.mkdir(parents=True, exist_ok=True)
    scratch.write_text(json.dumps(_results_by_id, ensure_ascii=False), encoding="utf-8")
    scratch.replace(_store_path)


def configure(path: Path | str) -> None:
    """Point the store at another file and reload it."""
    global _store_path
    with _store_lock:
        _store_path = Path(path)
        _load()


def save_result(payload: dict[str, Any], user_id: str | None = None) -> str:
    result_id = uuid.uuid4().hex
    with _store_lock:
        record = dict(payload or {})
        record["id"] = result_id
        record["created_at"] = time.time()
        if user_id:
            record["user_id"] = str(user_id)
        _results_by_id[result_id] = record
        _persist()
    return result_id


def get_result(result_id: str) -> dict[str, Any] | None:
    rid = str(result_id or "").strip()
    if not rid:
        return None
    with _store_lock:
        data = _results_by_id.get(rid)
        return dict(data) if isinstance(data, dict) else None


def list_user_results(user_id: str, limit: int = 50) -> list[dict[str, Any]]:
    uid = str(user_id or "").strip()
    if not uid:
        return []
    capped = max(1, min(int(limit or 50), 200))

    with _store_lock:
        rows = [
            dict(payload)
            for payload in _results_by_id.values()
            if isinstance(payload, dict) and str(payload.get("user_id") or "") == uid
        ]

    rows.sort(key=lambda item: float(item.get("created_at") or 0.0), reverse=True)
    return rows[:capped]


def list_results_for_interview(interview_id: str) -> list[dict[str, Any]]:
    iid = str(interview_id or "").strip()
    if not iid:
        return []
    with _store_lock:
        rows = [
            dict(payload)
            for payload in _results_by_id.values()
            if isinstance(payload, dict) and str(payload.get("interviewId") or "") == iid
        ]
    rows.sort(key=lambda item: float(item.get("created_at") or 0.0))
    return rows


_load()

import json
import logging
from typing import Any

logger = logging.getLogger("app.events")

# candidate-authored text; only its length is logged
_TEXT_FIELDS = frozenset({"text", "answer", "answer_text", "transcript", "prompt", "question_text"})


def _redact(value: Any) -> dict:
	return {"redacted": True, "length": len(str(value or ""))}


def _clean(key: str, value: Any) -> Any:
	if key.lower() in _TEXT_FIELDS:
		return _redact(value)
	if value is None or isinstance(value, (bool, int, float, str)):
		return value
	if isinstance(value, dict):
		return {str(name): _clean(str(name), item) for name, item in value.items()}
	if isinstance(value, (list, tuple, set, frozenset)):
		return [_clean(key, item) for item in value]
	return str(value)


def log_event(component: str, event: str, session_id: str, **fields) -> None:
	"""Emit one JSON line for a session event."""
	record = {
		"component": component or "app",
		"event": event or "unknown",
		"session_id": session_id or "",
	}
	for name, value in fields.items():
		record[name] = _clean(name, value)
	logger.info(json.dumps(record, ensure_ascii=False, default=str))

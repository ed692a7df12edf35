import asyncio
import logging
from typing import Awaitable, Callable

from core.config import LLM_PROVIDER, LLM_RETRIES, LLM_TIMEOUT_SEC
from app.router import gemini, openai

logger = logging.getLogger("app.router.engine")

Provider = Callable[[str], Awaitable[str]]

_REGISTRY: dict[str, tuple[Callable[[], bool], Provider]] = {
    "gemini": (gemini.is_configured, gemini.call_gemini),
    "openai": (openai.is_configured, openai.call_openai),
}


def provider_order(primary: str = LLM_PROVIDER) -> list[str]:
    names = list(_REGISTRY.keys())
    if primary in names:
        names.remove(primary)
        names.insert(0, primary)
    return names


def _providers() -> list[tuple[str, Provider]]:
    out = []
    for name in provider_order():
        is_configured, call = _REGISTRY[name]
        if is_configured():
            out.append((name, call))
    return out


async def call_llm(prompt: str, timeout_sec: float = LLM_TIMEOUT_SEC, retries: int = LLM_RETRIES) -> str:
    """
    Sends prompt to the configured providers in order and returns raw text.
    Returns "" when the prompt is blank or every provider fails; callers
    own the fallback.
    """
    if not str(prompt or "").strip():
        return ""

    providers = _providers()
    if not providers:
        logger.warning("call_llm skipped | reason=no_provider_configured")
        return ""

    last_error: Exception | None = None
    for name, call in providers:
        for attempt in range(max(1, retries + 1)):
            try:
                text = await asyncio.wait_for(call(prompt), timeout=timeout_sec)
                text = str(text or "").strip()
                if text:
                    return text
                logger.warning("call_llm empty reply | provider=%s attempt=%s", name, attempt + 1)
            except asyncio.TimeoutError as exc:
                last_error = exc
                logger.warning("call_llm timeout | provider=%s attempt=%s", name, attempt + 1)
            except Exception as exc:
                last_error = exc
                logger.warning("call_llm failure | provider=%s attempt=%s err=%s", name, attempt + 1, exc)

            if attempt < retries:
                await asyncio.sleep(0.35 * (attempt + 1))

    logger.warning("call_llm fallback activated | err=%s", last_error)
    return ""

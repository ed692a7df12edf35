import google.generativeai as genai

from core.config import GEMINI_API_KEY, GEMINI_MODEL

_model = None


def is_configured() -> bool:
    return bool(GEMINI_API_KEY)


def _get_model():
    global _model
    if _model is None:
        genai.configure(api_key=GEMINI_API_KEY)
        _model = genai.GenerativeModel(GEMINI_MODEL)
    return _model


async def call_gemini(prompt: str) -> str:
    response = await _get_model().generate_content_async(prompt)
    return str(getattr(response, "text", "") or "").strip()

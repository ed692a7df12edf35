from openai import AsyncOpenAI

from core.config import OPENAI_API_KEY, OPENAI_MODEL

_client: AsyncOpenAI | None = None


def is_configured() -> bool:
    return bool(OPENAI_API_KEY)


def _get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY)
    return _client


async def call_openai(prompt: str) -> str:
    response = await _get_client().chat.completions.create(
        model=OPENAI_MODEL,
        messages=[
            {
                "role": "system",
                "content": "You are an experienced technical interviewer. Follow the requested output format exactly."
            },
            {
                "role": "user",
                "content": prompt
            }
        ],
        temperature=0.4,
    )
    message = response.choices[0].message.content
    return str(message or "").strip()

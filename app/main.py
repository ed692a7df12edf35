import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.evaluator import router as evaluator_router
from app.api.results import router as results_router
from app.api.sessions import router as sessions_router
from app.auth import get_user_id
from app.interview.controller import SessionStateError
from app.rate_limit import FixedWindowRateLimiter
from app.router.engine import provider_order
from app.session.registry import session_registry
from app.system_metrics import get_metrics_snapshot, increment_metric, set_metric
from core.config import (
    CORS_ALLOW_ORIGINS,
    COLLABORATOR_BASE_URL,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SEC,
    SESSION_CLEANUP_INTERVAL_SEC,
    SESSION_CLEANUP_TTL_SEC,
)

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger("app.main")

DEV_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
UNLIMITED_PATH_PREFIXES = ("/docs", "/redoc", "/openapi.json", "/api/health")

app = FastAPI(title="Mock Interview Backend")

allowed_origins = [origin.strip() for origin in CORS_ALLOW_ORIGINS.split(",") if origin.strip()] or DEV_ORIGINS
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

rate_limiter = FixedWindowRateLimiter(RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SEC)
_cleanup_task: asyncio.Task | None = None


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    if not RATE_LIMIT_ENABLED or request.method == "OPTIONS" or request.url.path.startswith(UNLIMITED_PATH_PREFIXES):
        return await call_next(request)

    retry_after = await rate_limiter.check(rate_limiter.client_key(request))
    if retry_after:
        increment_metric("rate_limited_requests")
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded", "retry_after_sec": retry_after},
            headers={"Retry-After": str(retry_after)},
        )
    return await call_next(request)


@app.exception_handler(SessionStateError)
async def session_state_error_handler(request: Request, exc: SessionStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _cleanup_sessions_forever() -> None:
    while True:
        await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
        removed = session_registry.cleanup_inactive(SESSION_CLEANUP_TTL_SEC)
        if removed:
            logger.info("[SYSTEM] cleaned up sessions=%s", removed)


@app.on_event("startup")
async def on_startup():
    global _cleanup_task
    logger.info(
        "[SYSTEM] starting | origins=%s rate_limit=%s (%s per %ss) collaborators=%s llm_providers=%s",
        allowed_origins,
        RATE_LIMIT_ENABLED,
        RATE_LIMIT_MAX_REQUESTS,
        RATE_LIMIT_WINDOW_SEC,
        "http" if COLLABORATOR_BASE_URL else "in-process",
        ",".join(provider_order()),
    )
    _cleanup_task = asyncio.create_task(_cleanup_sessions_forever())


@app.on_event("shutdown")
async def on_shutdown():
    global _cleanup_task
    if _cleanup_task is not None:
        _cleanup_task.cancel()
        try:
            await _cleanup_task
        except asyncio.CancelledError:
            pass
        _cleanup_task = None
    closed = session_registry.close_all()
    logger.info("[SYSTEM] shutdown complete | closed_sessions=%s", closed)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "mock-interview-backend"}


@app.get("/api/system/metrics")
def system_metrics(request: Request):
    get_user_id(request)
    set_metric("sessions_active", session_registry.count_active())
    return get_metrics_snapshot()


app.include_router(sessions_router)
app.include_router(evaluator_router)
app.include_router(results_router)

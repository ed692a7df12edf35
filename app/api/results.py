import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request

from app.auth import get_user_id
from app.db import result_store
from app.schemas import InterviewResultPayload

router = APIRouter(prefix="/api/interview-results")
logger = logging.getLogger("app.api.results")


@router.post("", status_code=201)
async def save_interview_result(body: InterviewResultPayload, request: Request):
    user_id = get_user_id(request)
    payload = body.model_dump(mode="json", by_alias=True)
    result_id = await asyncio.to_thread(result_store.save_result, payload, user_id)
    logger.info("interview result saved | id=%s user=%s score=%s", result_id, user_id, body.total_score)
    return {"id": result_id}


@router.get("")
async def list_interview_results(request: Request, limit: int = 50, interview_id: str | None = None):
    user_id = get_user_id(request)
    if interview_id:
        rows = await asyncio.to_thread(result_store.list_results_for_interview, interview_id)
        return {"items": [row for row in rows if str(row.get("user_id") or "") == user_id]}
    items = await asyncio.to_thread(result_store.list_user_results, user_id, limit)
    return {"items": items}


@router.get("/{result_id}")
async def get_interview_result(result_id: str, request: Request):
    user_id = get_user_id(request)
    item = await asyncio.to_thread(result_store.get_result, result_id)
    if not item:
        raise HTTPException(status_code=404, detail="Result not found")
    if str(item.get("user_id") or "") != user_id:
        raise HTTPException(status_code=403, detail="Result belongs to another user")
    return item

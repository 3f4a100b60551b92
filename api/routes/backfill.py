"""Backfill control routes."""
from typing import List

from fastapi import APIRouter, HTTPException, Request

from config import RETRIEVAL_PREFIX
from models import BackfillControlRequest, BackfillJob, EmptyResponse
from routes.deps import decode_body, get_app_state

router = APIRouter(prefix=f"{RETRIEVAL_PREFIX}/backfill")


@router.get("/jobs", response_model=List[BackfillJob])
async def list_jobs(request: Request):
    try:
        return await get_app_state(request).get_retrieval_service().list_backfill_jobs()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/pause", response_model=EmptyResponse)
async def pause_job(request: Request):
    """Pause one backfill job by id"""
    body = await decode_body(request, BackfillControlRequest)
    try:
        await get_app_state(request).get_retrieval_service().pause_backfill(body.job_id)
        return EmptyResponse()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/resume", response_model=EmptyResponse)
async def resume_job(request: Request):
    """Resume one backfill job by id"""
    body = await decode_body(request, BackfillControlRequest)
    try:
        await get_app_state(request).get_retrieval_service().resume_backfill(body.job_id)
        return EmptyResponse()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/trigger", response_model=EmptyResponse)
async def trigger(request: Request):
    """Start a backfill pass over every configured scope"""
    try:
        await get_app_state(request).get_retrieval_service().trigger_backfill()
        return EmptyResponse()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

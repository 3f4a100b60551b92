"""Retrieval routes: suggestions, context packs, previews and index state.

Handlers decode the bounded body, forward to the retrieval service and
return its result unchanged. Service failures surface as HTTP 500.
"""
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request

from config import RETRIEVAL_PREFIX
from models import (
    ConfigureScopesRequest,
    ContextPack,
    CreateContextPackRequest,
    EmptyResponse,
    IndexStats,
    PreviewRequest,
    ProgressState,
    QueueActivity,
    StateSnapshot,
    Suggestion,
    SuggestRequest,
    SuggestResponse,
)
from routes.deps import decode_body, get_app_state

router = APIRouter(prefix=RETRIEVAL_PREFIX)


@router.post("/suggest", response_model=SuggestResponse)
async def suggest(request: Request):
    """Suggestions for text the user is typing"""
    body = await decode_body(request, SuggestRequest)
    try:
        return await get_app_state(request).get_retrieval_service().suggest(body)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/context-pack", response_model=ContextPack)
async def create_context_pack(request: Request):
    """Assemble selected suggestions into a context pack"""
    body = await decode_body(request, CreateContextPackRequest)
    try:
        return await get_app_state(request).get_retrieval_service().create_context_pack(body)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/preview", response_model=Optional[Suggestion])
async def preview(request: Request):
    """Preview one item; null when the service does not know it"""
    body = await decode_body(request, PreviewRequest)
    try:
        return await get_app_state(request).get_retrieval_service().preview(body.item_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/state", response_model=StateSnapshot)
async def state(request: Request):
    try:
        return await get_app_state(request).get_retrieval_service().state_snapshot()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/progress", response_model=List[ProgressState])
async def progress(request: Request):
    try:
        return await get_app_state(request).get_retrieval_service().indexing_progress()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/index-stats", response_model=IndexStats)
async def index_stats(request: Request):
    try:
        return await get_app_state(request).get_retrieval_service().index_stats()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/activity", response_model=QueueActivity)
async def activity(request: Request):
    """Queue depth overall and per source type"""
    try:
        return await get_app_state(request).get_retrieval_service().queue_activity()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/scopes", response_model=EmptyResponse)
async def configure_scopes(request: Request):
    """Replace the indexing scopes"""
    body = await decode_body(request, ConfigureScopesRequest)
    try:
        await get_app_state(request).get_retrieval_service().configure_scopes(body)
        return EmptyResponse()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

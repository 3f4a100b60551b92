"""Health route (unauthenticated)."""
from fastapi import APIRouter, HTTPException, Request

from config import HEALTH_PATH
from models import Health
from routes.deps import get_app_state

router = APIRouter()


@router.get(HEALTH_PATH, response_model=Health)
async def health(request: Request):
    """
    Health check endpoint

    Returns the retrieval service's health as reported by the service
    """
    try:
        service = get_app_state(request).get_retrieval_service()
        return await service.health()
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

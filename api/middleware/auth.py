"""Shared-token authentication.

Every request except those to /health must carry the daemon token in the
X-Retrieval-Token header. Registered through app.middleware("http").
"""
import hmac
import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from config import AUTH_TOKEN_HEADER, HEALTH_PATH

logger = logging.getLogger(__name__)

UNAUTHORIZED_BODY = {"error": "unauthorized"}


class RetrievalTokenGuard:
    """Rejects requests whose token header does not match exactly"""

    def __init__(self, token: str):
        self._token = token.encode("utf-8")

    def is_exempt(self, request: Request) -> bool:
        return request.url.path == HEALTH_PATH

    def is_authorized(self, presented: Optional[str]) -> bool:
        if presented is None:
            return False
        return hmac.compare_digest(presented.encode("utf-8"), self._token)

    async def __call__(self, request: Request, call_next):
        if self.is_exempt(request) or self.is_authorized(request.headers.get(AUTH_TOKEN_HEADER)):
            return await call_next(request)

        logger.warning(f"Rejected unauthenticated {request.method} {request.url.path}")
        return JSONResponse(UNAUTHORIZED_BODY, status_code=401)

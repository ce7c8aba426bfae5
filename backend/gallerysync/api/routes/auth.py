"""OAuth token hand-over from the external auth flow."""

import logging

from fastapi import APIRouter, HTTPException, status

from gallerysync.schemas.system import TokenUpdate
from gallerysync.services import get_token_provider

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/token", status_code=204)
async def set_token(body: TokenUpdate):
    """Replace the bearer token used for every outbound request."""
    token = body.token.strip()
    if not token:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "Token cannot be empty")
    get_token_provider().set_token(token)


@router.delete("/token", status_code=204)
async def clear_token():
    get_token_provider().clear()


@router.get("/token")
async def token_status():
    """Whether a token is present; the token itself is never returned."""
    return {"has_token": get_token_provider().has_token}

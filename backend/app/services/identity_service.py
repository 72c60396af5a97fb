"""Caller identity, established by the upstream auth layer."""

from fastapi import Request

from app.config import settings
from app.errors import MissingIdentity


async def get_caller_id(request: Request) -> str:
    """FastAPI dependency: read the trusted user id header."""
    user_id = (request.headers.get(settings.USER_ID_HEADER) or "").strip()
    if not user_id:
        raise MissingIdentity(f"{settings.USER_ID_HEADER} header is required.")
    return user_id

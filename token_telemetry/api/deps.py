"""Shared FastAPI dependencies: caller identity, repository, settings."""

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from token_telemetry.config.loader import Settings
from token_telemetry.storage.repository import TransactionRepository

USER_HEADER = "X-User-Id"


def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_HEADER),
) -> str:
    """Return the user id forwarded by the authenticating gateway.

    Session validation happens upstream; a request reaching this service
    without an identity is unauthenticated. Raises 401 in that case.
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    return x_user_id.strip()


def get_repository(request: Request) -> TransactionRepository:
    return request.app.state.repository


def get_settings(request: Request) -> Settings:
    return request.app.state.settings

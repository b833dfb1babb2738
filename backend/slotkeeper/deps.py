from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.notifications import Notifier
from .infrastructure.change_feed import ChangeFeed, change_feed
from .infrastructure.notifier import LoggingNotifier
from .utils.auth import decode_operator_token, decode_payment_token
from .utils.time import Clock, utc_now

_notifier = LoggingNotifier()


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_clock() -> Clock:
    return utc_now


def get_notifier() -> Notifier:
    return _notifier


def get_change_feed() -> ChangeFeed:
    return change_feed


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(authorization: str | None) -> str:
    if authorization is None:
        raise _unauthorized("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("Bearer token required")
    return token.strip()


async def get_operator_id(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> int:
    token = _bearer_token(authorization)
    try:
        return decode_operator_token(
            token,
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
        )
    except ValueError as exc:
        raise _unauthorized("invalid or expired token") from exc


async def get_payment_provider(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> str:
    """Name of the payment provider whose signed token accompanies the event."""
    token = _bearer_token(authorization)
    try:
        return decode_payment_token(
            token,
            secret=settings.payment_secret,
            algorithms=[settings.auth_algorithm],
        )
    except ValueError as exc:
        raise _unauthorized("invalid or expired payment token") from exc

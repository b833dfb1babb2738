from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def generate_request_id() -> str:
    return uuid.uuid4().hex


def set_request_id(request_id: str | None) -> None:
    """Bind the id for the current task (None to clear)."""
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


def incoming_or_new(header_value: str | None) -> str:
    """Reuse a caller-supplied id when it looks sane, otherwise mint one."""
    if header_value and len(header_value) <= 128 and header_value.isprintable():
        return header_value
    return generate_request_id()

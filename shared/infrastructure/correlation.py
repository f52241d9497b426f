"""
Request and invocation correlation.

Every HTTP request and every Entry Router invocation runs under an id held
in a context variable, so log lines from concurrent invocations can be told
apart.
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request / invocation ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get the current request or invocation ID."""
    return request_id_var.get()


def new_invocation_id() -> str:
    """Generate a fresh invocation id."""
    return uuid.uuid4().hex


@contextmanager
def invocation_scope(invocation_id: str | None = None) -> Iterator[str]:
    """
    Bind an invocation id for the duration of a block.

    An id already bound by the HTTP middleware is reused so that the
    request and the invocation it triggers share one id.
    """
    current = request_id_var.get()
    value = invocation_id or current or new_invocation_id()
    token = request_id_var.set(value)
    try:
        yield value
    finally:
        request_id_var.reset(token)


# Longest caller-supplied id that is trusted for log correlation
MAX_CALLER_ID_LENGTH = 64


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Run each HTTP request under one invocation id.

    A caller that already tracks the trigger (the stream producer or a
    retrying client) can pass its id in ``X-Request-ID``; ``/invoke`` then
    logs under that id via ``invocation_scope``. Missing or oversized ids are
    replaced by a fresh one. The id used is echoed back on the response.
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        caller_id = request.headers.get(self.HEADER_NAME, "").strip()
        if not caller_id or len(caller_id) > MAX_CALLER_ID_LENGTH:
            caller_id = new_invocation_id()

        token = request_id_var.set(caller_id)
        try:
            request.state.request_id = caller_id
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[self.HEADER_NAME] = caller_id
        return response


class CorrelationIdFilter(logging.Filter):
    """Stamp ``record.request_id`` with the bound invocation id, or ``-``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True

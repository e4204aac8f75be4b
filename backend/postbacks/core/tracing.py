# Request correlation for postback handling. Each inbound callback
# gets a request id (reused from X-Request-Id when the house sends
# one) and the ingestion steps run inside named spans.

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from time import monotonic
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from postbacks.core.logging import get_structured_logger


_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_span_id: ContextVar[str | None] = ContextVar("span_id", default=None)

logger = get_structured_logger("trace")


def set_trace_id(value: str | None) -> None:
    if value:
        _trace_id.set(value)


def get_trace_id() -> str | None:
    return _trace_id.get()


def get_span_id() -> str | None:
    return _span_id.get()


@contextmanager
def trace_span(name: str, **fields):
    span_id = uuid4().hex[:16]
    token = _span_id.set(span_id)
    start = monotonic()
    base = {"trace_id": get_trace_id(), "span_id": span_id, "span_name": name, **fields}
    logger.debug("span.start", extra=base)
    try:
        yield span_id
    except Exception as exc:
        logger.warning(
            "span.error",
            extra={
                **base,
                "duration_ms": round((monotonic() - start) * 1000.0, 2),
                "error": type(exc).__name__,
            },
        )
        raise
    finally:
        logger.debug(
            "span.end",
            extra={**base, "duration_ms": round((monotonic() - start) * 1000.0, 2)},
        )
        _span_id.reset(token)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Attaches a request_id to request.state for correlation and adds it to responses.
    """

    async def dispatch(self, request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Request-Id")
            or str(uuid4())
        )
        request.state.request_id = request_id
        set_trace_id(request_id)
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

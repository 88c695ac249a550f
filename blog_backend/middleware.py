import logging
import re
import time
import uuid
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Per-request context variables
# ---------------------------------------------------------------------------

query_count_var: ContextVar[int] = ContextVar("query_count", default=0)
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Accepted shape for a caller-supplied X-Request-ID; anything else is replaced.
_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")


def install_query_counter(engine) -> None:
    """
    Register a ``before_cursor_execute`` listener on *engine* that bumps
    ``query_count_var`` for every SQL statement, including the ones issued
    by ``selectinload`` / ``joinedload``.

    Must be called once per engine (production engine in ``database.py``,
    test engine in ``conftest.py``).
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)


class RequestIdFilter(logging.Filter):
    """Attach the current request id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


# ---------------------------------------------------------------------------
# Middleware (pure ASGI, so ContextVar writes stay visible to send_wrapper)
# ---------------------------------------------------------------------------

class RequestContextMiddleware:
    """
    Pure ASGI middleware that gives each HTTP request:

    - an ``X-Request-ID`` (taken from the incoming header when it is a short token of
      letters, digits, ``_`` or ``-``, generated otherwise),
      exposed to log records through ``RequestIdFilter``;
    - ``X-Response-Time-Ms`` and ``X-Query-Count`` diagnostic headers;
    - one access log line once the response has started.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers") or []).get(b"x-request-id", b"").decode("latin-1")
        request_id = incoming if _REQUEST_ID_RE.fullmatch(incoming) else uuid.uuid4().hex
        request_id_var.set(request_id)
        query_count_var.set(0)
        start = time.perf_counter()

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                headers.append((b"x-response-time-ms", str(duration_ms).encode()))
                headers.append((b"x-query-count", str(query_count_var.get()).encode()))
                message["headers"] = headers
                logger.info(
                    "%s %s -> %s (%.2f ms, %d queries)",
                    scope.get("method"),
                    scope.get("path"),
                    message["status"],
                    duration_ms,
                    query_count_var.get(),
                )
            await send(message)

        await self.app(scope, receive, send_wrapper)

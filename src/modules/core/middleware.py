import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger()


class RequestContextMiddleware:
    """Binds a correlation ID to every log line emitted while serving a request.

    Reads ``X-Request-ID`` from the incoming request or generates a UUID4,
    stores it in a ContextVar and structlog's contextvars, and echoes it
    back in the ``X-Request-ID`` response header.  Staff sessions editing
    the same order concurrently can be told apart in the logs this way.
    """

    header = "X-Request-ID"

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.headers.get(self.header) or str(uuid.uuid4())
        token = correlation_id_var.set(cid)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)

        logger.info("request_started", method=request.method, path=request.path)
        try:
            response = self.get_response(request)
        finally:
            correlation_id_var.reset(token)

        logger.info(
            "request_finished",
            method=request.method,
            path=request.path,
            status_code=response.status_code,
        )
        response[self.header] = cid
        return response

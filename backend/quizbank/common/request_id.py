"""Request correlation middleware.

Every request gets an id (taken from ``X-Request-ID`` or generated) and
the caller's ``X-User-Id`` is remembered for the duration of the request,
so log lines written deep inside the scoring or test services can be
traced back to the request and user that caused them.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from quizbank.core.logging import get_logger, request_context

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-Id"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request, its log lines and its response with a request id."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Reuse the caller's id so traces line up across services
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        # Unverified here; the header is only used to tag log lines
        user_id = request.headers.get(USER_ID_HEADER)

        with request_context(request_id=request_id, user_id=user_id):
            start_time = time.perf_counter()
            logger.info(
                "Request started",
                extra={"method": request.method, "path": request.url.path},
            )

            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    "Request failed",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": 500,
                        "latency_ms": _elapsed_ms(start_time),
                        "error": str(e),
                    },
                    exc_info=True,
                )
                raise

            response.headers[REQUEST_ID_HEADER] = request_id

            # 4xx responses are domain outcomes (missing test, completed test), not failures
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "Request completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "latency_ms": _elapsed_ms(start_time),
                },
            )

        return response


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)

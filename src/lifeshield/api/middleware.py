# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Request correlation, timing and last-resort error handling."""

import logging
import time
from collections.abc import Awaitable, Callable
from uuid import uuid4

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.logging_utils import request_id_var
from .response_patterns import INTERNAL_ERROR_CODE, ErrorResponse

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, time it, and turn crashes into 500s.

    The id comes from ``X-Request-Id`` when the caller sends one and is echoed
    on the response. Every request gets one INFO access line. Durations are
    recorded against the matched route template so path parameters do not
    explode label cardinality.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                logger.exception(
                    f"Unhandled error on {request.method} {request.url.path}: {e}"
                )
                error = ErrorResponse(
                    error="Internal server error", error_code=INTERNAL_ERROR_CODE
                )
                response = JSONResponse(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    content=error.model_dump(),
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            duration = time.perf_counter() - started
            route = _route_template(request)
            self._observe(request, route, response.status_code, duration)
            logger.info(
                f"{request.method} {route} {response.status_code} "
                f"{duration * 1000:.1f}ms",
                extra={"request_id": request_id},
            )
            return response
        finally:
            request_id_var.reset(token)

    def _observe(
        self, request: Request, route: str, status_code: int, duration: float
    ) -> None:
        container = getattr(request.app.state, "container", None)
        if container is None:
            return
        container.metrics.observe_request(request.method, route, status_code, duration)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"

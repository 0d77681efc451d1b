import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.monotonic()

        response = await call_next(request)

        duration = time.monotonic() - start
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        client = request.client.host if request.client else "-"
        logger.log(
            level,
            "%s %s %s -> %s (%.3fs)",
            client,
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )

        return response

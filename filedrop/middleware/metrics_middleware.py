"""
Request metrics for Prometheus: count, latency and error class per route.
"""
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from filedrop.utils.metrics import errors_total, http_request_duration_seconds, http_requests_total

_UUID = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}(\.[A-Za-z0-9]+)?", re.IGNORECASE)
_NUMERIC = re.compile(r"/\d+(?=/|$)")


def normalize_path(path: str) -> str:
    """Collapse IDs so /api/dl/<uuid>.mp3 and friends share one label."""
    path = _UUID.sub("{id}", path)
    return _NUMERIC.sub("/{id}", path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records every request except scrapes of /metrics itself."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        method = request.method
        path = normalize_path(request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            errors_total.labels(error_type="exception").inc()
            raise

        http_requests_total.labels(method=method, path=path, status=response.status_code).inc()
        http_request_duration_seconds.labels(method=method, path=path).observe(
            time.perf_counter() - start_time
        )
        if response.status_code >= 400:
            errors_total.labels(error_type=f"{response.status_code // 100}xx").inc()

        return response

import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Define metrics (names follow Prometheus conventions)
REQ_COUNT = Counter("http_requests_total", "Total HTTP requests", ["path","method","code"])
REQ_LATENCY = Histogram("http_request_duration_seconds", "Request latency", ["path","method"])

UPSTREAM_COUNT = Counter(
    "upstream_requests_total", "Calls made to third-party providers", ["service", "outcome"]
)
UPSTREAM_LATENCY = Histogram(
    "upstream_request_duration_seconds", "Third-party call latency", ["service"]
)


def _route_template(request: Request) -> str:
    # Templated path keeps label cardinality bounded (tile URLs, ids...)
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class PromMiddleware(BaseHTTPMiddleware):
    """
    Measures latency and counts requests.
    """
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed = time.perf_counter() - start

        path = _route_template(request)
        method = request.method
        code = str(response.status_code)

        REQ_COUNT.labels(path=path, method=method, code=code).inc()
        REQ_LATENCY.labels(path=path, method=method).observe(elapsed)
        return response


def observe_upstream(service: str, outcome: str, elapsed: float) -> None:
    UPSTREAM_COUNT.labels(service=service, outcome=outcome).inc()
    UPSTREAM_LATENCY.labels(service=service).observe(elapsed)


async def metrics_endpoint(request: Request):
    """
    GET /metrics, scraped by Prometheus.
    """
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)

"""FastAPI middleware for request tracing and performance metrics.

Binds a correlation ID for the duration of each request, echoes it in the
X-Correlation-ID response header, records the Prometheus request histogram
and writes one structured log line per request.
"""

import time
from uuid import uuid4

from fastapi import Request

from server.lib.distributed_tracing import reset_correlation_id, set_correlation_id
from server.lib.metrics import record_request_duration
from server.lib.structured_logger import log_request

# Probe endpoints are not timed or logged
EXCLUDED_PATHS = ('/health', '/metrics', '/api/metrics')


async def correlation_and_metrics_middleware(request: Request, call_next):
    """
    FastAPI middleware that traces and times every request.

    This middleware:
    1. Reads X-Correlation-ID or generates a UUID and binds it to the context
    2. Calls the next middleware/endpoint
    3. Adds X-Correlation-ID to the response
    4. Records request duration and logs the request

    Args:
        request: FastAPI request object
        call_next: Next middleware or endpoint in chain

    Returns:
        Response from the endpoint
    """
    correlation_id = request.headers.get('X-Correlation-ID') or str(uuid4())
    token = set_correlation_id(correlation_id)
    request.state.correlation_id = correlation_id

    start_time = time.time()
    try:
        response = await call_next(request)

        duration_seconds = time.time() - start_time
        response.headers['X-Correlation-ID'] = correlation_id

        endpoint = request.url.path
        if endpoint not in EXCLUDED_PATHS:
            # Route template keeps label cardinality bounded (/api/config/{config_id})
            route = request.scope.get('route')
            label = getattr(route, 'path', endpoint)
            record_request_duration(
                endpoint=label,
                method=request.method,
                status=response.status_code,
                duration_seconds=duration_seconds,
            )
            log_request(
                endpoint=endpoint,
                method=request.method,
                status_code=response.status_code,
                duration_ms=duration_seconds * 1000,
            )
        return response
    finally:
        reset_correlation_id(token)

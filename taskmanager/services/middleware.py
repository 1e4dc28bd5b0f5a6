import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured log record per request.

    Each record carries the method, path, status code and `duration_ms`. A request id is taken from the incoming
    `X-Request-ID` header or generated, bound into the structlog context for everything logged while the request
    is handled, and echoed back on the response.
    """

    def __init__(
        self,
        app,
        service_name: str,
        log_metrics: bool = True,
        add_request_id_header: bool = True,
        logger=None,
    ):
        super().__init__(app)
        self.service_name = service_name
        self.log_metrics = log_metrics
        self.add_request_id_header = add_request_id_header
        self.logger = logger or structlog.get_logger("taskmanager.requests")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as e:
                self.logger.error(
                    "Request failed",
                    service=self.service_name,
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round((time.perf_counter() - start) * 1000, 3),
                    error=str(e),
                )
                raise

            fields = {
                "service": self.service_name,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
            }
            if self.log_metrics:
                fields["duration_ms"] = round((time.perf_counter() - start) * 1000, 3)
            self.logger.info("Request handled", **fields)

        if self.add_request_id_header:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

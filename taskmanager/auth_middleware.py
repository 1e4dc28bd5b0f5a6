"""Bearer token authentication middleware for the task manager service."""

import re
from typing import Iterable, Optional, Pattern, Set, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from taskmanager.core.exceptions import AuthenticationError, UpstreamError
from taskmanager.credentials import CredentialService

# (method, path pattern) pairs reachable without a token; "*" matches any method
DEFAULT_PUBLIC_ROUTES: Tuple[Tuple[str, str], ...] = (
    ("POST", r"/users"),
    ("POST", r"/users/login"),
    ("GET", r"/users/[^/]+/avatar"),
    ("*", r"/status"),
    ("*", r"/docs(/.*)?"),
    ("*", r"/redoc"),
    ("*", r"/openapi\.json"),
)


class AuthMiddleware(BaseHTTPMiddleware):
    """Authenticate every non-public request against the persisted token lists.

    A request is let through only if its `Authorization: Bearer <token>` header carries a token that is correctly
    signed, unexpired, and still listed on the user it names. The resolved user and the raw token are attached to
    `request.state.user` and `request.state.token` for the handler. Any failure yields a 401 and the handler is
    never invoked.

    Example:
        from taskmanager.services import Service

        class MyService(Service):
            def __init__(self, **kwargs):
                super().__init__(**kwargs)
                self.app.add_middleware(AuthMiddleware, credentials=CredentialService(...))
    """

    def __init__(
        self,
        app,
        credentials: CredentialService,
        public_routes: Optional[Iterable[Tuple[str, str]]] = None,
        logger=None,
    ):
        """Initialize the AuthMiddleware.

        Args:
            app: The ASGI application
            credentials: Resolves bearer tokens to users
            public_routes: (method, path regex) pairs that bypass authentication
            logger: Optional structured logger for rejected requests
        """
        super().__init__(app)
        self.credentials = credentials
        self.logger = logger
        self.public_routes: Set[Tuple[str, Pattern[str]]] = {
            (method.upper(), re.compile(pattern))
            for method, pattern in (public_routes if public_routes is not None else DEFAULT_PUBLIC_ROUTES)
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS" or self._is_public(request.method, request.url.path):
            return await call_next(request)

        token = self._extract_token(request.headers.get("Authorization"))
        if token is None:
            return self._reject(request, "missing bearer token")

        try:
            user = await self.credentials.authenticate(token)
        except AuthenticationError as e:
            return self._reject(request, e.message)
        except UpstreamError as e:
            return JSONResponse(status_code=e.status_code, content={"detail": e.message})

        request.state.user = user
        request.state.token = token
        return await call_next(request)

    def _is_public(self, method: str, path: str) -> bool:
        path = path.rstrip("/") or "/"
        return any(
            (allowed == "*" or allowed == method.upper()) and pattern.fullmatch(path)
            for allowed, pattern in self.public_routes
        )

    @staticmethod
    def _extract_token(header: Optional[str]) -> Optional[str]:
        """Return the token from a `Bearer <token>` header, or None if absent or malformed."""
        if not header:
            return None
        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None
        return parts[1]

    def _reject(self, request: Request, reason: str) -> JSONResponse:
        if self.logger is not None:
            self.logger.info(
                "Rejected unauthenticated request", method=request.method, path=request.url.path, reason=reason
            )
        return JSONResponse(
            status_code=AuthenticationError.status_code,
            content={"detail": AuthenticationError.default_message},
            headers={"WWW-Authenticate": "Bearer"},
        )

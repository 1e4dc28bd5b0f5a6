from taskmanager.services.middleware import RequestLoggingMiddleware
from taskmanager.services.service import Service

__all__ = ["RequestLoggingMiddleware", "Service"]

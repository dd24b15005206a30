"""Client-side invocation engine for a JSON/HTTP management API."""

from api_invoker.errors import ApiError
from api_invoker.executor import Executor
from api_invoker.factory import create_api
from api_invoker.models import (
    ApiResponse,
    ClientConfiguration,
    ClientErrorHandling,
    HttpMethod,
    NotFoundHandling,
    Options,
    Settings,
)

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "ApiResponse",
    "ClientConfiguration",
    "ClientErrorHandling",
    "Executor",
    "HttpMethod",
    "NotFoundHandling",
    "Options",
    "Settings",
    "create_api",
]

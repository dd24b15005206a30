"""Data models for api-invoker.

All models use Pydantic v2. Wire DTOs use camelCase JSON names and accept
either the JSON name or the Python attribute name on input.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Call Configuration
# =============================================================================


class HttpMethod(str, Enum):
    """HTTP methods used by the remote API."""

    GET = "GET"
    POST = "POST"
    DELETE = "DELETE"


class NotFoundHandling(str, Enum):
    """How a 404 response is turned into a result."""

    THROW_EXCEPTION = "throw_exception"  # Raise ApiError (default)
    RETURN_NULL = "return_null"  # Return None
    PARSE_AS_RESPONSE = "parse_as_response"  # Parse body, else default success
    RETURN_SUCCESS_RESPONSE = "return_success_response"  # Always default success


class ClientErrorHandling(str, Enum):
    """How a 4xx response other than 404 is turned into a result."""

    THROW_EXCEPTION = "throw_exception"  # Raise ApiError (default)
    PARSE_AS_RESPONSE = "parse_as_response"  # Parse body, else raise
    PARSE_OR_DEFAULT_RESPONSE = "parse_or_default_response"  # Parse body, else default error


class Settings(BaseModel):
    """Network settings shared by every call made through one Executor.

    A timeout of 0 means no timeout.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    connection_timeout_ms: int = Field(
        default=0, ge=0, description="Socket connect timeout in milliseconds (0 = infinite)"
    )
    read_timeout_ms: int = Field(
        default=0, ge=0, description="Read timeout in milliseconds (0 = infinite)"
    )


class Options(BaseModel):
    """Per-call options.

    Accept, Authorization and Content-Type are controlled by the Executor;
    entries with those names are dropped when the headers are applied.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    headers: dict[str, str] | None = Field(default=None, description="Extra request headers")


# =============================================================================
# Wire DTOs
# =============================================================================


class Dto(BaseModel):
    """Base class for objects exchanged with the remote API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class ApiResponse(Dto):
    """Generic acknowledgement returned by most endpoints."""

    result_code: str | None = None
    result_message: str | None = None


class RequestableScopes(Dto):
    """Request and response body of the requestable-scopes endpoints."""

    requestable_scopes: list[str] | None = None


class Service(Dto):
    api_key: int | None = None
    service_name: str | None = None
    issuer: str | None = None


class ServiceListResponse(Dto):
    start: int = 0
    end: int = 0
    total_count: int = 0
    services: list[Service] | None = None


class Client(Dto):
    client_id: int | None = None
    client_id_alias: str | None = None
    client_name: str | None = None
    developer: str | None = None
    service_api_key: int | None = None


class ClientListResponse(Dto):
    start: int = 0
    end: int = 0
    total_count: int = 0
    developer: str | None = None
    clients: list[Client] | None = None


# =============================================================================
# Client Configuration
# =============================================================================


class ApiVersion(str, Enum):
    V2 = "V2"
    V3 = "V3"


class ClientConfiguration(BaseModel):
    """Everything needed to build an API client.

    dpop_key is a JWK, either as a JSON string or as a mapping. When present,
    every call carries a DPoP proof signed with it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = Field(description="Base URL of the API, e.g. https://api.example.com")
    api_version: ApiVersion = Field(default=ApiVersion.V2, description="API generation")
    service_owner_api_key: str | None = Field(default=None, description="Service owner API key")
    service_owner_api_secret: str | None = Field(default=None, description="Service owner API secret")
    service_api_key: str | None = Field(default=None, description="Service API key")
    service_api_secret: str | None = Field(default=None, description="Service API secret")
    service_owner_access_token: str | None = Field(
        default=None, description="Service owner access token (V3)"
    )
    service_access_token: str | None = Field(default=None, description="Service access token (V3)")
    dpop_key: str | dict[str, Any] | None = Field(default=None, description="DPoP signing key (JWK)")
    connection_timeout_ms: int = Field(default=0, ge=0, description="Connect timeout (0 = infinite)")
    read_timeout_ms: int = Field(default=0, ge=0, description="Read timeout (0 = infinite)")

    def settings(self) -> Settings:
        return Settings(
            connection_timeout_ms=self.connection_timeout_ms,
            read_timeout_ms=self.read_timeout_ms,
        )

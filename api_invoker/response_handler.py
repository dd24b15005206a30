"""Response classification.

Maps the status code of one exchange to a result or an ApiError:

    < 400        success: parse the body as the response type
    404          governed by NotFoundHandling
    400-499      governed by ClientErrorHandling
    >= 500       always ApiError

The status code is read once; each call visits exactly one branch.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, get_origin

from pydantic import TypeAdapter

from api_invoker.connection import ConnectionContext
from api_invoker.errors import ApiError, http_error
from api_invoker.models import ApiResponse, ClientErrorHandling, NotFoundHandling

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_SERVER_ERROR = 500


@lru_cache(maxsize=256)
def _adapter(response_type: Any) -> TypeAdapter:
    return TypeAdapter(response_type)


def parse_body(body: str, response_type: Any) -> Any:
    """Parse a JSON body into response_type. str means "keep the raw text".

    Raises:
        ValueError: If the body is not valid for the type.
    """
    if response_type is str:
        return body
    return _adapter(response_type).validate_json(body)


def _is_api_response(response_type: Any) -> bool:
    # Parameterized generics such as dict[str, str] are not classes.
    if get_origin(response_type) is not None or not isinstance(response_type, type):
        return False
    return issubclass(response_type, ApiResponse)


def default_success_response(response_type: Any) -> Any:
    """Stand-in for a 404 that is treated as success (e.g. already deleted)."""
    if not _is_api_response(response_type):
        return None
    return response_type(
        result_code="CLIENT_GENERATED_404_RESPONSE",
        result_message="404 Not Found - Resource may have been already deleted",
    )


def default_error_response(response_type: Any, status_code: int) -> Any:
    """Stand-in for a 4xx whose body is missing or unparseable."""
    if not _is_api_response(response_type):
        return None
    return response_type(
        result_code=f"CLIENT_GENERATED_{status_code}_RESPONSE",
        result_message=f"HTTP {status_code} response with empty/invalid body",
    )


class ResponseHandler:
    """Turns the response held by a ConnectionContext into a result."""

    def __init__(
        self,
        not_found: NotFoundHandling = NotFoundHandling.THROW_EXCEPTION,
        client_error: ClientErrorHandling = ClientErrorHandling.THROW_EXCEPTION,
    ) -> None:
        self._not_found = not_found
        self._client_error = client_error

    @property
    def not_found(self) -> NotFoundHandling:
        return self._not_found

    @property
    def client_error(self) -> ClientErrorHandling:
        return self._client_error

    def handle(self, ctx: ConnectionContext, response_type: Any = None) -> Any:
        status = ctx.response_code()
        logger.debug("%s %s -> %d", ctx.method, ctx.url, status)

        if status < HTTP_BAD_REQUEST:
            return self._handle_success(ctx, status, response_type)
        if status == HTTP_NOT_FOUND:
            return self._handle_not_found(ctx, response_type)
        if status < HTTP_INTERNAL_SERVER_ERROR:
            return self._handle_client_error(ctx, status, response_type)

        # No strategy applies to 5xx.
        raise http_error(ctx, status)

    def _handle_success(self, ctx: ConnectionContext, status: int, response_type: Any) -> Any:
        body = ctx.read_body()

        if not body:
            return None

        if response_type is None or response_type is str:
            return body

        try:
            return parse_body(body, response_type)
        except ValueError as e:
            raise ApiError(
                f"Failed to parse the response body: {e}",
                status_code=status,
                status_message=ctx.status_message(),
                response_body=body,
                response_headers=ctx.response_headers(),
            ) from e

    def _try_parse_error_body(self, ctx: ConnectionContext, response_type: Any) -> tuple[bool, Any]:
        """Parse the error body as the response type. Returns (parsed, value)."""
        if response_type is None:
            return False, None

        body = ctx.error_data()
        if body is None:
            return False, None

        try:
            return True, parse_body(body, response_type)
        except ValueError as e:
            logger.debug("Error body does not parse as %r: %s", response_type, e)
            return False, None

    def _handle_not_found(self, ctx: ConnectionContext, response_type: Any) -> Any:
        if self._not_found is NotFoundHandling.RETURN_NULL:
            return None

        if self._not_found is NotFoundHandling.PARSE_AS_RESPONSE:
            parsed, value = self._try_parse_error_body(ctx, response_type)
            if parsed:
                return value
            return default_success_response(response_type)

        if self._not_found is NotFoundHandling.RETURN_SUCCESS_RESPONSE:
            return default_success_response(response_type)

        raise http_error(ctx, HTTP_NOT_FOUND)

    def _handle_client_error(self, ctx: ConnectionContext, status: int, response_type: Any) -> Any:
        if self._client_error is ClientErrorHandling.PARSE_AS_RESPONSE:
            parsed, value = self._try_parse_error_body(ctx, response_type)
            if parsed:
                return value
            raise http_error(ctx, status)

        if self._client_error is ClientErrorHandling.PARSE_OR_DEFAULT_RESPONSE:
            parsed, value = self._try_parse_error_body(ctx, response_type)
            if parsed:
                return value
            return default_error_response(response_type, status)

        raise http_error(ctx, status)

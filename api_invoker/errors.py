"""The single error type raised by api-invoker calls."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from api_invoker.connection import ConnectionContext


class ApiError(Exception):
    """Raised when a call to the remote API fails.

    Carries whatever HTTP context was available when the failure happened.
    status_code is 0 when the call failed before a response was obtained;
    the other HTTP fields are None in that case. The originating exception,
    if any, is available as __cause__.
    """

    def __init__(
        self,
        message: str | None = None,
        status_code: int = 0,
        status_message: str | None = None,
        response_body: str | None = None,
        response_headers: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(message)
        self._message = message
        self._status_code = status_code
        self._status_message = status_message
        self._response_body = response_body or None
        self._response_headers = response_headers

    @property
    def message(self) -> str | None:
        return self._message

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def status_message(self) -> str | None:
        return self._status_message

    @property
    def response_body(self) -> str | None:
        return self._response_body

    @property
    def response_headers(self) -> dict[str, list[str]] | None:
        return self._response_headers

    def __str__(self) -> str:
        if self._message:
            return self._message
        if self._status_code:
            return f"HTTP {self._status_code} {self._status_message or ''}".rstrip()
        return repr(self.__cause__) if self.__cause__ is not None else "API call failed"


def http_error(ctx: ConnectionContext, status_code: int) -> ApiError:
    """Build an ApiError describing a non-2xx response."""
    status_message = ctx.status_message()
    return ApiError(
        f"HTTP {status_code} {status_message or ''}".rstrip(),
        status_code=status_code,
        status_message=status_message,
        response_body=ctx.error_data(),
        response_headers=ctx.response_headers(),
    )


def build_api_error(cause: BaseException, ctx: ConnectionContext | None) -> ApiError:
    """Wrap an unexpected failure, attaching what the context can still tell.

    The context may be partially opened or may never have received a
    response. Every accessor used here is best effort.
    """
    message = str(cause) or type(cause).__name__

    if ctx is None:
        error = ApiError(message)
    else:
        error = ApiError(
            message,
            status_code=ctx.status_code(),
            status_message=ctx.status_message(),
            response_body=ctx.error_data(),
            response_headers=ctx.response_headers(),
        )

    error.__cause__ = cause
    return error

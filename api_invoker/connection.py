"""ConnectionContext - owns one HTTP request/response exchange.

A context is created per call and closed exactly once when the call ends.
The request is sent the first time response data is needed; anything written
to output_stream() before that becomes the request body.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)


class ResponseBody:
    """Read side of a response. The content is read once and cached."""

    def __init__(self, response: httpx.Response, expected_length: int = -1) -> None:
        self._response = response
        self._expected_length = expected_length
        self._content: bytes | None = None

    def read(self) -> bytes:
        if self._content is None:
            buffer = bytearray()
            for chunk in self._response.iter_bytes():
                buffer.extend(chunk)
            self._content = bytes(buffer)
        return self._content

    def text(self) -> str:
        return self.read().decode("utf-8")

    def close(self) -> None:
        self._response.close()


class _StreamSlot:
    """One lazily acquired stream with explicit opened/closed state."""

    __slots__ = ("_handle", "_opened", "_closed")

    def __init__(self) -> None:
        self._handle: Any = None
        self._opened = False
        self._closed = False

    @property
    def opened(self) -> bool:
        return self._opened

    @property
    def handle(self) -> Any:
        return self._handle

    def get(self, factory: Callable[[], Any]) -> Any:
        if not self._opened:
            # A failing factory leaves the slot unopened so nothing is closed later.
            self._handle = factory()
            self._opened = True
        return self._handle

    def close(self) -> None:
        if not self._opened or self._closed:
            return
        self._closed = True
        try:
            self._handle.close()
        except Exception as e:
            logger.debug("Ignoring failure while closing stream: %s", e)


class ConnectionContext:
    """Wraps one exchange over a dedicated httpx.Client.

    Usage:
        with ConnectionContext("GET", url, timeout) as ctx:
            ctx.set_header("Accept", "application/json")
            status = ctx.response_code()
    """

    def __init__(
        self,
        method: str,
        url: str,
        timeout: httpx.Timeout | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._method = method
        self._url = url
        self._headers: dict[str, str] = {}
        self._do_output = False
        self._response: httpx.Response | None = None
        self._closed = False

        self._input = _StreamSlot()
        self._output = _StreamSlot()
        self._error = _StreamSlot()

        # One client per exchange; nothing is pooled across calls.
        self._client = httpx.Client(timeout=timeout, transport=transport, follow_redirects=True)

    def __enter__(self) -> "ConnectionContext":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Request side
    # -------------------------------------------------------------------------

    @property
    def method(self) -> str:
        return self._method

    @property
    def url(self) -> str:
        return self._url

    @property
    def request_headers(self) -> dict[str, str]:
        return dict(self._headers)

    def set_header(self, name: str, value: str) -> None:
        """Set an outgoing request header."""
        if self._response is not None:
            raise RuntimeError("Cannot set a request header after the request was sent")
        self._headers[name] = value

    def do_output(self, enabled: bool) -> None:
        """Declare whether a request body will be written."""
        self._do_output = enabled

    def output_stream(self) -> io.BytesIO:
        if not self._do_output:
            raise RuntimeError("Output is not enabled; call do_output(True) first")
        if self._response is not None:
            raise RuntimeError("Cannot write the request body after the request was sent")
        return self._output.get(io.BytesIO)

    # -------------------------------------------------------------------------
    # Response side
    # -------------------------------------------------------------------------

    def _send(self) -> httpx.Response:
        if self._response is None:
            if self._closed:
                raise RuntimeError("Connection context is closed")
            content = self._output.get(io.BytesIO).getvalue() if self._do_output else None
            request = self._client.build_request(
                self._method, self._url, headers=self._headers, content=content
            )
            self._response = self._client.send(request, stream=True)
        return self._response

    def response_code(self) -> int:
        """Send the request if needed and return the HTTP status code."""
        return self._send().status_code

    def input_stream(self) -> ResponseBody:
        """The success body. Raises httpx.HTTPStatusError for status >= 400."""

        def open_input() -> ResponseBody:
            response = self._send()
            if response.is_error:
                raise httpx.HTTPStatusError(
                    f"HTTP {response.status_code} has no success body",
                    request=response.request,
                    response=response,
                )
            return ResponseBody(response, self.content_length())

        return self._input.get(open_input)

    def error_stream(self) -> ResponseBody | None:
        """The error body, or None if there is no error response.

        Never initiates the request.
        """
        if self._error.opened:
            return self._error.handle
        if self._response is None or not self._response.is_error:
            return None
        response = self._response
        return self._error.get(lambda: ResponseBody(response, self.content_length()))

    def content_length(self) -> int:
        """Declared response length, -1 if unknown."""
        if self._response is None:
            return -1
        try:
            return int(self._response.headers.get("content-length", -1))
        except ValueError:
            return -1

    def read_body(self) -> str:
        """Read the whole success body as UTF-8 text."""
        return self.input_stream().text()

    # Best-effort accessors used when building errors. None of them send the
    # request and none of them raise.

    def status_code(self) -> int:
        if self._response is None:
            return 0
        return self._response.status_code

    def status_message(self) -> str | None:
        if self._response is None:
            return None
        return self._response.reason_phrase or None

    def response_headers(self) -> dict[str, list[str]] | None:
        if self._response is None:
            return None
        headers: dict[str, list[str]] = {}
        for key, value in self._response.headers.multi_items():
            headers.setdefault(key.lower(), []).append(value)
        return headers

    def error_data(self) -> str | None:
        """The response body for error reporting, or None if unavailable."""
        try:
            stream = self.error_stream()
            if stream is None:
                if self._response is None:
                    return None
                stream = self.input_stream()
            return stream.text() or None
        except Exception as e:
            logger.debug("Response body is not available: %s", e)
            return None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release all streams and the connection. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        # Each stream is released independently of the others.
        self._input.close()
        self._output.close()
        self._error.close()

        for resource in (self._response, self._client):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                logger.debug("Ignoring failure while closing connection: %s", e)

"""Executor - Sends one API call and interprets the response.

Each call opens its own ConnectionContext, attaches the headers the remote
API expects, writes the JSON request body if there is one, and hands the
response to a ResponseHandler. The context is closed on every exit path.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic_core import to_json

from api_invoker.connection import ConnectionContext
from api_invoker.dpop import DPOP_HEADER, DpopSigner
from api_invoker.errors import ApiError, build_api_error
from api_invoker.models import (
    ClientErrorHandling,
    HttpMethod,
    NotFoundHandling,
    Options,
    Settings,
)
from api_invoker.query import QueryParams, append_query
from api_invoker.response_handler import ResponseHandler

logger = logging.getLogger(__name__)

ACCEPT = "Accept"
AUTHORIZATION = "Authorization"
CONTENT_TYPE = "Content-Type"
JSON_MEDIA_TYPE = "application/json"

_RESERVED_HEADERS = frozenset(h.lower() for h in (ACCEPT, AUTHORIZATION, CONTENT_TYPE))


def normalize_base_url(base_url: str | None) -> str:
    """Validate base_url and drop a trailing '/'.

    Raises:
        ValueError: If base_url is missing or is not an absolute http(s) URL.
    """
    if not base_url:
        raise ValueError("The configuration does not have information about the base URL.")

    try:
        url = httpx.URL(base_url)
    except httpx.InvalidURL as e:
        raise ValueError(f"The base URL is malformed: {base_url}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"The base URL is malformed: {base_url}")

    return base_url[:-1] if base_url.endswith("/") else base_url


def is_reserved_header(name: str) -> bool:
    """Accept, Authorization and Content-Type cannot be set through Options."""
    return name.lower() in _RESERVED_HEADERS


def build_timeout(settings: Settings) -> httpx.Timeout:
    """Convert millisecond settings to an httpx.Timeout (0 = no timeout)."""

    def seconds(ms: int) -> float | None:
        return ms / 1000.0 if ms > 0 else None

    return httpx.Timeout(
        None,
        connect=seconds(settings.connection_timeout_ms),
        read=seconds(settings.read_timeout_ms),
    )


class Executor:
    """Invokes the remote API.

    Holds only read-only state (base URL, settings, DPoP signer), so one
    instance can be shared by many threads.

    Usage:
        executor = Executor("https://api.example.com", Settings(read_timeout_ms=5000))
        result = executor.get("/api/service/get/1", auth=header, response_type=Service)
    """

    def __init__(
        self,
        base_url: str,
        settings: Settings | None = None,
        dpop_key: str | Mapping[str, Any] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            base_url: Base URL of the API. A trailing '/' is removed.
            settings: Connect/read timeouts. Defaults to no timeouts.
            dpop_key: JWK used to sign a DPoP proof for every call.
            transport: httpx transport used for every connection (tests, proxies).

        Raises:
            ValueError: If base_url is malformed or dpop_key is not a usable JWK.
        """
        self._base_url = normalize_base_url(base_url)
        self._settings = settings or Settings()
        self._timeout = build_timeout(self._settings)
        self._signer = DpopSigner(dpop_key) if dpop_key is not None else None
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def dpop_enabled(self) -> bool:
        return self._signer is not None

    def get(
        self,
        path: str,
        *,
        auth: str | None = None,
        query: QueryParams | None = None,
        response_type: Any = None,
        options: Options | None = None,
        not_found: NotFoundHandling = NotFoundHandling.THROW_EXCEPTION,
        client_error: ClientErrorHandling = ClientErrorHandling.THROW_EXCEPTION,
    ) -> Any:
        return self.call(
            HttpMethod.GET,
            path,
            auth=auth,
            query=query,
            response_type=response_type,
            options=options,
            not_found=not_found,
            client_error=client_error,
        )

    def post(
        self,
        path: str,
        body: Any = None,
        *,
        auth: str | None = None,
        query: QueryParams | None = None,
        response_type: Any = None,
        options: Options | None = None,
        not_found: NotFoundHandling = NotFoundHandling.THROW_EXCEPTION,
        client_error: ClientErrorHandling = ClientErrorHandling.THROW_EXCEPTION,
    ) -> Any:
        return self.call(
            HttpMethod.POST,
            path,
            auth=auth,
            query=query,
            body=body,
            response_type=response_type,
            options=options,
            not_found=not_found,
            client_error=client_error,
        )

    def delete(
        self,
        path: str,
        *,
        auth: str | None = None,
        response_type: Any = None,
        options: Options | None = None,
        not_found: NotFoundHandling = NotFoundHandling.THROW_EXCEPTION,
        client_error: ClientErrorHandling = ClientErrorHandling.THROW_EXCEPTION,
    ) -> Any:
        return self.call(
            HttpMethod.DELETE,
            path,
            auth=auth,
            response_type=response_type,
            options=options,
            not_found=not_found,
            client_error=client_error,
        )

    def call(
        self,
        method: HttpMethod,
        path: str,
        *,
        auth: str | None = None,
        query: QueryParams | None = None,
        body: Any = None,
        response_type: Any = None,
        options: Options | None = None,
        not_found: NotFoundHandling = NotFoundHandling.THROW_EXCEPTION,
        client_error: ClientErrorHandling = ClientErrorHandling.THROW_EXCEPTION,
    ) -> Any:
        """Execute one API call.

        Args:
            method: HTTP method.
            path: Path appended to the base URL, e.g. "/api/client/get/42".
            auth: Authorization header value, None for an unauthenticated call.
            query: Ordered query parameters (see api_invoker.query).
            body: Request object serialized as JSON, None for no body.
            response_type: Type to parse a JSON response into. None or str
                returns the raw body text.
            options: Per-call extra headers.
            not_found: Strategy for a 404 response.
            client_error: Strategy for other 4xx responses.

        Returns:
            The parsed response, the raw body text, or None.

        Raises:
            ApiError: On transport failure, codec failure, DPoP signing
                failure, 5xx, or a 4xx the selected strategy does not absorb.
        """
        method = HttpMethod(method)
        url = append_query(self._base_url + path, query)
        handler = ResponseHandler(not_found=not_found, client_error=client_error)

        # Signed before the connection opens; a failure here is already an ApiError.
        proof = self._signer.sign(method.value, self._base_url + path) if self._signer else None

        logger.debug("%s %s", method.value, url)

        ctx: ConnectionContext | None = None
        try:
            ctx = ConnectionContext(method.value, url, self._timeout, self._transport)
            self._prepare(ctx, auth, proof, options)

            if body is not None:
                self._write_body(ctx, body)

            return handler.handle(ctx, response_type)
        except ApiError:
            raise
        except Exception as e:
            raise build_api_error(e, ctx) from e
        finally:
            if ctx is not None:
                ctx.close()

    def _prepare(
        self,
        ctx: ConnectionContext,
        auth: str | None,
        proof: str | None,
        options: Options | None,
    ) -> None:
        ctx.set_header(ACCEPT, JSON_MEDIA_TYPE)

        if auth is not None:
            ctx.set_header(AUTHORIZATION, auth)

        if proof is not None:
            ctx.set_header(DPOP_HEADER, proof)

        if options is not None and options.headers:
            for name, value in options.headers.items():
                if is_reserved_header(name):
                    continue
                # The proof cannot be replaced per call.
                if proof is not None and name.lower() == DPOP_HEADER.lower():
                    continue
                ctx.set_header(name, value)

    def _write_body(self, ctx: ConnectionContext, body: Any) -> None:
        """Serialize body as UTF-8 JSON and write it to the context."""
        content = to_json(body, by_alias=True, exclude_none=True)

        ctx.set_header(CONTENT_TYPE, JSON_MEDIA_TYPE)
        ctx.do_output(True)

        out = ctx.output_stream()
        out.write(content)
        out.flush()

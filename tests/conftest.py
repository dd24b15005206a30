"""Pytest configuration and fixtures for api-invoker tests.

This file provides:
- RecordingTransport: httpx.MockTransport that keeps every request it served
- make_configuration: ClientConfiguration with test defaults
- Fixtures: EC/RSA signing keys exported as JWKs
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import ECAlgorithm, RSAAlgorithm

from api_invoker.models import ApiVersion, ClientConfiguration

BASE_URL = "https://api.example.com"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that records requests.

    The handler may return an httpx.Response or raise a transport error.
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            request.read()
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def respond(
    status_code: int = 200,
    body: Any = None,
    headers: dict[str, str] | None = None,
) -> RecordingTransport:
    """Transport that answers every request with the same response.

    body may be a str (sent as-is), bytes, or any JSON-serializable value.
    """
    if body is None:
        content = b""
    elif isinstance(body, bytes):
        content = body
    elif isinstance(body, str):
        content = body.encode("utf-8")
    else:
        content = json.dumps(body).encode("utf-8")

    return RecordingTransport(
        lambda request: httpx.Response(status_code, content=content, headers=headers)
    )


def make_configuration(**overrides: Any) -> ClientConfiguration:
    """Create a ClientConfiguration for tests.

    Prefer this over constructing ClientConfiguration directly - it fills
    in a base URL and V2 credentials that most tests do not care about.
    """
    values: dict[str, Any] = {
        "base_url": BASE_URL,
        "api_version": ApiVersion.V2,
        "service_owner_api_key": "owner-key",
        "service_owner_api_secret": "owner-secret",
        "service_api_key": "1234",
        "service_api_secret": "service-secret",
    }
    values.update(overrides)
    return ClientConfiguration(**values)


@pytest.fixture
def ec_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def ec_jwk(ec_private_key: ec.EllipticCurvePrivateKey) -> dict[str, Any]:
    """Private P-256 key as a JWK with alg=ES256."""
    jwk = json.loads(ECAlgorithm.to_jwk(ec_private_key))
    jwk["alg"] = "ES256"
    return jwk


@pytest.fixture
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def rsa_jwk(rsa_private_key: rsa.RSAPrivateKey) -> dict[str, Any]:
    """Private RSA key as a JWK with alg=RS256."""
    jwk = json.loads(RSAAlgorithm.to_jwk(rsa_private_key))
    jwk["alg"] = "RS256"
    return jwk

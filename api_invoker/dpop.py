"""DPoP proof generation (RFC 9449).

A DpopSigner is built once from a JWK and produces a fresh proof JWT for
every request, bound to the request's method and URL.
"""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import jwt

from api_invoker.errors import ApiError

DPOP_HEADER = "DPoP"
DPOP_JWT_TYPE = "dpop+jwt"

# JWK members that must never leave the client.
_PRIVATE_JWK_MEMBERS = frozenset({"d", "p", "q", "dp", "dq", "qi", "oth", "k"})


def check_algorithm(alg: str) -> None:
    """Reject algorithms that cannot sign a DPoP proof.

    Raises:
        ValueError: For "none" and symmetric (HMAC) algorithms.
    """
    if not isinstance(alg, str) or alg.lower() == "none":
        raise ValueError(f"DPoP JWK algorithm {alg!r} cannot sign a proof.")
    if alg.upper().startswith("HS"):
        raise ValueError(f"DPoP JWK algorithm {alg!r} is symmetric; an asymmetric key is required.")


def _strip_query(url: str) -> str:
    """The htu claim excludes the query and fragment."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class DpopSigner:
    """Signs DPoP proofs with an asymmetric key.

    The key must declare its algorithm ("alg"); a key without one is rejected
    here rather than on the first call.
    """

    def __init__(self, jwk: str | Mapping[str, Any]) -> None:
        if isinstance(jwk, str):
            try:
                jwk = json.loads(jwk)
            except json.JSONDecodeError as e:
                raise ValueError("DPoP JWK is not valid JSON.") from e

        if not isinstance(jwk, Mapping):
            raise ValueError("DPoP JWK must be a JSON object.")

        jwk_data = dict(jwk)

        if not jwk_data.get("alg"):
            raise ValueError("DPoP JWK must contain an 'alg' field.")

        check_algorithm(jwk_data["alg"])

        if jwk_data.get("kty") == "oct":
            raise ValueError("DPoP JWK must be an asymmetric key.")

        try:
            self._jwk = jwt.PyJWK(jwk_data)
        except (jwt.PyJWTError, NotImplementedError) as e:
            raise ValueError(f"DPoP JWK is not valid: {e}") from e

        self._algorithm: str = jwk_data["alg"]
        self._public_jwk = {k: v for k, v in jwk_data.items() if k not in _PRIVATE_JWK_MEMBERS}

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def public_jwk(self) -> dict[str, Any]:
        return dict(self._public_jwk)

    def sign(self, method: str, url: str) -> str:
        """Create a compact, single-use proof for one request.

        Raises:
            ApiError: If signing fails.
        """
        claims = {
            "htm": method,
            "htu": _strip_query(url),
            "jti": str(uuid.uuid4()),
            "iat": int(time.time()),
        }
        headers = {
            "typ": DPOP_JWT_TYPE,
            "jwk": self._public_jwk,
        }

        try:
            return jwt.encode(claims, self._jwk.key, algorithm=self._algorithm, headers=headers)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise ApiError("Failed to sign DPoP proof.") from e

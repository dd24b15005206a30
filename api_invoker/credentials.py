"""Authorization header values.

Basic credentials (RFC 7617) are used by the V2 API, access tokens by V3.
"""

from __future__ import annotations

import base64
import binascii
import re

_BASIC_PATTERN = re.compile(r"^Basic *([^ ]+) *$", re.IGNORECASE)


class BasicCredentials:
    """A user ID / password pair for HTTP Basic authentication.

    Either part may be None; it is formatted as an empty string.
    """

    def __init__(self, user_id: str | None, password: str | None) -> None:
        self._user_id = user_id
        self._password = password

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def password(self) -> str | None:
        return self._password

    def format(self) -> str:
        """Build the value of the Authorization header."""
        pair = f"{self._user_id or ''}:{self._password or ''}"
        encoded = base64.b64encode(pair.encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"

    @classmethod
    def parse(cls, header: str | None) -> BasicCredentials | None:
        """Parse an Authorization header value.

        Returns None for None input. A value that is not a well-formed Basic
        challenge yields credentials whose parts are both None.
        """
        if header is None:
            return None

        match = _BASIC_PATTERN.match(header)
        if match is None:
            return cls(None, None)

        try:
            decoded = base64.b64decode(match.group(1), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return cls(None, None)

        user_id, sep, password = decoded.partition(":")
        return cls(user_id, password if sep else None)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BasicCredentials):
            return NotImplemented
        return (self._user_id, self._password) == (other._user_id, other._password)

    def __hash__(self) -> int:
        return hash((self._user_id, self._password))

    def __repr__(self) -> str:
        # The password is never included.
        return f"BasicCredentials(user_id={self._user_id!r})"


def format_access_token(token: str, dpop_bound: bool = False) -> str:
    """Build an Authorization header value for an access token."""
    scheme = "DPoP" if dpop_bound else "Bearer"
    return f"{scheme} {token}"

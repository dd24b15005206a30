"""Factory - Selects an API client implementation for a configuration.

Implementations are registered per API version in preference order.
create_api() tries them in turn and returns the first that accepts the
configuration.
"""

from __future__ import annotations

import logging
from typing import Callable

import httpx

from api_invoker.api import ApiClient, ApiClientV2, ApiClientV3
from api_invoker.models import ApiVersion, ClientConfiguration

logger = logging.getLogger(__name__)

ApiConstructor = Callable[[ClientConfiguration, httpx.BaseTransport | None], ApiClient]

# Version -> [(name, constructor)] in preference order
IMPLEMENTATIONS: dict[ApiVersion, list[tuple[str, ApiConstructor]]] = {
    ApiVersion.V2: [("v2", ApiClientV2)],
    ApiVersion.V3: [("v3", ApiClientV3)],
}


def create_api(
    configuration: ClientConfiguration,
    name: str | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ApiClient | None:
    """Create a client for configuration.

    Args:
        configuration: Client configuration.
        name: Registered implementation name. If None, every implementation
              registered for the configured API version is tried in order.
        transport: Optional httpx transport passed to the client.

    Returns:
        The client, or None if no registered implementation accepted the
        configuration.

    Raises:
        ValueError: If configuration is None, or name is not registered.
    """
    if configuration is None:
        raise ValueError("configuration is None.")

    if name is not None:
        return _lookup(name)(configuration, transport)

    for impl_name, constructor in IMPLEMENTATIONS.get(configuration.api_version, []):
        try:
            return constructor(configuration, transport)
        except ValueError as e:
            logger.debug("Implementation '%s' rejected the configuration: %s", impl_name, e)

    return None


def _lookup(name: str) -> ApiConstructor:
    for implementations in IMPLEMENTATIONS.values():
        for impl_name, constructor in implementations:
            if impl_name == name:
                return constructor
    known = ", ".join(n for impls in IMPLEMENTATIONS.values() for n, _ in impls)
    raise ValueError(f"Unknown implementation '{name}'. Available: {known}")

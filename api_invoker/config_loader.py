"""Config Loader - Builds a ClientConfiguration from a file or the environment.

YAML files support ${ENV_VAR} substitution in any string value, so secrets can
stay out of the file itself.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from api_invoker.dpop import DpopSigner
from api_invoker.models import ApiVersion, ClientConfiguration


class ConfigError(Exception):
    """Raised when configuration loading fails."""


# Environment variable -> ClientConfiguration field
ENV_KEYS: dict[str, str] = {
    "API_BASE_URL": "base_url",
    "API_VERSION": "api_version",
    "API_SERVICEOWNER_APIKEY": "service_owner_api_key",
    "API_SERVICEOWNER_APISECRET": "service_owner_api_secret",
    "API_SERVICE_APIKEY": "service_api_key",
    "API_SERVICE_APISECRET": "service_api_secret",
    "API_SERVICEOWNER_ACCESSTOKEN": "service_owner_access_token",
    "API_SERVICE_ACCESSTOKEN": "service_access_token",
    "API_DPOP_KEY": "dpop_key",
    "API_CONNECTION_TIMEOUT_MS": "connection_timeout_ms",
    "API_READ_TIMEOUT_MS": "read_timeout_ms",
}


def load_configuration(config_path: Path) -> ClientConfiguration:
    """Load a client configuration from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Config file must be a YAML mapping")

    raw_config = _expand_env(raw_config, os.environ)

    try:
        return ClientConfiguration.model_validate(raw_config)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid config structure: {e}") from e


def configuration_from_env(environ: Mapping[str, str] | None = None) -> ClientConfiguration:
    """Build a client configuration from API_* environment variables."""
    env = os.environ if environ is None else environ

    raw_config = {name: env[key] for key, name in ENV_KEYS.items() if env.get(key)}

    if "base_url" not in raw_config:
        raise ConfigError("Environment variable 'API_BASE_URL' is not set")

    try:
        return ClientConfiguration.model_validate(raw_config)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration in environment: {e}") from e


# ${NAME} where NAME is a valid environment variable name
_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _expand_env(value: Any, environ: Mapping[str, str]) -> Any:
    """Expand ${NAME} references in every string nested in value.

    Raises:
        ConfigError: If a referenced variable is not set.
    """
    if isinstance(value, dict):
        return {key: _expand_env(item, environ) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item, environ) for item in value]
    if not isinstance(value, str):
        return value

    def lookup(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in environ:
            raise ConfigError(f"Environment variable '{name}' is not set")
        return environ[name]

    return _ENV_REFERENCE.sub(lookup, value)


class Severity(str, Enum):
    WARNING = "warning"  # The configuration works, possibly not as intended
    ERROR = "error"  # Calls would fail


@dataclass(frozen=True)
class ConfigIssue:
    """One finding about a ClientConfiguration."""

    severity: Severity
    category: str
    message: str

    def __str__(self) -> str:
        return f"[{self.category}] {self.message}"


@dataclass
class ConfigReport:
    """Findings of validate_configuration, in the order they were found."""

    issues: list[ConfigIssue] = field(default_factory=list)

    def add(self, severity: Severity, category: str, message: str) -> None:
        self.issues.append(ConfigIssue(severity, category, message))

    @property
    def warnings(self) -> list[ConfigIssue]:
        return [i for i in self.issues if i.severity is Severity.WARNING]

    @property
    def errors(self) -> list[ConfigIssue]:
        return [i for i in self.issues if i.severity is Severity.ERROR]

    @property
    def is_valid(self) -> bool:
        """True if no errors (warnings are OK)."""
        return not self.errors


def validate_configuration(config: ClientConfiguration) -> ConfigReport:
    """Check credentials and keys against the selected API version.

    Does not contact the API. Problems that would only surface when a client
    is built or on the first call are reported here instead. The DPoP key is
    checked with the same rules DpopSigner applies.
    """
    report = ConfigReport()

    if config.api_version == ApiVersion.V2:
        if not config.service_api_key and not config.service_owner_api_key:
            report.add(
                Severity.WARNING,
                "credentials",
                "No service or service owner API key; only unauthenticated calls will succeed",
            )
        if config.service_api_key and not config.service_api_secret:
            report.add(
                Severity.WARNING, "credentials", "service_api_key is set without service_api_secret"
            )
        if config.service_owner_api_key and not config.service_owner_api_secret:
            report.add(
                Severity.WARNING,
                "credentials",
                "service_owner_api_key is set without service_owner_api_secret",
            )
    else:
        if not config.service_access_token:
            report.add(Severity.ERROR, "credentials", "V3 API requires service_access_token")
        if config.service_api_key and not config.service_api_key.isdigit():
            report.add(
                Severity.ERROR, "credentials", "V3 API requires a numeric service_api_key (service ID)"
            )

    if config.dpop_key is not None:
        try:
            DpopSigner(config.dpop_key)
        except ValueError as e:
            report.add(Severity.ERROR, "dpop", str(e))

    return report

"""Tests for configuration loading and validation.

Tests cover:
- YAML loading with ${ENV_VAR} substitution
- Environment-variable configuration
- validate_configuration: credentials per API version, DPoP key checks
"""

import json
from pathlib import Path
from typing import Any

import pytest

from api_invoker.config_loader import (
    ConfigError,
    ConfigIssue,
    ConfigReport,
    Severity,
    configuration_from_env,
    load_configuration,
    validate_configuration,
)
from api_invoker.models import ApiVersion
from tests.conftest import make_configuration


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "client.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfiguration:
    """Tests for load_configuration."""

    def test_minimal(self, tmp_path: Path) -> None:
        config = load_configuration(write_config(tmp_path, "base_url: https://api.example.com\n"))
        assert config.base_url == "https://api.example.com"
        assert config.api_version == ApiVersion.V2
        assert config.connection_timeout_ms == 0

    def test_full(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path,
            """
base_url: https://api.example.com
api_version: V3
service_api_key: "1234"
service_access_token: token
connection_timeout_ms: 1000
read_timeout_ms: 5000
dpop_key:
  kty: EC
  alg: ES256
""",
        )
        config = load_configuration(path)

        assert config.api_version == ApiVersion.V3
        assert config.service_api_key == "1234"
        assert config.dpop_key == {"kty": "EC", "alg": "ES256"}
        assert config.settings().read_timeout_ms == 5000

    def test_env_substitution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_API_HOST", "api.example.com")
        monkeypatch.setenv("TEST_API_SECRET", "s3cret")
        path = write_config(
            tmp_path,
            "base_url: https://${TEST_API_HOST}/v1\nservice_api_secret: ${TEST_API_SECRET}\n",
        )
        config = load_configuration(path)

        assert config.base_url == "https://api.example.com/v1"
        assert config.service_api_secret == "s3cret"

    def test_missing_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TEST_API_UNSET", raising=False)
        path = write_config(tmp_path, "base_url: ${TEST_API_UNSET}\n")
        with pytest.raises(ConfigError, match="TEST_API_UNSET"):
            load_configuration(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_configuration(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_configuration(write_config(tmp_path, "base_url: [unclosed\n"))

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="mapping"):
            load_configuration(write_config(tmp_path, "- a\n- b\n"))

    @pytest.mark.parametrize(
        "content",
        [
            "api_version: V2\n",
            "base_url: https://h\nunknown_field: 1\n",
            "base_url: https://h\napi_version: V9\n",
            "base_url: https://h\nread_timeout_ms: -5\n",
        ],
    )
    def test_invalid_structure(self, tmp_path: Path, content: str) -> None:
        with pytest.raises(ConfigError, match="Invalid config structure"):
            load_configuration(write_config(tmp_path, content))


class TestConfigurationFromEnv:
    """Tests for configuration_from_env."""

    def test_all_keys(self) -> None:
        config = configuration_from_env(
            {
                "API_BASE_URL": "https://api.example.com",
                "API_VERSION": "V3",
                "API_SERVICE_APIKEY": "1234",
                "API_SERVICE_ACCESSTOKEN": "token",
                "API_CONNECTION_TIMEOUT_MS": "1500",
                "API_READ_TIMEOUT_MS": "3000",
                "UNRELATED": "ignored",
            }
        )
        assert config.api_version == ApiVersion.V3
        assert config.service_access_token == "token"
        assert config.connection_timeout_ms == 1500
        assert config.read_timeout_ms == 3000

    def test_empty_values_ignored(self) -> None:
        config = configuration_from_env({"API_BASE_URL": "https://h", "API_SERVICE_APIKEY": ""})
        assert config.service_api_key is None

    def test_missing_base_url(self) -> None:
        with pytest.raises(ConfigError, match="API_BASE_URL"):
            configuration_from_env({"API_VERSION": "V2"})

    def test_invalid_value(self) -> None:
        with pytest.raises(ConfigError, match="environment"):
            configuration_from_env({"API_BASE_URL": "https://h", "API_READ_TIMEOUT_MS": "soon"})

    def test_reads_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://from-env.example.com")
        assert configuration_from_env().base_url == "https://from-env.example.com"


class TestValidateConfiguration:
    """Tests for validate_configuration."""

    def test_v2_complete(self) -> None:
        result = validate_configuration(make_configuration())
        assert result.is_valid
        assert result.warnings == []

    def test_v2_no_credentials_warns(self) -> None:
        result = validate_configuration(
            make_configuration(service_api_key=None, service_owner_api_key=None)
        )
        assert result.is_valid
        assert len(result.warnings) == 1
        assert result.warnings[0].category == "credentials"

    def test_v2_key_without_secret_warns(self) -> None:
        result = validate_configuration(make_configuration(service_api_secret=None))
        assert result.is_valid
        assert any("service_api_secret" in str(w) for w in result.warnings)

    def test_v3_requires_token(self) -> None:
        result = validate_configuration(make_configuration(api_version=ApiVersion.V3))
        assert not result.is_valid
        assert "service_access_token" in str(result.errors[0])

    def test_v3_requires_numeric_service_id(self) -> None:
        result = validate_configuration(
            make_configuration(
                api_version=ApiVersion.V3, service_api_key="abc", service_access_token="t"
            )
        )
        assert not result.is_valid
        assert "numeric" in str(result.errors[0])

    def test_v3_valid(self) -> None:
        result = validate_configuration(
            make_configuration(api_version=ApiVersion.V3, service_access_token="t")
        )
        assert result.is_valid

    def test_dpop_key_valid(self, ec_jwk: dict[str, Any]) -> None:
        assert validate_configuration(make_configuration(dpop_key=json.dumps(ec_jwk))).is_valid
        assert validate_configuration(make_configuration(dpop_key=ec_jwk)).is_valid

    @pytest.mark.parametrize(
        ("dpop_key", "fragment"),
        [
            ("{broken", "not valid JSON"),
            ("[1]", "JSON object"),
            ({"kty": "EC"}, "'alg'"),
        ],
    )
    def test_dpop_key_invalid(self, dpop_key: Any, fragment: str) -> None:
        result = validate_configuration(make_configuration(dpop_key=dpop_key))
        assert not result.is_valid
        assert result.errors[0].category == "dpop"
        assert fragment in result.errors[0].message

    @pytest.mark.parametrize("alg", ["none", "HS256"])
    def test_dpop_key_unusable_algorithm(self, ec_jwk: dict[str, Any], alg: str) -> None:
        ec_jwk["alg"] = alg
        result = validate_configuration(make_configuration(dpop_key=ec_jwk))
        assert not result.is_valid
        assert result.errors[0].category == "dpop"
        assert "algorithm" in result.errors[0].message

    def test_dpop_key_without_key_material(self) -> None:
        result = validate_configuration(make_configuration(dpop_key={"kty": "EC", "alg": "ES256"}))
        assert not result.is_valid


class TestConfigReport:
    """Tests for ConfigReport."""

    def test_issues_split_by_severity(self) -> None:
        report = ConfigReport()
        report.add(Severity.WARNING, "credentials", "first")
        report.add(Severity.ERROR, "dpop", "second")
        report.add(Severity.WARNING, "credentials", "third")

        assert [i.message for i in report.issues] == ["first", "second", "third"]
        assert [i.message for i in report.warnings] == ["first", "third"]
        assert [i.message for i in report.errors] == ["second"]
        assert not report.is_valid

    def test_warnings_only_is_valid(self) -> None:
        report = ConfigReport()
        report.add(Severity.WARNING, "credentials", "w")
        assert report.is_valid

    def test_issue_str(self) -> None:
        assert str(ConfigIssue(Severity.ERROR, "dpop", "bad key")) == "[dpop] bad key"


class TestEnvReferences:
    """${NAME} expansion in YAML values."""

    def test_nested_values(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_API_ALG", "ES256")
        path = write_config(
            tmp_path,
            "base_url: https://h\nread_timeout_ms: 10\ndpop_key:\n  kty: EC\n  alg: ${TEST_API_ALG}\n",
        )
        config = load_configuration(path)
        assert config.dpop_key == {"kty": "EC", "alg": "ES256"}
        assert config.read_timeout_ms == 10

    def test_set_but_empty(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_API_EMPTY", "")
        path = write_config(tmp_path, "base_url: https://h\nservice_api_secret: x${TEST_API_EMPTY}\n")
        assert load_configuration(path).service_api_secret == "x"

    def test_invalid_name_left_alone(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, "base_url: https://h\nservice_api_secret: ${1abc}\n")
        assert load_configuration(path).service_api_secret == "${1abc}"

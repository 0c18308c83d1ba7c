"""
Tests for fhirside.core.config
================================

These tests verify that the configuration system works correctly:
    - Default values are sensible and complete
    - Environment variables override defaults (FHIRSIDE_ prefix)
    - YAML files are parsed correctly
    - Validation catches invalid values
    - Nested configs (server, export) work properly

All tests are unit tests; no server is started.
"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from fhirside.core.config import (
    ExportConfig,
    FhirSideConfig,
    ServerConfig,
    get_default_config,
    load_config,
)
from fhirside.core.enums import DEFAULT_EXPORT_ORDER, ResourceType
from fhirside.core.exceptions import ConfigurationError


# =============================================================================
# Test: Default Configuration
# =============================================================================
class TestDefaultConfig:
    """Tests for default configuration values."""

    def test_default_config_creates_successfully(self) -> None:
        """FhirSideConfig() should work with no arguments (zero-config startup)."""
        config = FhirSideConfig()
        assert config.environment == "dev"
        assert config.log_level == "INFO"
        assert config.log_format == "console"
        assert config.seed_sample_data is True

    def test_default_server(self) -> None:
        config = FhirSideConfig()
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 8000

    def test_default_export(self) -> None:
        """Exports time out after 5 minutes and keep partial output by default."""
        export = FhirSideConfig().export
        assert export.base_path == "/fhir"
        assert export.timeout_seconds == 300.0
        assert export.discard_partial_on_failure is False
        assert export.resource_types == list(DEFAULT_EXPORT_ORDER)

    def test_get_default_config_convenience(self) -> None:
        assert isinstance(get_default_config(), FhirSideConfig)


# =============================================================================
# Test: Validation
# =============================================================================
class TestConfigValidation:
    """Tests that invalid values are rejected."""

    def test_invalid_environment_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FhirSideConfig(environment="qa")

    def test_invalid_log_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FhirSideConfig(log_format="xml")

    def test_log_level_is_uppercased(self) -> None:
        assert FhirSideConfig(log_level="debug").log_level == "DEBUG"

    def test_port_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ServerConfig(port=0)
        with pytest.raises(ValidationError):
            ServerConfig(port=70000)

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ExportConfig(timeout_seconds=0)

    def test_timeout_can_be_disabled(self) -> None:
        assert ExportConfig(timeout_seconds=None).timeout_seconds is None

    def test_resource_types_must_not_be_empty(self) -> None:
        with pytest.raises(ValidationError):
            ExportConfig(resource_types=[])

    def test_resource_types_must_be_unique(self) -> None:
        with pytest.raises(ValidationError):
            ExportConfig(resource_types=["Patient", "Patient"])

    def test_resource_types_parsed_from_strings(self) -> None:
        config = ExportConfig(resource_types=["Observation", "Patient"])
        assert config.resource_types == [ResourceType.OBSERVATION, ResourceType.PATIENT]

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("/fhir/", "/fhir"), ("fhir", "/fhir"), ("/api/r4", "/api/r4"), ("", "")],
    )
    def test_base_path_normalized(self, raw: str, expected: str) -> None:
        assert ExportConfig(base_path=raw).base_path == expected


# =============================================================================
# Test: Environment Variable Loading
# =============================================================================
class TestEnvVarLoading:
    """Tests for FHIRSIDE_* environment variables."""

    def test_env_var_overrides_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FHIRSIDE_LOG_LEVEL", "WARNING")
        assert FhirSideConfig().log_level == "WARNING"

    def test_nested_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FHIRSIDE_SERVER__PORT", "9090")
        monkeypatch.setenv("FHIRSIDE_EXPORT__DISCARD_PARTIAL_ON_FAILURE", "true")

        config = FhirSideConfig()

        assert config.server.port == 9090
        assert config.export.discard_partial_on_failure is True


# =============================================================================
# Test: YAML Loading
# =============================================================================
class TestYamlLoading:
    """Tests for load_config()."""

    def test_load_valid_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "fhirside.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "environment": "staging",
                    "seed_sample_data": False,
                    "export": {"timeout_seconds": 30, "resource_types": ["Patient"]},
                }
            )
        )

        config = load_config(str(config_file))

        assert config.environment == "staging"
        assert config.seed_sample_data is False
        assert config.export.timeout_seconds == 30
        assert config.export.resource_types == [ResourceType.PATIENT]

    def test_load_nonexistent_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_load_empty_yaml_uses_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "fhirside.yaml"
        config_file.write_text("")

        assert load_config(str(config_file)).environment == "dev"

    def test_non_mapping_yaml_rejected(self, tmp_path: Path) -> None:
        config_file = tmp_path / "fhirside.yaml"
        config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(str(config_file))
        assert exc_info.value.error_code == "INVALID_CONFIG_SHAPE"

    def test_malformed_yaml_rejected(self, tmp_path: Path) -> None:
        config_file = tmp_path / "fhirside.yaml"
        config_file.write_text("export: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(str(config_file))
        assert exc_info.value.error_code == "INVALID_YAML"

    def test_env_var_overrides_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = tmp_path / "fhirside.yaml"
        config_file.write_text("log_level: DEBUG\nlog_format: json\n")
        monkeypatch.setenv("FHIRSIDE_LOG_LEVEL", "WARNING")

        config = load_config(str(config_file))

        assert config.log_level == "WARNING"
        assert config.log_format == "json"

    def test_nested_env_var_overrides_single_yaml_key(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = tmp_path / "fhirside.yaml"
        config_file.write_text(
            yaml.dump({"export": {"timeout_seconds": 30, "base_path": "/r4"}})
        )
        monkeypatch.setenv("FHIRSIDE_EXPORT__TIMEOUT_SECONDS", "90")

        config = load_config(str(config_file))

        assert config.export.timeout_seconds == 90
        assert config.export.base_path == "/r4"

    def test_default_file_is_picked_up(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "fhirside.yaml").write_text("log_format: json\n")
        monkeypatch.chdir(tmp_path)

        assert load_config().log_format == "json"

    def test_no_path_and_no_file_uses_defaults(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert load_config().log_format == "console"

"""Tests for loading and validating the transfer configuration.

Security Impact:
    - Verifies that API keys are held as SecretStr and not echoed
"""

import json
import os
from unittest.mock import patch

import pytest
from pydantic import SecretStr

from transfair.domain.directions import MappingDirection
from transfair.domain.ports import ConfigurationError
from transfair.infrastructure.config_manager import (
    ConceptMapPaths,
    ConfigManager,
    IdMappingConfig,
    WriterConfig,
)


def _minimal(**overrides):
    data = {
        "direction": "bbmri2mii",
        "reader": {"source": "http://bbmri:8080/fhir"},
        "writer": {"kind": "fhir", "target": "http://mii:8080/fhir"},
    }
    data.update(overrides)
    return data


class TestTransferConfig:
    """Test validation of the run configuration."""

    def test_minimal_configuration(self):
        config = ConfigManager(_minimal()).get_transfer_config()

        assert config.direction is MappingDirection.BIOBANK_TO_CORE
        assert config.reader.batch_size == 100
        assert config.writer.max_attempts is None
        assert config.id_mapping.mode == "none"
        assert config.concept_maps.diagnosis is None

    def test_unknown_direction(self):
        with pytest.raises(ConfigurationError, match="direction"):
            ConfigManager(_minimal(direction="sideways")).get_transfer_config()

    def test_missing_reader(self):
        data = _minimal()
        del data["reader"]

        with pytest.raises(ConfigurationError, match="reader"):
            ConfigManager(data).get_transfer_config()

    def test_unknown_writer_kind(self):
        with pytest.raises(ValueError, match="Unsupported writer"):
            WriterConfig(kind="kafka", target="x")

    def test_missing_translation_table(self, tmp_path):
        with pytest.raises(ValueError, match="Translation table not found"):
            ConceptMapPaths(diagnosis=str(tmp_path / "missing.json"))

    def test_csv_id_mapping_requires_file(self):
        with pytest.raises(ValueError, match="requires a mapping file"):
            IdMappingConfig(mode="csvmapping")

    def test_api_key_is_secret(self):
        data = _minimal(writer={"kind": "fhir", "target": "http://mii", "api_key": "top-secret"})

        config = ConfigManager(data).get_transfer_config()

        assert isinstance(config.writer.api_key, SecretStr)
        assert config.writer.api_key.get_secret_value() == "top-secret"
        assert "top-secret" not in repr(config)

    def test_resource_types_from_comma_list(self):
        data = _minimal(reader={"source": "http://bbmri", "resource_types": "Patient, Specimen"})

        config = ConfigManager(data).get_transfer_config()

        assert config.reader.resource_types == ["Patient", "Specimen"]


class TestConfigManager:
    """Test configuration sources and overrides."""

    def test_from_file(self, tmp_path):
        path = tmp_path / "transfer.json"
        path.write_text(json.dumps(_minimal(direction="copy")), encoding="utf-8")

        config = ConfigManager.from_file(str(path)).get_transfer_config()

        assert config.direction is MappingDirection.COPY

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigManager.from_file(str(tmp_path / "missing.json"))

    def test_from_file_invalid_json(self, tmp_path):
        path = tmp_path / "transfer.json"
        path.write_text("{", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            ConfigManager.from_file(str(path))

    def test_from_file_not_an_object(self, tmp_path):
        path = tmp_path / "transfer.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="JSON object"):
            ConfigManager.from_file(str(path))

    def test_from_environment(self, tmp_path, write_json):
        table = write_json("dx.json", {"resourceType": "ConceptMap"})
        env = {
            "TF_DIRECTION": "mii2bbmri",
            "TF_SOURCE": "http://mii/fhir",
            "TF_BATCH_SIZE": "250",
            "TF_WRITER": "duckdb",
            "TF_TARGET": str(tmp_path / "out.duckdb"),
            "TF_WRITER_MAX_ATTEMPTS": "4",
            "TF_CONCEPT_MAP_DIAGNOSIS_REVERSE": table,
            "TF_ID_MAPPING_MODE": "identity",
        }

        with patch.dict(os.environ, env, clear=True):
            config = ConfigManager.from_environment(env_file=str(tmp_path / "none.env")).get_transfer_config()

        assert config.direction is MappingDirection.CORE_TO_BIOBANK
        assert config.reader.batch_size == 250
        assert config.writer.kind == "duckdb"
        assert config.writer.max_attempts == 4
        assert config.concept_maps.diagnosis_reverse == table
        assert config.id_mapping.mode == "identity"

    def test_from_environment_loads_dotenv(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "TF_DIRECTION=copy\nTF_SOURCE=input.json\nTF_WRITER=file\nTF_TARGET=out\n",
            encoding="utf-8",
        )

        with patch.dict(os.environ, {}, clear=True):
            manager = ConfigManager.from_environment(env_file=str(env_file))

        assert manager.get("direction") == "copy"
        assert manager.get("writer.target") == "out"

    def test_merged_overrides_ignore_none(self):
        manager = ConfigManager(_minimal()).merged({
            "direction": "copy",
            "reader": {"source": None, "batch_size": 5},
            "writer": {"kind": None},
        })

        config = manager.get_transfer_config()

        assert config.direction is MappingDirection.COPY
        assert config.reader.source == "http://bbmri:8080/fhir"
        assert config.reader.batch_size == 5
        assert config.writer.kind == "fhir"

    def test_get_dot_notation(self):
        manager = ConfigManager(_minimal())

        assert manager.get("writer.kind") == "fhir"
        assert manager.get("writer.api_key", "none") == "none"
        assert manager.get("direction.value") is None

"""Run Configuration Manager.

Loads the configuration of one transfer (direction, source, target,
translation tables, identifier mapping) from environment variables or a
JSON file and validates it with pydantic before anything is read.

Security Impact:
    - API keys are stored as SecretStr and never logged or echoed
    - Configuration files are parsed as JSON only (no code execution)
    - Invalid configuration fails fast with ConfigurationError

Architecture:
    - Infrastructure layer; the domain only sees the validated values
    - Command line options are merged over file or environment values
      with ``ConfigManager.merged()``
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from transfair.adapters.writers import WRITER_KINDS
from transfair.domain.directions import MappingDirection
from transfair.domain.ports import ConfigurationError

logger = logging.getLogger(__name__)

ID_MAPPING_MODES = ("none", "identity", "csvmapping")


class ConceptMapPaths(BaseModel):
    """File paths of the translation tables; every table is optional."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    diagnosis: Optional[str] = None
    diagnosis_reverse: Optional[str] = None
    cause_of_death: Optional[str] = None
    cause_of_death_reverse: Optional[str] = None
    sample_type: Optional[str] = None
    sample_type_reverse: Optional[str] = None

    @field_validator("*")
    @classmethod
    def validate_exists(cls, v: Optional[str]) -> Optional[str]:
        if v and not Path(v).is_file():
            raise ValueError(f"Translation table not found: {v}")
        return v or None


class ReaderConfig(BaseModel):
    """Where records are read from.

    Parameters:
        source: FHIR base URL or file/directory path
        batch_size: Records per batch
        resource_types: Kinds to read (FHIR servers; all kinds if None for files)
        page_size: FHIR search ``_count``
        api_key: Bearer token for the source server (secret)
    """

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., min_length=1, description="FHIR base URL or input path")
    batch_size: int = Field(default=100, gt=0)
    resource_types: Optional[list[str]] = None
    page_size: int = Field(default=100, gt=0)
    api_key: Optional[SecretStr] = Field(None, description="Source API key (secret)")

    @field_validator("resource_types", mode="before")
    @classmethod
    def split_resource_types(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [kind.strip() for kind in v.split(",") if kind.strip()] or None
        return v


class WriterConfig(BaseModel):
    """Where bundles are written to.

    Parameters:
        kind: One of ``fhir``, ``file``, ``duckdb``, ``catalog``
        target: FHIR base URL, output directory or database path
        api_key: Bearer token for the target server (secret)
        max_attempts: Attempts per bundle (writer default if None)
        backoff_seconds: Fixed wait between attempts (writer default if None)
    """

    model_config = ConfigDict(frozen=True)

    kind: str = "fhir"
    target: str = Field(..., min_length=1)
    api_key: Optional[SecretStr] = Field(None, description="Target API key (secret)")
    max_attempts: Optional[int] = Field(None, gt=0)
    backoff_seconds: Optional[float] = Field(None, ge=0)

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        if v.lower() not in WRITER_KINDS:
            raise ValueError(f"Unsupported writer: {v}. Supported: {list(WRITER_KINDS)}")
        return v.lower()


class IdMappingConfig(BaseModel):
    """Identifier pseudonymisation settings.

    Parameters:
        mode: ``none`` (no relabelling), ``identity`` or ``csvmapping``
        file: CSV mapping file, required for ``csvmapping``
        source_domain: Id domain of the input records
        target_domain: Id domain of the output records
    """

    model_config = ConfigDict(frozen=True)

    mode: str = "none"
    file: Optional[str] = None
    source_domain: str = "bbmri"
    target_domain: str = "mii"

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        if v.lower() not in ID_MAPPING_MODES:
            raise ValueError(f"Unsupported id mapping mode: {v}. Supported: {list(ID_MAPPING_MODES)}")
        return v.lower()

    @model_validator(mode="after")
    def require_file_for_csv(self) -> "IdMappingConfig":
        if self.mode == "csvmapping" and not self.file:
            raise ValueError("Id mapping mode 'csvmapping' requires a mapping file")
        return self


class TransferConfig(BaseModel):
    """Validated configuration of one transfer run."""

    model_config = ConfigDict(frozen=True)

    direction: MappingDirection
    reader: ReaderConfig
    writer: WriterConfig
    concept_maps: ConceptMapPaths = Field(default_factory=ConceptMapPaths)
    id_mapping: IdMappingConfig = Field(default_factory=IdMappingConfig)

    @field_validator("direction", mode="before")
    @classmethod
    def parse_direction(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return MappingDirection.parse(v)
            except ConfigurationError as e:
                raise ValueError(str(e)) from e
        return v


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict):
            merged[key] = _merge(merged.get(key) or {}, value)
        else:
            merged[key] = value
    return merged


def _drop_empty(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key, value in data.items():
        if isinstance(value, dict):
            value = _drop_empty(value)
        if value not in (None, "", {}):
            cleaned[key] = value
    return cleaned


class ConfigManager:
    """Loads and validates transfer configuration.

    Example Usage:
        ```python
        config = ConfigManager.from_file("transfer.json").get_transfer_config()
        config = ConfigManager.from_environment().merged({"direction": "copy"}).get_transfer_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        self._config_data = config_data
        self._transfer_config: Optional[TransferConfig] = None

    @classmethod
    def from_environment(cls, env_file: Optional[str] = None) -> "ConfigManager":
        """Load configuration from ``TF_*`` environment variables.

        Environment Variables:
            - TF_DIRECTION: Mapping direction id
            - TF_SOURCE, TF_SOURCE_API_KEY, TF_RESOURCE_TYPES, TF_PAGE_SIZE, TF_BATCH_SIZE
            - TF_WRITER, TF_TARGET, TF_TARGET_API_KEY
            - TF_WRITER_MAX_ATTEMPTS, TF_WRITER_BACKOFF_SECONDS
            - TF_CONCEPT_MAP_<TABLE> (e.g. TF_CONCEPT_MAP_DIAGNOSIS)
            - TF_ID_MAPPING_MODE, TF_ID_MAPPING_FILE
            - TF_ID_SOURCE_DOMAIN, TF_ID_TARGET_DOMAIN

        A ``.env`` file in the working directory (or ``env_file``) is
        loaded first; variables already set take precedence.
        """
        env_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_path.is_file():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        config_data = {
            "direction": os.getenv("TF_DIRECTION"),
            "reader": {
                "source": os.getenv("TF_SOURCE"),
                "batch_size": os.getenv("TF_BATCH_SIZE"),
                "resource_types": os.getenv("TF_RESOURCE_TYPES"),
                "page_size": os.getenv("TF_PAGE_SIZE"),
                "api_key": os.getenv("TF_SOURCE_API_KEY"),
            },
            "writer": {
                "kind": os.getenv("TF_WRITER"),
                "target": os.getenv("TF_TARGET"),
                "api_key": os.getenv("TF_TARGET_API_KEY"),
                "max_attempts": os.getenv("TF_WRITER_MAX_ATTEMPTS"),
                "backoff_seconds": os.getenv("TF_WRITER_BACKOFF_SECONDS"),
            },
            "concept_maps": {
                name: os.getenv(f"TF_CONCEPT_MAP_{name.upper()}")
                for name in ConceptMapPaths.model_fields
            },
            "id_mapping": {
                "mode": os.getenv("TF_ID_MAPPING_MODE"),
                "file": os.getenv("TF_ID_MAPPING_FILE"),
                "source_domain": os.getenv("TF_ID_SOURCE_DOMAIN"),
                "target_domain": os.getenv("TF_ID_TARGET_DOMAIN"),
            },
        }
        return cls(_drop_empty(config_data))

    @classmethod
    def from_file(cls, config_path: str) -> "ConfigManager":
        """Load configuration from a JSON file.

        Raises:
            ConfigurationError: If the file is missing or not a JSON object
        """
        config_file = Path(config_path)
        if not config_file.is_file():
            raise ConfigurationError(f"Configuration file not found: {config_path}", source=config_path)

        if config_file.stat().st_mode & 0o077 != 0:
            logger.warning(
                f"Configuration file has overly permissive permissions: {config_path}. "
                "Consider setting to 600 when it holds API keys."
            )

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file: {e}", source=config_path) from e
        if not isinstance(config_data, dict):
            raise ConfigurationError("Configuration file must hold a JSON object", source=config_path)
        return cls(config_data)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._config_data)

    def merged(self, overrides: Dict[str, Any]) -> "ConfigManager":
        """Return a manager with ``overrides`` applied; None values are ignored."""
        return ConfigManager(_merge(self._config_data, overrides))

    def get_transfer_config(self) -> TransferConfig:
        """Validate and return the transfer configuration.

        Raises:
            ConfigurationError: If required values are missing or invalid
        """
        if self._transfer_config is None:
            try:
                self._transfer_config = TransferConfig(**self._config_data)
            except ValidationError as e:
                problems = "; ".join(
                    f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                    for error in e.errors()
                )
                raise ConfigurationError(f"Invalid transfer configuration: {problems}", source="config") from e
        return self._transfer_config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw configuration value using dot notation (e.g. ``writer.kind``)."""
        value: Any = self._config_data
        for part in key.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(part)
        return value if value is not None else default

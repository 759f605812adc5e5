"""
Pipeline configuration.

Settings are loaded once at startup from a YAML file plus environment
overrides, validated with Pydantic, and treated as immutable afterwards.

Expected YAML format:
```yaml
file_upload:
  max_file_size: 10485760
  allowed_extensions: [".csv", ".json", ".xlsx"]
  blocked_extensions: [".exe", ".sh"]

data_processing:
  max_rows_per_dataset: 10000
  max_columns_per_dataset: 100
  max_preview_rows: 100

chaos:
  enabled: false
  scenarios:
    storage-failure:
      enabled: true
      probability: 0.01
```
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from normaize.core.errors import ConfigurationError
from normaize.observability.logger import get_logger, log_operation

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config/ingestion.yaml")

DEFAULT_ALLOWED_EXTENSIONS = [".csv", ".json", ".xlsx", ".xls", ".xml", ".parquet", ".txt"]
DEFAULT_BLOCKED_EXTENSIONS = [".exe", ".bat", ".cmd", ".ps1", ".sh", ".dll", ".so", ".dylib"]

BYTES_PER_MEGABYTE = 1024 * 1024


def normalize_extension(extension: str) -> str:
    """Lowercase an extension and make sure it has a leading dot."""
    extension = extension.strip().lower()
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return extension


class FileUploadSettings(BaseModel):
    """
    Upload policy.

    Attributes:
        max_file_size: Maximum accepted upload size in bytes (1 KiB - 100 MiB)
        allowed_extensions: Extensions accepted for upload
        blocked_extensions: Extensions always rejected (wins over allowed)
    """

    max_file_size: int = Field(10 * BYTES_PER_MEGABYTE, ge=1024, le=100 * BYTES_PER_MEGABYTE)
    allowed_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_EXTENSIONS), min_length=1
    )
    blocked_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_BLOCKED_EXTENSIONS))

    @field_validator("allowed_extensions", "blocked_extensions")
    @classmethod
    def normalize_extensions(cls, v):
        """Normalize extensions to lowercase with a leading dot."""
        return [normalize_extension(ext) for ext in v if ext and ext.strip()]

    @model_validator(mode="after")
    def check_extension_conflict(self):
        """Reject configurations where an extension is both allowed and blocked."""
        conflicts = sorted(set(self.allowed_extensions) & set(self.blocked_extensions))
        if conflicts:
            raise ValueError(
                f"allowed_extensions cannot contain blocked extensions: {', '.join(conflicts)}"
            )
        return self

    class Config:
        frozen = True


class DataProcessingSettings(BaseModel):
    """
    Row, column and preview caps applied by every parser.
    """

    max_rows_per_dataset: int = Field(10000, ge=1, le=1_000_000)
    max_columns_per_dataset: int = Field(100, ge=1, le=1000)
    max_preview_rows: int = Field(100, ge=1, le=100)

    class Config:
        frozen = True


class TimeWindow(BaseModel):
    """
    Time window during which a chaos scenario may trigger.

    Days of week use 0=Sunday ... 6=Saturday.
    """

    start_time: str = Field("00:00", pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field("23:59", pattern=r"^\d{2}:\d{2}$")
    days_of_week: list[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4, 5, 6])

    @field_validator("days_of_week")
    @classmethod
    def check_days(cls, v):
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("days_of_week values must be between 0 (Sunday) and 6 (Saturday)")
        return v

    class Config:
        frozen = True


class ChaosScenarioSettings(BaseModel):
    """Configuration for one named chaos scenario."""

    enabled: bool = False
    probability: float = Field(0.001, ge=0.0, le=1.0)
    max_triggers_per_hour: int = Field(5, ge=0)
    time_window_restricted: bool = False
    allowed_time_windows: list[TimeWindow] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True


class UserBasedTriggers(BaseModel):
    """Per-user chaos overrides."""

    enabled: bool = False
    test_user_ids: list[str] = Field(default_factory=list)
    test_user_probability_multiplier: float = Field(10.0, ge=0.0)
    excluded_user_ids: list[str] = Field(default_factory=list)

    class Config:
        frozen = True


class ChaosSettings(BaseModel):
    """
    Fault-injection configuration.

    Attributes:
        enabled: Master switch, off by default
        environment: Current deployment environment
        allowed_environments: Environments where chaos may trigger
        global_probability_multiplier: Scales every scenario probability
        max_triggers_per_minute: Global rate limit across scenarios
        enable_logging: Log a warning each time a scenario triggers
        scenarios: Per-scenario settings keyed by scenario name
        user_based_triggers: Test/excluded user overrides
    """

    enabled: bool = False
    environment: str = Field(default_factory=lambda: os.getenv("NORMAIZE_ENV", "development"))
    allowed_environments: list[str] = Field(default_factory=lambda: ["development", "staging"])
    global_probability_multiplier: float = Field(1.0, ge=0.0)
    max_triggers_per_minute: int = Field(10, ge=0)
    enable_logging: bool = True
    scenarios: dict[str, ChaosScenarioSettings] = Field(default_factory=dict)
    user_based_triggers: UserBasedTriggers = Field(default_factory=UserBasedTriggers)

    @field_validator("environment")
    @classmethod
    def lower_environment(cls, v):
        return v.lower()

    @field_validator("allowed_environments")
    @classmethod
    def lower_environments(cls, v):
        return [env.lower() for env in v]

    class Config:
        frozen = True


class AppSettings(BaseModel):
    """Top-level settings grouping upload, processing and chaos configuration."""

    file_upload: FileUploadSettings = Field(default_factory=FileUploadSettings)
    data_processing: DataProcessingSettings = Field(default_factory=DataProcessingSettings)
    chaos: ChaosSettings = Field(default_factory=ChaosSettings)

    class Config:
        frozen = True


# Environment variable -> (section, field, converter)
ENV_OVERRIDES = {
    "NORMAIZE_MAX_FILE_SIZE": ("file_upload", "max_file_size", int),
    "NORMAIZE_MAX_ROWS": ("data_processing", "max_rows_per_dataset", int),
    "NORMAIZE_MAX_COLUMNS": ("data_processing", "max_columns_per_dataset", int),
    "NORMAIZE_MAX_PREVIEW_ROWS": ("data_processing", "max_preview_rows", int),
    "NORMAIZE_CHAOS_ENABLED": ("chaos", "enabled", lambda v: v.strip().lower() in ("1", "true", "yes")),
}


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Overlay environment variables on the raw configuration mapping."""
    for env_name, (section, field_name, convert) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        try:
            converted = convert(value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {env_name}: {value!r}") from e
        raw.setdefault(section, {})
        raw[section][field_name] = converted
    return raw


def build_settings(raw: dict[str, Any] | None = None) -> AppSettings:
    """
    Validate a raw configuration mapping.

    Args:
        raw: Mapping with optional file_upload, data_processing and chaos sections

    Returns:
        Validated, frozen AppSettings

    Raises:
        ConfigurationError: If any section fails validation
    """
    try:
        return AppSettings.model_validate(raw or {})
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def load_settings(config_path: str | Path | None = None, use_env: bool = True) -> AppSettings:
    """
    Load settings from YAML and environment variables.

    Args:
        config_path: YAML file path. Falls back to NORMAIZE_CONFIG, then
            config/ingestion.yaml when it exists, then built-in defaults.
        use_env: Apply NORMAIZE_* environment overrides

    Returns:
        Validated AppSettings

    Raises:
        ConfigurationError: If the file is missing/invalid or settings fail validation
    """
    path = config_path or os.getenv("NORMAIZE_CONFIG")
    raw: dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
    elif DEFAULT_CONFIG_PATH.exists():
        path = DEFAULT_CONFIG_PATH

    if path is not None:
        try:
            with log_operation("Loading configuration", logger=logger, path=str(path)):
                with open(path) as f:
                    raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

    if use_env:
        raw = _apply_env_overrides(raw)

    return build_settings(raw)


def describe_settings(settings: AppSettings) -> dict[str, Any]:
    """Log the effective configuration once and return the logged fields."""
    fields = {
        "max_file_size_mb": settings.file_upload.max_file_size / BYTES_PER_MEGABYTE,
        "max_rows_per_dataset": settings.data_processing.max_rows_per_dataset,
        "max_columns_per_dataset": settings.data_processing.max_columns_per_dataset,
        "max_preview_rows": settings.data_processing.max_preview_rows,
        "allowed_extensions": ", ".join(settings.file_upload.allowed_extensions),
        "blocked_extensions": ", ".join(settings.file_upload.blocked_extensions),
        "chaos_enabled": settings.chaos.enabled,
    }
    logger.info("Ingestion configuration loaded", extra=fields)
    return fields

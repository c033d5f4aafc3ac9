"""Configuration management for cert-renewer.

Loads settings from an optional YAML file and validates them with Pydantic
models. Command-line flags are layered on top with apply_overrides().
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cert_renewer.exceptions import ConfigError

DEFAULT_CA_URI = "https://localhost:8443"
DEFAULT_WINDOW_DAYS = 30
STDIN_SOURCE = "-"


class CAConfig(BaseModel):
    """Certificate Authority endpoint configuration."""

    model_config = ConfigDict(frozen=True)

    uri: str = DEFAULT_CA_URI
    timeout_seconds: Annotated[float, Field(gt=0, le=600)] = 30.0
    # Extra trust anchors; the system store is always loaded as well
    ca_bundle: Path | None = None

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        """Require an https:// base URI."""
        if not v.lower().startswith("https://"):
            msg = f"CA URI must use https: {v}"
            raise ValueError(msg)
        return v.rstrip("/")


class RenewalConfig(BaseModel):
    """Renewal window configuration."""

    model_config = ConfigDict(frozen=True)

    window_days: Annotated[int, Field(ge=0, le=36500)] = DEFAULT_WINDOW_DAYS
    dry_run: bool = False


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogConfig(BaseModel):
    """Diagnostic logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: LogLevel = LogLevel.INFO
    log_file: Path | None = None


class RenewerSettings(BaseModel):
    """Root configuration model for cert-renewer."""

    model_config = ConfigDict(frozen=True)

    ca: CAConfig = CAConfig()
    renewal: RenewalConfig = RenewalConfig()
    log: LogConfig = LogConfig()
    input: str = STDIN_SOURCE


def load_config(config_path: Path | str) -> RenewerSettings:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration YAML file.

    Returns:
        Validated RenewerSettings instance.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    path = Path(config_path)
    try:
        with path.open("r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError.source_unreadable(path=str(path), reason=e.strerror or str(e)) from e
    except yaml.YAMLError as e:
        raise ConfigError.invalid_config(field=str(path), reason=str(e)) from e

    return _validate(data or {})


def load_config_from_env(env_var: str = "CERT_RENEWER_CONFIG") -> RenewerSettings:
    """Load configuration from the file named by an environment variable.

    Args:
        env_var: Environment variable name containing config path.

    Returns:
        Validated RenewerSettings, or defaults if the variable is unset.
    """
    config_path = os.environ.get(env_var)
    if config_path:
        return load_config(config_path)
    return RenewerSettings()


def apply_overrides(settings: RenewerSettings, **overrides: Any) -> RenewerSettings:
    """Return a copy of settings with command-line overrides applied.

    Keyword names are ``uri``, ``timeout``, ``ca_bundle``, ``days``,
    ``dry_run``, ``verbose`` and ``input``. ``None`` values are ignored.

    Raises:
        ConfigError: If the merged settings fail validation.
    """
    data = settings.model_dump()
    mapping = {
        "uri": ("ca", "uri"),
        "timeout": ("ca", "timeout_seconds"),
        "ca_bundle": ("ca", "ca_bundle"),
        "days": ("renewal", "window_days"),
        "dry_run": ("renewal", "dry_run"),
    }
    for name, value in overrides.items():
        if value is None:
            continue
        if name in mapping:
            section, key = mapping[name]
            data[section][key] = value
        elif name == "input":
            data["input"] = value
        elif name == "verbose":
            if value:
                data["log"]["level"] = LogLevel.DEBUG
        else:
            raise ConfigError.invalid_config(field=name, reason="unknown option")
    return _validate(data)


def _validate(data: dict[str, Any]) -> RenewerSettings:
    try:
        return RenewerSettings.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or "settings"
        raise ConfigError.invalid_config(field=field, reason=first["msg"]) from e

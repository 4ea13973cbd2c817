"""Configuration loading for integrit-remote."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_CONFIG_PATH = Path("config/default.yaml")
LOCAL_CONFIG_PATH = Path("config/local.yaml")
PACKAGED_CONFIG = ("integrit_remote.config", "default.yaml")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = None
    level: str = Field(default="info")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("Logging level must be a string.")
        normalized = value.strip().lower()
        if normalized not in {"debug", "info", "warn", "warning", "error", "critical"}:
            raise ValueError(f"Unsupported logging level: {value!r}")
        return normalized


class PathSettings(BaseModel):
    """Local layout: verification binary, site configs and baseline databases."""

    model_config = ConfigDict(extra="forbid")

    base_dir: Path = Path(".")
    binary: Path = Path("bin/integrit")
    config_dir: Path = Path("config-files")
    database_dir: Path = Path("databases")

    def resolve(self, path: Path) -> Path:
        """Resolve ``path`` against ``base_dir`` (itself relative to the working directory)."""

        base = self.base_dir.expanduser()
        if not base.is_absolute():
            base = Path.cwd() / base
        path = path.expanduser()
        return path if path.is_absolute() else base / path

    @property
    def binary_path(self) -> Path:
        return self.resolve(self.binary)

    @property
    def config_path(self) -> Path:
        return self.resolve(self.config_dir)

    @property
    def database_path(self) -> Path:
        return self.resolve(self.database_dir)


class RemoteSettings(BaseModel):
    """Remote shell and copy channel."""

    model_config = ConfigDict(extra="forbid")

    backend: Literal["openssh", "paramiko"] = "openssh"
    ssh_command: str = "ssh"
    scp_command: str = "scp"
    ssh_options: list[str] = Field(default_factory=lambda: ["-o", "BatchMode=yes"])
    binary_name: str = "integrit"
    connect_timeout_seconds: float | None = Field(default=None, gt=0.0)

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("binary_name")
    @classmethod
    def _validate_binary_name(cls, value: str) -> str:
        name = value.strip()
        if not name or "/" in name or name.startswith("-"):
            raise ValueError(f"binary_name must be a plain file name: {value!r}")
        return name


class NotifySettings(BaseModel):
    """Alert relay defaults; command-line flags and environment take precedence."""

    model_config = ConfigDict(extra="forbid")

    mailserver: str | None = None
    port: int = Field(default=25, ge=1, le=65535)
    from_address: str = "integrit@test.com"
    to_address: str | None = None
    subject: str = "Changes detected on $host"
    template: Path | None = None

    @field_validator("mailserver", "to_address", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ConfigModel(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    paths: PathSettings = Field(default_factory=PathSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    notify: NotifySettings = Field(default_factory=NotifySettings)


@dataclass(slots=True)
class Config:
    """Validated configuration with convenience helpers."""

    model: ConfigModel
    raw: Mapping[str, Any] = field(repr=False)
    loaded_from: tuple[str, ...] = field(default_factory=tuple, repr=False)

    @property
    def logging(self) -> LoggingSettings:
        return self.model.logging

    @property
    def paths(self) -> PathSettings:
        return self.model.paths

    @property
    def remote(self) -> RemoteSettings:
        return self.model.remote

    @property
    def notify(self) -> NotifySettings:
        return self.model.notify


def load_config(path: Path | None = None) -> Config:
    """Load configuration from defaults/local overrides, or from an explicit config document.

    Without ``path`` the lookup is ``./config/default.yaml`` (or the packaged default when
    absent) deep-merged with an optional ``./config/local.yaml``. An explicit ``path`` is used
    on its own.
    """

    merged: dict[str, Any] = {}
    loaded_from: list[str] = []

    if path is not None:
        explicit = _resolve_path(path)
        if not explicit.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        merged = _read_yaml(explicit)
        loaded_from.append(str(explicit))
    else:
        default_candidate = _resolve_path(DEFAULT_CONFIG_PATH)
        if default_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(default_candidate))
            loaded_from.append(str(default_candidate))
        else:
            packaged = _read_packaged_yaml(*PACKAGED_CONFIG)
            if packaged is not None:
                merged = _merge_dicts(merged, packaged)
                loaded_from.append(":".join(PACKAGED_CONFIG))

        local_candidate = _resolve_path(LOCAL_CONFIG_PATH)
        if local_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(local_candidate))
            loaded_from.append(str(local_candidate))

    try:
        model = ConfigModel.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    return Config(model=model, raw=merged, loaded_from=tuple(loaded_from))


def _resolve_path(path: Path) -> Path:
    """Resolve configuration paths relative to the current working directory."""

    return path if path.is_absolute() else Path.cwd() / path


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML file into a dictionary."""

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must define a mapping at the top level.")
    return data


def _read_packaged_yaml(package: str, name: str) -> dict[str, Any] | None:
    """Read YAML embedded in a Python package via importlib.resources."""

    try:
        content = resources.files(package).joinpath(name).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Packaged configuration {package}:{name} must define a mapping at the top level."
        )
    return data


def _merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two dictionaries, with override values taking precedence."""

    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value
    return result

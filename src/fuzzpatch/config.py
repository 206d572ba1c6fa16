"""YAML configuration for fuzzpatch runs."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

__all__ = [
    "BatchSettings",
    "DEFAULT_CONFIG_NAME",
    "FuzzPatchConfig",
    "PatchSettings",
    "PathSettings",
    "load_config",
]

DEFAULT_CONFIG_NAME = "fuzzpatch.yaml"
WORKERS_ENV = "FUZZPATCH_WORKERS"


class SettingsModel(BaseModel):
    """Base model that rejects unknown keys so typos surface early."""

    model_config = ConfigDict(extra="forbid")


class PathSettings(SettingsModel):
    diff_dir: str = "Diff"
    current_dir: str = "Current"


class PatchSettings(SettingsModel):
    diff_suffix: str = ".diff"
    sentinel: str = "Yacks"
    encoding: str = "utf-8-sig"
    newline: str = "\n"
    write_bom: bool = True

    @field_validator("diff_suffix")
    @classmethod
    def _suffix_has_dot(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("diff_suffix must not be empty")
        return value if value.startswith(".") else f".{value}"

    @field_validator("newline")
    @classmethod
    def _known_newline(cls, value: str) -> str:
        if value not in {"\n", "\r\n"}:
            raise ValueError("newline must be LF or CRLF")
        return value


class BatchSettings(SettingsModel):
    workers: int = Field(default=1, ge=1)
    report: Optional[str] = None


class FuzzPatchConfig(SettingsModel):
    """Top-level configuration document."""

    paths: PathSettings = Field(default_factory=PathSettings)
    patch: PatchSettings = Field(default_factory=PatchSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)


def _apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    raw = env.get(WORKERS_ENV)
    if raw is None:
        return data
    try:
        workers = int(str(raw).strip())
    except ValueError:
        return data
    if workers > 0:
        batch = dict(data.get("batch") or {})
        batch["workers"] = workers
        data["batch"] = batch
    return data


def load_config(
    config_path: Path | str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> FuzzPatchConfig:
    """Load and validate configuration, falling back to defaults.

    A missing file yields the defaults. ``FUZZPATCH_WORKERS`` overrides the
    worker count from the file.
    """

    data: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            try:
                with path.open("r", encoding="utf-8") as handle:
                    loaded = yaml.safe_load(handle)
            except yaml.YAMLError as error:
                raise ConfigError(f"Failed to parse config: {error}", details={"path": str(path)}) from error
            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ConfigError(
                    "Configuration must be a mapping at the top level.",
                    details={"path": str(path)},
                )
            data = loaded

    data = _apply_env_overrides(data, os.environ if env is None else env)
    try:
        return FuzzPatchConfig.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}", details={"errors": error.errors()}) from error

"""Job configuration: YAML file + environment variables + CLI overrides."""

from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from contact_join.errors import ConfigurationError

_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

_ENV_PREFIX = "CONTACT_JOIN_"

# Files holding device information, one device identifier per line.
DEFAULT_DEVICE_PATH = "gs://bespin-bigtable-apachebeam/stage/A_*.dat"
# A file holding contact information, at most DEFAULT_MAX_CONTACTS rows.
DEFAULT_CONTACT_PATH = "gs://bespin-bigtable-apachebeam/stage/B.csv"
DEFAULT_TABLE = "mobile-data"
DEFAULT_MAX_CONTACTS = 300

CONTACT_COLUMNS = ("lastname", "firstname", "contact", "nickname")


class MissPolicy(str, Enum):
    """What to do with a device candidate whose key has no contact."""

    DROP = "drop"
    KEEP = "keep"
    FAIL = "fail"


class FormatPolicy(str, Enum):
    """What to do with a contact that does not split into four fields."""

    SKIP = "skip"
    FAIL = "fail"


class StoreConfig(BaseModel):
    """Target wide-column store identifiers."""

    project_id: str | None = None
    instance_id: str | None = None
    table: str = DEFAULT_TABLE

    model_config = ConfigDict(extra="forbid")


class JobConfig(BaseModel):
    """Everything the join job needs before the pipeline is built."""

    output: str = Field(..., min_length=1, description="Path of the cell table to write to")
    device_path: str = DEFAULT_DEVICE_PATH
    contact_path: str = DEFAULT_CONTACT_PATH
    store: StoreConfig = Field(default_factory=StoreConfig)
    max_contacts: int = Field(DEFAULT_MAX_CONTACTS, gt=0)
    delimiter: str = Field(",", min_length=1)
    column_family: str = Field("contacts", min_length=1)
    miss_policy: MissPolicy = MissPolicy.DROP
    format_policy: FormatPolicy = FormatPolicy.SKIP
    fail_on_quality: bool = True

    model_config = ConfigDict(extra="forbid")

    @field_validator("output", "device_path", "contact_path")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


def _expand_str(value: str) -> str:
    def replacer(match: re.Match[str]) -> str:
        token = match.group(1)
        if ":-" in token:
            key, default = token.split(":-", 1)
            actual = os.getenv(key, "")
            return actual if actual.strip() else default
        actual = os.getenv(token, "")
        if not actual.strip():
            raise ConfigurationError(f"missing environment variable: {token}")
        return actual

    return _VAR_PATTERN.sub(replacer, value)


def _expand_payload(value: Any) -> Any:
    if isinstance(value, str):
        return _expand_str(value)
    if isinstance(value, list):
        return [_expand_payload(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _expand_payload(item) for key, item in value.items()}
    return value


def _env_payload() -> dict[str, Any]:
    """Pick up CONTACT_JOIN_* variables (store ids replace bigtable.project/instance)."""
    payload: dict[str, Any] = {}
    store: dict[str, Any] = {}
    for name, key in (("PROJECT", "project_id"), ("INSTANCE", "instance_id"), ("TABLE", "table")):
        value = os.getenv(_ENV_PREFIX + name, "").strip()
        if value:
            store[key] = value
    if store:
        payload["store"] = store
    for name in ("OUTPUT", "DEVICE_PATH", "CONTACT_PATH", "MAX_CONTACTS"):
        value = os.getenv(_ENV_PREFIX + name, "").strip()
        if value:
            payload[name.lower()] = value
    return payload


def _merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    path: str | Path | None = None, overrides: dict[str, Any] | None = None
) -> JobConfig:
    """Build a JobConfig, lowest to highest precedence: file, env, overrides.

    Raises ConfigurationError on any missing or invalid setting so the job
    fails before a pipeline is constructed.
    """
    payload: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError(f"config file not found: {config_path}")
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")
        payload = _expand_payload(data)

    payload = _merge(payload, _env_payload())
    payload = _merge(payload, overrides or {})

    try:
        return JobConfig(**payload)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.schema import EntityKind

"""Configuration loader.

Resolution order (last wins):
1. Built-in defaults (DynamoDB per-call ceilings, 4000 row upload cap)
2. Optional YAML file (validated against config_schema.json)
3. Environment variables (BATCH_SIZE, BATCH_GET_LIMIT, MAX_RECORDS, ...)
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

DEFAULT_TABLES: dict[EntityKind, str] = {
    EntityKind.STUDENTS: "students",
    EntityKind.TEACHERS: "teachers",
    EntityKind.GAMES: "games",
}

# env var -> (config attribute, parser)
ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "BATCH_SIZE": ("batch_size", int),
    "BATCH_GET_LIMIT": ("batch_get_limit", int),
    "MAX_RECORDS": ("max_records", int),
    "MAX_WORKERS": ("max_workers", int),
    "WRITE_MAX_ATTEMPTS": ("write_max_attempts", int),
    "RETRY_BASE_DELAY": ("retry_base_delay", float),
    "AWS_REGION": ("aws_region", str),
    "DYNAMODB_ENDPOINT": ("dynamodb_endpoint", str),
}

TABLE_ENV: dict[EntityKind, str] = {
    EntityKind.STUDENTS: "STUDENTS_TABLE",
    EntityKind.TEACHERS: "TEACHERS_TABLE",
    EntityKind.GAMES: "GAMES_TABLE",
}


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class UploadConfig:
    batch_size: int = 25  # BatchWriteItem ceiling
    batch_get_limit: int = 100  # BatchGetItem ceiling
    max_records: int = 4000
    max_workers: int = 4
    write_max_attempts: int = 3
    retry_base_delay: float = 0.1
    table_names: dict[EntityKind, str] = field(default_factory=lambda: dict(DEFAULT_TABLES))
    aws_region: str | None = None
    dynamodb_endpoint: str | None = None


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate YAML data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing / unreadable, or validation failure
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _from_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    _validate_config_schema(data)

    values: dict[str, Any] = {
        k: data[k]
        for k in ("batch_size", "batch_get_limit", "max_records", "max_workers",
                  "write_max_attempts", "retry_base_delay")
        if k in data
    }
    tables = dict(DEFAULT_TABLES)
    for kind_name, table in (data.get("tables") or {}).items():
        tables[EntityKind(kind_name)] = table
    values["table_names"] = tables
    aws = data.get("aws") or {}
    values["aws_region"] = aws.get("region")
    values["dynamodb_endpoint"] = aws.get("endpoint_url")
    return values


def _apply_env(values: dict[str, Any], environ: Mapping[str, str]) -> None:
    for env_name, (attr, parser) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            values[attr] = parser(raw.strip())
        except ValueError as e:
            raise ConfigError(f"invalid value for {env_name}: {raw!r}") from e
    tables = dict(values.get("table_names") or DEFAULT_TABLES)
    for kind, env_name in TABLE_ENV.items():
        if environ.get(env_name):
            tables[kind] = environ[env_name]
    values["table_names"] = tables


def _check_ranges(cfg: UploadConfig) -> None:
    for name in ("batch_size", "batch_get_limit", "max_records", "max_workers", "write_max_attempts"):
        if getattr(cfg, name) < 1:
            raise ConfigError(f"{name} must be >= 1 (got {getattr(cfg, name)})")
    # DynamoDB per-call ceilings (env overrides bypass the YAML schema)
    if cfg.batch_size > 25:
        raise ConfigError(f"batch_size must be <= 25 (got {cfg.batch_size})")
    if cfg.batch_get_limit > 100:
        raise ConfigError(f"batch_get_limit must be <= 100 (got {cfg.batch_get_limit})")
    if cfg.retry_base_delay < 0:
        raise ConfigError(f"retry_base_delay must be >= 0 (got {cfg.retry_base_delay})")


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> UploadConfig:
    """Build the UploadConfig from defaults, an optional YAML file and env vars."""
    values: dict[str, Any] = _from_yaml(path) if path is not None else {}
    _apply_env(values, os.environ if environ is None else environ)
    cfg = UploadConfig(**values)
    _check_ranges(cfg)
    return cfg

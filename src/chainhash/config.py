"""Typed configuration loader for chained hash tables."""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .contracts.error import BadInputError
from .core.hashing import HASH_FUNCTIONS, resolve_hash_function, seed_from_hex
from .core.items import KeyToItem
from .core.table import ChainedHashTable, CompareFn, ReleaseFn

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
_UNSET = {"none", "null", "unset", ""}


def _coerce_bool(raw: Any, name: str) -> bool:
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in _TRUE:
            return True
        if normalized in _FALSE:
            return False
        raise BadInputError(f"{name} must be boolean")
    return bool(raw)


def _coerce_optional_int(raw: Any, name: str) -> int | None:
    if raw is None or (isinstance(raw, str) and raw.strip().lower() in _UNSET):
        return None
    if isinstance(raw, bool):
        raise BadInputError(f"{name} must be an integer or 'none'")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise BadInputError(f"{name} must be an integer or 'none'") from exc


def _coerce_optional_str(raw: Any) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return None if text.lower() in _UNSET else text


@dataclass
class TablePolicy:
    bucket_count: int = 64
    hash_function: str = "siphash"
    seed: str | None = None
    max_items: int | None = None

    def validate(self) -> None:
        if isinstance(self.bucket_count, bool) or not isinstance(self.bucket_count, int) or self.bucket_count <= 0:
            raise BadInputError("table.bucket_count must be an integer > 0")
        if self.hash_function not in HASH_FUNCTIONS:
            raise BadInputError(
                f"table.hash_function must be one of {sorted(HASH_FUNCTIONS)}",
                hint="use 'siphash' when keys may be attacker controlled",
            )
        if self.seed is not None:
            seed_from_hex(self.seed)
        if self.max_items is not None and self.max_items < 0:
            raise BadInputError("table.max_items must be >= 0 when set")

    def seed_bytes(self) -> bytes | None:
        return seed_from_hex(self.seed) if self.seed is not None else None

    def build(
        self,
        compare_fn: CompareFn,
        *,
        item_extractor: KeyToItem | None = None,
        release_key: ReleaseFn | None = None,
    ) -> ChainedHashTable:
        """Create a table for bytes-like keys hashed by the configured function."""

        self.validate()
        return ChainedHashTable(
            self.bucket_count,
            resolve_hash_function(self.hash_function),
            compare_fn,
            item_extractor,
            self.seed_bytes(),
            release_key=release_key,
            max_items=self.max_items if item_extractor is None else None,
        )


@dataclass
class LoggingPolicy:
    level: str = "INFO"
    json: bool = False
    file: str | None = None

    def validate(self) -> None:
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise BadInputError(f"logging.level {self.level!r} is not a known level")


@dataclass
class AppConfig:
    table: TablePolicy = field(default_factory=TablePolicy)
    logging: LoggingPolicy = field(default_factory=LoggingPolicy)

    @classmethod
    def load(cls, path: Path | None) -> AppConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise BadInputError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise BadInputError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        table_data = data.get("table", {})
        if not isinstance(table_data, dict):
            raise BadInputError("[table] section must be a table")
        unknown = set(table_data) - {"bucket_count", "hash_function", "seed", "max_items"}
        if unknown:
            raise BadInputError(f"Unknown [table] keys: {', '.join(sorted(unknown))}")
        table_kwargs: dict[str, Any] = {}
        if "bucket_count" in table_data:
            table_kwargs["bucket_count"] = table_data["bucket_count"]
        if "hash_function" in table_data:
            table_kwargs["hash_function"] = str(table_data["hash_function"]).strip().lower()
        if "seed" in table_data:
            table_kwargs["seed"] = _coerce_optional_str(table_data["seed"])
        if "max_items" in table_data:
            table_kwargs["max_items"] = _coerce_optional_int(table_data["max_items"], "table.max_items")

        logging_data = data.get("logging", {})
        if not isinstance(logging_data, dict):
            raise BadInputError("[logging] section must be a table")
        logging_kwargs: dict[str, Any] = {}
        if "level" in logging_data:
            logging_kwargs["level"] = str(logging_data["level"]).strip().upper()
        if "json" in logging_data:
            logging_kwargs["json"] = _coerce_bool(logging_data["json"], "logging.json")
        if "file" in logging_data:
            logging_kwargs["file"] = _coerce_optional_str(logging_data["file"])

        return cls(table=TablePolicy(**table_kwargs), logging=LoggingPolicy(**logging_kwargs))

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        table_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "CHAINHASH_BUCKET_COUNT": ("bucket_count", int),
            "CHAINHASH_HASH_FUNCTION": ("hash_function", lambda raw: raw.strip().lower()),
            "CHAINHASH_SEED": ("seed", _coerce_optional_str),
            "CHAINHASH_MAX_ITEMS": ("max_items", lambda raw: _coerce_optional_int(raw, "CHAINHASH_MAX_ITEMS")),
        }
        for key, (attr, caster) in table_mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.table, attr, value)

        raw_level = env.get("CHAINHASH_LOG_LEVEL")
        if raw_level is not None:
            self.logging.level = raw_level.strip().upper()
        raw_json = env.get("CHAINHASH_LOG_JSON")
        if raw_json is not None:
            self.logging.json = _coerce_bool(raw_json, "CHAINHASH_LOG_JSON")
        raw_file = env.get("CHAINHASH_LOG_FILE")
        if raw_file is not None:
            self.logging.file = _coerce_optional_str(raw_file)

    def validate(self) -> None:
        self.table.validate()
        self.logging.validate()


DEFAULT_CONFIG = AppConfig()


def load_app_config(path: str | None) -> AppConfig:
    config_path = Path(path) if path else None
    return AppConfig.load(config_path)


__all__ = ["AppConfig", "DEFAULT_CONFIG", "LoggingPolicy", "TablePolicy", "load_app_config"]

"""
Engine configuration and the two-tier key/value store.

EngineConfig is read from YAML (see config/example.yaml). The key/value
store mirrors the extension-style preferred/fallback storage: reads come
from the preferred tier when it holds any requested key, writes go to the
preferred tier and fall back when that write fails.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .pipeline.scheduler import (
    DEFAULT_ATTEMPT_LIMIT,
    DEFAULT_DEBOUNCE_S,
    DEFAULT_INITIAL_DELAY_S,
    DEFAULT_NAVIGATION_DELAY_S,
    DEFAULT_REPARSE_DELAY_S,
)
from .pipeline.secondary import DEFAULT_PROTOCOL_VERSION, DEFAULT_SOURCE_ROOT


class ConfigError(Exception):
    """Config file missing, unreadable, or not matching the schema."""


class SecondaryConfig(BaseModel):
    enabled: bool = True
    source_root: str = DEFAULT_SOURCE_ROOT
    timeout_s: float = 10.0
    protocol_version: str = DEFAULT_PROTOCOL_VERSION

    @field_validator('source_root')
    @classmethod
    def validate_source_root(cls, v):
        if not v.startswith(('http://', 'https://')):
            raise ValueError('source_root must be a valid HTTP/HTTPS URL')
        return v.rstrip('/')


class SchedulerConfig(BaseModel):
    attempt_limit: int = Field(default=DEFAULT_ATTEMPT_LIMIT, ge=1)
    debounce_s: float = Field(default=DEFAULT_DEBOUNCE_S, ge=0)
    initial_delay_s: float = Field(default=DEFAULT_INITIAL_DELAY_S, ge=0)
    reparse_delay_s: float = Field(default=DEFAULT_REPARSE_DELAY_S, ge=0)
    navigation_delay_s: float = Field(default=DEFAULT_NAVIGATION_DELAY_S, ge=0)
    profile_path_pattern: str = r"^/in/[^/]+"

    @field_validator('profile_path_pattern')
    @classmethod
    def validate_pattern(cls, v):
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f'invalid profile_path_pattern: {e}')
        return v

    def profile_pattern(self) -> re.Pattern[str]:
        return re.compile(self.profile_path_pattern)


class LoggingConfig(BaseModel):
    ops_json: bool = False


class OpsConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class EngineConfig(BaseModel):
    secondary: SecondaryConfig = Field(default_factory=SecondaryConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    ops: OpsConfig = Field(default_factory=OpsConfig)


def load_config(path: Optional[Path]) -> EngineConfig:
    """Load EngineConfig from YAML; no path means defaults."""
    if path is None:
        return EngineConfig()
    path = Path(path)
    if not path.exists() or not path.is_file():
        raise ConfigError(f"file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}")
    if not isinstance(raw, dict):
        raise ConfigError(f"invalid config in {path}: top level must be a mapping")
    try:
        return EngineConfig(**raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config in {path}: {e}")


# -------------------------
# Two-tier key/value store
# -------------------------
class KeyValueTier(Protocol):
    def get(self, keys: Iterable[str]) -> Dict[str, Any]: ...

    def set(self, record: Dict[str, Any]) -> None: ...


class MemoryTier:
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self.data: Dict[str, Any] = dict(initial or {})

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: self.data[k] for k in keys if k in self.data}

    def set(self, record: Dict[str, Any]) -> None:
        self.data.update(record)


class YamlFileTier:
    """Key/value tier persisted as a flat YAML mapping."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return data if isinstance(data, dict) else {}

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        data = self._load()
        return {k: data[k] for k in keys if k in data}

    def set(self, record: Dict[str, Any]) -> None:
        data = self._load()
        data.update(record)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, allow_unicode=True, sort_keys=True)


class TwoTierStore:
    def __init__(self, preferred: KeyValueTier, fallback: KeyValueTier) -> None:
        self.preferred = preferred
        self.fallback = fallback

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        try:
            found = self.preferred.get(keys)
        except (OSError, yaml.YAMLError):
            found = {}
        if any(found.get(k) for k in keys):
            return found
        return self.fallback.get(keys)

    def set(self, record: Dict[str, Any]) -> None:
        try:
            self.preferred.set(record)
        except (OSError, yaml.YAMLError) as e:
            print(f"[config] preferred store write failed ({e}); using fallback")
            self.fallback.set(record)


USER_NAME_KEY = "userName"
OBJECTIVE_KEY = "objective"


@dataclass(frozen=True)
class UserContext:
    user_name: Optional[str] = None
    objective: Optional[str] = None


def read_user_context(store: TwoTierStore) -> UserContext:
    values = store.get([USER_NAME_KEY, OBJECTIVE_KEY])
    name = str(values.get(USER_NAME_KEY) or "").strip() or None
    objective = str(values.get(OBJECTIVE_KEY) or "").strip() or None
    return UserContext(user_name=name, objective=objective)

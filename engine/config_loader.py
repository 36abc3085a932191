"""
Case History — Configuration Loader

Layered config loading with environment profile support:

  Tier 1: Base YAML (history_config.yaml)
  Tier 2: Per-environment overlay (config/{env}.yaml merged over base)
  Tier 3: Environment variable overrides (CH_* prefix)

Usage:
    from engine.config_loader import load_config, EngineConfig

    config = load_config(env="prod", project_root=".")
    engine_config = EngineConfig.from_config(config)
    engine_config.get_history_level()       # HistoryLevel.ACTIVITY

Recognised keys:
    history.level                              none|instance|task|activity|audit|full
    history.enable_definition_history_level    true|false
    definitions.path                           directory of YAML case definitions
    store.path                                 SQLite instance store
    logging.level                              DEBUG|INFO|WARNING|ERROR
    logging.format                             json|text
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from engine.history_level import HistoryLevel

logger = logging.getLogger("case_history.config")

DEFAULT_HISTORY_LEVEL = HistoryLevel.AUDIT
BASE_CONFIG_FILE = "history_config.yaml"


class ConfigLoader:
    """Merged view of the three config tiers; later tiers win."""

    def __init__(
        self,
        env: str = "dev",
        project_root: str | Path = ".",
        base_files: list[str] | None = None,
    ):
        self.env = env
        self.project_root = Path(project_root)
        self.base_files = base_files or [BASE_CONFIG_FILE]
        self._data: dict[str, Any] | None = None

    def load(self) -> dict[str, Any]:
        tiers = [(f"base:{name}", self.project_root / name) for name in self.base_files]
        tiers.append((f"overlay:config/{self.env}.yaml", self.project_root / "config" / f"{self.env}.yaml"))

        data: dict[str, Any] = {}
        sources = []
        for label, path in tiers:
            tier = _read_yaml(path)
            if tier is not None:
                data = _deep_merge(data, tier)
                sources.append(label)

        env_overrides = _load_env_overrides()
        if env_overrides:
            data = _deep_merge(data, env_overrides)
            sources.append("env")

        data["_config_meta"] = {"env": self.env, "sources": sources}
        self._data = data
        logger.info("Config loaded: env=%s sources=%s", self.env, sources)
        return data

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """Value at a dotted path, e.g. ``config.get("history.level", "audit")``."""
        if self._data is None:
            self.load()
        current: Any = self._data
        for key in dotted_key.split("."):
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current


def _read_yaml(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(
    env: str = "dev",
    project_root: str | Path = ".",
    base_files: list[str] | None = None,
) -> ConfigLoader:
    loader = ConfigLoader(env=env, project_root=project_root, base_files=base_files)
    loader.load()
    return loader


# ═══════════════════════════════════════════════════════════════════
# Engine Config
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EngineConfig:
    """
    Engine-wide history settings. Read-only once built.

    enable_definition_history_level turns on per-definition
    ``historyLevel`` overrides; when off, the engine level always wins.
    """
    history_level: HistoryLevel = DEFAULT_HISTORY_LEVEL
    enable_definition_history_level: bool = False

    def get_history_level(self) -> HistoryLevel:
        return self.history_level

    def is_per_definition_override_enabled(self) -> bool:
        return self.enable_definition_history_level

    @staticmethod
    def from_config(config: ConfigLoader) -> EngineConfig:
        """
        Build from loaded config. An invalid engine level is a startup
        error, unlike an invalid definition override.
        """
        raw_level = config.get("history.level", DEFAULT_HISTORY_LEVEL.value)
        level = HistoryLevel.for_key(str(raw_level))
        enabled = config.get("history.enable_definition_history_level", False)
        if isinstance(enabled, str):
            enabled = _auto_convert(enabled)
        if not isinstance(enabled, bool):
            raise ValueError(
                f"history.enable_definition_history_level must be a boolean, got {enabled!r}"
            )
        return EngineConfig(history_level=level, enable_definition_history_level=enabled)


# ═══════════════════════════════════════════════════════════════════
# Merging and Environment Overrides
# ═══════════════════════════════════════════════════════════════════

def _deep_merge(base: dict, overlay: dict) -> dict:
    """Overlay wins; nested dicts merge, anything else is replaced. Inputs untouched."""
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


_ENV_MAPPINGS: dict[str, str] = {
    "CH_HISTORY_LEVEL": "history.level",
    "CH_ENABLE_DEFINITION_HISTORY_LEVEL": "history.enable_definition_history_level",
    "CH_DEFINITIONS_PATH": "definitions.path",
    "CH_STORE_PATH": "store.path",
    "CH_LOG_LEVEL": "logging.level",
    "CH_LOG_FORMAT": "logging.format",
}

# Kept as raw strings, never coerced
_STRING_PATHS = {"history.level", "definitions.path", "store.path", "logging.level", "logging.format"}

_CONFIG_PREFIX = "CH_CONFIG__"


def _load_env_overrides() -> dict[str, Any]:
    """
    Mapped CH_* variables, plus CH_CONFIG__path__to__key for anything
    unmapped (double underscores become dots).
    """
    result: dict[str, Any] = {}
    for env_key, config_path in _ENV_MAPPINGS.items():
        value = os.environ.get(env_key)
        if value is not None:
            _set_path(result, config_path, value)

    for key, value in os.environ.items():
        if key.startswith(_CONFIG_PREFIX):
            _set_path(result, key[len(_CONFIG_PREFIX):].lower().replace("__", "."), value)
    return result


def _set_path(result: dict[str, Any], config_path: str, value: str) -> None:
    *parents, leaf = config_path.split(".")
    current = result
    for key in parents:
        current = current.setdefault(key, {})
    current[leaf] = value if config_path in _STRING_PATHS else _auto_convert(value)


def _auto_convert(value: str) -> Any:
    """'true'/'yes'/'1' and 'false'/'no'/'0' to bool, then int, then float."""
    lowered = value.lower()
    if lowered in ("true", "yes", "1"):
        return True
    if lowered in ("false", "no", "0"):
        return False
    for convert in (int, float):
        try:
            return convert(value)
        except ValueError:
            continue
    return value

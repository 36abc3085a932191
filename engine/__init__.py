"""
Case History - Engine Package

History levels, engine configuration and the history policy resolver.

  - engine.history_level:   HistoryLevel, rank table, capability checks
  - engine.history_policy:  HistoryPolicyResolver
  - engine.history_manager: CaseHistoryPolicy, per-event capture decisions
  - engine.config_loader:   layered YAML/env config, EngineConfig
  - engine.logging:         JSON-lines logging
"""

from engine.history_level import (
    HistoryLevel, HISTORY_LEVEL_ORDER,
    parse_history_level, parse_include_in_history,
    has_task_history_level, has_activity_history_level,
)
from engine.config_loader import EngineConfig, ConfigLoader, load_config
from engine.history_policy import HistoryPolicyResolver, LevelResolution
from engine.history_manager import CaseHistoryPolicy, HistoryDecision, HistoryEvent

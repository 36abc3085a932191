"""
Case History — History Policy Resolver

Decides whether, and at what granularity, execution history is kept
for a case definition, a task, or a single plan item.

Three inputs are resolved, most specific last:
  1. Engine level         EngineConfig.get_history_level()
  2. Definition override  ``historyLevel`` extension on the case plan model,
                          only when per-definition overrides are enabled
  3. Activity opt-in      ``includeInHistory`` extension on a plan item
                          definition, only below ACTIVITY and above NONE

Every lookup is best-effort. A missing definition, model, case or
extension, or an unparseable value, falls back to the engine level
(or to "not included" for an activity) and is logged at DEBUG. The
resolver never raises.

Usage:
    resolver = HistoryPolicyResolver(engine_config, provider, lookup)
    resolver.has_task_history_level("claimReview:3")
    resolver.has_activity_history_level("claimReview:3", "assessClaim")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from coordinator.links import LinkRecord
from coordinator.store import InMemoryInstanceLookup, InstanceLookup
from engine.config_loader import EngineConfig
from engine.history_level import (
    HistoryLevel,
    has_activity_history_level,
    has_task_history_level,
    parse_history_level,
    parse_include_in_history,
)
from registry.model import PlanItemDefinition, get_extension_value
from registry.provider import DefinitionModelProvider

logger = logging.getLogger("case_history.policy")

HISTORY_LEVEL_EXTENSION = "historyLevel"
INCLUDE_IN_HISTORY_EXTENSION = "includeInHistory"

SOURCE_ENGINE = "engine"
SOURCE_DEFINITION = "definition"


@dataclass(frozen=True)
class LevelResolution:
    """Effective level for a definition and where it came from."""
    level: HistoryLevel
    source: str  # "engine" or "definition"
    reason: str = ""


class HistoryPolicyResolver:
    """
    Stateless history policy. Holds only the injected collaborators;
    safe to share across threads as long as they are.
    """

    def __init__(
        self,
        engine_config: EngineConfig,
        definition_provider: DefinitionModelProvider,
        instance_lookup: InstanceLookup | None = None,
    ):
        self.engine_config = engine_config
        self.definition_provider = definition_provider
        self.instance_lookup = instance_lookup or InMemoryInstanceLookup()

    # ─── Level Resolution ────────────────────────────────────────────

    def resolve_level(self, definition_id: str | None) -> LevelResolution:
        engine_level = self.engine_config.get_history_level()
        if not self.engine_config.is_per_definition_override_enabled():
            return LevelResolution(engine_level, SOURCE_ENGINE, "definition overrides disabled")
        if not definition_id:
            return LevelResolution(engine_level, SOURCE_ENGINE, "no case definition")

        override = self._definition_override(definition_id)
        if override is None:
            return LevelResolution(engine_level, SOURCE_ENGINE, "no valid definition override")
        return LevelResolution(override, SOURCE_DEFINITION, f"{HISTORY_LEVEL_EXTENSION}={override.value}")

    def get_effective_level(self, definition_id: str | None) -> HistoryLevel:
        return self.resolve_level(definition_id).level

    def _definition_override(self, definition_id: str) -> HistoryLevel | None:
        definition = self.definition_provider.get_definition(definition_id)
        if definition is None:
            self._fallback(definition_id, "case definition not found")
            return None

        model = self.definition_provider.get_model(definition_id)
        if model is None:
            self._fallback(definition_id, "case model not found")
            return None

        case = model.get_case_by_id(definition.key)
        if case is None:
            self._fallback(definition_id, f"case {definition.key!r} not in model")
            return None

        raw = get_extension_value(case.plan_model, HISTORY_LEVEL_EXTENSION)
        if not raw:
            return None

        level = parse_history_level(raw)
        if level is None:
            self._fallback(definition_id, f"unparseable {HISTORY_LEVEL_EXTENSION} {raw!r}")
        return level

    def _fallback(self, definition_id: str, reason: str) -> None:
        logger.debug(
            "History level override ignored for %s: %s",
            definition_id, reason,
            extra={"structured": {
                "case_definition_id": definition_id,
                "fallback": reason,
            }},
        )

    def _log_level(self, resolution: LevelResolution, required: HistoryLevel | None = None):
        if not logger.isEnabledFor(logging.DEBUG):
            return
        fields = {"history_level": resolution.level.value, "source": resolution.source}
        if required is None:
            logger.debug("Current history level: %s", resolution.level, extra={"structured": fields})
        else:
            fields["required_level"] = required.value
            logger.debug(
                "Current history level: %s, level required: %s",
                resolution.level, required,
                extra={"structured": fields},
            )

    # ─── Predicates ──────────────────────────────────────────────────

    def is_history_enabled(self, definition_id: str | None = None) -> bool:
        resolution = self.resolve_level(definition_id)
        self._log_level(resolution)
        return resolution.level != HistoryLevel.NONE

    def meets_level(self, definition_id: str | None, required: HistoryLevel) -> bool:
        resolution = self.resolve_level(definition_id)
        self._log_level(resolution, required)
        return resolution.level.is_at_least(required)

    def has_task_history_level(self, definition_id: str | None) -> bool:
        resolution = self.resolve_level(definition_id)
        self._log_level(resolution, HistoryLevel.TASK)
        return has_task_history_level(resolution.level)

    def has_activity_history_level(self, definition_id: str | None, activity_id: str | None) -> bool:
        resolution = self.resolve_level(definition_id)
        self._log_level(resolution, HistoryLevel.ACTIVITY)
        return self.activity_captured(resolution.level, definition_id, activity_id)

    def activity_captured(
        self,
        level: HistoryLevel,
        definition_id: str | None,
        activity_id: str | None,
    ) -> bool:
        """Activity predicate against a level that is already resolved."""
        if has_activity_history_level(level):
            return True
        if level != HistoryLevel.NONE and activity_id:
            return self.include_activity_in_history(definition_id, activity_id)
        return False

    def include_activity_in_history(self, definition_id: str | None, activity_id: str) -> bool:
        """Value of the activity's ``includeInHistory`` flag; False if it cannot be found."""
        if definition_id is None:
            return False

        model = self.definition_provider.get_model(definition_id)
        if model is None:
            logger.debug(
                "Case model %s not found; plan item %s excluded from history",
                definition_id, activity_id,
            )
            return False

        definition: PlanItemDefinition | None = model.find_plan_item_definition(activity_id)
        if definition is None:
            plan_item = model.find_plan_item(activity_id)
            if plan_item is not None:
                definition = plan_item.plan_item_definition
        if definition is None:
            logger.debug(
                "Plan item %s not found in %s; excluded from history",
                activity_id, definition_id,
            )
            return False

        return parse_include_in_history(
            get_extension_value(definition, INCLUDE_IN_HISTORY_EXTENSION)
        )

    # ─── Link Records ────────────────────────────────────────────────

    def definition_id_for(self, link: LinkRecord) -> str | None:
        """Owning case definition of an identity or entity link."""
        return link.derive_definition_id(self.instance_lookup)

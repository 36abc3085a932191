"""
Case History — Capture Decisions

Maps each kind of history event a case engine writes to the policy
check that gates it, and returns a decision the history writer acts on.
Purely deterministic; reads only through HistoryPolicyResolver.

  case_instance        at least INSTANCE
  milestone            at least ACTIVITY
  variable             at least ACTIVITY
  variable_detail      at least FULL
  plan_item_instance   activity capture (level or includeInHistory)
  task                 task capture (exactly TASK, or AUDIT and above)
  identity_link        at least AUDIT, on the link's owning definition
  entity_link          at least AUDIT, on the link's owning definition
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable

from coordinator.links import EntityLink, IdentityLink
from coordinator.types import TaskRecord
from engine.history_level import HistoryLevel, has_task_history_level
from engine.history_policy import HistoryPolicyResolver

logger = logging.getLogger("case_history.decisions")


class HistoryEvent(str, enum.Enum):
    CASE_INSTANCE = "case_instance"
    MILESTONE = "milestone"
    VARIABLE = "variable"
    VARIABLE_DETAIL = "variable_detail"
    PLAN_ITEM_INSTANCE = "plan_item_instance"
    TASK = "task"
    IDENTITY_LINK = "identity_link"
    ENTITY_LINK = "entity_link"


# Events gated by a plain "at least" threshold
THRESHOLD_EVENTS: dict[HistoryEvent, HistoryLevel] = {
    HistoryEvent.CASE_INSTANCE: HistoryLevel.INSTANCE,
    HistoryEvent.MILESTONE: HistoryLevel.ACTIVITY,
    HistoryEvent.VARIABLE: HistoryLevel.ACTIVITY,
    HistoryEvent.VARIABLE_DETAIL: HistoryLevel.FULL,
    HistoryEvent.IDENTITY_LINK: HistoryLevel.AUDIT,
    HistoryEvent.ENTITY_LINK: HistoryLevel.AUDIT,
}


@dataclass
class HistoryDecision:
    """Whether one history event should be written."""
    event: HistoryEvent
    record: bool
    level: HistoryLevel
    source: str  # "engine" or "definition"
    case_definition_id: str | None = None
    activity_id: str | None = None
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "event": self.event.value,
            "record": self.record,
            "level": self.level.value,
            "source": self.source,
            "case_definition_id": self.case_definition_id,
            "activity_id": self.activity_id,
            "reason": self.reason,
        }


class CaseHistoryPolicy:
    """
    History capture decisions for a case engine.

    Each decision resolves the level once; ``level`` and ``record`` always
    describe the same resolution.
    """

    def __init__(self, resolver: HistoryPolicyResolver):
        self.resolver = resolver

    def _decided(self, decision: HistoryDecision) -> HistoryDecision:
        logger.debug(
            "History %s: record=%s (%s)",
            decision.event.value, decision.record, decision.reason,
            extra={"structured": {
                "history_event": decision.event.value,
                "record": decision.record,
                "history_level": decision.level.value,
                "source": decision.source,
                "case_definition_id": decision.case_definition_id,
            }},
        )
        return decision

    def _threshold(
        self,
        event: HistoryEvent,
        definition_id: str | None,
        activity_id: str | None = None,
    ) -> HistoryDecision:
        required = THRESHOLD_EVENTS[event]
        resolution = self.resolver.resolve_level(definition_id)
        return self._decided(HistoryDecision(
            event=event,
            record=resolution.level.is_at_least(required),
            level=resolution.level,
            source=resolution.source,
            case_definition_id=definition_id,
            activity_id=activity_id,
            reason=f"requires at least {required.value}",
        ))

    # ─── Entry Points ────────────────────────────────────────────────

    def for_case_instance(self, definition_id: str | None) -> HistoryDecision:
        return self._threshold(HistoryEvent.CASE_INSTANCE, definition_id)

    def for_milestone(self, definition_id: str | None, activity_id: str | None = None) -> HistoryDecision:
        return self._threshold(HistoryEvent.MILESTONE, definition_id, activity_id)

    def for_variable(self, definition_id: str | None, detail: bool = False) -> HistoryDecision:
        event = HistoryEvent.VARIABLE_DETAIL if detail else HistoryEvent.VARIABLE
        return self._threshold(event, definition_id)

    def for_plan_item(self, definition_id: str | None, activity_id: str | None) -> HistoryDecision:
        resolution = self.resolver.resolve_level(definition_id)
        record = self.resolver.activity_captured(resolution.level, definition_id, activity_id)
        if resolution.level.is_at_least(HistoryLevel.ACTIVITY):
            reason = "level covers activities"
        elif resolution.level == HistoryLevel.NONE:
            reason = "history disabled"
        else:
            reason = "includeInHistory" if record else "below activity, not opted in"
        return self._decided(HistoryDecision(
            event=HistoryEvent.PLAN_ITEM_INSTANCE,
            record=record,
            level=resolution.level,
            source=resolution.source,
            case_definition_id=definition_id,
            activity_id=activity_id,
            reason=reason,
        ))

    def for_task(self, task: TaskRecord | str | None) -> HistoryDecision:
        """Accepts a task record or its scope definition id."""
        definition_id = task.scope_definition_id if isinstance(task, TaskRecord) else task
        resolution = self.resolver.resolve_level(definition_id)
        return self._decided(HistoryDecision(
            event=HistoryEvent.TASK,
            record=has_task_history_level(resolution.level),
            level=resolution.level,
            source=resolution.source,
            case_definition_id=definition_id,
            reason="requires task, or at least audit",
        ))

    def for_identity_link(self, link: IdentityLink) -> HistoryDecision:
        definition_id = self.resolver.definition_id_for(link)
        return self._threshold(HistoryEvent.IDENTITY_LINK, definition_id)

    def for_entity_link(self, link: EntityLink) -> HistoryDecision:
        definition_id = self.resolver.definition_id_for(link)
        return self._threshold(HistoryEvent.ENTITY_LINK, definition_id)

    def capture_plan(
        self,
        definition_id: str | None,
        activity_ids: Iterable[str] = (),
    ) -> list[HistoryDecision]:
        """Every decision for one definition, plus one per listed activity."""
        decisions = [
            self.for_case_instance(definition_id),
            self.for_task(definition_id),
            self.for_milestone(definition_id),
            self.for_variable(definition_id),
            self.for_variable(definition_id, detail=True),
            self._threshold(HistoryEvent.IDENTITY_LINK, definition_id),
            self._threshold(HistoryEvent.ENTITY_LINK, definition_id),
        ]
        for activity_id in activity_ids:
            decisions.append(self.for_plan_item(definition_id, activity_id))
        return decisions

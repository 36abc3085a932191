"""
Case History — Capture Decision Tests

Each history event is gated by the right predicate, link records are
resolved to their owning definition first, and decisions carry the
level and its source.
"""

import os
import sys
import unittest

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from coordinator.links import EntityLink, IdentityLink
from coordinator.store import InMemoryInstanceLookup
from coordinator.types import CaseInstance, ScopeTypes, TaskRecord
from engine.config_loader import EngineConfig
from engine.history_level import HistoryLevel
from engine.history_manager import CaseHistoryPolicy, HistoryEvent, THRESHOLD_EVENTS
from engine.history_policy import HistoryPolicyResolver
from registry.model import Case, CaseDefinition, CaseModel, PlanItemDefinition, Stage
from registry.provider import InMemoryDefinitionProvider


def _model(history_level=None):
    plan = Stage(id="plan")
    if history_level:
        plan.add_extension("historyLevel", history_level)
    opted_in = PlanItemDefinition(id="opted_in", type="human_task")
    opted_in.add_extension("includeInHistory", "true")
    plan.plan_item_definitions.extend([opted_in, PlanItemDefinition(id="plain")])
    model = CaseModel()
    model.add_case(Case(id="claim", plan_model=plan))
    return model


def _policy(engine_level, overrides=True, definitions=None, lookup=None):
    provider = InMemoryDefinitionProvider()
    for definition_id, level in (definitions or {}).items():
        provider.register(CaseDefinition(id=definition_id, key="claim"), _model(level))
    resolver = HistoryPolicyResolver(
        EngineConfig(engine_level, overrides), provider, lookup,
    )
    return CaseHistoryPolicy(resolver)


class TestThresholdEvents(unittest.TestCase):

    def test_required_levels(self):
        self.assertEqual(THRESHOLD_EVENTS[HistoryEvent.CASE_INSTANCE], HistoryLevel.INSTANCE)
        self.assertEqual(THRESHOLD_EVENTS[HistoryEvent.VARIABLE_DETAIL], HistoryLevel.FULL)
        self.assertEqual(THRESHOLD_EVENTS[HistoryEvent.IDENTITY_LINK], HistoryLevel.AUDIT)

    def test_case_instance(self):
        self.assertTrue(_policy(HistoryLevel.INSTANCE).for_case_instance("claim:1").record)
        self.assertFalse(_policy(HistoryLevel.NONE).for_case_instance("claim:1").record)

    def test_variables(self):
        policy = _policy(HistoryLevel.AUDIT)
        self.assertTrue(policy.for_variable("claim:1").record)
        self.assertFalse(policy.for_variable("claim:1", detail=True).record)
        self.assertTrue(_policy(HistoryLevel.FULL).for_variable("claim:1", detail=True).record)
        self.assertFalse(_policy(HistoryLevel.TASK).for_variable("claim:1").record)

    def test_milestone(self):
        self.assertTrue(_policy(HistoryLevel.ACTIVITY).for_milestone("claim:1", "m1").record)
        self.assertFalse(_policy(HistoryLevel.TASK).for_milestone("claim:1", "m1").record)


class TestTaskDecision(unittest.TestCase):

    def test_accepts_task_record(self):
        policy = _policy(HistoryLevel.FULL, definitions={"claim:1": "task", "claim:2": "activity"})
        self.assertTrue(policy.for_task(TaskRecord(id="t1", scope_definition_id="claim:1")).record)
        decision = policy.for_task(TaskRecord(id="t2", scope_definition_id="claim:2"))
        self.assertFalse(decision.record)
        self.assertEqual(decision.level, HistoryLevel.ACTIVITY)
        self.assertEqual(decision.source, "definition")

    def test_standalone_task_uses_engine_level(self):
        decision = _policy(HistoryLevel.AUDIT).for_task(TaskRecord(id="t"))
        self.assertTrue(decision.record)
        self.assertEqual(decision.source, "engine")
        self.assertIsNone(decision.case_definition_id)


class TestPlanItemDecision(unittest.TestCase):

    def test_reasons(self):
        policy = _policy(HistoryLevel.AUDIT, definitions={
            "claim:1": "task", "claim:2": "none", "claim:3": "activity",
        })
        opted = policy.for_plan_item("claim:1", "opted_in")
        self.assertTrue(opted.record)
        self.assertEqual(opted.reason, "includeInHistory")

        plain = policy.for_plan_item("claim:1", "plain")
        self.assertFalse(plain.record)

        disabled = policy.for_plan_item("claim:2", "opted_in")
        self.assertFalse(disabled.record)
        self.assertEqual(disabled.reason, "history disabled")

        covered = policy.for_plan_item("claim:3", "plain")
        self.assertTrue(covered.record)
        self.assertEqual(covered.reason, "level covers activities")


class TestLinkDecisions(unittest.TestCase):

    def setUp(self):
        self.lookup = InMemoryInstanceLookup()
        self.lookup.save_case_instance(CaseInstance(id="case_quiet", case_definition_id="claim:quiet"))
        self.lookup.save_task(TaskRecord(id="task_quiet", scope_definition_id="claim:quiet"))
        self.policy = _policy(
            HistoryLevel.AUDIT, definitions={"claim:quiet": "task"}, lookup=self.lookup,
        )

    def test_identity_link_follows_case_instance(self):
        decision = self.policy.for_identity_link(IdentityLink(id="il", scope_id="case_quiet"))
        self.assertEqual(decision.case_definition_id, "claim:quiet")
        self.assertFalse(decision.record)

    def test_identity_link_follows_task(self):
        decision = self.policy.for_identity_link(IdentityLink(id="il", task_id="task_quiet"))
        self.assertFalse(decision.record)

    def test_unresolved_identity_link_uses_engine_level(self):
        decision = self.policy.for_identity_link(IdentityLink(id="il", user_id="kermit"))
        self.assertIsNone(decision.case_definition_id)
        self.assertTrue(decision.record)

    def test_entity_link(self):
        quiet = EntityLink(id="el", scope_id="case_quiet", scope_type=ScopeTypes.CMMN)
        self.assertFalse(self.policy.for_entity_link(quiet).record)
        other = EntityLink(id="el", scope_id="case_quiet", scope_type=ScopeTypes.BPMN)
        self.assertTrue(self.policy.for_entity_link(other).record)

    def test_no_lookup_only_explicit_definition(self):
        policy = _policy(HistoryLevel.AUDIT, definitions={"claim:quiet": "task"})
        self.assertFalse(policy.for_identity_link(
            IdentityLink(id="il", scope_definition_id="claim:quiet")).record)
        self.assertTrue(policy.for_identity_link(
            IdentityLink(id="il", scope_id="case_quiet")).record)


class _CountingProvider(InMemoryDefinitionProvider):
    """Counts definition reads; optionally alternates between two models."""

    def __init__(self, *models):
        super().__init__()
        self.definition_reads = 0
        self._alternates = list(models)
        self._model_reads = 0

    def get_definition(self, definition_id):
        self.definition_reads += 1
        return super().get_definition(definition_id)

    def get_model(self, definition_id):
        if not self._alternates:
            return super().get_model(definition_id)
        model = self._alternates[self._model_reads % len(self._alternates)]
        self._model_reads += 1
        return model


class TestSingleResolution(unittest.TestCase):

    def _policy(self, provider):
        provider.register(CaseDefinition(id="claim:1", key="claim"), _model("task"))
        resolver = HistoryPolicyResolver(EngineConfig(HistoryLevel.AUDIT, True), provider)
        return CaseHistoryPolicy(resolver)

    def test_one_definition_read_per_decision(self):
        provider = _CountingProvider()
        policy = self._policy(provider)
        for decide in (
            lambda: policy.for_case_instance("claim:1"),
            lambda: policy.for_task("claim:1"),
            lambda: policy.for_variable("claim:1"),
            lambda: policy.for_plan_item("claim:1", "opted_in"),
        ):
            provider.definition_reads = 0
            decide()
            self.assertEqual(provider.definition_reads, 1)

    def test_level_and_record_agree_when_model_changes(self):
        # every read sees a different model, as after a reload
        policy = self._policy(_CountingProvider(_model("task"), _model("full")))
        for _ in range(4):
            variable = policy.for_variable("claim:1")
            self.assertEqual(variable.record, variable.level.is_at_least(HistoryLevel.ACTIVITY))
            task = policy.for_task("claim:1")
            self.assertEqual(task.record, task.level in (HistoryLevel.TASK, HistoryLevel.FULL))


class TestCapturePlan(unittest.TestCase):

    def test_plan_covers_every_event(self):
        policy = _policy(HistoryLevel.AUDIT, definitions={"claim:1": "task"})
        decisions = policy.capture_plan("claim:1", ["opted_in", "plain"])
        by_event = {}
        for d in decisions:
            by_event.setdefault(d.event, []).append(d)

        self.assertEqual(set(by_event), set(HistoryEvent))
        self.assertTrue(by_event[HistoryEvent.CASE_INSTANCE][0].record)
        self.assertTrue(by_event[HistoryEvent.TASK][0].record)
        self.assertFalse(by_event[HistoryEvent.VARIABLE][0].record)
        self.assertFalse(by_event[HistoryEvent.IDENTITY_LINK][0].record)
        self.assertEqual(
            [d.record for d in by_event[HistoryEvent.PLAN_ITEM_INSTANCE]], [True, False],
        )

    def test_to_dict(self):
        decision = _policy(HistoryLevel.FULL).for_case_instance(None)
        self.assertEqual(decision.to_dict(), {
            "event": "case_instance",
            "record": True,
            "level": "full",
            "source": "engine",
            "case_definition_id": None,
            "activity_id": None,
            "reason": "requires at least instance",
        })


if __name__ == "__main__":
    unittest.main()

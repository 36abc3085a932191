"""
Case History — Parsed Case Model

In-memory representation of a deployed case model: cases, their plan
model stage, plan item definitions and the plan items that wrap them.
Only what history resolution needs is modelled: ids, names, types and
extension elements.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator


@dataclass
class ExtensionElement:
    """A named extension attribute carried by a model node."""
    name: str
    text: str = ""


@dataclass
class BaseElement:
    id: str
    name: str = ""
    extension_elements: dict[str, list[ExtensionElement]] = field(default_factory=dict)

    def add_extension(self, name: str, text: str) -> None:
        self.extension_elements.setdefault(name, []).append(ExtensionElement(name, text))


def get_extension_value(node: BaseElement | None, key: str) -> str | None:
    """
    Text of the first extension element named ``key`` on ``node``.
    Returns None when the node or the element is absent.
    """
    if node is None:
        return None
    elements = node.extension_elements.get(key)
    if not elements:
        return None
    return elements[0].text


@dataclass
class PlanItemDefinition(BaseElement):
    """A human task, process task, milestone, stage, ... definition."""
    type: str = "task"


@dataclass
class PlanItem(BaseElement):
    """A plan item wrapping a definition inside a stage."""
    definition_ref: str = ""
    plan_item_definition: PlanItemDefinition | None = None


@dataclass
class Stage(PlanItemDefinition):
    type: str = "stage"
    plan_items: list[PlanItem] = field(default_factory=list)
    plan_item_definitions: list[PlanItemDefinition] = field(default_factory=list)

    def iter_definitions(self) -> Iterator[PlanItemDefinition]:
        """Depth-first over every definition declared in this stage tree."""
        for definition in self.plan_item_definitions:
            yield definition
            if isinstance(definition, Stage):
                yield from definition.iter_definitions()

    def iter_plan_items(self) -> Iterator[PlanItem]:
        for plan_item in self.plan_items:
            yield plan_item
        for definition in self.plan_item_definitions:
            if isinstance(definition, Stage):
                yield from definition.iter_plan_items()


@dataclass
class Case(BaseElement):
    plan_model: Stage = field(default_factory=lambda: Stage(id="planModel"))


@dataclass
class CaseModel:
    """All cases parsed from one deployment resource, keyed by case id."""
    cases: dict[str, Case] = field(default_factory=dict)
    target_namespace: str = ""

    def add_case(self, case: Case) -> None:
        self.cases[case.id] = case

    def get_case_by_id(self, case_id: str) -> Case | None:
        return self.cases.get(case_id)

    def find_plan_item_definition(self, definition_id: str) -> PlanItemDefinition | None:
        for case in self.cases.values():
            if case.plan_model.id == definition_id:
                return case.plan_model
            for definition in case.plan_model.iter_definitions():
                if definition.id == definition_id:
                    return definition
        return None

    def find_plan_item(self, plan_item_id: str) -> PlanItem | None:
        for case in self.cases.values():
            for plan_item in case.plan_model.iter_plan_items():
                if plan_item.id == plan_item_id:
                    return plan_item
        return None

    def resolve_plan_item_definitions(self) -> list[str]:
        """
        Link every plan item to its definition by ``definition_ref``.
        Returns the refs that could not be resolved.
        """
        unresolved = []
        for case in self.cases.values():
            for plan_item in case.plan_model.iter_plan_items():
                if plan_item.plan_item_definition is not None:
                    continue
                definition = self.find_plan_item_definition(plan_item.definition_ref)
                if definition is None:
                    unresolved.append(plan_item.definition_ref)
                else:
                    plan_item.plan_item_definition = definition
        return unresolved


@dataclass
class CaseDefinition:
    """Deployed case definition: the repository row behind a model."""
    id: str
    key: str
    name: str = ""
    version: int = 1
    resource_name: str = ""
    tenant_id: str = ""

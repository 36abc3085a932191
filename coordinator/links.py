"""
Case History — Link Records

Identity links (who is involved) and entity links (what references
what) are recorded against a case instance or task rather than a case
definition. Each link type knows how to derive its owning definition
id through an InstanceLookup.

All derivation is point reads by id. A missing record yields None.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coordinator.types import ScopeTypes

if TYPE_CHECKING:
    from coordinator.store import InstanceLookup

logger = logging.getLogger("case_history.links")


def _definition_of_case_instance(lookup: InstanceLookup, case_instance_id: str) -> str | None:
    case_instance = lookup.find_case_instance(case_instance_id)
    if case_instance is None:
        logger.debug("Case instance not found: %s", case_instance_id)
        return None
    return case_instance.case_definition_id


def _definition_of_task(lookup: InstanceLookup, task_id: str) -> str | None:
    task = lookup.find_task(task_id)
    if task is None:
        logger.debug("Task not found: %s", task_id)
        return None
    return task.scope_definition_id


class LinkRecord(abc.ABC):
    """A cross-reference record whose owning definition is derived."""

    @abc.abstractmethod
    def derive_definition_id(self, lookup: InstanceLookup) -> str | None:
        ...


@dataclass
class IdentityLink(LinkRecord):
    """
    A user or group involved in a case instance or task.

    Priority: explicit scope definition, then the case instance, then
    the task.
    """
    id: str
    type: str = "participant"
    user_id: str | None = None
    group_id: str | None = None
    scope_id: str | None = None
    scope_type: str | None = None
    scope_definition_id: str | None = None
    task_id: str | None = None

    def derive_definition_id(self, lookup: InstanceLookup) -> str | None:
        if self.scope_definition_id is not None:
            return self.scope_definition_id
        if self.scope_id is not None:
            return _definition_of_case_instance(lookup, self.scope_id)
        if self.task_id is not None:
            return _definition_of_task(lookup, self.task_id)
        return None


@dataclass
class EntityLink(LinkRecord):
    """
    A reference from one scope to another (e.g. case → child case).
    Only case instance and task scopes resolve to a case definition.
    """
    id: str
    link_type: str = "child"
    scope_id: str | None = None
    scope_type: str | None = None
    scope_definition_id: str | None = None
    reference_scope_id: str | None = None
    reference_scope_type: str | None = None
    hierarchy_type: str | None = None

    def derive_definition_id(self, lookup: InstanceLookup) -> str | None:
        if self.scope_id is None:
            return None
        if self.scope_type == ScopeTypes.CMMN:
            return _definition_of_case_instance(lookup, self.scope_id)
        if self.scope_type == ScopeTypes.TASK:
            return _definition_of_task(lookup, self.scope_id)
        return None

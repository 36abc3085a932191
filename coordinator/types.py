"""
Case History — Runtime Record Types

The runtime records history resolution reads: case instances and
tasks, and the scope types that link records point at.
"""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass


# ─── Scope Types ─────────────────────────────────────────────────────

class ScopeTypes:
    """Well-known scope types carried by link records."""
    CMMN = "cmmn"
    BPMN = "bpmn"
    TASK = "task"
    PLAN_ITEM = "planItem"


# ─── Case Instances ──────────────────────────────────────────────────

class CaseInstanceState(str, enum.Enum):
    """Lifecycle states for a case instance."""
    ACTIVE = "active"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    TERMINATED = "terminated"
    FAILED = "failed"


@dataclass
class CaseInstance:
    """A running (or finished) case, owned by one case definition."""
    id: str
    case_definition_id: str
    state: CaseInstanceState = CaseInstanceState.ACTIVE
    business_key: str = ""
    tenant_id: str = ""
    start_time: float = 0.0

    @staticmethod
    def create(
        case_definition_id: str,
        business_key: str = "",
        tenant_id: str = "",
    ) -> CaseInstance:
        return CaseInstance(
            id=f"case_{uuid.uuid4().hex[:12]}",
            case_definition_id=case_definition_id,
            business_key=business_key,
            tenant_id=tenant_id,
            start_time=time.time(),
        )


# ─── Tasks ───────────────────────────────────────────────────────────

@dataclass
class TaskRecord:
    """
    A human task. CMMN tasks carry the owning case instance as scope
    and the case definition as scope definition.
    """
    id: str
    name: str = ""
    scope_id: str | None = None
    scope_type: str | None = None
    scope_definition_id: str | None = None
    sub_scope_id: str | None = None
    assignee: str = ""
    create_time: float = 0.0

    @staticmethod
    def create(
        name: str,
        case_instance: CaseInstance | None = None,
        plan_item_instance_id: str | None = None,
        assignee: str = "",
    ) -> TaskRecord:
        return TaskRecord(
            id=f"task_{uuid.uuid4().hex[:12]}",
            name=name,
            scope_id=case_instance.id if case_instance else None,
            scope_type=ScopeTypes.CMMN if case_instance else None,
            scope_definition_id=case_instance.case_definition_id if case_instance else None,
            sub_scope_id=plan_item_instance_id,
            assignee=assignee,
            create_time=time.time(),
        )

"""
Case History — Runtime Records

Case instances, tasks and the link records that point at them, plus
the lookups history resolution uses to find a record's definition.

Usage:
    from coordinator.store import SQLiteInstanceStore
    from coordinator.links import IdentityLink

    store = SQLiteInstanceStore("case_history.db")
    link = IdentityLink(id="il_1", user_id="kermit", task_id="task_123")
    link.derive_definition_id(store)
"""

from coordinator.types import (
    CaseInstance,
    CaseInstanceState,
    TaskRecord,
    ScopeTypes,
)
from coordinator.links import (
    LinkRecord,
    IdentityLink,
    EntityLink,
)
from coordinator.store import (
    InstanceLookup,
    InMemoryInstanceLookup,
    SQLiteInstanceStore,
)

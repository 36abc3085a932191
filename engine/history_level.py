"""
Case History — History Levels

The closed set of history granularities an engine can run at, and the
capability checks built on top of them.

The ordering is: none < instance < task < activity < audit < full
It lives in an explicit rank table; members are never compared by value.

Task capture is the one non-monotonic rule: it is granted at exactly
TASK, or at AUDIT and above. ACTIVITY outranks TASK but does NOT
capture tasks.
"""

from __future__ import annotations

import enum


class HistoryLevel(str, enum.Enum):
    """History granularity. Values are the configuration keys."""
    NONE = "none"
    INSTANCE = "instance"
    TASK = "task"
    ACTIVITY = "activity"
    AUDIT = "audit"
    FULL = "full"

    @property
    def key(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return HISTORY_LEVEL_ORDER[self]

    def is_at_least(self, other: HistoryLevel) -> bool:
        """True when this level ranks at or above ``other``."""
        return HISTORY_LEVEL_ORDER[self] >= HISTORY_LEVEL_ORDER[other]

    @classmethod
    def for_key(cls, key: str) -> HistoryLevel:
        """Strict lookup by key. Raises ValueError for an unknown key."""
        for level in cls:
            if level.value == key:
                return level
        raise ValueError(
            f"Illegal value for history level: {key!r}. Valid: {list(LEVEL_KEYS)}"
        )

    def __str__(self) -> str:
        return self.value


# Canonical ordering, higher number captures more history
HISTORY_LEVEL_ORDER: dict[HistoryLevel, int] = {
    HistoryLevel.NONE: 0,
    HistoryLevel.INSTANCE: 1,
    HistoryLevel.TASK: 2,
    HistoryLevel.ACTIVITY: 3,
    HistoryLevel.AUDIT: 4,
    HistoryLevel.FULL: 5,
}

LEVEL_KEYS = tuple(level.value for level in HISTORY_LEVEL_ORDER)


def parse_history_level(value: str | None) -> HistoryLevel | None:
    """
    Lenient lookup used for definition overrides.
    Returns None for a missing, empty or unknown key.
    """
    if not value:
        return None
    try:
        return HistoryLevel.for_key(value)
    except ValueError:
        return None


def parse_include_in_history(value: str | None) -> bool:
    """Boolean literal parse: only "true" (any case) is true."""
    if value is None:
        return False
    return value.lower() == "true"


def has_task_history_level(level: HistoryLevel) -> bool:
    """Task records are kept at exactly TASK, or at AUDIT and above."""
    if level == HistoryLevel.TASK:
        return True
    return level.is_at_least(HistoryLevel.AUDIT)


def has_activity_history_level(level: HistoryLevel) -> bool:
    return level.is_at_least(HistoryLevel.ACTIVITY)

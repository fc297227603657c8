"""
Triage Workflow
===============

Status graph for feedback triage.

    new          -> acknowledged, escalated, resolved
    acknowledged -> escalated, resolved
    escalated    -> resolved
    resolved     -> new (reopen)

Single-record actions are not rejected when they leave this graph (an
escalated item can still be acknowledged); the graph is used to flag such
moves in logs and in the returned ``TriageOutcome``.
"""

from typing import Dict, FrozenSet, Optional

from src.config import FeedbackStatus, TriageAction


TRANSITIONS: Dict[str, FrozenSet[str]] = {
    FeedbackStatus.NEW: frozenset({
        FeedbackStatus.ACKNOWLEDGED, FeedbackStatus.ESCALATED, FeedbackStatus.RESOLVED
    }),
    FeedbackStatus.ACKNOWLEDGED: frozenset({
        FeedbackStatus.ESCALATED, FeedbackStatus.RESOLVED
    }),
    FeedbackStatus.ESCALATED: frozenset({FeedbackStatus.RESOLVED}),
    FeedbackStatus.RESOLVED: frozenset({FeedbackStatus.NEW}),
}

# Status each status-changing action moves a record into
ACTION_TARGETS: Dict[str, str] = {
    TriageAction.ACKNOWLEDGE: FeedbackStatus.ACKNOWLEDGED,
    TriageAction.RESOLVE: FeedbackStatus.RESOLVED,
    TriageAction.REOPEN: FeedbackStatus.NEW,
    TriageAction.ESCALATE: FeedbackStatus.ESCALATED,
}

RECORD_ACTIONS = frozenset({
    TriageAction.ACKNOWLEDGE, TriageAction.RESOLVE,
    TriageAction.REOPEN, TriageAction.ADD_NOTE
})

BULK_ACTIONS = frozenset({TriageAction.ACKNOWLEDGE, TriageAction.RESOLVE})


def is_documented_transition(current: str, target: str) -> bool:
    """True if ``current -> target`` is an edge of the workflow graph.

    Re-applying the current status counts as documented (idempotent).
    """
    if current == target:
        return True
    return target in TRANSITIONS.get(current, frozenset())


def target_status(action: str) -> Optional[str]:
    return ACTION_TARGETS.get(action)

from __future__ import annotations
"""Finite state machine for PO status progression.

Two layers:
    StatusTransitionModel   pure decisions (no I/O, no Flask); returns TransitionDecision values
    TransitionValidator     route-side wrapper that turns a Deny into an HTTP abort

Usage:
    from po_admin.utils.fsm import PO_TRANSITIONS
    decision = PO_TRANSITIONS.request_transition(po.status, POStatus.APPROVED, caps)
    if not decision:
        ...  # decision.reason is a DenyReason

Statuses go through parse_status, so legacy aliases are accepted and anything else raises
UnknownStatusError instead of reading as a dead end.

The backend owns the real state change. Callers re-fetch after dispatching rather than
assuming the target status took effect.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence

from flask import abort

from po_admin.constants.permissions import (
    CapabilitySet, Permission, POStatus, STATUS_PROGRESSION, TERMINAL_STATUSES,
)
from po_admin.utils.timestamps import isoformat_z
from po_admin.utils.validation import parse_status


LEGAL_TRANSITIONS: Dict[POStatus, FrozenSet[POStatus]] = {
    POStatus.DRAFT: frozenset({POStatus.PENDING_APPROVAL, POStatus.CANCELLED}),
    POStatus.PENDING_APPROVAL: frozenset({POStatus.APPROVED, POStatus.DRAFT, POStatus.CANCELLED}),
    POStatus.APPROVED: frozenset({POStatus.SENT_TO_VENDOR, POStatus.CANCELLED}),
    POStatus.SENT_TO_VENDOR: frozenset({POStatus.ACKNOWLEDGED, POStatus.CANCELLED}),
    POStatus.ACKNOWLEDGED: frozenset({POStatus.COMPLETED, POStatus.CANCELLED}),
    POStatus.COMPLETED: frozenset(),
    POStatus.CANCELLED: frozenset(),
}

# Gate keyed by target status. DRAFT is only reachable as a return from approval.
TRANSITION_CAPABILITIES: Dict[POStatus, Optional[Permission]] = {
    POStatus.DRAFT: Permission.APPROVE_PO,
    POStatus.PENDING_APPROVAL: Permission.EDIT_PO,
    POStatus.APPROVED: Permission.APPROVE_PO,
    POStatus.SENT_TO_VENDOR: Permission.SEND_PO_EMAIL,
    POStatus.ACKNOWLEDGED: Permission.ACKNOWLEDGE_PO,
    POStatus.COMPLETED: Permission.EDIT_PO,
    POStatus.CANCELLED: None,
}


class DenyReason(str, Enum):
    NOT_REACHABLE = 'NOT_REACHABLE'
    MISSING_CAPABILITY = 'MISSING_CAPABILITY'
    ALREADY_TERMINAL = 'ALREADY_TERMINAL'


@dataclass(frozen=True)
class TransitionDecision:
    allowed: bool
    reason: Optional[DenyReason] = None
    required: Optional[Permission] = None

    def __bool__(self) -> bool:
        return self.allowed

    def to_json(self) -> dict:
        return {
            'allowed': self.allowed,
            'reason': self.reason.value if self.reason else None,
            'required': self.required.value if self.required else None,
        }


ALLOW = TransitionDecision(True)


def deny(reason: DenyReason, required: Optional[Permission] = None) -> TransitionDecision:
    return TransitionDecision(False, reason, required)


class StepMarker(str, Enum):
    COMPLETED = 'completed'
    CURRENT = 'current'
    UPCOMING = 'upcoming'
    SKIPPED = 'skipped'
    CANCELLED = 'cancelled'


@dataclass(frozen=True)
class TimelineStep:
    status: POStatus
    marker: StepMarker
    timestamp: Optional[datetime] = None
    changed_by: Optional[str] = None
    notes: Optional[str] = None

    def to_json(self) -> dict:
        return {
            'status': self.status.value,
            'marker': self.marker.value,
            'timestamp': isoformat_z(self.timestamp),
            'changedBy': self.changed_by,
            'notes': self.notes,
        }


class StatusTransitionModel:
    def __init__(
        self,
        graph: Mapping[POStatus, FrozenSet[POStatus]] = LEGAL_TRANSITIONS,
        capabilities: Mapping[POStatus, Optional[Permission]] = TRANSITION_CAPABILITIES,
        cancel_capability: Optional[Permission] = None,
    ):
        self.graph = dict(graph)
        self.capabilities = dict(capabilities)
        if cancel_capability is not None:
            self.capabilities[POStatus.CANCELLED] = cancel_capability

    def legal_next(self, status: POStatus) -> FrozenSet[POStatus]:
        return self.graph.get(parse_status(status), frozenset())

    def is_terminal(self, status: POStatus) -> bool:
        return parse_status(status) in TERMINAL_STATUSES

    def required_capability(self, current: POStatus, target: POStatus) -> Optional[Permission]:
        return self.capabilities.get(target)

    def request_transition(self, current: POStatus, target: POStatus, caps: CapabilitySet) -> TransitionDecision:
        current, target = parse_status(current), parse_status(target)
        if self.is_terminal(current):
            return deny(DenyReason.ALREADY_TERMINAL)
        required = self.required_capability(current, target)
        if required is not None and required not in caps:
            return deny(DenyReason.MISSING_CAPABILITY, required)
        if target not in self.legal_next(current):
            return deny(DenyReason.NOT_REACHABLE)
        return ALLOW

    def can_transition(self, current: POStatus, target: POStatus, caps: CapabilitySet) -> bool:
        return self.request_transition(current, target, caps).allowed

    def allowed_targets(self, current: POStatus, caps: CapabilitySet) -> List[POStatus]:
        current = parse_status(current)
        return [s for s in POStatus if self.can_transition(current, s, caps)]

    def timeline(self, current: POStatus, history: Sequence = ()) -> List[TimelineStep]:
        """Step markers for the canonical progression.

        ``history`` holds StatusHistoryEntry-like objects (status, changed_at, changed_by, notes).
        A cancelled PO overrides the linear display: reached steps are COMPLETED, the rest
        SKIPPED, followed by a CANCELLED step.
        """
        current = parse_status(current)
        # last history record per status wins (a PO can return to DRAFT)
        seen = {}
        for h in history:
            seen[h.status] = h

        def step(status: POStatus, marker: StepMarker) -> TimelineStep:
            h = seen.get(status)
            if h is None:
                return TimelineStep(status, marker)
            return TimelineStep(status, marker, h.changed_at, h.changed_by, h.notes)

        if current == POStatus.CANCELLED:
            steps = [
                step(s, StepMarker.COMPLETED if s in seen else StepMarker.SKIPPED)
                for s in STATUS_PROGRESSION
            ]
            steps.append(step(POStatus.CANCELLED, StepMarker.CANCELLED))
            return steps

        position = STATUS_PROGRESSION.index(current)
        steps = []
        for idx, s in enumerate(STATUS_PROGRESSION):
            if idx < position:
                marker = StepMarker.COMPLETED
            elif idx == position:
                marker = StepMarker.CURRENT
            else:
                marker = StepMarker.UPCOMING
            steps.append(step(s, marker))
        return steps

    def as_graph(self) -> Dict[str, List[str]]:
        """JSON-friendly view of the legal table in canonical status order."""
        order = list(POStatus)
        return {
            s.value: [t.value for t in sorted(self.legal_next(s), key=order.index)]
            for s in order
        }


class TransitionValidator:
    def __init__(self, model: StatusTransitionModel, field_name: str = 'status'):
        self.model = model
        self.field_name = field_name

    def raise_for(self, decision: TransitionDecision, current: POStatus, target: POStatus) -> None:
        """Abort 403 for a missing capability, 400 for any other deny; no-op on allow."""
        if decision.reason == DenyReason.MISSING_CAPABILITY:
            abort(403, description=f"Missing permission {decision.required.value} for {self.field_name} {target.value}")
        if not decision:
            abort(400, description=f"Invalid {self.field_name} transition {current.value} -> {target.value} ({decision.reason.value})")

    def assert_can_transition(self, current: POStatus, target: POStatus, caps: CapabilitySet) -> bool:
        self.raise_for(self.model.request_transition(current, target, caps), current, target)
        return True


PO_TRANSITIONS = StatusTransitionModel()

__all__ = [
    'LEGAL_TRANSITIONS', 'TRANSITION_CAPABILITIES', 'DenyReason', 'TransitionDecision', 'StepMarker',
    'TimelineStep', 'StatusTransitionModel', 'TransitionValidator', 'PO_TRANSITIONS',
]

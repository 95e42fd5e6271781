"""Rollout status hierarchy of an instance.

Plan, phase and step statuses share one fixed set of execution states.
Valid transitions:

    NEVER_RUN -> PENDING -> IN_PROGRESS -> COMPLETE
                 PENDING <-> ERROR
             IN_PROGRESS <-> ERROR
                   ERROR -> FATAL_ERROR

Phases and steps are kept as lists in declaration order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ExecutionStatus(str, Enum):
    """Execution state of a plan, phase or step."""
    NEVER_RUN = 'NEVER_RUN'
    PENDING = 'PENDING'
    IN_PROGRESS = 'IN_PROGRESS'
    ERROR = 'ERROR'
    COMPLETE = 'COMPLETE'
    FATAL_ERROR = 'FATAL_ERROR'

    @property
    def is_running(self) -> bool:
        """True while a plan is being executed, including recoverable errors."""
        return self in (ExecutionStatus.PENDING, ExecutionStatus.IN_PROGRESS, ExecutionStatus.ERROR)

    @property
    def is_terminal(self) -> bool:
        """True when complete or in a nonrecoverable error."""
        return self in (ExecutionStatus.COMPLETE, ExecutionStatus.FATAL_ERROR)

    @property
    def is_finished(self) -> bool:
        return self == ExecutionStatus.COMPLETE

    def can_transition_to(self, other: 'ExecutionStatus') -> bool:
        """True if moving from this state to other is a valid transition."""
        return other == self or other in _TRANSITIONS[self]


_TRANSITIONS: dict[ExecutionStatus, set[ExecutionStatus]] = {
    ExecutionStatus.NEVER_RUN: {ExecutionStatus.PENDING},
    ExecutionStatus.PENDING: {ExecutionStatus.IN_PROGRESS, ExecutionStatus.ERROR},
    ExecutionStatus.IN_PROGRESS: {ExecutionStatus.COMPLETE, ExecutionStatus.ERROR},
    ExecutionStatus.ERROR: {
        ExecutionStatus.PENDING,
        ExecutionStatus.IN_PROGRESS,
        ExecutionStatus.FATAL_ERROR,
    },
    ExecutionStatus.COMPLETE: set(),
    ExecutionStatus.FATAL_ERROR: set(),
}


@dataclass
class StepStatus:
    name: str
    status: ExecutionStatus = ExecutionStatus.NEVER_RUN
    message: str = ''

    def set(self, status: ExecutionStatus, message: str = '') -> None:
        self.status = status
        self.message = message

    def to_dict(self) -> dict:
        d: dict[str, Any] = {'name': self.name, 'status': self.status.value}
        if self.message:
            d['message'] = self.message
        return d

    @classmethod
    def from_dict(cls, data: dict) -> 'StepStatus':
        return cls(
            name=data['name'],
            status=ExecutionStatus(data.get('status', ExecutionStatus.NEVER_RUN.value)),
            message=data.get('message', ''),
        )


@dataclass
class PhaseStatus:
    name: str
    status: ExecutionStatus = ExecutionStatus.NEVER_RUN
    message: str = ''
    steps: list[StepStatus] = field(default_factory=list)

    def set(self, status: ExecutionStatus, message: str = '') -> None:
        self.status = status
        self.message = message

    def step(self, name: str) -> Optional[StepStatus]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {'name': self.name, 'status': self.status.value}
        if self.message:
            d['message'] = self.message
        d['steps'] = [s.to_dict() for s in self.steps]
        return d

    @classmethod
    def from_dict(cls, data: dict) -> 'PhaseStatus':
        return cls(
            name=data['name'],
            status=ExecutionStatus(data.get('status', ExecutionStatus.NEVER_RUN.value)),
            message=data.get('message', ''),
            steps=[StepStatus.from_dict(s) for s in data.get('steps', [])],
        )


@dataclass
class PlanStatus:
    """Status of one plan and its phases.

    Attributes:
        name: Plan name
        status: Plan execution state
        message: Detailed explanation, e.g. an error message
        uid: Identifier of the current or last run of this plan
        last_updated: Timestamp of the last status change
        phases: Phase statuses in declaration order
    """
    name: str
    status: ExecutionStatus = ExecutionStatus.NEVER_RUN
    message: str = ''
    uid: str = ''
    last_updated: Optional[float] = None
    phases: list[PhaseStatus] = field(default_factory=list)

    def set(self, status: ExecutionStatus, message: str = '') -> None:
        self.status = status
        self.message = message

    def phase(self, name: str) -> Optional[PhaseStatus]:
        for phase in self.phases:
            if phase.name == name:
                return phase
        return None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {'name': self.name, 'status': self.status.value}
        if self.message:
            d['message'] = self.message
        if self.uid:
            d['uid'] = self.uid
        if self.last_updated is not None:
            d['last_updated'] = self.last_updated
        d['phases'] = [p.to_dict() for p in self.phases]
        return d

    @classmethod
    def from_dict(cls, data: dict) -> 'PlanStatus':
        return cls(
            name=data['name'],
            status=ExecutionStatus(data.get('status', ExecutionStatus.NEVER_RUN.value)),
            message=data.get('message', ''),
            uid=data.get('uid', ''),
            last_updated=data.get('last_updated'),
            phases=[PhaseStatus.from_dict(p) for p in data.get('phases', [])],
        )


@dataclass
class AggregatedStatus:
    """Overview of an instance status derived from the active plan."""
    status: Optional[ExecutionStatus] = None
    active_plan_name: str = ''

    def to_dict(self) -> dict:
        d: dict[str, Any] = {}
        if self.status is not None:
            d['status'] = self.status.value
        if self.active_plan_name:
            d['activePlanName'] = self.active_plan_name
        return d

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'AggregatedStatus':
        if not data:
            return cls()
        status = data.get('status')
        return cls(
            status=ExecutionStatus(status) if status else None,
            active_plan_name=data.get('activePlanName', ''),
        )

"""Instance objects consumed and produced by the rollout engine.

An instance binds concrete parameter values to one package version and
carries the rollout status of every plan of that version. Plan statuses
are keyed by plan name; the order of that mapping is insignificant.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from instance.status import AggregatedStatus, ExecutionStatus, PlanStatus


@dataclass
class PackageVersionRef:
    """Reference to the package version an instance is bound to."""
    name: str
    namespace: str = ''

    def to_dict(self) -> dict:
        d = {'name': self.name}
        if self.namespace:
            d['namespace'] = self.namespace
        return d

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'PackageVersionRef':
        data = data or {}
        return cls(name=data.get('name', ''), namespace=data.get('namespace', ''))


@dataclass
class InstanceSpec:
    """Desired state of an instance."""
    package_version: PackageVersionRef
    parameters: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {'operatorVersion': self.package_version.to_dict()}
        if self.parameters:
            d['parameters'] = dict(self.parameters)
        return d

    @classmethod
    def from_dict(cls, data: dict) -> 'InstanceSpec':
        return cls(
            package_version=PackageVersionRef.from_dict(data.get('operatorVersion')),
            parameters={k: str(v) for k, v in (data.get('parameters') or {}).items()},
        )


@dataclass
class ObjectMeta:
    """Object metadata relevant to rollouts.

    Attributes:
        name: Instance name
        namespace: Instance namespace
        annotations: Opaque string metadata (holds the snapshot)
        finalizers: Finalizers blocking deletion
        deletion_timestamp: Set once deletion was requested
    """
    name: str
    namespace: str = 'default'
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: Optional[float] = None


@dataclass
class InstanceStatus:
    plan_status: dict[str, PlanStatus] = field(default_factory=dict)
    aggregated_status: AggregatedStatus = field(default_factory=AggregatedStatus)

    def to_dict(self) -> dict:
        return {
            'planStatus': {name: p.to_dict() for name, p in self.plan_status.items()},
            'aggregatedStatus': self.aggregated_status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'InstanceStatus':
        data = data or {}
        return cls(
            plan_status={
                name: PlanStatus.from_dict(p)
                for name, p in (data.get('planStatus') or {}).items()
            },
            aggregated_status=AggregatedStatus.from_dict(data.get('aggregatedStatus')),
        )


@dataclass
class Instance:
    """A deployment of a package version."""
    metadata: ObjectMeta
    spec: InstanceSpec
    status: InstanceStatus = field(default_factory=InstanceStatus)

    @property
    def full_name(self) -> str:
        return f'{self.metadata.namespace}/{self.metadata.name}'

    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def mark_deleted(self) -> None:
        self.metadata.deletion_timestamp = time.time()

    def plan_status(self, plan: str) -> Optional[PlanStatus]:
        return self.status.plan_status.get(plan)

    def get_plan_in_progress(self) -> Optional[PlanStatus]:
        """Return the running plan, or None if no plan is running."""
        for plan_status in self.status.plan_status.values():
            if plan_status.status.is_running:
                return plan_status
        return None

    def no_plan_ever_executed(self) -> bool:
        return all(
            p.status == ExecutionStatus.NEVER_RUN for p in self.status.plan_status.values()
        )

    def get_last_executed_plan_status(self) -> Optional[PlanStatus]:
        """Return the running plan, else the most recently updated plan that ran."""
        if self.no_plan_ever_executed():
            return None
        active = self.get_plan_in_progress()
        if active is not None:
            return active
        executed = [
            p for p in self.status.plan_status.values()
            if p.status != ExecutionStatus.NEVER_RUN
        ]
        return max(executed, key=lambda p: p.last_updated or 0.0)

    def to_dict(self) -> dict:
        meta: dict[str, Any] = {
            'name': self.metadata.name,
            'namespace': self.metadata.namespace,
        }
        if self.metadata.annotations:
            meta['annotations'] = dict(self.metadata.annotations)
        if self.metadata.finalizers:
            meta['finalizers'] = list(self.metadata.finalizers)
        if self.metadata.deletion_timestamp is not None:
            meta['deletionTimestamp'] = self.metadata.deletion_timestamp
        return {
            'metadata': meta,
            'spec': self.spec.to_dict(),
            'status': self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Instance':
        meta = data.get('metadata') or {}
        return cls(
            metadata=ObjectMeta(
                name=meta['name'],
                namespace=meta.get('namespace', 'default'),
                annotations=dict(meta.get('annotations') or {}),
                finalizers=list(meta.get('finalizers') or []),
                deletion_timestamp=meta.get('deletionTimestamp'),
            ),
            spec=InstanceSpec.from_dict(data.get('spec') or {}),
            status=InstanceStatus.from_dict(data.get('status')),
        )

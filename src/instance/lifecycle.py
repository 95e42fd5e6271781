"""Plan status lifecycle of an instance.

Keeps the plan/phase/step status tree in line with the plans of the bound
package version, marks plans as started, and applies executor reports.
Mutations happen in place on the instance; callers persist it.
"""

import copy
import logging
import time
import uuid
from typing import Optional

from config import DEFAULT_SETTINGS, Settings
from instance.errors import PlanNotFoundError
from instance.model import Instance
from instance.snapshot import SnapshotStore
from instance.status import (
    ExecutionStatus,
    PhaseStatus,
    PlanStatus,
    StepStatus,
)
from package import Package

logger = logging.getLogger(__name__)


class PlanStatusModel:
    """Owns the status tree of instances.

    Attributes:
        settings: Reserved plan names and metadata keys
        snapshots: Store the applied spec is saved to when a plan starts
    """

    def __init__(self, settings: Settings = DEFAULT_SETTINGS, snapshots: Optional[SnapshotStore] = None):
        self.settings = settings
        self.snapshots = snapshots or SnapshotStore(settings)

    def ensure_initialized(self, instance: Instance, package: Package) -> None:
        """Initialize plan statuses for every plan of the package.

        New plans, phases and steps start as NEVER_RUN; ones that existed
        before keep their status and message. Plans no longer defined are
        left untouched. The aggregated status is never changed.
        """
        plan_statuses = instance.status.plan_status
        for plan_name, plan in package.plans.items():
            existing = plan_statuses.get(plan_name)
            plan_status = PlanStatus(name=plan_name)
            if existing is not None:
                plan_status.set(existing.status, existing.message)
                plan_status.uid = existing.uid
                plan_status.last_updated = existing.last_updated

            for phase in plan.phases:
                phase_status = PhaseStatus(name=phase.name)
                old_phase = existing.phase(phase.name) if existing is not None else None
                if old_phase is not None:
                    phase_status.set(old_phase.status, old_phase.message)

                for step in phase.steps:
                    step_status = StepStatus(name=step.name)
                    old_step = old_phase.step(step.name) if old_phase is not None else None
                    if old_step is not None:
                        step_status.set(old_step.status, old_step.message)
                    phase_status.steps.append(step_status)

                plan_status.phases.append(phase_status)

            plan_statuses[plan_name] = plan_status

    def start_execution(self, instance: Instance, plan_name: str, package: Package) -> PlanStatus:
        """Mark a plan to be executed and snapshot the current spec.

        The status tree is first reconciled against the package, so plans,
        phases and steps of a newly bound version exist before the plan
        and all its phases and steps are set to PENDING with a fresh run uid.

        Callers must check that no other plan is running first; the
        decision engine never selects a plan while one is.

        Raises:
            PlanNotFoundError: If no status exists for the plan after reconciling
        """
        self.ensure_initialized(instance, package)

        running = instance.get_plan_in_progress()
        if running is not None and running.name != plan_name:
            logger.warning(
                f"Instance {instance.full_name}: starting plan {plan_name} "
                f"while plan {running.name} is still {running.status.value}"
            )

        plan_status = instance.plan_status(plan_name)
        if plan_status is None:
            raise PlanNotFoundError(
                f"asked to execute a plan {plan_name} for instance {instance.full_name} "
                f"but no such plan found in package version {package.fully_qualified_name}"
            )

        previous_uid = plan_status.uid
        plan_status.set(ExecutionStatus.PENDING)
        plan_status.uid = str(uuid.uuid4())
        while plan_status.uid == previous_uid:
            plan_status.uid = str(uuid.uuid4())
        plan_status.last_updated = time.time()
        for phase in plan_status.phases:
            phase.set(ExecutionStatus.PENDING)
            for step in phase.steps:
                step.set(ExecutionStatus.PENDING)

        instance.status.aggregated_status.status = ExecutionStatus.PENDING
        instance.status.aggregated_status.active_plan_name = plan_name

        self.snapshots.save(instance)
        logger.info(f"Started plan {plan_name} ({plan_status.uid}) for instance {instance.full_name}")
        return plan_status

    def update_from_executor(self, instance: Instance, plan_status: PlanStatus) -> None:
        """Replace a plan status with the executor's report.

        The aggregated status follows the plan; the active plan is cleared
        once the plan reaches a terminal state.

        Raises:
            PlanNotFoundError: If the instance has no such plan
        """
        current = instance.plan_status(plan_status.name)
        if current is None:
            raise PlanNotFoundError(
                f"executor reported plan {plan_status.name} which is unknown to instance {instance.full_name}"
            )
        if not current.status.can_transition_to(plan_status.status):
            logger.warning(
                "Instance %s: unexpected transition of plan %s from %s to %s",
                instance.full_name, plan_status.name,
                current.status.value, plan_status.status.value,
            )

        updated = copy.deepcopy(plan_status)
        if updated.last_updated is None or updated.status != current.status:
            updated.last_updated = time.time()
        instance.status.plan_status[plan_status.name] = updated

        aggregated = instance.status.aggregated_status
        aggregated.status = updated.status
        if updated.status.is_terminal:
            aggregated.active_plan_name = ''

    def try_add_finalizer(self, instance: Instance) -> bool:
        """Add the cleanup finalizer if a cleanup plan exists and never ran.

        Returns:
            True if the finalizer was added
        """
        finalizer = self.settings.cleanup_finalizer
        if finalizer in instance.metadata.finalizers:
            return False
        cleanup = instance.plan_status(self.settings.cleanup_plan)
        # A cleanup that already ran must not gate deletion again
        if cleanup is not None and cleanup.status == ExecutionStatus.NEVER_RUN:
            instance.metadata.finalizers.append(finalizer)
            return True
        return False

    def try_remove_finalizer(self, instance: Instance) -> bool:
        """Remove the cleanup finalizer once cleanup is terminal or undefined.

        Returns:
            True if the finalizer was removed
        """
        finalizer = self.settings.cleanup_finalizer
        if finalizer not in instance.metadata.finalizers:
            return False
        cleanup = instance.plan_status(self.settings.cleanup_plan)
        if cleanup is None or cleanup.status.is_terminal:
            instance.metadata.finalizers.remove(finalizer)
            return True
        return False

"""Rollout decision engine.

Decides which plan of the bound package version has to run next for an
instance. The decision has no side effects; committing to it is a separate
PlanStatusModel.start_execution() call.

Decision cascade (first match wins):
1. Instance is being deleted: run cleanup unless it is running or finished
2. Some plan is running: nothing
3. No plan ever ran: deploy
4. Snapshot missing despite history: InconsistentStateError
5. Package version changed: upgrade, else update, else deploy
6. Parameters unchanged: nothing
7. Parameters changed: the plan their triggers name, else update/deploy
"""

import logging
from typing import Optional

from config import DEFAULT_SETTINGS, Settings
from instance.errors import (
    AmbiguousTriggerError,
    ImmutableParameterError,
    InconsistentStateError,
    PlanNotFoundError,
)
from instance.model import Instance, InstanceSpec
from instance.snapshot import SnapshotStore
from package import Package, Parameter

logger = logging.getLogger(__name__)


def rich_parameter_diff(old: dict[str, str], new: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
    """Compare parameter maps.

    Returns:
        (changed, removed): parameters added or changed in new with their
        new values, and parameters missing from new with their old values
    """
    removed = {key: val for key, val in old.items() if key not in new}
    changed = {key: val for key, val in new.items() if key not in old or old[key] != val}
    return changed, removed


def parameter_diff(old: dict[str, str], new: dict[str, str]) -> dict[str, str]:
    """Return all parameters that were added, changed or removed."""
    changed, removed = rich_parameter_diff(old, new)
    changed.update(removed)
    return changed


def changed_parameter_definitions(diff: dict[str, str], package: Package) -> list[Parameter]:
    """Definitions of the changed parameters, sorted by parameter name.

    Parameters the package does not define are skipped.
    """
    defs = []
    for name in sorted(diff):
        param = package.get_parameter(name)
        if param is not None:
            defs.append(param)
    return defs


class RolloutDecisionEngine:
    """Selects the next plan to execute for an instance."""

    def __init__(self, settings: Settings = DEFAULT_SETTINGS, snapshots: Optional[SnapshotStore] = None):
        self.settings = settings
        self.snapshots = snapshots or SnapshotStore(settings)

    def plan_from_parameters(self, params: list[Parameter], package: Package) -> str:
        """Determine the plan triggered by a set of changed parameters.

        Distinct non-empty triggers naming a plan of the package are
        collected; exactly one is returned, several are ambiguous. Without
        any, update or deploy is used.

        Raises:
            AmbiguousTriggerError: More than one distinct plan is triggered
            PlanNotFoundError: Neither update nor deploy is defined
        """
        triggers = sorted({
            p.trigger for p in params
            if p.trigger and package.has_plan(p.trigger)
        })
        if len(triggers) > 1:
            raise AmbiguousTriggerError(triggers)
        if triggers:
            return triggers[0]

        fallback = package.select_plan([self.settings.update_plan, self.settings.deploy_plan])
        if fallback is None:
            raise PlanNotFoundError(
                f"none of the {self.settings.update_plan}, {self.settings.deploy_plan} plans "
                f"found in package version {package.fully_qualified_name}"
            )
        return fallback

    def _cleanup_decision(self, instance: Instance, package: Package) -> tuple[bool, Optional[str]]:
        """Decide for an instance being deleted; (decided, plan)."""
        cleanup = self.settings.cleanup_plan
        if not package.has_plan(cleanup):
            return False, None
        plan_status = instance.plan_status(cleanup)
        if plan_status is None:
            return False, None
        if plan_status.status.is_running:
            return True, None
        if plan_status.status.is_finished:
            # Never re-trigger a completed cleanup
            return True, None
        return True, cleanup

    def get_plan_to_be_executed(self, instance: Instance, package: Package) -> Optional[str]:
        """Return the name of the plan that should run next, or None.

        Raises:
            InconsistentStateError: Plans ran but no snapshot exists
            SnapshotCorruptedError: The snapshot cannot be parsed
            PlanNotFoundError: The plan implied by a change is not defined
            AmbiguousTriggerError: A parameter change triggers several plans
        """
        if instance.is_deleting():
            decided, plan = self._cleanup_decision(instance, package)
            if decided:
                return plan

        if instance.get_plan_in_progress() is not None:
            return None

        if instance.no_plan_ever_executed():
            return self.settings.deploy_plan

        snapshot = self.snapshots.load(instance)
        if snapshot is None:
            raise InconsistentStateError(
                f"no plan is running, no snapshot present - this should never happen "
                f"for instance {instance.full_name}"
            )

        current_ref = instance.spec.package_version.name
        if snapshot.package_version.name != current_ref:
            logger.info(
                f"Instance {instance.full_name} was upgraded from "
                f"{snapshot.package_version.name} to {current_ref}"
            )
            plan = package.select_plan([
                self.settings.upgrade_plan,
                self.settings.update_plan,
                self.settings.deploy_plan,
            ])
            if plan is None:
                raise PlanNotFoundError(
                    f"instance {instance.full_name} was upgraded but none of the "
                    f"{self.settings.upgrade_plan}, {self.settings.update_plan}, "
                    f"{self.settings.deploy_plan} plans found in package version {package.fully_qualified_name}"
                )
            return plan

        diff = parameter_diff(snapshot.parameters, instance.spec.parameters)
        if not diff:
            return None

        logger.info(f"Instance {instance.full_name} has updated parameters: {', '.join(sorted(diff))}")
        return self.plan_from_parameters(changed_parameter_definitions(diff, package), package)


def validate_parameter_update(old: InstanceSpec, new: InstanceSpec, package: Package,
                              settings: Settings = DEFAULT_SETTINGS) -> Optional[str]:
    """Check a spec update against the package's parameter definitions.

    Returns:
        The plan the parameter change triggers, or None if no parameter changed

    Raises:
        ImmutableParameterError: An immutable parameter changed
        AmbiguousTriggerError: The change triggers several plans
        PlanNotFoundError: No plan can handle the change
    """
    diff = parameter_diff(old.parameters, new.parameters)
    if not diff:
        return None

    params = changed_parameter_definitions(diff, package)
    immutable = [p.name for p in params if p.is_immutable]
    if immutable:
        raise ImmutableParameterError(immutable)

    return RolloutDecisionEngine(settings).plan_from_parameters(params, package)

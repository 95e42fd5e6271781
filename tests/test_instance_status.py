"""Tests for instance.status and instance.model."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from conftest import make_instance
from instance.model import Instance
from instance.status import (
    AggregatedStatus,
    ExecutionStatus,
    PhaseStatus,
    PlanStatus,
    StepStatus,
)

S = ExecutionStatus


class TestExecutionStatus:
    """Tests for ExecutionStatus predicates and transitions."""

    @pytest.mark.parametrize('status,running', [
        (S.NEVER_RUN, False),
        (S.PENDING, True),
        (S.IN_PROGRESS, True),
        (S.ERROR, True),
        (S.COMPLETE, False),
        (S.FATAL_ERROR, False),
    ])
    def test_is_running(self, status, running):
        assert status.is_running is running

    def test_is_terminal(self):
        assert {s for s in S if s.is_terminal} == {S.COMPLETE, S.FATAL_ERROR}

    def test_is_finished(self):
        assert {s for s in S if s.is_finished} == {S.COMPLETE}

    @pytest.mark.parametrize('src,dst', [
        (S.NEVER_RUN, S.PENDING),
        (S.PENDING, S.IN_PROGRESS),
        (S.IN_PROGRESS, S.COMPLETE),
        (S.PENDING, S.ERROR),
        (S.ERROR, S.PENDING),
        (S.IN_PROGRESS, S.ERROR),
        (S.ERROR, S.IN_PROGRESS),
        (S.ERROR, S.FATAL_ERROR),
        (S.IN_PROGRESS, S.IN_PROGRESS),
    ])
    def test_valid_transitions(self, src, dst):
        assert src.can_transition_to(dst)

    @pytest.mark.parametrize('src,dst', [
        (S.NEVER_RUN, S.COMPLETE),
        (S.PENDING, S.COMPLETE),
        (S.IN_PROGRESS, S.FATAL_ERROR),
        (S.COMPLETE, S.PENDING),
        (S.FATAL_ERROR, S.PENDING),
    ])
    def test_invalid_transitions(self, src, dst):
        assert not src.can_transition_to(dst)

    def test_string_value(self):
        assert S('COMPLETE') is S.COMPLETE
        assert S.PENDING == 'PENDING'


class TestStatusTree:
    """Tests for plan, phase and step status helpers."""

    def _plan(self):
        return PlanStatus(
            name='deploy',
            phases=[
                PhaseStatus(name='one', steps=[StepStatus(name='a'), StepStatus(name='b')]),
                PhaseStatus(name='two'),
            ],
        )

    def test_lookup(self):
        plan = self._plan()
        assert plan.phase('one').step('b').name == 'b'
        assert plan.phase('three') is None
        assert plan.phase('one').step('c') is None

    def test_set(self):
        plan = self._plan()
        plan.set(S.ERROR, 'boom')
        assert (plan.status, plan.message) == (S.ERROR, 'boom')
        plan.set(S.PENDING)
        assert plan.message == ''

    def test_from_dict_keeps_order(self):
        plan = self._plan()
        plan.uid = 'run-1'
        plan.last_updated = 12.5
        restored = PlanStatus.from_dict(plan.to_dict())
        assert restored == plan
        assert [p.name for p in restored.phases] == ['one', 'two']

    def test_aggregated_empty(self):
        assert AggregatedStatus.from_dict(None) == AggregatedStatus()
        assert AggregatedStatus().to_dict() == {}


class TestInstance:
    """Tests for Instance helpers."""

    def _instance(self, **statuses):
        instance = make_instance()
        for i, (name, status) in enumerate(statuses.items()):
            instance.status.plan_status[name] = PlanStatus(name=name, status=status, last_updated=float(i))
        return instance

    def test_no_plan_ever_executed_without_status(self):
        assert make_instance().no_plan_ever_executed()

    def test_no_plan_ever_executed(self):
        assert self._instance(deploy=S.NEVER_RUN, backup=S.NEVER_RUN).no_plan_ever_executed()
        assert not self._instance(deploy=S.COMPLETE, backup=S.NEVER_RUN).no_plan_ever_executed()

    def test_get_plan_in_progress(self):
        instance = self._instance(deploy=S.COMPLETE, backup=S.ERROR)
        assert instance.get_plan_in_progress().name == 'backup'
        assert self._instance(deploy=S.COMPLETE).get_plan_in_progress() is None

    def test_last_executed_prefers_running(self):
        instance = self._instance(backup=S.IN_PROGRESS, deploy=S.COMPLETE)
        assert instance.get_last_executed_plan_status().name == 'backup'

    def test_last_executed_most_recent(self):
        instance = self._instance(deploy=S.COMPLETE, backup=S.FATAL_ERROR, update=S.NEVER_RUN)
        assert instance.get_last_executed_plan_status().name == 'backup'

    def test_last_executed_none(self):
        assert self._instance(deploy=S.NEVER_RUN).get_last_executed_plan_status() is None

    def test_deletion(self):
        instance = make_instance()
        assert not instance.is_deleting()
        instance.mark_deleted()
        assert instance.is_deleting()

    def test_full_name(self):
        assert make_instance('kafka').full_name == 'default/kafka'

    def test_from_dict(self):
        instance = Instance.from_dict({
            'metadata': {
                'name': 'kafka',
                'namespace': 'prod',
                'finalizers': ['kudo.dev.instance.cleanup'],
            },
            'spec': {
                'operatorVersion': {'name': 'kafka-1.3.0'},
                'parameters': {'BROKER_COUNT': 3},
            },
            'status': {
                'planStatus': {'deploy': {'name': 'deploy', 'status': 'COMPLETE'}},
                'aggregatedStatus': {'status': 'COMPLETE'},
            },
        })
        assert instance.full_name == 'prod/kafka'
        assert instance.spec.package_version.name == 'kafka-1.3.0'
        assert instance.spec.parameters == {'BROKER_COUNT': '3'}
        assert instance.plan_status('deploy').status == S.COMPLETE
        assert instance.status.aggregated_status.active_plan_name == ''
        assert Instance.from_dict(instance.to_dict()) == instance

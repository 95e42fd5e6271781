"""Tests for instance.snapshot module."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from conftest import make_instance
from config import Settings
from instance.errors import SnapshotCorruptedError
from instance.snapshot import SnapshotStore

ANNOTATION = 'kudo.dev/last-applied-instance-state'


class TestSnapshotStore:
    """Tests for SnapshotStore save/load."""

    def test_load_without_snapshot(self):
        assert SnapshotStore().load(make_instance()) is None

    def test_save_writes_annotation(self):
        instance = make_instance(operator_version='kafka-1.3.0', parameters={'B': '2', 'A': '1'})

        raw = SnapshotStore().save(instance)

        assert instance.metadata.annotations[ANNOTATION] == raw
        assert json.loads(raw) == {
            'operatorVersion': {'name': 'kafka-1.3.0'},
            'parameters': {'A': '1', 'B': '2'},
        }

    def test_load_returns_saved_spec(self):
        instance = make_instance(parameters={'A': '1'})
        store = SnapshotStore()
        store.save(instance)

        instance.spec.parameters['A'] = '2'
        snapshot = store.load(instance)

        assert snapshot.parameters == {'A': '1'}
        assert snapshot.package_version.name == 'root-0.1.0'

    def test_save_replaces_previous(self):
        instance = make_instance(parameters={'A': '1'})
        store = SnapshotStore()
        store.save(instance)
        instance.spec.parameters['A'] = '2'
        store.save(instance)
        assert store.load(instance).parameters == {'A': '2'}

    def test_custom_annotation(self):
        instance = make_instance()
        SnapshotStore(Settings(snapshot_annotation='example.com/applied')).save(instance)
        assert list(instance.metadata.annotations) == ['example.com/applied']

    def test_invalid_json(self):
        instance = make_instance()
        instance.metadata.annotations[ANNOTATION] = '{not json'
        with pytest.raises(SnapshotCorruptedError) as exc_info:
            SnapshotStore().load(instance)
        assert exc_info.value.fatal
        assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)

    def test_not_an_object(self):
        instance = make_instance()
        instance.metadata.annotations[ANNOTATION] = '["a"]'
        with pytest.raises(SnapshotCorruptedError):
            SnapshotStore().load(instance)

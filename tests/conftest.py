"""Shared pytest fixtures for opkg-driver tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from instance.model import Instance, InstanceSpec, ObjectMeta, PackageVersionRef  # noqa: E402
from package import Package  # noqa: E402


def make_package(name, version='0.1.0', app_version='', deps=None, plans=None, parameters=None):
    """Build a package with KudoOperator tasks for each (name, app, version) dep."""
    tasks = []
    for i, dep in enumerate(deps or []):
        dep_name, dep_app, dep_version = (tuple(dep) + ('', ''))[:3]
        spec = {'package': dep_name}
        if dep_app:
            spec['appVersion'] = dep_app
        if dep_version:
            spec['operatorVersion'] = dep_version
        tasks.append({'name': f'{dep_name}-dep-{i}', 'kind': 'KudoOperator', 'spec': spec})
    tasks.append({'name': 'app', 'kind': 'Apply', 'spec': {'resources': ['deployment.yaml']}})

    return Package.from_dict({
        'name': name,
        'version': version,
        'appVersion': app_version,
        'tasks': tasks,
        'parameters': parameters or [],
        'plans': plans if plans is not None else {'deploy': _simple_plan()},
    })


def make_instance(name='inst', operator_version='root-0.1.0', parameters=None):
    """Build an instance bound to operator_version with no status yet."""
    return Instance(
        metadata=ObjectMeta(name=name),
        spec=InstanceSpec(PackageVersionRef(operator_version), dict(parameters or {})),
    )


def _simple_plan(phases=None):
    phases = phases or [('main', ['everything'])]
    return {
        'strategy': 'serial',
        'phases': [
            {'name': phase, 'strategy': 'parallel', 'steps': [{'name': s, 'tasks': ['app']} for s in steps]}
            for phase, steps in phases
        ],
    }


@pytest.fixture
def simple_plan():
    """Factory for plan dicts: simple_plan([('phase', ['step', ...]), ...])."""
    return _simple_plan


@pytest.fixture
def package_dir(tmp_path):
    """Create a directory tree of packages on disk.

    Layout:
    - root/package.yaml            depends on ./child and shared
    - root/child/package.yaml      depends on shared
    - shared/1.0.0/package.yaml
    - shared/1.1.0/package.yaml
    """
    (tmp_path / 'root' / 'child').mkdir(parents=True)
    (tmp_path / 'shared' / '1.0.0').mkdir(parents=True)
    (tmp_path / 'shared' / '1.1.0').mkdir(parents=True)

    (tmp_path / 'root' / 'package.yaml').write_text("""
name: root
version: 1.0.0
appVersion: 2.4.1
tasks:
  - name: child
    kind: KudoOperator
    spec:
      package: ./child
  - name: shared
    kind: KudoOperator
    spec:
      package: shared
plans:
  deploy:
    strategy: serial
    phases:
      - name: deps
        strategy: serial
        steps:
          - name: child
            tasks: [child]
          - name: shared
            tasks: [shared]
""")
    (tmp_path / 'root' / 'child' / 'package.yaml').write_text("""
name: child
version: 0.3.0
tasks:
  - name: shared
    kind: KudoOperator
    spec:
      package: shared
      operatorVersion: 1.0.0
""")
    for version in ('1.0.0', '1.1.0'):
        (tmp_path / 'shared' / version / 'package.yaml').write_text(f"""
name: shared
version: {version}
""")
    return tmp_path

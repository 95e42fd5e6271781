"""Operator package definitions.

A package version bundles the tasks, parameters and plans used to roll out
an application. Plans form a three-level hierarchy (plan -> phase -> step);
phases and steps keep declaration order since execution order depends on it.

Tasks of the package kind name another package this one depends on.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

try:
    import yaml
except ImportError:
    yaml = None  # type: ignore[assignment]

from config import ConfigError

logger = logging.getLogger(__name__)

STRATEGIES = {'serial', 'parallel'}

PARAMETER_TYPES = {'string', 'integer', 'number', 'boolean', 'array', 'map'}


def operator_version_name(name: str, app_version: str, version: str) -> str:
    """Build the fully qualified name of a package version."""
    if not app_version:
        return f'{name}-{version}'
    return f'{name}-{app_version}-{version}'


@dataclass
class PackageTaskSpec:
    """Reference to a dependency package carried by a package task.

    Attributes:
        package: Package name or location understood by the resolver
        app_version: Requested application version ('' for any)
        operator_version: Requested package version ('' for latest)
    """
    package: str
    app_version: str = ''
    operator_version: str = ''

    @property
    def fully_qualified_name(self) -> str:
        return operator_version_name(self.package, self.app_version, self.operator_version)

    @classmethod
    def from_dict(cls, data: dict) -> 'PackageTaskSpec':
        return cls(
            package=data['package'],
            app_version=data.get('appVersion', '') or '',
            operator_version=data.get('operatorVersion', '') or '',
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {'package': self.package}
        if self.app_version:
            d['appVersion'] = self.app_version
        if self.operator_version:
            d['operatorVersion'] = self.operator_version
        return d


@dataclass
class Task:
    """An atomic unit of work referenced by plan steps.

    Attributes:
        name: Task name, referenced from Step.tasks
        kind: Task kind (Apply, Delete, Pipe, KudoOperator, ...)
        spec: Kind-specific task spec, kept as raw data
        package: Dependency reference for package tasks, None otherwise
    """
    name: str
    kind: str
    spec: dict = field(default_factory=dict)
    package: Optional[PackageTaskSpec] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'Task':
        spec = dict(data.get('spec') or {})
        package = None
        if 'package' in spec:
            package = PackageTaskSpec.from_dict(spec)
        return cls(name=data['name'], kind=data['kind'], spec=spec, package=package)

    def to_dict(self) -> dict:
        spec = dict(self.spec)
        if self.package is not None:
            for key in ('package', 'appVersion', 'operatorVersion'):
                spec.pop(key, None)
            spec.update(self.package.to_dict())
        d: dict[str, Any] = {'name': self.name, 'kind': self.kind}
        if spec:
            d['spec'] = spec
        return d


@dataclass
class Parameter:
    """A package parameter definition.

    Attributes:
        name: Parameter name as used by instances
        default: Default value, None when no default is declared
        trigger: Plan executed when the parameter changes ('' for none)
        required: Whether instances must supply a value
        immutable: Whether the value may change after installation
        type: Value type (string, integer, number, boolean, array, map)
        enum: Allowed values, None when unrestricted
        display_name: Human readable name
        description: Longer description
    """
    name: str
    default: Optional[str] = None
    trigger: str = ''
    required: bool = False
    immutable: bool = False
    type: str = 'string'
    enum: Optional[list[str]] = None
    display_name: str = ''
    description: str = ''

    @property
    def is_required(self) -> bool:
        return self.required

    @property
    def is_immutable(self) -> bool:
        return self.immutable

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def is_enum(self) -> bool:
        return self.enum is not None

    def validate_value(self, value: str) -> None:
        """Validate a value supplied for this parameter.

        Raises:
            ConfigError: If the value is missing, malformed, or not allowed
        """
        if self.required and not self.has_default and value == '':
            raise ConfigError(f"parameter '{self.name}' is required but has no value set")
        if value == '':
            return
        error = _check_type(self.type, value)
        if error:
            raise ConfigError(f"parameter '{self.name}' has an invalid value '{value}': {error}")
        if self.is_enum and value not in self.enum:
            raise ConfigError(
                f"parameter '{self.name}' has an invalid value '{value}': "
                f"only allowed values are {self.enum}"
            )

    @classmethod
    def from_dict(cls, data: dict) -> 'Parameter':
        if 'name' not in data:
            raise ConfigError("Parameter missing required field: name")
        default = data.get('default')
        enum = data.get('enum')
        param_type = data.get('value-type', data.get('type', 'string'))
        if param_type not in PARAMETER_TYPES:
            raise ConfigError(f"Parameter '{data['name']}' has unknown type '{param_type}'")
        return cls(
            name=data['name'],
            default=_stringify(default) if default is not None else None,
            trigger=data.get('trigger', '') or '',
            required=bool(data.get('required', False)),
            immutable=bool(data.get('immutable', False)),
            type=param_type,
            enum=[_stringify(v) for v in enum] if enum is not None else None,
            display_name=data.get('displayName', ''),
            description=data.get('description', ''),
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {'name': self.name}
        if self.default is not None:
            d['default'] = self.default
        if self.trigger:
            d['trigger'] = self.trigger
        if self.required:
            d['required'] = True
        if self.immutable:
            d['immutable'] = True
        if self.type != 'string':
            d['value-type'] = self.type
        if self.enum is not None:
            d['enum'] = list(self.enum)
        if self.display_name:
            d['displayName'] = self.display_name
        if self.description:
            d['description'] = self.description
        return d


def _stringify(value: Any) -> str:
    """Render a YAML scalar the way instance parameters carry it."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        if yaml is None:
            raise ConfigError("PyYAML not installed. Run: pip install pyyaml")
        return yaml.safe_dump(value, default_flow_style=True).strip()
    return str(value)


def _check_type(param_type: str, value: str) -> Optional[str]:
    """Return an error message if value does not parse as param_type."""
    if param_type == 'integer':
        try:
            int(value, 10)
        except ValueError:
            return f"type is 'integer' but format of '{value}' is invalid"
    elif param_type == 'number':
        try:
            float(value)
        except ValueError:
            return f"type is 'number' but format of '{value}' is invalid"
    elif param_type == 'boolean':
        if value.lower() not in ('true', 'false', '1', '0', 't', 'f'):
            return f"type is 'boolean' but format of '{value}' is invalid"
    elif param_type in ('array', 'map'):
        if yaml is None:
            raise ConfigError("PyYAML not installed. Run: pip install pyyaml")
        expected = list if param_type == 'array' else dict
        try:
            parsed = yaml.safe_load(value)
        except yaml.YAMLError:
            parsed = None
        if not isinstance(parsed, expected):
            return f"type is '{param_type}', but format of '{value}' is invalid"
    return None


@dataclass
class Step:
    """A plan step performing one or more tasks in order."""
    name: str
    tasks: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'Step':
        return cls(name=data['name'], tasks=list(data.get('tasks') or []))

    def to_dict(self) -> dict:
        return {'name': self.name, 'tasks': list(self.tasks)}


@dataclass
class Phase:
    """A plan phase grouping steps executed serially or in parallel."""
    name: str
    strategy: str = 'serial'
    steps: list[Step] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'Phase':
        strategy = data.get('strategy', 'serial')
        if strategy not in STRATEGIES:
            raise ConfigError(f"Phase '{data.get('name', 'unnamed')}' has unknown strategy '{strategy}'")
        return cls(
            name=data['name'],
            strategy=strategy,
            steps=[Step.from_dict(s) for s in data.get('steps') or []],
        )

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'strategy': self.strategy,
            'steps': [s.to_dict() for s in self.steps],
        }


@dataclass
class Plan:
    """A rollout workflow made of ordered phases."""
    strategy: str = 'serial'
    phases: list[Phase] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'Plan':
        strategy = data.get('strategy', 'serial')
        if strategy not in STRATEGIES:
            raise ConfigError(f"Plan has unknown strategy '{strategy}'")
        return cls(
            strategy=strategy,
            phases=[Phase.from_dict(p) for p in data.get('phases') or []],
        )

    def to_dict(self) -> dict:
        return {
            'strategy': self.strategy,
            'phases': [p.to_dict() for p in self.phases],
        }


@dataclass
class Package:
    """One released version of an operator package.

    Attributes:
        name: Package (operator) name
        version: Package version
        app_version: Version of the packaged application ('' if unset)
        tasks: Task definitions
        parameters: Parameter definitions
        plans: Plan definitions by name
        source_path: Directory the package was loaded from, if any
    """
    name: str
    version: str
    app_version: str = ''
    tasks: list[Task] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    plans: dict[str, Plan] = field(default_factory=dict)
    source_path: Optional[Path] = None

    @property
    def fully_qualified_name(self) -> str:
        return operator_version_name(self.name, self.app_version, self.version)

    @property
    def identity(self) -> tuple[str, str, str]:
        """Identity triple used to deduplicate dependencies."""
        return (self.name, self.version, self.app_version)

    def has_plan(self, name: str) -> bool:
        return name in self.plans

    def select_plan(self, candidates: list[str]) -> Optional[str]:
        """Return the first candidate plan defined by this package."""
        for name in candidates:
            if name in self.plans:
                return name
        return None

    def get_parameter(self, name: str) -> Optional[Parameter]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def tasks_of_kind(self, kind: str) -> list[Task]:
        return [t for t in self.tasks if t.kind == kind]

    @classmethod
    def from_dict(cls, data: dict, source_path: Optional[Path] = None) -> 'Package':
        """Create Package from dictionary.

        Raises:
            ConfigError: If the package definition is invalid
        """
        for required in ('name', 'version'):
            if required not in data:
                raise ConfigError(f"Package missing required field: {required}")

        tasks = []
        for i, task_data in enumerate(data.get('tasks') or []):
            if 'name' not in task_data or 'kind' not in task_data:
                raise ConfigError(f"Task {i} requires 'name' and 'kind'")
            tasks.append(Task.from_dict(task_data))

        task_names = [t.name for t in tasks]
        if len(set(task_names)) != len(task_names):
            raise ConfigError(f"Package '{data['name']}' has duplicate task names")

        plans = {name: Plan.from_dict(p or {}) for name, p in (data.get('plans') or {}).items()}

        return cls(
            name=data['name'],
            version=str(data['version']),
            app_version=str(data.get('appVersion', '') or ''),
            tasks=tasks,
            parameters=[Parameter.from_dict(p) for p in data.get('parameters') or []],
            plans=plans,
            source_path=source_path,
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            'name': self.name,
            'version': self.version,
        }
        if self.app_version:
            d['appVersion'] = self.app_version
        d['tasks'] = [t.to_dict() for t in self.tasks]
        d['parameters'] = [p.to_dict() for p in self.parameters]
        d['plans'] = {name: p.to_dict() for name, p in self.plans.items()}
        return d

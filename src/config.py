"""Core settings for package dependency resolution and rollout decisions.

Settings are loaded from a YAML file:
- settings.yaml in the opkg etc directory (OPKG_ETC or sibling etc/)
- or an explicit file passed via OPKG_CONFIG / load_settings(path)

When no file is found the built-in defaults are used. The returned
Settings value is passed explicitly into the components that need it.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

try:
    import yaml
except ImportError:
    yaml = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

SETTINGS_FILE = 'settings.yaml'


class ConfigError(Exception):
    """Configuration error."""


@dataclass(frozen=True)
class Settings:
    """Reserved names used by the rollout engine and dependency walker.

    Attributes:
        deploy_plan: Plan run on first reconciliation of an instance
        update_plan: Fallback plan for parameter changes
        upgrade_plan: Preferred plan when the bound package version changes
        cleanup_plan: Plan run when an instance is being deleted
        snapshot_annotation: Metadata key holding the last applied spec
        cleanup_finalizer: Finalizer gating deletion until cleanup completes
        package_task_kind: Task kind that names a dependency package
    """
    deploy_plan: str = 'deploy'
    update_plan: str = 'update'
    upgrade_plan: str = 'upgrade'
    cleanup_plan: str = 'cleanup'
    snapshot_annotation: str = 'kudo.dev/last-applied-instance-state'
    cleanup_finalizer: str = 'kudo.dev.instance.cleanup'
    package_task_kind: str = 'KudoOperator'

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'Settings':
        """Create Settings from a dictionary, rejecting unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(unknown)}")
        for key, value in data.items():
            if not isinstance(value, str) or not value:
                raise ConfigError(f"Setting '{key}' must be a non-empty string")
        return cls(**data)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_SETTINGS = Settings()


def discover_etc_path() -> Optional[Path]:
    """Discover the opkg etc directory.

    Resolution order:
    1. OPKG_ETC environment variable
    2. ../etc/ sibling of src/ (dev workspace)

    Returns:
        Path to the etc directory, or None if none exists
    """
    if env_path := os.environ.get('OPKG_ETC'):
        path = Path(env_path)
        if path.is_dir():
            return path

    sibling = Path(__file__).resolve().parent.parent / 'etc'
    if sibling.is_dir():
        return sibling

    return None


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file that must contain a mapping."""
    if yaml is None:
        raise ConfigError("PyYAML not installed. Run: pip install pyyaml")
    try:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must be a YAML object (dict)")
    return data


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from YAML.

    Priority:
    1. path argument
    2. OPKG_CONFIG environment variable
    3. settings.yaml in the discovered etc directory
    4. Built-in defaults

    Raises:
        ConfigError: If an explicitly named file is missing or invalid
    """
    if path is None and (env_file := os.environ.get('OPKG_CONFIG')):
        path = Path(env_file)

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Settings file not found: {path}")
    else:
        etc_path = discover_etc_path()
        candidate = etc_path / SETTINGS_FILE if etc_path else None
        if candidate is None or not candidate.exists():
            logger.debug("No settings file found, using defaults")
            return DEFAULT_SETTINGS
        path = candidate

    logger.debug(f"Loading settings from {path}")
    return Settings.from_dict(_parse_yaml(path))

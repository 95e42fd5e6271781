"""Base resolver for operator packages.

This module provides the consumed PackageResolver interface and the
shared functionality of concrete resolvers:
- Coded resolver exceptions
- YAML loading with caching
- Version selection when no version is requested

Child packages may be resolved in a different scope than their parent
(e.g. a relative path inside a package directory); for_package() returns
the resolver to use for a package's own dependencies.
"""

import logging
import re
from pathlib import Path
from typing import Optional

try:
    import yaml
except ImportError:
    yaml = None  # type: ignore[assignment]

from config import ConfigError
from package import Package, operator_version_name

logger = logging.getLogger(__name__)


class ResolverError(Exception):
    """Base exception for resolver errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class PackageNotFoundError(ResolverError):
    """No package matches the requested name and versions."""

    def __init__(self, name: str, app_version: str = '', operator_version: str = ''):
        self.name = name
        self.app_version = app_version
        self.operator_version = operator_version
        requested = operator_version_name(name, app_version, operator_version or 'latest')
        super().__init__("E200", f"Package not found: {requested}")


class PackageFormatError(ResolverError):
    """Package definition could not be parsed."""

    def __init__(self, message: str):
        super().__init__("E400", f"Invalid package: {message}")


def _version_key(version: str) -> tuple:
    """Sort key for dotted versions; numeric parts compare numerically."""
    parts = re.split(r'[.\-+]', version)
    return tuple((0, int(p), '') if p.isdigit() else (1, 0, p) for p in parts)


def select_version(candidates: list[Package], app_version: str = '',
                   operator_version: str = '') -> Optional[Package]:
    """Pick the package matching the requested versions.

    Empty version arguments match anything; among several matches the
    highest package version (then app version) wins.
    """
    matches = [
        p for p in candidates
        if (not operator_version or p.version == operator_version)
        and (not app_version or p.app_version == app_version)
    ]
    if not matches:
        return None
    return max(matches, key=lambda p: (_version_key(p.version), _version_key(p.app_version)))


class PackageResolver:
    """Resolves package references to materialized packages.

    Subclasses implement resolve(). Resolvers that scope child lookups to
    a package location override for_package().
    """

    def __init__(self):
        self._yaml_cache: dict[Path, dict] = {}

    def resolve(self, name: str, app_version: str = '', operator_version: str = '') -> Package:
        """Resolve a package reference.

        Args:
            name: Package name or location
            app_version: Requested application version ('' for any)
            operator_version: Requested package version ('' for latest)

        Raises:
            PackageNotFoundError: No matching package
            PackageFormatError: Matching package definition is invalid
        """
        raise NotImplementedError

    def for_package(self, package: Package) -> 'PackageResolver':
        """Return the resolver for dependencies declared by package."""
        return self

    def clear_cache(self):
        """Clear cached YAML documents."""
        self._yaml_cache.clear()
        logger.info("Cache cleared")

    def _load_yaml(self, path: Path) -> dict:
        """Load a YAML mapping (cached).

        Raises:
            ResolverError: If PyYAML is not installed
            PackageFormatError: If the file is not a YAML mapping
        """
        if yaml is None:
            raise ResolverError("E500", "PyYAML not installed. Run: pip install pyyaml")

        path = path.resolve()
        if path in self._yaml_cache:
            logger.debug(f"YAML cache hit: {path}")
            return self._yaml_cache[path]

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise PackageFormatError(f"invalid YAML in {path}: {e}")
        if not isinstance(data, dict):
            raise PackageFormatError(f"{path} must be a YAML object (dict)")

        self._yaml_cache[path] = data
        return data

    def _load_package(self, path: Path) -> Package:
        """Load and parse a package definition file."""
        data = self._load_yaml(path)
        try:
            return Package.from_dict(data, source_path=path.resolve().parent)
        except (ConfigError, KeyError) as e:
            raise PackageFormatError(f"{path}: {e}")

"""Concrete package resolvers.

InMemoryResolver serves pre-loaded packages (catalogs, tests).
DirectoryResolver loads packages from a directory tree where each package
lives in its own directory with a package.yaml; relative references
('./child', '../sibling') resolve against the referencing package's
directory.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

from package import Package
from resolver.base import (
    PackageFormatError,
    PackageNotFoundError,
    PackageResolver,
    select_version,
)

logger = logging.getLogger(__name__)

PACKAGE_FILE = "package.yaml"


class InMemoryResolver(PackageResolver):
    """Resolves packages from an in-memory collection."""

    def __init__(self, packages: Optional[Iterable[Package]] = None):
        super().__init__()
        self._packages: dict[str, list[Package]] = {}
        for package in packages or []:
            self.add(package)

    def add(self, package: Package) -> None:
        """Register a package version."""
        self._packages.setdefault(package.name, []).append(package)

    def resolve(self, name: str, app_version: str = '', operator_version: str = '') -> Package:
        selected = select_version(self._packages.get(name, []), app_version, operator_version)
        if selected is None:
            raise PackageNotFoundError(name, app_version, operator_version)
        logger.debug(f"Resolved {name} to {selected.fully_qualified_name}")
        return selected


class DirectoryResolver(PackageResolver):
    """Resolves packages from directories containing package.yaml.

    A plain name is looked up as {base_dir}/{name}/. A name starting with
    './' or '../' is a path relative to base_dir, which for child packages
    is the directory of the package that declared the dependency; it is
    an error when that package was not loaded from a directory.
    """

    def __init__(self, base_dir: Optional[Path], root_dir: Optional[Path] = None):
        """Initialize resolver.

        Args:
            base_dir: Directory relative references are resolved against,
                None when the declaring package has no local directory
            root_dir: Directory holding named packages (defaults to base_dir)
        """
        super().__init__()
        if base_dir is None and root_dir is None:
            raise ValueError("DirectoryResolver needs base_dir or root_dir")
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.root_dir = Path(root_dir) if root_dir is not None else self.base_dir

    @staticmethod
    def _is_relative(name: str) -> bool:
        return name.startswith("./") or name.startswith("../")

    def _package_dir(self, name: str) -> Path:
        if self._is_relative(name):
            if self.base_dir is None:
                raise PackageFormatError(
                    f"relative dependency {name} is only allowed when the parent package is a local directory"
                )
            return self.base_dir / name
        return self.root_dir / name

    def resolve(self, name: str, app_version: str = '', operator_version: str = '') -> Package:
        package_dir = self._package_dir(name)
        if (package_dir / PACKAGE_FILE).exists():
            candidates = [package_dir / PACKAGE_FILE]
        elif package_dir.is_dir():
            # Multiple versions side by side: {name}/{version}/package.yaml
            candidates = sorted(package_dir.glob(f"*/{PACKAGE_FILE}"))
        else:
            candidates = []

        packages = [self._load_package(path) for path in candidates]
        selected = select_version(packages, app_version, operator_version)
        if selected is None:
            raise PackageNotFoundError(name, app_version, operator_version)
        logger.debug(f"Resolved {name} to {selected.fully_qualified_name} in {selected.source_path}")
        return selected

    def for_package(self, package: Package) -> PackageResolver:
        """Scope relative lookups to the package's own directory.

        A package without a local directory gets a scope that rejects
        relative references.
        """
        scoped = DirectoryResolver(package.source_path, root_dir=self.root_dir)
        scoped._yaml_cache = self._yaml_cache
        return scoped

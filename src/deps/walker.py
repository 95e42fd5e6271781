"""Transitive dependency resolution for operator packages.

Walks the package tasks of a root package, resolves each referenced
package, deduplicates packages by identity and rejects dependency cycles
before anything is installed. The walk is an explicit-stack DFS, so the
returned dependencies keep discovery order without recursion limits on
deep chains.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from config import DEFAULT_SETTINGS, Settings
from deps.graph import DependencyGraph
from package import Package, Task
from resolver.base import PackageFormatError, PackageResolver, ResolverError

logger = logging.getLogger(__name__)


class ResolutionFailure(ResolverError):
    """A dependency could not be resolved."""

    def __init__(self, dependency: str, parent: str, cause: Exception):
        self.dependency = dependency
        self.parent = parent
        super().__init__(
            "E300",
            f"failed to resolve package {dependency}, dependency of package {parent}: {cause}",
        )


class CycleDetected(ResolverError):
    """Adding a dependency edge would close a cycle."""

    def __init__(self, parent: str, child: str):
        self.parent = parent
        self.child = child
        super().__init__(
            "E301",
            f"cyclic package dependency found when adding package {parent} -> {child}",
        )


@dataclass
class Dependency:
    """A resolved dependency package.

    Attributes:
        package: The resolved package version
        package_name: Reference the package was resolved from
    """
    package: Package
    package_name: str

    @property
    def identity(self) -> tuple[str, str, str]:
        return self.package.identity

    @property
    def fully_qualified_name(self) -> str:
        return self.package.fully_qualified_name


@dataclass
class _Frame:
    """Pending package tasks of one package being walked."""
    index: int
    package: Package
    resolver: PackageResolver
    tasks: Iterator[Task]


class DependencyWalker:
    """Resolves the transitive dependencies of a root package.

    Each vertex in the graph matches an index in the internal package list;
    index 0 is the root package.
    """

    def __init__(self, resolver: PackageResolver, settings: Settings = DEFAULT_SETTINGS):
        self.resolver = resolver
        self.settings = settings
        self.graph = DependencyGraph()
        self._packages: list[Dependency] = []
        self._index: dict[tuple[str, str, str], int] = {}

    def _package_tasks(self, package: Package) -> list[Task]:
        tasks = package.tasks_of_kind(self.settings.package_task_kind)
        for task in tasks:
            if task.package is None:
                raise PackageFormatError(
                    f"task '{task.name}' of package {package.fully_qualified_name} "
                    f"has kind {task.kind} but no package reference"
                )
        return tasks

    def _push(self, stack: list[_Frame], index: int, resolver: PackageResolver) -> None:
        package = self._packages[index].package
        stack.append(_Frame(index, package, resolver, iter(self._package_tasks(package))))

    def walk(self, root: Package) -> list[Dependency]:
        """Resolve all dependencies of root.

        Returns:
            Dependencies in discovery order, each identity once, root excluded

        Raises:
            ResolutionFailure: A referenced package could not be resolved
            CycleDetected: The dependencies form a cycle
            PackageFormatError: A package task carries no package reference
        """
        self.graph = DependencyGraph()
        self._packages = [Dependency(package=root, package_name=root.name)]
        self._index = {root.identity: self.graph.add_vertex()}

        stack: list[_Frame] = []
        self._push(stack, 0, self.resolver.for_package(root))

        while stack:
            frame = stack[-1]
            task = next(frame.tasks, None)
            if task is None:
                stack.pop()
                continue

            child_index, is_new, child_resolver = self._add_dependency(frame, task)
            if is_new:
                self._push(stack, child_index, child_resolver)

        return self._packages[1:]

    def _add_dependency(self, frame: _Frame, task: Task) -> tuple[int, bool, Optional[PackageResolver]]:
        """Resolve one package task and link it below its parent."""
        ref = task.package
        assert ref is not None
        parent_name = frame.package.fully_qualified_name
        try:
            child = frame.resolver.resolve(ref.package, ref.app_version, ref.operator_version)
        except ResolverError as e:
            raise ResolutionFailure(ref.fully_qualified_name, parent_name, e) from e

        is_new = child.identity not in self._index
        if is_new:
            logger.debug(f"Adding new dependency {child.fully_qualified_name}")
            self._packages.append(Dependency(package=child, package_name=ref.package))
            self._index[child.identity] = self.graph.add_vertex()
        child_index = self._index[child.identity]

        # The edge represents a dependency of the parent package on the child package
        self.graph.add_edge(frame.index, child_index)
        if not self.graph.is_acyclic():
            self.graph.remove_edge(frame.index, child_index)
            raise CycleDetected(parent_name, child.fully_qualified_name)

        self._rewrite_reference(task, child)

        child_resolver = frame.resolver.for_package(child) if is_new else None
        return child_index, is_new, child_resolver

    @staticmethod
    def _rewrite_reference(task: Task, resolved: Package) -> None:
        """Point the task at the canonical identity of the resolved package."""
        ref = task.package
        assert ref is not None
        ref.package = resolved.name
        ref.app_version = resolved.app_version
        ref.operator_version = resolved.version
        task.spec.update(ref.to_dict())
        if not resolved.app_version:
            task.spec.pop('appVersion', None)

    def install_order(self) -> list[Dependency]:
        """Dependencies of the last walk, each after everything it depends on."""
        return [self._packages[i] for i in self.graph.topological_order() if i != 0]


def resolve(root: Package, resolver: PackageResolver,
            settings: Settings = DEFAULT_SETTINGS) -> list[Dependency]:
    """Resolve all dependencies of a package.

    Dependencies are resolved transitively; cyclic dependencies are
    detected and result in a CycleDetected error. No partial result is
    returned on failure.
    """
    return DependencyWalker(resolver, settings).walk(root)

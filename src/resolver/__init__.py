"""Resolver package for operator package lookups."""

from resolver.base import (
    ResolverError,
    PackageNotFoundError,
    PackageFormatError,
    PackageResolver,
    select_version,
)
from resolver.package_resolver import DirectoryResolver, InMemoryResolver

__all__ = [
    "ResolverError",
    "PackageNotFoundError",
    "PackageFormatError",
    "PackageResolver",
    "select_version",
    "DirectoryResolver",
    "InMemoryResolver",
]

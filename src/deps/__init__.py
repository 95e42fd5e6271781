"""Dependency resolution for operator packages.

Discovers, deduplicates and orders the packages a package depends on,
rejecting cycles before any installation happens.
"""

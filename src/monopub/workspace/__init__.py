"""Workspace and package discovery."""

from monopub.workspace.workspace import (
    PackageDiscovery,
    Workspace,
    normalize_name,
    parse_requirement_name,
    read_package,
)

__all__ = [
    "PackageDiscovery",
    "Workspace",
    "normalize_name",
    "parse_requirement_name",
    "read_package",
]

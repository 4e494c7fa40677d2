"""Workspace discovery: find packages and their dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from monopub.compat import read_toml
from monopub.config import CONFIG_FILENAME, MonopubConfig, find_config, load_config
from monopub.errors import ConfigurationError
from monopub.graph import DependencyGraph, Package, build_graph


class PackageDiscovery(Protocol):
    """Supplies the packages a graph is built from."""

    def discover_packages(self) -> list[Package]: ...


def normalize_name(name: str) -> str:
    """Normalize a distribution name (PEP 503)."""
    return canonicalize_name(name)


def parse_requirement_name(requirement: str) -> str | None:
    """Extract the distribution name from a PEP 508 requirement string.

    Returns:
        Normalized name, or None if the string is not a valid requirement.
    """
    try:
        return normalize_name(Requirement(requirement.strip()).name)
    except InvalidRequirement:
        return None


def read_package(path: Path) -> Package:
    """Read a package from its pyproject.toml.

    Args:
        path: Package directory.

    Returns:
        Package with normalized dependency names.

    Raises:
        ConfigurationError: If pyproject.toml is missing, has no name, or
            lists an invalid dependency.
    """
    pyproject = path / "pyproject.toml"
    data = read_toml(pyproject)

    project = data.get("project", {})
    name = project.get("name")
    if not name:
        raise ConfigurationError("Missing [project].name", path=pyproject)

    deps: set[str] = set()
    for req in project.get("dependencies", []):
        dep_name = parse_requirement_name(req)
        if dep_name is None:
            raise ConfigurationError(f"Invalid dependency: {req!r}", path=pyproject)
        deps.add(dep_name)

    return Package(
        name=normalize_name(name),
        version=str(project.get("version", "0.0.0")),
        path=path.resolve(),
        dependencies=frozenset(deps),
    )


@dataclass
class Workspace:
    """A monorepo root with its configuration and packages.

    Attributes:
        root: Workspace root directory.
        config: Parsed monopub.yaml.
        packages: Discovered packages by name.
    """

    root: Path
    config: MonopubConfig
    packages: dict[str, Package] = field(default_factory=dict)

    @classmethod
    def discover(cls, path: Path | None = None) -> Workspace:
        """Load the workspace containing ``path`` (defaults to cwd).

        Raises:
            ConfigurationError: If no monopub.yaml is found.
        """
        config_path = find_config(path)
        if config_path is None:
            raise ConfigurationError(f"No {CONFIG_FILENAME} found", path=path or Path.cwd())
        return cls.load(config_path.parent)

    @classmethod
    def load(cls, root: Path) -> Workspace:
        """Load the workspace rooted at ``root``."""
        config_path = root / CONFIG_FILENAME
        config = load_config(config_path) if config_path.exists() else MonopubConfig()
        workspace = cls(root=root.resolve(), config=config)
        workspace.packages = {pkg.name: pkg for pkg in workspace.discover_packages()}
        return workspace

    def discover_packages(self) -> list[Package]:
        """Find package directories matching the configured patterns."""
        seen: set[Path] = set()
        packages: list[Package] = []
        for pattern in self.config.packages:
            for candidate in sorted(self.root.glob(pattern)):
                if not (candidate / "pyproject.toml").is_file():
                    continue
                resolved = candidate.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)
                packages.append(read_package(candidate))
        return packages

    @property
    def state_path(self) -> Path:
        """Location of the persisted publish state."""
        return self.root / self.config.publish.state_file

    def build_graph(self) -> DependencyGraph:
        """Build the dependency graph of the workspace packages."""
        return build_graph(self.packages.values())

"""Dependency graph data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class Package:
    """A publishable package in the monorepo.

    Attributes:
        name: Package name, unique within a graph.
        version: Current semantic version string.
        path: Package directory.
        dependencies: Declared dependency names. May include names outside
            the package set; the graph only keeps in-scope ones.
    """

    name: str
    version: str
    path: Path
    dependencies: frozenset[str] = field(default_factory=frozenset)

    @property
    def dir_name(self) -> str:
        """Directory name of the package."""
        return self.path.name


@dataclass
class DependencyGraph:
    """Package dependency graph keyed by package name.

    ``edges[p]`` holds the packages ``p`` depends on and ``reverse_edges[p]``
    the packages that depend on ``p``. Nodes reference each other only
    through names.

    Attributes:
        packages: Package name to package.
        edges: Package name to dependency names.
        reverse_edges: Package name to dependent names.
    """

    packages: dict[str, Package] = field(default_factory=dict)
    edges: dict[str, set[str]] = field(default_factory=dict)
    reverse_edges: dict[str, set[str]] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.packages

    def __len__(self) -> int:
        return len(self.packages)

    @property
    def names(self) -> list[str]:
        """Package names in lexical order."""
        return sorted(self.packages)

    @property
    def edge_count(self) -> int:
        return sum(len(deps) for deps in self.edges.values())

    @property
    def reverse_edge_count(self) -> int:
        return sum(len(deps) for deps in self.reverse_edges.values())

    def dependencies_of(self, name: str) -> set[str]:
        """Direct dependencies of a package."""
        return set(self.edges.get(name, ()))

    def dependents_of(self, name: str) -> set[str]:
        """Packages that directly depend on a package."""
        return set(self.reverse_edges.get(name, ()))

    def resolve(self, identifier: str) -> str | None:
        """Resolve a package name or directory name to a package name."""
        if identifier in self.packages:
            return identifier
        for name, pkg in self.packages.items():
            if pkg.dir_name == identifier:
                return name
        return None

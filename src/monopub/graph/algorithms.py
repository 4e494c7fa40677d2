"""Graph construction, validation and ordering."""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from monopub.errors import CircularDependencyError, ConfigurationError
from monopub.graph.model import DependencyGraph, Package


@dataclass
class GraphValidation:
    """Result of validating a dependency graph.

    Attributes:
        valid: True when no errors were found.
        errors: One message per missing dependency edge and per cycle.
        missing: (package, dependency) pairs whose target is absent.
        cycle: Names on the detected cycle, if any.
    """

    valid: bool
    errors: list[str] = field(default_factory=list)
    missing: list[tuple[str, str]] = field(default_factory=list)
    cycle: list[str] | None = None


def build_graph(packages: Iterable[Package]) -> DependencyGraph:
    """Build a dependency graph from discovered packages.

    Dependencies naming packages outside the set are dropped.

    Args:
        packages: Packages in scope.

    Returns:
        Graph with edges and derived reverse edges.

    Raises:
        ConfigurationError: If two packages share a name.
    """
    by_name: dict[str, Package] = {}
    for pkg in packages:
        if pkg.name in by_name:
            raise ConfigurationError(f"Duplicate package name '{pkg.name}'", path=pkg.path)
        by_name[pkg.name] = pkg

    edges: dict[str, set[str]] = {}
    for name, pkg in by_name.items():
        edges[name] = {dep for dep in pkg.dependencies if dep in by_name and dep != name}

    return DependencyGraph(
        packages=by_name,
        edges=edges,
        reverse_edges=invert_edges(edges, by_name),
    )


def invert_edges(
    edges: dict[str, set[str]],
    packages: Iterable[str],
) -> dict[str, set[str]]:
    """Compute reverse edges (dependency -> dependents)."""
    reverse: dict[str, set[str]] = {name: set() for name in packages}
    for name, deps in edges.items():
        for dep in deps:
            reverse.setdefault(dep, set()).add(name)
    return reverse


def find_cycle(graph: DependencyGraph) -> list[str] | None:
    """Find one cycle with an iterative depth-first search.

    Returns:
        Cycle members with the first name repeated at the end, or None.
    """
    visited: set[str] = set()

    for root in graph.names:
        if root in visited:
            continue

        # Explicit recursion stack of (node, remaining dependencies)
        stack: list[tuple[str, list[str]]] = [(root, sorted(graph.edges.get(root, ())))]
        on_stack: dict[str, int] = {root: 0}
        visited.add(root)

        while stack:
            node, pending = stack[-1]
            if not pending:
                stack.pop()
                del on_stack[node]
                continue

            dep = pending.pop(0)
            if dep in on_stack:
                cycle = [name for name, _ in stack[on_stack[dep] :]]
                return [*cycle, dep]
            if dep in visited or dep not in graph.packages:
                continue

            visited.add(dep)
            on_stack[dep] = len(stack)
            stack.append((dep, sorted(graph.edges.get(dep, ()))))

    return None


def validate_graph(graph: DependencyGraph) -> GraphValidation:
    """Check a graph for missing dependencies and cycles.

    Args:
        graph: Graph to validate.

    Returns:
        Validation result; ``valid`` is False if any error was found.
    """
    errors: list[str] = []
    missing: list[tuple[str, str]] = []

    for name in graph.names:
        for dep in sorted(graph.edges.get(name, ())):
            if dep not in graph.packages:
                missing.append((name, dep))
                errors.append(f"{name}: missing dependency {dep}")

    for name in sorted(graph.edges):
        if name not in graph.packages:
            errors.append(f"Edges reference unknown package {name}")

    cycle = find_cycle(graph)
    if cycle:
        errors.append(f"Circular dependency: {' -> '.join(cycle)}")

    return GraphValidation(valid=not errors, errors=errors, missing=missing, cycle=cycle)


def topological_sort(graph: DependencyGraph) -> list[str]:
    """Order packages so every dependency precedes its dependents.

    Uses Kahn's algorithm, always taking the lexically smallest ready
    package so the order is deterministic.

    Args:
        graph: Graph to sort.

    Returns:
        Package names in publish order.

    Raises:
        CircularDependencyError: If the graph has a cycle.
    """
    in_degree = {
        name: len([d for d in graph.edges.get(name, ()) if d in graph.packages])
        for name in graph.packages
    }
    ready = [name for name, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)

    order: list[str] = []
    while ready:
        name = heapq.heappop(ready)
        order.append(name)
        for dependent in graph.reverse_edges.get(name, ()):
            if dependent not in in_degree:
                continue
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, dependent)

    if len(order) < len(graph.packages):
        cycle = find_cycle(graph)
        if cycle is None:
            cycle = sorted(set(graph.packages) - set(order))
        raise CircularDependencyError(cycle)

    return order


def find_all_dependents(name: str, graph: DependencyGraph) -> set[str]:
    """Find every package that depends on ``name`` directly or transitively.

    Args:
        name: Package to start from.
        graph: Dependency graph.

    Returns:
        Transitive dependents, excluding ``name`` itself.
    """
    found: set[str] = set()
    queue = deque([name])

    while queue:
        current = queue.popleft()
        for dependent in graph.reverse_edges.get(current, ()):
            if dependent != name and dependent not in found:
                found.add(dependent)
                queue.append(dependent)

    return found


def parallel_batches(graph: DependencyGraph) -> list[list[str]]:
    """Group packages into waves that could be published concurrently.

    Raises:
        CircularDependencyError: If the graph has a cycle.
    """
    order = topological_sort(graph)
    level: dict[str, int] = {}
    for name in order:
        deps = [d for d in graph.edges.get(name, ()) if d in graph.packages]
        level[name] = max((level[d] + 1 for d in deps), default=0)

    batches: list[list[str]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
    for name in order:
        batches[level[name]].append(name)
    return batches


def serialize_graph(graph: DependencyGraph) -> dict[str, Any]:
    """Convert a graph into a JSON-compatible record."""
    return {
        "packages": [
            {
                "name": pkg.name,
                "version": pkg.version,
                "path": str(pkg.path),
                "dependencies": sorted(pkg.dependencies),
            }
            for pkg in sorted(graph.packages.values(), key=lambda p: p.name)
        ],
        "edges": {name: sorted(deps) for name, deps in sorted(graph.edges.items())},
        "reverse_edges": {
            name: sorted(deps) for name, deps in sorted(graph.reverse_edges.items())
        },
    }


def deserialize_graph(data: dict[str, Any]) -> DependencyGraph:
    """Rebuild a graph produced by :func:`serialize_graph`."""
    packages = {
        item["name"]: Package(
            name=item["name"],
            version=item["version"],
            path=Path(item["path"]),
            dependencies=frozenset(item.get("dependencies", ())),
        )
        for item in data["packages"]
    }
    edges = {name: set(deps) for name, deps in data["edges"].items()}
    if "reverse_edges" in data:
        reverse_edges = {name: set(deps) for name, deps in data["reverse_edges"].items()}
    else:
        reverse_edges = invert_edges(edges, packages)

    return DependencyGraph(packages=packages, edges=edges, reverse_edges=reverse_edges)

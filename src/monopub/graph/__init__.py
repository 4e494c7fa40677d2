"""Dependency graph and graph algorithms."""

from monopub.graph.algorithms import (
    GraphValidation,
    build_graph,
    deserialize_graph,
    find_all_dependents,
    find_cycle,
    invert_edges,
    parallel_batches,
    serialize_graph,
    topological_sort,
    validate_graph,
)
from monopub.graph.model import DependencyGraph, Package

__all__ = [
    "DependencyGraph",
    "GraphValidation",
    "Package",
    "build_graph",
    "deserialize_graph",
    "find_all_dependents",
    "find_cycle",
    "invert_edges",
    "parallel_batches",
    "serialize_graph",
    "topological_sort",
    "validate_graph",
]

"""Closure and cycle checks for the role and user hierarchy graphs.

Both hierarchies are directed acyclic graphs stored as edge lists
``(parent, child)``. Everything here is pure and works on in-memory edges so
the repositories can validate a proposed edge set before touching any rows.

Traversal is iterative with a visited set: each node is expanded once, work
is O(V + E), and it terminates even if the stored data somehow contains a
cycle.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from crmvault.shared.exceptions import HierarchyCycleError

N = TypeVar("N", bound=Hashable)
T = TypeVar("T", bound=Hashable)

RejectReason = Literal["self_loop", "cycle"]


@dataclass(frozen=True)
class CycleRejected(Generic[T]):
    """Outcome of a hierarchy mutation that was refused.

    Returned rather than raised: callers report it to the end user as a
    validation failure and must not retry.
    """

    parent: T
    child: T
    reason: RejectReason

    def raise_error(self) -> None:
        """Convert to ``HierarchyCycleError`` for callers that prefer raising."""
        raise HierarchyCycleError(str(self.parent), str(self.child), self.reason)


def build_adjacency(edges: Iterable[tuple[N, N]]) -> dict[N, set[N]]:
    """Map every parent to the set of its direct children."""
    adjacency: dict[N, set[N]] = defaultdict(set)
    for parent, child in edges:
        adjacency[parent].add(child)
    return dict(adjacency)


def invert(edges: Iterable[tuple[N, N]]) -> list[tuple[N, N]]:
    """Flip edge direction (children become parents)."""
    return [(child, parent) for parent, child in edges]


def reachable(adjacency: Mapping[N, Iterable[N]], start: N) -> set[N]:
    """Every node reachable from ``start`` through one or more edges.

    ``start`` itself is never part of the result.
    """
    visited: set[N] = set()
    stack: list[N] = [start]
    while stack:
        node = stack.pop()
        for neighbour in adjacency.get(node, ()):
            if neighbour not in visited:
                visited.add(neighbour)
                stack.append(neighbour)
    visited.discard(start)
    return visited


def descendants(edges: Iterable[tuple[N, N]], node: N) -> set[N]:
    """Transitive children of ``node``."""
    return reachable(build_adjacency(edges), node)


def ancestors(edges: Iterable[tuple[N, N]], node: N) -> set[N]:
    """Transitive parents of ``node``."""
    return reachable(build_adjacency(invert(edges)), node)


def check_edge(
    adjacency: Mapping[N, Iterable[N]],
    parent: N,
    child: N,
) -> CycleRejected[N] | None:
    """Validate a proposed ``parent -> child`` edge against existing edges.

    The edge closes a cycle exactly when ``parent`` is already a descendant
    of ``child``.
    """
    if parent == child:
        return CycleRejected(parent=parent, child=child, reason="self_loop")
    if parent in reachable(adjacency, child):
        return CycleRejected(parent=parent, child=child, reason="cycle")
    return None


def find_cycle_edge(edges: Iterable[tuple[N, N]]) -> CycleRejected[N] | None:
    """Return the first edge of ``edges`` that would close a cycle, if any.

    Edges are applied one at a time, so the reported edge is the one that
    turned a valid graph into an invalid one.
    """
    adjacency: dict[N, set[N]] = defaultdict(set)
    for parent, child in edges:
        if child in adjacency.get(parent, ()):
            continue
        rejected = check_edge(adjacency, parent, child)
        if rejected is not None:
            return rejected
        adjacency[parent].add(child)
    return None

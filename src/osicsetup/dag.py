# dag.py
from __future__ import annotations

from collections import deque
from typing import Dict, List, Protocol, Sequence, Set, Tuple, TypeVar


class _Node(Protocol):
    name: str
    needs: List[str]


N = TypeVar("N", bound=_Node)


def build_dag(nodes: Sequence[_Node]) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build a DAG from named nodes.

    Requires:
      - node.name: str (unique)
      - node.needs: iterable[str] (names of nodes that must run BEFORE this one)
    """
    names = [n.name for n in nodes]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate phase names found: {dupes}")

    name_set = set(names)
    adj: Dict[str, Set[str]] = {n: set() for n in name_set}
    indeg: Dict[str, int] = {n: 0 for n in name_set}

    for node in nodes:
        for dep in getattr(node, "needs", None) or []:
            if dep not in name_set:
                raise ValueError(
                    f"Phase '{node.name}' needs missing phase '{dep}'. "
                    f"Known phases: {sorted(name_set)}"
                )
            # Edge dep -> node.name (dep must run before node)
            if node.name not in adj[dep]:
                adj[dep].add(node.name)
                indeg[node.name] += 1

    return adj, indeg


def plan(nodes: Sequence[N]) -> List[N]:
    """
    Sequential execution order.

    Dependencies win; otherwise declaration order is kept, so a list that is
    already in a valid order comes back unchanged.
    """
    nodes = list(nodes)
    adj, indeg = build_dag(nodes)
    indeg = dict(indeg)  # copy (we mutate it)
    position = {n.name: i for i, n in enumerate(nodes)}
    by_name = {n.name: n for n in nodes}

    ready = deque(sorted((n for n, d in indeg.items() if d == 0), key=position.__getitem__))
    order: List[N] = []

    while ready:
        name = ready.popleft()
        order.append(by_name[name])
        unlocked = []
        for child in adj[name]:
            indeg[child] -= 1
            if indeg[child] == 0:
                unlocked.append(child)
        ready.extend(unlocked)
        # keep the ready queue in declaration order
        ready = deque(sorted(ready, key=position.__getitem__))

    if len(order) != len(nodes):
        remaining = sorted(n for n, d in indeg.items() if d > 0)
        raise ValueError(f"Phase graph has a cycle. Stuck phases: {remaining}")

    return order

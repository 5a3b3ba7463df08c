from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ..schemas import FamilyGraph, Person

logger = logging.getLogger(__name__)

NODE_W = 180.0
NODE_H = 80.0
GAP_H = 50.0
GAP_V = 140.0

MIN_DIST = NODE_W + GAP_H


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str


@dataclass
class LayoutResult:
    positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    generations: Dict[str, int] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)


def assign_generations(people: List[Person]) -> Dict[str, int]:
    """
    Roots = 0, everyone else = 1 + max(generation of valid parents).
    Walks an explicit stack instead of recursing. A parent that is still being
    visited means a cycle; that node falls back to generation 0.
    """
    by_id = {p.id: p for p in people}
    valid_parents = {
        p.id: [pid for pid in p.parent_ids if pid in by_id] for p in people
    }
    gen: Dict[str, int] = {}

    for root in sorted(by_id):
        if root in gen:
            continue
        stack = [root]
        visiting = {root}
        while stack:
            node = stack[-1]
            descended = False
            for pid in valid_parents[node]:
                if pid in gen:
                    continue
                if pid in visiting:
                    logger.warning("Parent cycle through %s; placing it at generation 0", pid)
                    gen[pid] = 0
                    continue
                visiting.add(pid)
                stack.append(pid)
                descended = True
                break
            if descended:
                continue
            parents = valid_parents[node]
            gen[node] = max(gen[pid] for pid in parents) + 1 if parents else 0
            visiting.discard(node)
            stack.pop()
    return gen


def _avg_x(ids: List[str], x_pos: Dict[str, float]) -> float:
    placed = [x_pos[i] for i in ids if i in x_pos]
    if not placed:
        return 0.0
    return sum(placed) / len(placed)


def resolve_overlaps(group: List[str], x_pos: Dict[str, float]) -> None:
    """Rightward-only sweep: push each node to at least MIN_DIST from its left neighbour."""
    if len(group) <= 1:
        return
    ordered = sorted(group, key=lambda i: x_pos[i])
    for prev, cur in zip(ordered, ordered[1:]):
        if x_pos[cur] - x_pos[prev] < MIN_DIST:
            x_pos[cur] = x_pos[prev] + MIN_DIST


def _center_group(group: List[str], x_pos: Dict[str, float]) -> None:
    if not group:
        return
    xs = [x_pos[i] for i in group]
    mid = (min(xs) + max(xs)) / 2
    for i in group:
        x_pos[i] -= mid


def _name_key(p: Person) -> str:
    return f"{p.first_name}{p.last_name or ''}".casefold()


def compute_layout(graph: FamilyGraph | List[Person]) -> LayoutResult:
    people = graph.people if isinstance(graph, FamilyGraph) else list(graph)
    if not people:
        return LayoutResult()

    by_id = {p.id: p for p in people}
    valid_parents = {
        p.id: [pid for pid in p.parent_ids if pid in by_id] for p in people
    }
    children_of: Dict[str, List[str]] = {}
    for p in people:
        for pid in valid_parents[p.id]:
            children_of.setdefault(pid, []).append(p.id)

    gens = assign_generations(people)

    layers: Dict[int, List[str]] = {}
    for pid in sorted(gens):
        layers.setdefault(gens[pid], []).append(pid)
    layer_keys = sorted(layers)

    x_pos: Dict[str, float] = {}

    # Pass 1 (top-down): order each layer by parent position, then name
    for key in layer_keys:
        group = layers[key]
        group.sort(key=lambda i: (_avg_x(valid_parents[i], x_pos), _name_key(by_id[i]), i))
        for idx, pid in enumerate(group):
            x_pos[pid] = idx * MIN_DIST
        _center_group(group, x_pos)

    # Pass 2 (bottom-up): centre parents over their children
    for key in reversed(layer_keys):
        group = layers[key]
        for pid in group:
            child_xs = [x_pos[c] for c in children_of.get(pid, []) if c in x_pos]
            if child_xs:
                x_pos[pid] = (min(child_xs) + max(child_xs)) / 2
        resolve_overlaps(group, x_pos)

    # Pass 3 (top-down): pull children toward their parents
    for key in layer_keys:
        group = layers[key]
        for pid in group:
            parents = [q for q in valid_parents[pid] if q in x_pos]
            if parents:
                x_pos[pid] = x_pos[pid] * 0.3 + _avg_x(parents, x_pos) * 0.7
        resolve_overlaps(group, x_pos)

    result = LayoutResult(generations=gens)
    for pid in sorted(x_pos):
        result.positions[pid] = (x_pos[pid], gens[pid] * GAP_V)

    for p in sorted(people, key=lambda q: q.id):
        for pid in valid_parents[p.id]:
            result.edges.append(Edge(id=f"e-{pid}-{p.id}", source=pid, target=p.id))
    return result

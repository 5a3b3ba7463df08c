"""Relationship integrity: traversal, cycle admission, sibling symmetry, cascade delete.

All functions take a FamilyGraph snapshot and either answer a question about it
or return a new snapshot. Nothing here raises on well-formed input.
"""
from __future__ import annotations

from typing import Dict, List, Set

from .schemas import FamilyGraph, Person

MAX_PARENTS = 2


def _children_index(people: List[Person]) -> Dict[str, List[str]]:
    children: Dict[str, List[str]] = {}
    for p in people:
        for pid in p.parent_ids:
            children.setdefault(pid, []).append(p.id)
    return children


def descendants_of(graph: FamilyGraph, person_id: str) -> Set[str]:
    """All ids whose parent chain leads back to person_id."""
    children = _children_index(graph.people)
    found: Set[str] = set()
    stack = [person_id]
    while stack:
        current = stack.pop()
        for cid in children.get(current, []):
            if cid not in found:
                found.add(cid)
                stack.append(cid)
    return found


def ancestors_of(graph: FamilyGraph, person_id: str) -> Set[str]:
    by_id = {p.id: p for p in graph.people}
    found: Set[str] = set()
    stack = [person_id]
    while stack:
        person = by_id.get(stack.pop())
        if person is None:
            continue
        for pid in person.parent_ids:
            if pid not in found:
                found.add(pid)
                stack.append(pid)
    return found


def would_create_cycle(graph: FamilyGraph, person_id: str, candidate_parent_id: str) -> bool:
    """Must be asked before the parent edge is added."""
    if person_id == candidate_parent_id:
        return True
    return candidate_parent_id in descendants_of(graph, person_id)


def children_of(graph: FamilyGraph, person_id: str) -> List[str]:
    return [p.id for p in graph.people if person_id in p.parent_ids]


def effective_siblings(graph: FamilyGraph, person_id: str) -> Set[str]:
    """Explicit sibling links plus everyone sharing at least one parent."""
    person = graph.get(person_id)
    if person is None:
        return set()
    return _effective_siblings(graph, person_id, person.parent_ids, person.sibling_ids)


def _effective_siblings(graph: FamilyGraph, person_id: str,
                        parent_ids: List[str], sibling_ids: List[str]) -> Set[str]:
    ids = set(sibling_ids)
    if parent_ids:
        for p in graph.people:
            if p.id != person_id and any(pid in parent_ids for pid in p.parent_ids):
                ids.add(p.id)
    ids.discard(person_id)
    return ids


def selectable_parents(graph: FamilyGraph, person_id: str) -> List[str]:
    """People that may be offered as a parent of person_id (no self, no descendants)."""
    blocked = descendants_of(graph, person_id) | {person_id}
    return [p.id for p in graph.people if p.id not in blocked]


def selectable_siblings(graph: FamilyGraph, person_id: str,
                        parent_ids: List[str] | None = None,
                        sibling_ids: List[str] | None = None) -> List[str]:
    person = graph.get(person_id)
    if parent_ids is None:
        parent_ids = person.parent_ids if person else []
    if sibling_ids is None:
        sibling_ids = person.sibling_ids if person else []
    linked = _effective_siblings(graph, person_id, parent_ids, sibling_ids)
    return [p.id for p in graph.people if p.id != person_id and p.id not in linked]


def apply_sibling_symmetry(graph: FamilyGraph, person_id: str) -> FamilyGraph:
    """
    Treat person_id's sibling_ids as authoritative: add every missing reverse
    link and drop reverse links the person no longer claims.
    """
    person = graph.get(person_id)
    if person is None:
        return graph
    claimed = set(person.sibling_ids)

    people: List[Person] = []
    for other in graph.people:
        if other.id == person_id:
            people.append(other)
            continue
        lists_person = person_id in other.sibling_ids
        if other.id in claimed and not lists_person:
            other = other.model_copy(update={"sibling_ids": [*other.sibling_ids, person_id]})
        elif lists_person and other.id not in claimed:
            other = other.model_copy(
                update={"sibling_ids": [sid for sid in other.sibling_ids if sid != person_id]}
            )
        people.append(other)
    return graph.model_copy(update={"people": people})


def delete_cascade(graph: FamilyGraph, person_id: str) -> FamilyGraph:
    """Remove the person and every parent/sibling reference to it. No re-parenting."""
    people = [
        p.model_copy(update={
            "parent_ids": [pid for pid in p.parent_ids if pid != person_id],
            "sibling_ids": [sid for sid in p.sibling_ids if sid != person_id],
        })
        for p in graph.people
        if p.id != person_id
    ]
    return graph.model_copy(update={"people": people})


def audit_graph(graph: FamilyGraph) -> List[str]:
    """
    Report invariant violations in a graph that did not come through the
    mutation path (imports, hand-edited files). Returns a list of messages.
    """
    problems: List[str] = []
    by_id: Dict[str, Person] = {}
    for p in graph.people:
        if p.id in by_id:
            problems.append(f"Duplicate person id {p.id!r}")
        by_id[p.id] = p

    for p in graph.people:
        name = p.display_name or p.id
        if len(p.parent_ids) > MAX_PARENTS:
            problems.append(f"{name} has {len(p.parent_ids)} parents (max {MAX_PARENTS})")
        if len(set(p.parent_ids)) != len(p.parent_ids):
            problems.append(f"{name} lists the same parent twice")
        if p.id in p.parent_ids:
            problems.append(f"{name} is listed as their own parent")
        for pid in p.parent_ids:
            if pid not in by_id:
                problems.append(f"{name} references missing parent {pid!r}")
        for sid in p.sibling_ids:
            other = by_id.get(sid)
            if other is None:
                problems.append(f"{name} references missing sibling {sid!r}")
            elif p.id not in other.sibling_ids:
                problems.append(f"{name} lists {other.display_name} as sibling but not vice versa")

    for p in graph.people:
        if p.id in ancestors_of(graph, p.id):
            problems.append(f"{p.display_name or p.id} is their own ancestor (cycle)")
    return problems

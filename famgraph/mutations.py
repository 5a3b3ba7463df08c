"""Turns one user intent into one new, consistent FamilyGraph snapshot.

Requirements covered:
- parent links are admitted only after the cycle and cardinality checks
- sibling links stay symmetric after every save
- deleting a person scrubs every reference to it
- persistence is fire-and-forget: snapshot(previous) is dispatched before save(new)
"""
from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List

from . import integrity
from .persistence import GraphStore, export_portable, import_portable, is_dirty
from .plotly_graph.layout import LayoutResult, compute_layout
from .schemas import FamilyGraph, LinkContext, Person, PersonDraft, utc_now_iso
from .tasks import InlineDispatcher
from .validation import build_person

logger = logging.getLogger(__name__)


class PersonNotFound(KeyError):
    pass


@dataclass
class MutationResult:
    graph: FamilyGraph
    person: Person | None = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _upsert(graph: FamilyGraph, person: Person) -> FamilyGraph:
    people = list(graph.people)
    for idx, p in enumerate(people):
        if p.id == person.id:
            people[idx] = person
            break
    else:
        people.append(person)
    return graph.model_copy(update={"people": people})


def _replace(graph: FamilyGraph, person: Person) -> FamilyGraph:
    return graph.model_copy(update={
        "people": [person if p.id == person.id else p for p in graph.people]
    })


def _link_parent(graph: FamilyGraph, child_id: str, parent_id: str) -> FamilyGraph:
    child = graph.get(child_id)
    if child is None or parent_id in child.parent_ids:
        return graph
    return _replace(graph, child.model_copy(update={"parent_ids": [*child.parent_ids, parent_id]}))


def _link_sibling(graph: FamilyGraph, person_id: str, sibling_id: str) -> FamilyGraph:
    person = graph.get(person_id)
    if person is None or sibling_id in person.sibling_ids:
        return graph
    return _replace(graph, person.model_copy(update={"sibling_ids": [*person.sibling_ids, sibling_id]}))


def _serialized(method):
    """Run the method under the session lock; mutations are one read-modify-write each."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class FamilyTreeSession:
    """Owns the current graph, the last exported graph, the store and the dispatcher."""

    def __init__(self, store: GraphStore | None = None, dispatcher=None,
                 graph: FamilyGraph | None = None):
        self.store = store
        self.dispatcher = dispatcher or InlineDispatcher()
        self.graph = graph or FamilyGraph.empty()
        self.last_exported = self.graph
        # re-entrant: compound flows call save_person while holding it
        self._lock = threading.RLock()

    # ── Loading / dirty state ──

    @_serialized
    def load(self) -> bool:
        loaded = self.store.load() if self.store is not None else None
        if loaded is None:
            return False
        self.graph = loaded
        self.last_exported = loaded
        logger.info("Loaded %d people", len(loaded.people))
        return True

    @property
    def dirty(self) -> bool:
        return is_dirty(self.graph, self.last_exported)

    def _require(self, person_id: str) -> Person:
        person = self.graph.get(person_id)
        if person is None:
            raise PersonNotFound(person_id)
        return person

    # ── Commit path ──

    def _dispatch(self, kind: str, graph: FamilyGraph):
        if self.store is None:
            return
        self.dispatcher.submit(f"write {kind}", getattr(self.store, kind), graph)

    def _commit(self, fn: Callable[[FamilyGraph], FamilyGraph]) -> FamilyGraph:
        previous = self.graph
        self.graph = fn(previous).model_copy(update={"updated_at": utc_now_iso()})
        self._dispatch("snapshot", previous)
        self._dispatch("save", self.graph)
        return self.graph

    # ── Person edits ──

    @_serialized
    def save_person(self, draft: PersonDraft, context: LinkContext | None = None) -> MutationResult:
        """Add or edit a person, then apply the compound link step named by context."""
        context = context or LinkContext()
        if context.preset_parent_ids and not draft.parent_ids:
            draft = draft.model_copy(update={"parent_ids": list(context.preset_parent_ids)})

        person, errors = build_person(draft, self.graph)
        errors += self._check_links(person, context)
        if errors:
            return MutationResult(self.graph, None, errors)

        def apply(graph: FamilyGraph) -> FamilyGraph:
            graph = _upsert(graph, person)
            if context.link_as_parent_of:
                graph = _link_parent(graph, context.link_as_parent_of, person.id)
            if context.link_as_sibling_of:
                graph = _link_sibling(graph, person.id, context.link_as_sibling_of)
            return integrity.apply_sibling_symmetry(graph, person.id)

        graph = self._commit(apply)
        return MutationResult(graph, graph.get(person.id))

    def _check_links(self, person: Person | None, context: LinkContext) -> List[str]:
        errors: List[str] = []
        target_id = context.link_as_parent_of
        if target_id:
            target = self.graph.get(target_id)
            if target is None:
                errors.append(f"Unknown person {target_id!r}")
            elif person is not None and person.id not in target.parent_ids:
                if len(target.parent_ids) >= integrity.MAX_PARENTS:
                    errors.append(f"{target.display_name} already has {integrity.MAX_PARENTS} parents")
                elif integrity.would_create_cycle(_upsert(self.graph, person), target_id, person.id):
                    errors.append(f"{person.display_name} cannot be a parent of {target.display_name}: "
                                  "they are a descendant")
        sib_id = context.link_as_sibling_of
        if sib_id:
            if self.graph.get(sib_id) is None:
                errors.append(f"Unknown person {sib_id!r}")
            elif person is not None and sib_id == person.id:
                errors.append("A person cannot be their own sibling")
        return errors

    @_serialized
    def add_parent(self, person_id: str, draft: PersonDraft) -> MutationResult:
        self._require(person_id)
        return self.save_person(draft, LinkContext(link_as_parent_of=person_id))

    @_serialized
    def add_child(self, person_id: str, draft: PersonDraft) -> MutationResult:
        self._require(person_id)
        if person_id not in draft.parent_ids:
            draft = draft.model_copy(update={"parent_ids": [*draft.parent_ids, person_id]})
        return self.save_person(draft)

    @_serialized
    def add_sibling(self, person_id: str, draft: PersonDraft) -> MutationResult:
        """New sibling inherits the person's parents and gets an explicit symmetric link."""
        person = self._require(person_id)
        return self.save_person(draft, LinkContext(
            link_as_sibling_of=person_id,
            preset_parent_ids=list(person.parent_ids) or None,
        ))

    @_serialized
    def delete_person(self, person_id: str) -> FamilyGraph:
        self._require(person_id)
        return self._commit(lambda g: integrity.delete_cascade(g, person_id))

    # ── Whole-graph operations ──

    @_serialized
    def replace_graph(self, graph: FamilyGraph) -> FamilyGraph:
        """Adopt a full graph (restore / upload). Previous state is snapshotted first."""
        previous = self.graph
        self.graph = graph
        self._dispatch("snapshot", previous)
        self._dispatch("save", graph)
        return graph

    @_serialized
    def import_portable(self, data: bytes | str) -> FamilyGraph:
        graph = self.replace_graph(import_portable(data))
        self.last_exported = graph
        return graph

    @_serialized
    def export_portable(self) -> bytes:
        data = export_portable(self.graph)
        self.last_exported = self.graph
        return data

    # ── Derived views ──

    def layout(self) -> LayoutResult:
        return compute_layout(self.graph)

    def options(self, person_id: str) -> dict:
        self._require(person_id)
        return {
            "selectable_parents": integrity.selectable_parents(self.graph, person_id),
            "selectable_siblings": integrity.selectable_siblings(self.graph, person_id),
            "effective_siblings": sorted(integrity.effective_siblings(self.graph, person_id)),
            "children": integrity.children_of(self.graph, person_id),
        }

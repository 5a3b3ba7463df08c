"""Field-level checks for the add/edit person form.

Every check runs; failures are returned together as human-readable messages.
"""
from __future__ import annotations

import uuid
from typing import List, Tuple

from .dates import DateParseError, parse_date_input, validate_birth_death
from .integrity import MAX_PARENTS, would_create_cycle
from .schemas import FamilyGraph, Person, PersonDraft


def validate_parents(graph: FamilyGraph, person_id: str, parent_ids: List[str]) -> List[str]:
    errors: List[str] = []
    if len(parent_ids) > MAX_PARENTS:
        errors.append(f"A person can have at most {MAX_PARENTS} parents")
    if len(set(parent_ids)) != len(parent_ids):
        errors.append("The same parent is listed twice")
    for pid in dict.fromkeys(parent_ids):
        parent = graph.get(pid)
        if pid == person_id:
            errors.append("A person cannot be their own parent")
        elif parent is None:
            errors.append(f"Unknown parent {pid!r}")
        elif would_create_cycle(graph, person_id, pid):
            errors.append(f"{parent.display_name} cannot be a parent: they are a descendant")
    return errors


def validate_siblings(graph: FamilyGraph, person_id: str, sibling_ids: List[str]) -> List[str]:
    errors: List[str] = []
    for sid in dict.fromkeys(sibling_ids):
        if sid == person_id:
            errors.append("A person cannot be their own sibling")
        elif graph.get(sid) is None:
            errors.append(f"Unknown sibling {sid!r}")
    return errors


def build_person(draft: PersonDraft, graph: FamilyGraph) -> Tuple[Person | None, List[str]]:
    """Validate a draft against the current graph. Returns (person, []) or (None, errors)."""
    errors: List[str] = []
    person_id = draft.id or str(uuid.uuid4())

    first_name = draft.first_name.strip()
    if not first_name:
        errors.append("First name is required")

    birth = death = None
    birth_ok = death_ok = True
    try:
        birth = parse_date_input(draft.birth)
    except DateParseError as e:
        errors.append(f"Birth: {e}")
        birth_ok = False
    try:
        death = parse_date_input(draft.death)
    except DateParseError as e:
        errors.append(f"Death: {e}")
        death_ok = False

    if birth_ok and death_ok:
        bd_err = validate_birth_death(birth, death)
        if bd_err:
            errors.append(bd_err)

    errors += validate_parents(graph, person_id, draft.parent_ids)
    errors += validate_siblings(graph, person_id, draft.sibling_ids)

    if errors:
        return None, errors

    person = Person(
        id=person_id,
        first_name=first_name,
        last_name=draft.last_name.strip() or None,
        birth=birth,
        death=death,
        photo_data_url=draft.photo_data_url or None,
        parent_ids=list(draft.parent_ids),
        sibling_ids=list(dict.fromkeys(draft.sibling_ids)),
        notes=draft.notes.strip() or None,
    )
    return person, []

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, Strict
from pydantic.alias_generators import to_camel

from .dates import PartialDate


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Person(_Camel):
    id: str
    first_name: str
    last_name: Optional[str] = None
    birth: Optional[PartialDate] = None
    death: Optional[PartialDate] = None
    photo_data_url: Optional[str] = None
    parent_ids: List[str]
    sibling_ids: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


class FamilyGraph(_Camel):
    """Unit of persistence and snapshotting: saved and restored wholesale."""
    version: Annotated[Literal[1], Strict()]
    updated_at: str
    people: List[Person]

    @classmethod
    def empty(cls) -> "FamilyGraph":
        return cls(version=1, updated_at=utc_now_iso(), people=[])

    def get(self, person_id: str) -> Person | None:
        for p in self.people:
            if p.id == person_id:
                return p
        return None

    def ids(self) -> set[str]:
        return {p.id for p in self.people}

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ── Form / API bodies ──

class PersonDraft(_Camel):
    """Raw add/edit form input, validated into a Person."""
    id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    birth: str = ""
    death: str = ""
    notes: str = ""
    photo_data_url: Optional[str] = None
    parent_ids: List[str] = Field(default_factory=list)
    sibling_ids: List[str] = Field(default_factory=list)


class LinkContext(_Camel):
    link_as_parent_of: Optional[str] = None
    preset_parent_ids: Optional[List[str]] = None
    link_as_sibling_of: Optional[str] = None


class EdgeOut(BaseModel):
    id: str
    source: str
    target: str


class NodeOut(BaseModel):
    id: str
    label: str
    x: float
    y: float
    generation: int


class LayoutOut(BaseModel):
    nodes: List[NodeOut]
    edges: List[EdgeOut]


class PersonOptionsOut(_Camel):
    selectable_parents: List[str]
    selectable_siblings: List[str]
    effective_siblings: List[str]
    children: List[str]


class StatusOut(BaseModel):
    dirty: bool
    people: int

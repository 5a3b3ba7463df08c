"""Shared fixtures for the famgraph test suite."""
import os

os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from famgraph.mutations import FamilyTreeSession
from famgraph.persistence import FileStore
from famgraph.schemas import FamilyGraph, Person
from famgraph.tasks import InlineDispatcher


def make_person(pid, first=None, parents=(), siblings=(), last=None, **extra):
    return Person(
        id=pid,
        first_name=first or pid,
        last_name=last,
        parent_ids=list(parents),
        sibling_ids=list(siblings),
        **extra,
    )


def make_graph(*people):
    return FamilyGraph(version=1, updated_at="2024-01-01T00:00:00Z", people=list(people))


# ── Graph fixtures ──

@pytest.fixture
def lineage():
    """A -> B -> C."""
    return make_graph(
        make_person("A"),
        make_person("B", parents=["A"]),
        make_person("C", parents=["B"]),
    )


@pytest.fixture
def two_parents():
    """A and B are both parents of C."""
    return make_graph(
        make_person("A"),
        make_person("B"),
        make_person("C", parents=["A", "B"]),
    )


@pytest.fixture
def family():
    """Grandpa -> Dad; Dad + Mom -> Kid1, Kid2; Kid1 <-> Friend (explicit sibling)."""
    return make_graph(
        make_person("grandpa", "Grandpa"),
        make_person("dad", "Dad", parents=["grandpa"]),
        make_person("mom", "Mom"),
        make_person("kid1", "Kid", last="One", parents=["dad", "mom"], siblings=["friend"]),
        make_person("kid2", "Kid", last="Two", parents=["dad", "mom"]),
        make_person("friend", "Friend", siblings=["kid1"]),
    )


# ── Store / session fixtures ──

@pytest.fixture
def file_store(tmp_path):
    return FileStore(tmp_path / "data")


class RecordingStore:
    """In-memory store that records every call in order."""

    def __init__(self, graph=None, fail=False):
        self.graph = graph
        self.fail = fail
        self.calls = []

    def load(self):
        return self.graph

    def save(self, graph):
        self.calls.append(("save", graph))
        if self.fail:
            raise OSError("disk full")
        self.graph = graph

    def snapshot(self, graph):
        self.calls.append(("snapshot", graph))
        if self.fail:
            raise OSError("disk full")
        return "snap"


@pytest.fixture
def recording_store():
    return RecordingStore()


@pytest.fixture
def session(recording_store):
    return FamilyTreeSession(recording_store, InlineDispatcher())


@pytest.fixture
def family_session(family):
    return FamilyTreeSession(RecordingStore(family), InlineDispatcher(), graph=family)


# ── FastAPI fixtures ──

@pytest.fixture
def api_session(file_store):
    return FamilyTreeSession(file_store, InlineDispatcher())


@pytest.fixture
def client(api_session):
    from famgraph.main import app, get_session

    app.dependency_overrides[get_session] = lambda: api_session
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()

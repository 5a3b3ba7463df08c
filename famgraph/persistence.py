"""File persistence, snapshots, and portable import/export of a FamilyGraph."""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from .integrity import audit_graph
from .schemas import FamilyGraph

logger = logging.getLogger(__name__)

DATA_FILE = "family-tree.json"
SNAPSHOT_DIR = "snapshots"

INVALID_FORMAT_MESSAGE = "Invalid family tree JSON format."
UNREADABLE_MESSAGE = "Failed to read or parse the JSON file."


class ImportFormatError(ValueError):
    pass


class GraphStore(Protocol):
    def load(self) -> FamilyGraph | None: ...
    def save(self, graph: FamilyGraph) -> None: ...
    def snapshot(self, graph: FamilyGraph) -> str: ...
    def list_snapshots(self) -> list[dict]: ...
    def read_snapshot(self, snapshot_id: str) -> FamilyGraph | None: ...

def timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")


def dumps_graph(graph: FamilyGraph) -> str:
    return json.dumps(graph.to_dict(), indent=2, ensure_ascii=False)


def parse_family_graph(obj: Any) -> FamilyGraph:
    """Schema-checked decode of an already-parsed JSON value."""
    try:
        graph = FamilyGraph.model_validate(obj)
    except ValidationError as e:
        logger.info("Rejected family graph document: %d error(s)", e.error_count())
        raise ImportFormatError(INVALID_FORMAT_MESSAGE) from e
    for problem in audit_graph(graph):
        logger.warning("Loaded graph: %s", problem)
    return graph


# ── Portable backup / restore ──

def export_portable(graph: FamilyGraph) -> bytes:
    return dumps_graph(graph).encode("utf-8")


def portable_filename(now: datetime | None = None) -> str:
    return f"family-tree.{timestamp(now)}.json"


def import_portable(data: bytes | str) -> FamilyGraph:
    """Decode a user-supplied backup. Rejected wholesale on any problem."""
    try:
        obj = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise ImportFormatError(UNREADABLE_MESSAGE) from e
    return parse_family_graph(obj)


# ── Dirty tracking ──

def content_hash(graph: FamilyGraph) -> str:
    people = [p.model_dump(by_alias=True, exclude_none=True) for p in graph.people]
    canonical = json.dumps(people, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def is_dirty(current: FamilyGraph, last_exported: FamilyGraph) -> bool:
    return content_hash(current) != content_hash(last_exported)


# ── Local file store ──

class FileStore:
    """data/family-tree.json plus never-overwritten data/snapshots/*.json."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.snapshots_dir = self.data_dir / SNAPSHOT_DIR

    @property
    def data_path(self) -> Path:
        return self.data_dir / DATA_FILE

    def load(self) -> FamilyGraph | None:
        if not self.data_path.exists():
            return None
        try:
            return import_portable(self.data_path.read_bytes())
        except ImportFormatError as e:
            logger.warning("Ignoring %s: %s", self.data_path, e)
            return None

    def save(self, graph: FamilyGraph) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        tmp = self.data_path.with_suffix(".json.tmp")
        tmp.write_text(dumps_graph(graph), encoding="utf-8")
        tmp.replace(self.data_path)
        logger.info("Saved %d people to %s", len(graph.people), self.data_path)

    def snapshot(self, graph: FamilyGraph) -> str:
        self.snapshots_dir.mkdir(parents=True, exist_ok=True)
        stem = f"family.snapshot.{timestamp()}"
        path = self.snapshots_dir / f"{stem}.json"
        n = 1
        while path.exists():
            path = self.snapshots_dir / f"{stem}-{n}.json"
            n += 1
        # "x" mode: never overwrite an existing snapshot
        with open(path, "x", encoding="utf-8") as f:
            f.write(dumps_graph(graph))
        logger.info("Snapshot written to %s", path)
        return path.name

    def list_snapshots(self) -> list[dict]:
        """Newest first. The id is the snapshot file name."""
        if not self.snapshots_dir.exists():
            return []
        paths = sorted(self.snapshots_dir.glob("family.snapshot.*.json"),
                       key=lambda p: p.stat().st_mtime_ns, reverse=True)
        return [
            {"id": p.name,
             "created_at": datetime.fromtimestamp(p.stat().st_mtime).isoformat(timespec="seconds")}
            for p in paths
        ]

    def read_snapshot(self, snapshot_id: str) -> FamilyGraph | None:
        path = self.snapshots_dir / Path(snapshot_id).name
        if not path.is_file():
            return None
        return import_portable(path.read_bytes())

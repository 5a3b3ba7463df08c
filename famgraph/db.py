"""KuzuDB embedded graph store for a FamilyGraph (alternative to the JSON file store)."""
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

import kuzu

from .dates import PartialDate
from .persistence import dumps_graph
from .schemas import FamilyGraph, Person

logger = logging.getLogger(__name__)

_SENTINEL_FILE = ".db_initialized"
_META_ID = "graph"


def _init_schema(db: kuzu.Database):
    conn = kuzu.Connection(db)
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS Person("
        "id STRING, ord INT64, first_name STRING, last_name STRING, "
        "birth STRING, death STRING, photo STRING, notes STRING, "
        "PRIMARY KEY(id))"
    )
    conn.execute("CREATE REL TABLE IF NOT EXISTS PARENT_OF(FROM Person TO Person, slot INT64)")
    conn.execute("CREATE REL TABLE IF NOT EXISTS SIBLING_OF(FROM Person TO Person, slot INT64)")
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS GraphMeta("
        "id STRING, version INT64, updated_at STRING, "
        "PRIMARY KEY(id))"
    )
    # ── Disaster-recovery copies, never overwritten ──
    conn.execute(
        "CREATE NODE TABLE IF NOT EXISTS Snapshot("
        "id STRING, created_at STRING, payload STRING, "
        "PRIMARY KEY(id))"
    )


def _opt(value: str) -> str | None:
    return value or None


# Dates are stored as the PartialDate JSON ("" when unset), never as form text.
def _dump_date(pd: PartialDate | None) -> str:
    return pd.model_dump_json(exclude_none=True) if pd is not None else ""


def _load_date(value: str) -> PartialDate | None:
    return PartialDate.model_validate_json(value) if value else None


class KuzuStore:
    """
    Persists the whole graph as Person nodes with PARENT_OF / SIBLING_OF rels.
    `slot` keeps list order. save() replaces everything in one transaction.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.database = kuzu.Database(str(self.db_path))
        _init_schema(self.database)

    def _conn(self) -> kuzu.Connection:
        return kuzu.Connection(self.database)

    @property
    def sentinel_path(self) -> Path:
        return self.db_path.parent / _SENTINEL_FILE

    def write_sentinel(self):
        """Mark that this database has held data, so a silent reset can be detected."""
        try:
            self.sentinel_path.write_text("initialized")
        except OSError as e:
            logger.warning("Could not write DB sentinel: %s", e)

    def check_integrity(self, conn: kuzu.Connection):
        if not self.sentinel_path.exists():
            return  # nothing saved yet
        result = conn.execute("MATCH (m:GraphMeta) RETURN count(*)")
        count = result.get_next()[0] if result.has_next() else 0
        if count == 0:
            logger.critical(
                "DATABASE INTEGRITY CHECK FAILED: sentinel %s exists but no graph is stored.",
                self.sentinel_path,
            )
            raise RuntimeError(
                "Database was previously initialized but now holds no graph. "
                "Check that the database path is mounted."
            )

    def load(self) -> FamilyGraph | None:
        conn = self._conn()
        self.check_integrity(conn)

        result = conn.execute(
            "MATCH (m:GraphMeta) WHERE m.id = $id RETURN m.version, m.updated_at",
            {"id": _META_ID},
        )
        if not result.has_next():
            return None
        version, updated_at = result.get_next()

        parents: dict[str, list[str]] = {}
        result = conn.execute(
            "MATCH (p:Person)-[r:PARENT_OF]->(c:Person) "
            "RETURN c.id, p.id, r.slot ORDER BY c.id, r.slot"
        )
        while result.has_next():
            child_id, parent_id, _ = result.get_next()
            parents.setdefault(child_id, []).append(parent_id)

        siblings: dict[str, list[str]] = {}
        result = conn.execute(
            "MATCH (a:Person)-[r:SIBLING_OF]->(b:Person) "
            "RETURN a.id, b.id, r.slot ORDER BY a.id, r.slot"
        )
        while result.has_next():
            a_id, b_id, _ = result.get_next()
            siblings.setdefault(a_id, []).append(b_id)

        people = []
        result = conn.execute(
            "MATCH (p:Person) RETURN p.id, p.first_name, p.last_name, p.birth, "
            "p.death, p.photo, p.notes ORDER BY p.ord"
        )
        while result.has_next():
            row = result.get_next()
            people.append(Person(
                id=row[0],
                first_name=row[1],
                last_name=_opt(row[2]),
                birth=_load_date(row[3]),
                death=_load_date(row[4]),
                photo_data_url=_opt(row[5]),
                notes=_opt(row[6]),
                parent_ids=parents.get(row[0], []),
                sibling_ids=siblings.get(row[0], []),
            ))
        return FamilyGraph(version=version, updated_at=updated_at, people=people)

    def save(self, graph: FamilyGraph) -> None:
        conn = self._conn()
        ids = graph.ids()
        conn.execute("BEGIN TRANSACTION")
        try:
            conn.execute("MATCH (p:Person) DETACH DELETE p")
            conn.execute("MATCH (m:GraphMeta) DELETE m")
            conn.execute(
                "CREATE (m:GraphMeta {id: $id, version: $version, updated_at: $ts})",
                {"id": _META_ID, "version": graph.version, "ts": graph.updated_at},
            )
            for ord_, p in enumerate(graph.people):
                conn.execute(
                    "CREATE (p:Person {id: $id, ord: $ord, first_name: $first, last_name: $last, "
                    "birth: $birth, death: $death, photo: $photo, notes: $notes})",
                    {"id": p.id, "ord": ord_, "first": p.first_name, "last": p.last_name or "",
                     "birth": _dump_date(p.birth), "death": _dump_date(p.death),
                     "photo": p.photo_data_url or "", "notes": p.notes or ""},
                )
            for p in graph.people:
                for slot, pid in enumerate(p.parent_ids):
                    if pid not in ids:
                        logger.warning("Dropping dangling parent %s of %s", pid, p.id)
                        continue
                    conn.execute(
                        "MATCH (p:Person), (c:Person) WHERE p.id = $pid AND c.id = $cid "
                        "CREATE (p)-[:PARENT_OF {slot: $slot}]->(c)",
                        {"pid": pid, "cid": p.id, "slot": slot},
                    )
                for slot, sid in enumerate(p.sibling_ids):
                    if sid not in ids:
                        logger.warning("Dropping dangling sibling %s of %s", sid, p.id)
                        continue
                    conn.execute(
                        "MATCH (a:Person), (b:Person) WHERE a.id = $aid AND b.id = $bid "
                        "CREATE (a)-[:SIBLING_OF {slot: $slot}]->(b)",
                        {"aid": p.id, "bid": sid, "slot": slot},
                    )
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
        self.write_sentinel()
        logger.info("Saved %d people to %s", len(graph.people), self.db_path)

    def snapshot(self, graph: FamilyGraph) -> str:
        sid = str(uuid.uuid4())
        self._conn().execute(
            "CREATE (s:Snapshot {id: $id, created_at: $ts, payload: $payload})",
            {"id": sid, "ts": datetime.now(timezone.utc).isoformat(), "payload": dumps_graph(graph)},
        )
        logger.info("Snapshot %s stored", sid)
        return sid

    def list_snapshots(self) -> list[dict]:
        result = self._conn().execute(
            "MATCH (s:Snapshot) RETURN s.id, s.created_at ORDER BY s.created_at DESC"
        )
        snapshots = []
        while result.has_next():
            row = result.get_next()
            snapshots.append({"id": row[0], "created_at": row[1]})
        return snapshots

    def read_snapshot(self, snapshot_id: str) -> FamilyGraph | None:
        result = self._conn().execute(
            "MATCH (s:Snapshot) WHERE s.id = $id RETURN s.payload", {"id": snapshot_id}
        )
        if not result.has_next():
            return None
        return FamilyGraph.model_validate(json.loads(result.get_next()[0]))

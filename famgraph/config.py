"""Environment-driven settings."""
import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("FAMILY_DATA_DIR", Path.cwd() / "data"))
STORE = os.environ.get("FAMILY_STORE", "file").lower()
DB_PATH = Path(os.environ.get("FAMILY_DB_PATH", DATA_DIR / "graph_data"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def make_store():
    """Build the persistence collaborator selected by FAMILY_STORE."""
    if STORE == "kuzu":
        from .db import KuzuStore
        return KuzuStore(DB_PATH)
    if STORE != "file":
        raise ValueError(f"Unknown FAMILY_STORE {STORE!r} (expected 'file' or 'kuzu')")
    from .persistence import FileStore
    return FileStore(DATA_DIR)

"""SQLite store shared by the CLI and the monitors.

The weather monitor, the radar monitor and one-off CLI commands may all have
the file open at once, so connections use WAL and wait on locks instead of
failing immediately.
"""

import importlib
import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

MIGRATIONS_PACKAGE = "bomwatch.storage.migrations"
MIGRATIONS_DIR = Path(__file__).parent / "migrations"
BUSY_TIMEOUT_MS = 10_000


def connect(db_path: str | Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT_MS / 1000)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    return conn


def applied_migrations(conn: sqlite3.Connection) -> set[str]:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_versions ("
        "  version TEXT PRIMARY KEY,"
        "  applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP"
        ")"
    )
    conn.commit()
    return {row["version"] for row in conn.execute("SELECT version FROM schema_versions")}


def run_migrations(conn: sqlite3.Connection) -> list[str]:
    """Apply pending v###_*.py migrations in name order. Returns the ones applied."""
    done = applied_migrations(conn)
    pending = [name for name in _migration_names() if name not in done]
    for name in pending:
        logger.info("Applying database migration %s", name)
        importlib.import_module(f"{MIGRATIONS_PACKAGE}.{name}").up(conn)
        conn.execute("INSERT INTO schema_versions (version) VALUES (?)", (name,))
        conn.commit()
    return pending


def _migration_names() -> list[str]:
    return sorted(p.stem for p in MIGRATIONS_DIR.glob("v[0-9]*_*.py"))

"""SQLite schema and versioned migrations for the photo store.

Each migration runs once, inside its own transaction, and is recorded by name
in the `migrations` table.
"""
import logging
import sqlite3
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS migrations (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    applied_at TEXT DEFAULT (datetime('now'))
)
"""

_INITIAL_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        prompt TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS photos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id INTEGER NOT NULL,
        original_filename TEXT NOT NULL,
        original_path TEXT NOT NULL,
        thumbnail_path TEXT NOT NULL,
        file_hash TEXT NOT NULL,
        file_size INTEGER,
        score REAL CHECK (score IS NULL OR (score >= 0.0 AND score <= 10.0)),
        ai_comment TEXT,
        selected INTEGER NOT NULL DEFAULT 0,
        similarity_group_id INTEGER,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_photos_project_id ON photos(project_id)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_photos_project_hash ON photos(project_id, file_hash)",
    "CREATE INDEX IF NOT EXISTS idx_photos_score ON photos(score)",
    "CREATE INDEX IF NOT EXISTS idx_photos_similarity_group ON photos(project_id, similarity_group_id)",
    """
    CREATE TABLE IF NOT EXISTS prompt_templates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        prompt TEXT NOT NULL,
        is_preset INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
]

PRESET_TEMPLATES = [
    ("Candid Moments", "Prioritize candid moments and genuine expressions over posed shots"),
    ("Technical Quality", "Prioritize technical quality: sharpness, proper exposure, and good composition"),
    ("Family Photos", "Prioritize photos where all family members are present and clearly visible"),
    ("Portrait Focus", "Prioritize portraits with good facial expressions and eye contact"),
]


def _initial_schema(conn: sqlite3.Connection) -> None:
    for statement in _INITIAL_SCHEMA:
        conn.execute(statement)


def _default_templates(conn: sqlite3.Connection) -> None:
    created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    conn.executemany(
        "INSERT INTO prompt_templates (name, prompt, is_preset, created_at) VALUES (?, ?, 1, ?)",
        [(name, prompt, created_at) for name, prompt in PRESET_TEMPLATES],
    )


MIGRATIONS = [
    ("001_initial_schema", _initial_schema),
    ("002_default_templates", _default_templates),
]


def apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA busy_timeout = 5000")
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA synchronous = NORMAL")


def run_migrations(conn: sqlite3.Connection) -> list[str]:
    """Apply pending migrations. Returns the names applied in this call."""
    with conn:
        conn.execute(_MIGRATIONS_TABLE)
    applied = {row[0] for row in conn.execute("SELECT name FROM migrations")}

    newly_applied = []
    for name, migrate in MIGRATIONS:
        if name in applied:
            continue
        with conn:
            migrate(conn)
            conn.execute("INSERT INTO migrations (name) VALUES (?)", (name,))
        logger.info("Applied migration %s", name)
        newly_applied.append(name)
    return newly_applied

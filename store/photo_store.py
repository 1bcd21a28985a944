"""Photo store — durable projects, photos and prompt templates in SQLite.

Single process, single writer. Every mutation is one statement (or one
`executemany`) committed in its own transaction, so a failure never leaves a
row half-written. Reads are immediately consistent with prior writes.
"""
import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from models.photo import Photo
from models.project import Project, ProjectWithStats, PromptTemplate
from store.schema import apply_pragmas, run_migrations

logger = logging.getLogger(__name__)


class ProjectNotFoundError(LookupError):
    def __init__(self, project_id: int):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class PhotoNotFoundError(LookupError):
    def __init__(self, photo_id: int):
        super().__init__(f"Photo not found: {photo_id}")
        self.photo_id = photo_id


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _placeholders(values: list) -> str:
    return ",".join("?" for _ in values)


class PhotoStore:
    """Data access layer for projects, photos and prompt templates."""

    def __init__(self, db_path: Path | str):
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        apply_pragmas(self.conn)
        run_migrations(self.conn)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "PhotoStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ---------------------------------------------------------------------------
    # Projects
    # ---------------------------------------------------------------------------

    def create_project(self, name: str, prompt: str | None = None) -> Project:
        now = _now()
        with self.conn:
            cur = self.conn.execute(
                "INSERT INTO projects (name, prompt, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (name, prompt or None, now, now),
            )
        return self.require_project(cur.lastrowid)

    def get_project(self, project_id: int) -> Project | None:
        row = self.conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return Project.model_validate(dict(row)) if row else None

    def require_project(self, project_id: int) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def list_projects(self) -> list[ProjectWithStats]:
        rows = self.conn.execute(
            """
            SELECT
                p.*,
                COUNT(ph.id) AS photo_count,
                COALESCE(SUM(CASE WHEN ph.selected = 1 THEN 1 ELSE 0 END), 0) AS selected_count,
                COALESCE(SUM(CASE WHEN ph.score IS NOT NULL THEN 1 ELSE 0 END), 0) AS scored_count
            FROM projects p
            LEFT JOIN photos ph ON ph.project_id = p.id
            GROUP BY p.id
            ORDER BY p.created_at DESC, p.id DESC
            """
        ).fetchall()
        return [ProjectWithStats.model_validate(dict(r)) for r in rows]

    def update_project(self, project_id: int, name: str, prompt: str | None = None) -> Project:
        with self.conn:
            cur = self.conn.execute(
                "UPDATE projects SET name = ?, prompt = ?, updated_at = ? WHERE id = ?",
                (name, prompt or None, _now(), project_id),
            )
        if cur.rowcount == 0:
            raise ProjectNotFoundError(project_id)
        return self.require_project(project_id)

    def delete_project(self, project_id: int) -> Project | None:
        """Delete a project and, by cascade, its photos. Returns the deleted row."""
        project = self.get_project(project_id)
        if project is None:
            return None
        with self.conn:
            self.conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        return project

    # ---------------------------------------------------------------------------
    # Photos
    # ---------------------------------------------------------------------------

    def insert_photo(
        self,
        project_id: int,
        original_filename: str,
        original_path: Path,
        thumbnail_path: Path,
        file_hash: str,
        file_size: int | None,
    ) -> Photo:
        now = _now()
        with self.conn:
            cur = self.conn.execute(
                """
                INSERT INTO photos (
                    project_id, original_filename, original_path, thumbnail_path,
                    file_hash, file_size, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (project_id, original_filename, str(original_path), str(thumbnail_path),
                 file_hash, file_size, now, now),
            )
        return self.require_photo(cur.lastrowid)

    def get_photo(self, photo_id: int) -> Photo | None:
        row = self.conn.execute("SELECT * FROM photos WHERE id = ?", (photo_id,)).fetchone()
        return Photo.model_validate(dict(row)) if row else None

    def require_photo(self, photo_id: int) -> Photo:
        photo = self.get_photo(photo_id)
        if photo is None:
            raise PhotoNotFoundError(photo_id)
        return photo

    def find_by_fingerprint(self, project_id: int, file_hash: str) -> Photo | None:
        row = self.conn.execute(
            "SELECT * FROM photos WHERE project_id = ? AND file_hash = ?",
            (project_id, file_hash),
        ).fetchone()
        return Photo.model_validate(dict(row)) if row else None

    def list_photos(self, project_id: int) -> list[Photo]:
        """All photos of a project, best scored first (display order)."""
        return self._select_photos(
            "WHERE project_id = ? ORDER BY score IS NULL, score DESC, created_at DESC, id DESC",
            (project_id,),
        )

    def list_photos_by_id(self, project_id: int) -> list[Photo]:
        return self._select_photos("WHERE project_id = ? ORDER BY id", (project_id,))

    def list_unscored(self, project_id: int) -> list[Photo]:
        return self._select_photos(
            "WHERE project_id = ? AND score IS NULL ORDER BY id", (project_id,)
        )

    def count_unscored(self, project_id: int) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) AS cnt FROM photos WHERE project_id = ? AND score IS NULL",
            (project_id,),
        ).fetchone()
        return row["cnt"]

    def list_selected(self, project_id: int) -> list[Photo]:
        return self._select_photos(
            "WHERE project_id = ? AND selected = 1 ORDER BY score IS NULL, score DESC, id",
            (project_id,),
        )

    def update_score(self, photo_id: int, score: float, comment: str | None) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE photos SET score = ?, ai_comment = ?, updated_at = ? WHERE id = ?",
                (score, comment, _now(), photo_id),
            )

    def set_selected(self, photo_ids: Iterable[int], selected: bool) -> int:
        """Bulk selection update. Returns the number of rows changed."""
        ids = list(photo_ids)
        if not ids:
            return 0
        with self.conn:
            cur = self.conn.execute(
                f"UPDATE photos SET selected = ?, updated_at = ? WHERE id IN ({_placeholders(ids)})",
                [1 if selected else 0, _now(), *ids],
            )
        return cur.rowcount

    def delete_photo(self, photo_id: int) -> Photo | None:
        photo = self.get_photo(photo_id)
        if photo is None:
            return None
        with self.conn:
            self.conn.execute("DELETE FROM photos WHERE id = ?", (photo_id,))
        return photo

    # ---------------------------------------------------------------------------
    # Similarity groups
    # ---------------------------------------------------------------------------

    def clear_groups(self, project_id: int) -> int:
        with self.conn:
            cur = self.conn.execute(
                "UPDATE photos SET similarity_group_id = NULL "
                "WHERE project_id = ? AND similarity_group_id IS NOT NULL",
                (project_id,),
            )
        return cur.rowcount

    def assign_group(self, photo_ids: Iterable[int], group_id: int) -> None:
        """Put every listed photo in `group_id` within one transaction."""
        ids = list(photo_ids)
        if not ids:
            return
        with self.conn:
            self.conn.execute(
                f"UPDATE photos SET similarity_group_id = ? WHERE id IN ({_placeholders(ids)})",
                [group_id, *ids],
            )

    def list_group(self, project_id: int, group_id: int) -> list[Photo]:
        """Members of one group, best first: score descending (unscored last), then id."""
        return self._select_photos(
            "WHERE project_id = ? AND similarity_group_id = ? "
            "ORDER BY score IS NULL, score DESC, id",
            (project_id, group_id),
        )

    def count_groups(self, project_id: int) -> int:
        row = self.conn.execute(
            """
            SELECT COUNT(DISTINCT similarity_group_id) AS cnt
            FROM photos
            WHERE project_id = ? AND similarity_group_id IS NOT NULL
            """,
            (project_id,),
        ).fetchone()
        return row["cnt"]

    # ---------------------------------------------------------------------------
    # Prompt templates
    # ---------------------------------------------------------------------------

    def list_templates(self) -> list[PromptTemplate]:
        rows = self.conn.execute(
            "SELECT * FROM prompt_templates ORDER BY is_preset DESC, name"
        ).fetchall()
        return [PromptTemplate.model_validate(dict(r)) for r in rows]

    def save_template(self, name: str, prompt: str, template_id: int | None = None) -> PromptTemplate | None:
        """Insert a user template, or rename/edit one. Presets are never modified.

        Returns None when `template_id` names no editable template.
        """
        with self.conn:
            if template_id is None:
                cur = self.conn.execute(
                    "INSERT INTO prompt_templates (name, prompt, is_preset, created_at) VALUES (?, ?, 0, ?)",
                    (name, prompt, _now()),
                )
                template_id = cur.lastrowid
            else:
                cur = self.conn.execute(
                    "UPDATE prompt_templates SET name = ?, prompt = ? WHERE id = ? AND is_preset = 0",
                    (name, prompt, template_id),
                )
                if cur.rowcount == 0:
                    return None
        row = self.conn.execute(
            "SELECT * FROM prompt_templates WHERE id = ?", (template_id,)
        ).fetchone()
        return PromptTemplate.model_validate(dict(row))

    def delete_template(self, template_id: int) -> bool:
        with self.conn:
            cur = self.conn.execute(
                "DELETE FROM prompt_templates WHERE id = ? AND is_preset = 0", (template_id,)
            )
        return cur.rowcount > 0

    # ---------------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------------

    def _select_photos(self, clause: str, params: tuple) -> list[Photo]:
        rows = self.conn.execute(f"SELECT * FROM photos {clause}", params).fetchall()
        return [Photo.model_validate(dict(r)) for r in rows]

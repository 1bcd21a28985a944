from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field


class Photo(BaseModel):
    """A persisted photo row.

    `original_path` and `thumbnail_path` are absolute. The thumbnail always
    exists on disk once the row is written: a gray placeholder stands in when
    the real preview could not be rendered.

    `score` is null until the scoring pass writes it; `similarity_group_id` is
    null unless the grouping pass put the photo in a group of two or more.
    """

    id: int
    project_id: int
    original_filename: str
    original_path: Path
    thumbnail_path: Path
    file_hash: str
    file_size: int | None = None
    score: float | None = Field(default=None, ge=0.0, le=10.0)
    ai_comment: str | None = None
    selected: bool = False
    similarity_group_id: int | None = None
    created_at: datetime
    updated_at: datetime


class IngestResult(BaseModel):
    """Outcome of ingesting one file. `photo` is the existing row for duplicates."""

    duplicate: bool
    photo: Photo


class UploadSummary(BaseModel):
    uploaded: int = 0
    duplicates: int = 0
    failed: int = 0
    photos: list[Photo] = Field(default_factory=list)


class ExportResult(BaseModel):
    count: int = Field(ge=0)
    skipped: int = Field(ge=0)
    export_path: Path

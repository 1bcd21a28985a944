"""Ingestion: hash → dedup check → copy → thumbnail → persist, one file at a time.

Writes:  <storage_dir>/projects/project_<id>/originals/<filename>
         <storage_dir>/projects/project_<id>/thumbnails/<stem>_thumb.jpg
         one `photos` row per new file

Re-uploading identical bytes into the same project, under any filename, is a
no-op that returns the existing photo.
"""
import logging
import os
from collections.abc import Callable, Sequence
from pathlib import Path

from models.events import UploadProgress
from models.photo import IngestResult, UploadSummary
from models.project import Project
from settings import Settings
from store.photo_store import PhotoStore
from utils.hashing import content_fingerprint
from utils.thumbnails import placeholder_thumbnail, produce_thumbnail

logger = logging.getLogger(__name__)

Thumbnailer = Callable[[Path, int, int], bytes]
UploadProgressCallback = Callable[[UploadProgress], None]


def ingest(
    store: PhotoStore,
    settings: Settings,
    project: Project,
    file_path: Path,
    thumbnailer: Thumbnailer = produce_thumbnail,
) -> IngestResult:
    """Ingest one file into `project`.

    Raises OSError if the source cannot be read or the copy cannot be written.
    Any failure after the copy removes the copied files before propagating.
    A failing thumbnailer never fails ingestion; a gray placeholder is used.
    """
    file_path = Path(file_path)
    data = file_path.read_bytes()
    file_hash = content_fingerprint(data)

    existing = store.find_by_fingerprint(project.id, file_hash)
    if existing is not None:
        logger.debug(
            "Duplicate of photo %d: %s (%s)", existing.id, file_path.name, file_hash[:12]
        )
        return IngestResult(duplicate=True, photo=existing)

    originals_dir = settings.originals_dir(project.id)
    thumbnails_dir = settings.thumbnails_dir(project.id)
    ensure_project_dirs(settings, project)

    original_path = _unique_destination(originals_dir, file_path.name)
    original_path.write_bytes(data)

    # Stems can repeat across extensions (a.jpg, a.png), so thumbnails get their own suffixing
    thumbnail_path = _unique_destination(thumbnails_dir, f"{original_path.stem}_thumb.jpg")
    try:
        thumbnail_path.write_bytes(_render_thumbnail(file_path, settings, thumbnailer))
        photo = store.insert_photo(
            project_id=project.id,
            original_filename=original_path.name,
            original_path=original_path.resolve(),
            thumbnail_path=thumbnail_path.resolve(),
            file_hash=file_hash,
            file_size=len(data),
        )
    except Exception:
        # No row, no files
        original_path.unlink(missing_ok=True)
        thumbnail_path.unlink(missing_ok=True)
        raise
    logger.info("  [%d] %s", photo.id, photo.original_filename)
    return IngestResult(duplicate=False, photo=photo)


def ingest_files(
    store: PhotoStore,
    settings: Settings,
    project_id: int,
    file_paths: Sequence[Path],
    on_progress: UploadProgressCallback | None = None,
    thumbnailer: Thumbnailer = produce_thumbnail,
) -> UploadSummary:
    """Ingest `file_paths` strictly in order, reporting progress once per file.

    Raises ProjectNotFoundError before touching any file if the project is
    missing. Any error while ingesting one file is logged and counted as
    failed; the remaining files are still processed.
    """
    project = store.require_project(project_id)
    summary = UploadSummary()
    total = len(file_paths)

    for index, raw_path in enumerate(file_paths, start=1):
        path = Path(raw_path)
        name = _display_name(path)
        try:
            result = ingest(store, settings, project, path, thumbnailer=thumbnailer)
        except Exception as exc:
            logger.warning("  %s — SKIPPED: %s", name, exc)
            summary.failed += 1
        else:
            if result.duplicate:
                summary.duplicates += 1
            else:
                summary.uploaded += 1
                summary.photos.append(result.photo)

        if on_progress is not None:
            on_progress(UploadProgress(current=index, total=total, filename=name))

    logger.info(
        "Upload complete: %d new, %d duplicates, %d failed",
        summary.uploaded, summary.duplicates, summary.failed,
    )
    return summary


def ensure_project_dirs(settings: Settings, project: Project) -> None:
    for directory in (
        settings.originals_dir(project.id),
        settings.thumbnails_dir(project.id),
        settings.exports_dir(project.id),
    ):
        directory.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _unique_destination(directory: Path, filename: str) -> Path:
    """Return `directory/filename`, or `stem_N.ext` with the first free N ≥ 1."""
    candidate = directory / filename
    stem, suffix = Path(filename).stem, Path(filename).suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    return candidate


def _display_name(path: Path) -> str:
    """File name with undecodable bytes replaced, safe to log and report."""
    return os.fsencode(path.name).decode("utf-8", "replace")


def _render_thumbnail(source: Path, settings: Settings, thumbnailer: Thumbnailer) -> bytes:
    try:
        return thumbnailer(source, settings.thumbnail_size, settings.thumbnail_quality)
    except Exception as exc:
        logger.warning("Could not render preview for %s (%s); using placeholder.", _display_name(source), exc)
        return placeholder_thumbnail(settings.thumbnail_size, settings.thumbnail_quality)

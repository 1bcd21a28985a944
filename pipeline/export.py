"""Export: re-encode the selected photos of a project as numbered JPEGs.

Writes: <storage_dir>/projects/project_<id>/exports/<name>_NN.jpg

Previous exports (*.jpg) are removed first so the folder always mirrors the
current selection, best score first.
"""
import logging

from PIL import Image, ImageOps

from models.photo import ExportResult
from settings import Settings, sanitize_name
from store.photo_store import PhotoStore

logger = logging.getLogger(__name__)

# RAW and HEIC originals cannot be re-encoded without extra codecs
_UNCONVERTIBLE_EXTENSIONS = frozenset({
    ".cr2", ".cr3", ".nef", ".arw", ".orf", ".rw2", ".dng", ".raf", ".raw", ".srw", ".pef",
    ".heic", ".heif",
})


def run(store: PhotoStore, settings: Settings, project_id: int) -> ExportResult:
    """Export selected photos. Raises ProjectNotFoundError for unknown projects."""
    project = store.require_project(project_id)
    photos = store.list_selected(project.id)

    exports_dir = settings.exports_dir(project.id)
    exports_dir.mkdir(parents=True, exist_ok=True)
    for stale in exports_dir.glob("*.jpg"):
        stale.unlink()

    prefix = sanitize_name(project.name)
    exported = 0
    skipped = 0
    for photo in photos:
        if photo.original_path.suffix.lower() in _UNCONVERTIBLE_EXTENSIONS:
            logger.info("  Skipping %s — RAW/HEIC cannot be exported as JPEG", photo.original_filename)
            skipped += 1
            continue

        out_path = exports_dir / f"{prefix}_{exported + 1:02d}.jpg"
        try:
            with Image.open(photo.original_path) as img:
                img = ImageOps.exif_transpose(img).convert("RGB")
                img.save(out_path, format="JPEG", quality=settings.export_quality)
        except (OSError, ValueError) as exc:
            logger.warning("  Could not export %s: %s", photo.original_filename, exc)
            skipped += 1
            continue
        exported += 1

    logger.info("Export complete → %s (%d exported, %d skipped)", exports_dir, exported, skipped)
    return ExportResult(count=exported, skipped=skipped, export_path=exports_dir)

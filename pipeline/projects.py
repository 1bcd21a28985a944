"""Project and photo lifecycle: create, delete, and best-effort file cleanup."""
import logging
import shutil

from models.photo import Photo
from models.project import Project
from pipeline.ingest import ensure_project_dirs
from settings import Settings
from store.photo_store import PhotoNotFoundError, PhotoStore

logger = logging.getLogger(__name__)


def create_project(
    store: PhotoStore,
    settings: Settings,
    name: str,
    prompt: str | None = None,
) -> Project:
    project = store.create_project(name, prompt)
    ensure_project_dirs(settings, project)
    logger.info("Created project %d: %s", project.id, project.name)
    return project


def delete_project(store: PhotoStore, settings: Settings, project_id: int) -> bool:
    """Delete the project row (photos cascade), then its directory if present.

    Returns False if no such project exists.
    """
    project = store.delete_project(project_id)
    if project is None:
        return False

    project_dir = settings.project_dir(project.id)
    try:
        if project_dir.exists():
            shutil.rmtree(project_dir)
    except OSError as exc:
        logger.warning("Could not remove project files at %s: %s", project_dir, exc)
    logger.info("Deleted project %d: %s", project.id, project.name)
    return True


def delete_photo(store: PhotoStore, photo_id: int) -> Photo:
    """Delete a photo row and best-effort remove its original and thumbnail.

    Raises PhotoNotFoundError if the photo does not exist.
    """
    photo = store.delete_photo(photo_id)
    if photo is None:
        raise PhotoNotFoundError(photo_id)

    for path in (photo.original_path, photo.thumbnail_path):
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove %s: %s", path, exc)
    return photo

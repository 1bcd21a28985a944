"""Grouping pass: cluster burst shots and near-duplicates within a project.

Every run starts from a clean slate (all group ids of the project cleared),
then sends photos in batches of twenty and turns each parsed proposal into a
persisted group. Group ids come from a counter local to the run and start at 1.

Batches are independent: the service only ever sees photos of one batch, so
similar photos that land in different batches are never merged.

Reads:  photos of the project (ordered by id), thumbnails on disk
Writes: photos.similarity_group_id
"""
import itertools
import logging
from collections.abc import Callable, Iterator, Sequence

from openai import OpenAI

from models.events import AnalysisProgress
from models.photo import Photo
from models.vision import GroupProposal
from pipeline.batching import batch_count, batches
from settings import Settings
from store.photo_store import PhotoNotFoundError, PhotoStore
from utils.openai_utils import build_batch_content, request_completion
from utils.response_parser import parse_groups
from utils.retry import call_with_retry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AnalysisProgress], None]

_MIN_GROUP_SIZE = 2

_GROUPING_PROMPT = """\
Analyze these photos and identify which ones are VISUALLY SIMILAR.

Photos are "similar" if they show:
- The same scene from slightly different angles
- Burst shots (rapid sequence of the same moment)
- Near-duplicates with minor differences
- The same subject/person in very similar poses

Photos are NOT similar just because they have the same general theme (e.g., all beach photos).
Only group photos that are clearly variations of the same shot.

For each group of similar photos, list them together.
Photos that are unique should NOT be included in any group.

Respond ONLY with valid JSON (no markdown code blocks):
{"groups": [{"photo_ids": [1, 5, 12], "reason": "Same sunset from slightly different angles"}, {"photo_ids": [7, 8], "reason": "Burst shots of jumping"}]}

If no photos are similar, respond with: {"groups": []}"""


def run(
    store: PhotoStore,
    settings: Settings,
    project_id: int,
    on_progress: ProgressCallback | None = None,
) -> int:
    """Regroup all photos of a project. Returns the number of groups persisted.

    Raises ProjectNotFoundError if the project does not exist. Failed batches
    are logged and skipped. The returned count is read back from the store.
    """
    project = store.require_project(project_id)
    cleared = store.clear_groups(project.id)
    if cleared:
        logger.debug("Cleared group ids of %d photos.", cleared)

    photos = store.list_photos_by_id(project.id)
    total = len(photos)
    if total < _MIN_GROUP_SIZE:
        logger.info("Fewer than %d photos in project %d; nothing to group.", _MIN_GROUP_SIZE, project.id)
        return 0

    client = OpenAI(api_key=settings.openai_api_key, max_retries=0)
    size = settings.grouping_batch_size
    n_batches = batch_count(total, size)
    next_group_id = itertools.count(1)
    grouped: set[int] = set()
    processed = 0

    logger.info("Grouping %d photos in %d batches", total, n_batches)
    for number, batch in enumerate(batches(photos, size), start=1):
        processed += len(batch)
        if len(batch) < _MIN_GROUP_SIZE:
            _emit(on_progress, processed, total, f"Skipped batch {number} (single photo)")
            continue
        try:
            created = _group_batch(batch, client, settings, store, next_group_id, grouped)
        except Exception as exc:
            logger.warning("  Batch %d/%d — SKIPPED: %s", number, n_batches, exc)
            _emit(on_progress, processed, total, f"Error in batch {number}, continuing... ({exc})")
            continue
        logger.info("  Batch %d/%d — %d groups", number, n_batches, created)
        _emit(on_progress, processed, total, f"Grouped batch {number} of {n_batches}")

    group_count = store.count_groups(project.id)
    _emit(on_progress, processed, total, "Grouping complete!")
    logger.info("Grouping complete: %d groups", group_count)
    return group_count


def clear(store: PhotoStore, project_id: int) -> int:
    """Explicitly reset all group ids of a project. Returns rows changed."""
    project = store.require_project(project_id)
    return store.clear_groups(project.id)


def group_members(store: PhotoStore, photo_id: int) -> list[Photo]:
    """The photo's group, best first. Empty when the photo is not grouped.

    Raises PhotoNotFoundError if the photo does not exist.
    """
    photo = store.get_photo(photo_id)
    if photo is None:
        raise PhotoNotFoundError(photo_id)
    if photo.similarity_group_id is None:
        return []
    return store.list_group(photo.project_id, photo.similarity_group_id)


def best_of_group(store: PhotoStore, project_id: int, group_id: int) -> Photo | None:
    """Highest-scored member of a group; unscored photos rank last, ties go to lowest id."""
    members = store.list_group(project_id, group_id)
    return members[0] if members else None


# ---------------------------------------------------------------------------
# Per-batch reconciliation
# ---------------------------------------------------------------------------

def _group_batch(
    batch: Sequence[Photo],
    client: OpenAI,
    settings: Settings,
    store: PhotoStore,
    next_group_id: Iterator[int],
    grouped: set[int],
) -> int:
    content, included = build_batch_content(batch, _GROUPING_PROMPT)
    if len(included) < _MIN_GROUP_SIZE:
        logger.warning("Fewer than %d readable thumbnails in batch; nothing sent.", _MIN_GROUP_SIZE)
        return 0

    text = call_with_retry(
        request_completion, client, settings, content,
        max_retries=settings.rate_limit_retries,
        base_delay=settings.rate_limit_base_delay,
    )
    result = parse_groups(text)

    batch_ids = {p.id for p in included}
    created = 0
    for proposal in result.groups:
        members = _resolve_members(proposal, batch_ids, grouped)
        if len(members) < _MIN_GROUP_SIZE:
            logger.debug("Discarding proposal %s: fewer than %d usable photos.",
                         proposal.photo_ids, _MIN_GROUP_SIZE)
            continue
        group_id = next(next_group_id)
        store.assign_group(members, group_id)
        grouped.update(members)
        created += 1
        logger.info("    Group %d: %s — %s", group_id, members, proposal.reason)
    return created


def _resolve_members(proposal: GroupProposal, batch_ids: set[int], grouped: set[int]) -> list[int]:
    """Ids of the proposal that belong to this batch and are not yet grouped, in order."""
    members: list[int] = []
    for photo_id in proposal.photo_ids:
        if photo_id in batch_ids and photo_id not in grouped and photo_id not in members:
            members.append(photo_id)
    return members


def _emit(on_progress: ProgressCallback | None, current: int, total: int, message: str) -> None:
    if on_progress is not None:
        on_progress(AnalysisProgress(current=current, total=total, message=message))

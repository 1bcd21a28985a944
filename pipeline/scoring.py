"""Scoring pass: rate every unscored photo of a project via the vision service.

Photos with a null score are sent in batches of ten (thumbnail plus a
`[Photo ID: n]` marker each, then the rubric). Parsed evaluations are written
back only to photos that were part of the batch that produced them.

Reads:  photos WHERE score IS NULL (ordered by id), thumbnails on disk
Writes: photos.score, photos.ai_comment, photos.updated_at
"""
import logging
import math
from collections.abc import Callable, Sequence

from openai import OpenAI

from models.events import AnalysisProgress
from models.photo import Photo
from models.project import Project
from pipeline.batching import batch_count, batches
from settings import Settings
from store.photo_store import PhotoStore
from utils.openai_utils import build_batch_content, request_completion
from utils.response_parser import parse_evaluations
from utils.retry import call_with_retry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AnalysisProgress], None]

_MIN_SCORE = 0.0
_MAX_SCORE = 10.0

_RUBRIC = """\
You are a professional photo evaluator. Analyze each photo above and provide:
1. A score from 0.0 to 10.0 (one decimal place)
2. A brief comment (1-2 sentences) explaining the score

Consider: composition, lighting, focus, subject interest, emotional impact, and technical quality."""

_RESPONSE_FORMAT = """\
Respond ONLY with valid JSON (no markdown code blocks):
{"evaluations": [{"photo_id": 123, "score": 8.5, "comment": "Brief explanation."}]}"""


def run(
    store: PhotoStore,
    settings: Settings,
    project_id: int,
    on_progress: ProgressCallback | None = None,
) -> int:
    """Score all unscored photos of a project. Returns how many got a score.

    Raises ProjectNotFoundError if the project does not exist. A batch that
    fails (after rate-limit retries) is logged and skipped; the run always
    continues with the next batch and ends with one completion event.
    """
    project = store.require_project(project_id)
    photos = store.list_unscored(project.id)
    total = len(photos)
    if total == 0:
        logger.info("No unscored photos in project %d.", project.id)
        return 0

    client = OpenAI(api_key=settings.openai_api_key, max_retries=0)
    instruction = build_prompt(project)
    size = settings.scoring_batch_size
    n_batches = batch_count(total, size)
    processed = 0
    scored = 0

    logger.info("Scoring %d photos in %d batches", total, n_batches)
    for number, batch in enumerate(batches(photos, size), start=1):
        try:
            written = _score_batch(batch, client, settings, store, instruction)
        except Exception as exc:
            processed += len(batch)
            logger.warning("  Batch %d/%d — SKIPPED: %s", number, n_batches, exc)
            _emit(on_progress, processed, total, f"Error in batch {number}, continuing... ({exc})")
            continue

        processed += len(batch)
        scored += written
        logger.info("  Batch %d/%d — %d of %d photos scored", number, n_batches, written, len(batch))
        _emit(on_progress, processed, total, f"Analyzed batch {number} of {n_batches}")

    _emit(on_progress, processed, total, "Analysis complete!")
    logger.info("Scoring complete: %d of %d photos scored", scored, total)
    return scored


def build_prompt(project: Project) -> str:
    """Rubric, then the project's own criteria if any, then the answer format."""
    parts = [_RUBRIC]
    if project.prompt and project.prompt.strip():
        parts.append(f"Additional evaluation criteria from the user:\n{project.prompt.strip()}")
    parts.append(_RESPONSE_FORMAT)
    return "\n\n".join(parts)


def normalize_score(raw: float) -> float:
    """Clamp to [0, 10] and round half up to one decimal."""
    clamped = min(max(raw, _MIN_SCORE), _MAX_SCORE)
    return math.floor(clamped * 10 + 0.5) / 10


# ---------------------------------------------------------------------------
# Per-batch reconciliation
# ---------------------------------------------------------------------------

def _score_batch(
    batch: Sequence[Photo],
    client: OpenAI,
    settings: Settings,
    store: PhotoStore,
    instruction: str,
) -> int:
    content, included = build_batch_content(batch, instruction)
    if not included:
        logger.warning("No readable thumbnails in batch; nothing sent.")
        return 0

    text = call_with_retry(
        request_completion, client, settings, content,
        max_retries=settings.rate_limit_retries,
        base_delay=settings.rate_limit_base_delay,
    )
    result = parse_evaluations(text)
    if not result.parsed:
        return 0

    batch_photos = {p.id: p for p in included}
    written: set[int] = set()
    for evaluation in result.evaluations:
        if evaluation.photo_id not in batch_photos:
            logger.debug("Ignoring evaluation for photo %d outside this batch.", evaluation.photo_id)
            continue
        store.update_score(evaluation.photo_id, normalize_score(evaluation.score), evaluation.comment)
        written.add(evaluation.photo_id)
    return len(written)


def _emit(on_progress: ProgressCallback | None, current: int, total: int, message: str) -> None:
    if on_progress is not None:
        on_progress(AnalysisProgress(current=current, total=total, message=message))

"""Tolerant extraction of JSON payloads from free-form vision-service text.

The model is told to answer with bare JSON, but answers sometimes arrive in a
fenced code block or wrapped in prose. The interior of the first fenced block
wins; otherwise the whole trimmed text is parsed.

Both public parsers are pure and never raise. Anything unusable yields an
empty batch with `parsed=False`; single malformed items are dropped and the
rest of the payload is kept.
"""
import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from models.vision import Evaluation, EvaluationBatch, GroupingBatch, GroupProposal

logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

# Log at most this much of a bad response
_LOG_EXCERPT = 200


def extract_json_text(text: str) -> str:
    """Return the interior of the first fenced block, else the trimmed text."""
    match = _FENCED_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_evaluations(text: str | None) -> EvaluationBatch:
    """Parse a scoring response: {"evaluations": [{photo_id, score, comment}]}."""
    items = _payload_list(text, "evaluations")
    if items is None:
        return EvaluationBatch.empty()
    return EvaluationBatch(evaluations=_validate_items(items, Evaluation))


def parse_groups(text: str | None) -> GroupingBatch:
    """Parse a grouping response: {"groups": [{photo_ids, reason}]}."""
    items = _payload_list(text, "groups")
    if items is None:
        return GroupingBatch.empty()
    return GroupingBatch(groups=_validate_items(items, GroupProposal))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _payload_list(text: str | None, key: str) -> list[Any] | None:
    """Decode the JSON object and return its `key` list, or None if unusable."""
    if not text or not text.strip():
        logger.warning("Empty response from vision service.")
        return None

    json_text = extract_json_text(text)
    try:
        data = json.loads(json_text)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError, oversized integers, pathological nesting
        logger.warning(
            "Could not parse vision response as JSON (%s): %r",
            exc, text[:_LOG_EXCERPT],
        )
        return None

    if not isinstance(data, dict):
        logger.warning("Vision response is not a JSON object: %r", text[:_LOG_EXCERPT])
        return None

    items = data.get(key)
    if not isinstance(items, list):
        logger.warning("Vision response has no %r list: %r", key, text[:_LOG_EXCERPT])
        return None
    return items


def _validate_items(items: list[Any], model: type[BaseModel]) -> list:
    valid = []
    for raw in items:
        try:
            valid.append(model.model_validate(raw))
        except ValidationError as exc:
            logger.debug("Dropping malformed %s item %r: %s", model.__name__, raw, exc)
    return valid

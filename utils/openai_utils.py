"""Shared utilities for OpenAI vision requests.

A batch request is one multimodal user message: every photo's thumbnail as a
base64 data URL followed by a `[Photo ID: n]` text marker, then one trailing
instruction block. The answer is returned as raw text for the tolerant parser
in `utils.response_parser`.
"""
import base64
import logging
from collections.abc import Sequence

from openai import AuthenticationError, OpenAI, PermissionDeniedError

from models.photo import Photo
from settings import Settings

logger = logging.getLogger(__name__)


def build_batch_content(photos: Sequence[Photo], instruction: str) -> tuple[list[dict], list[Photo]]:
    """Return (message content parts, photos actually included).

    Photos whose thumbnail cannot be read are left out of the request and
    therefore out of the returned list.
    """
    content: list[dict] = []
    included: list[Photo] = []
    for photo in photos:
        try:
            image_bytes = photo.thumbnail_path.read_bytes()
        except OSError as exc:
            logger.warning("Could not read thumbnail for photo %d: %s", photo.id, exc)
            continue
        b64 = base64.standard_b64encode(image_bytes).decode()
        content.append({
            "type": "image_url",
            "image_url": {"url": f"data:image/jpeg;base64,{b64}"},
        })
        content.append({"type": "text", "text": f"[Photo ID: {photo.id}]"})
        included.append(photo)

    if included:
        content.append({"type": "text", "text": instruction})
    return content, included


def request_completion(client: OpenAI, settings: Settings, content: list[dict]) -> str:
    """Send one batch and return the model's text (empty string if none)."""
    response = client.chat.completions.create(
        model=settings.vision_model,
        max_completion_tokens=settings.max_completion_tokens,
        messages=[{"role": "user", "content": content}],
    )
    return response.choices[0].message.content or ""


def validate_api_key(api_key: str, model: str) -> bool:
    """Make a minimal call to check that `api_key` is accepted.

    Returns False when the service rejects the key. Network errors propagate
    so callers can tell "invalid key" apart from "service unreachable".
    """
    client = OpenAI(api_key=api_key, max_retries=0)
    try:
        client.chat.completions.create(
            model=model,
            max_completion_tokens=16,
            messages=[{"role": "user", "content": "Hi"}],
        )
    except (AuthenticationError, PermissionDeniedError) as exc:
        logger.warning("API key validation failed: %s", exc)
        return False
    return True

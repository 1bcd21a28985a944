from pathlib import Path
from unittest.mock import MagicMock

import pytest
from PIL import Image

from settings import Settings
from store.photo_store import PhotoStore


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a fresh storage directory. No real API key needed for unit tests."""
    return Settings(
        openai_api_key="test-key-not-used-in-unit-tests",
        storage_dir=tmp_path / "storage",
    )


@pytest.fixture
def store(settings: Settings):
    with PhotoStore(settings.db_path) as photo_store:
        yield photo_store


@pytest.fixture
def project(store: PhotoStore):
    return store.create_project("Test Project")


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Directory for files the tests "upload"."""
    path = tmp_path / "uploads"
    path.mkdir()
    return path


def make_image(path: Path, size: tuple[int, int] = (800, 600), color=(200, 50, 50)) -> Path:
    """Write a solid-color image; different colors give different bytes."""
    Image.new("RGB", size, color).save(path)
    return path


def make_completion(text: str | None) -> MagicMock:
    """Build a mock chat completion whose first choice carries `text`."""
    mock_choice = MagicMock()
    mock_choice.message.content = text
    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    return mock_response


def rate_limit_error():
    from openai import RateLimitError

    return RateLimitError("rate limit", response=MagicMock(status_code=429), body={})

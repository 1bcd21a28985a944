import re
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# The vision request contract allows at most this many images per call
_MAX_VISION_BATCH = 20

_UNSAFE_NAME_CHARS = re.compile(r"[^0-9A-Za-z.\-\s]")


class Settings(BaseSettings):
    openai_api_key: str

    storage_dir: Path = Path("./data")
    vision_model: str = "gpt-4o"
    scoring_batch_size: int = 10
    grouping_batch_size: int = 20
    thumbnail_size: int = 400
    thumbnail_quality: int = 85
    export_quality: int = 90
    max_completion_tokens: int = 4096
    rate_limit_retries: int = 3
    rate_limit_base_delay: float = 5.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PHOTOSEL_",
        env_file_encoding="utf-8",
    )

    @field_validator("scoring_batch_size")
    @classmethod
    def scoring_batch_must_fit_request(cls, v: int) -> int:
        if not 1 <= v <= _MAX_VISION_BATCH:
            raise ValueError(f"scoring_batch_size must be between 1 and {_MAX_VISION_BATCH}")
        return v

    @field_validator("grouping_batch_size")
    @classmethod
    def grouping_batch_must_fit_request(cls, v: int) -> int:
        if not 2 <= v <= _MAX_VISION_BATCH:
            raise ValueError(f"grouping_batch_size must be between 2 and {_MAX_VISION_BATCH}")
        return v

    @field_validator("thumbnail_quality", "export_quality")
    @classmethod
    def quality_must_be_jpeg_range(cls, v: int) -> int:
        if not 1 <= v <= 95:
            raise ValueError("JPEG quality must be between 1 and 95")
        return v

    @field_validator("thumbnail_size")
    @classmethod
    def thumbnail_size_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("thumbnail_size must be at least 1")
        return v

    @field_validator("rate_limit_retries")
    @classmethod
    def retries_must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("rate_limit_retries must not be negative")
        return v

    @property
    def db_path(self) -> Path:
        return self.storage_dir / "photo-selector.db"

    @property
    def projects_dir(self) -> Path:
        return self.storage_dir / "projects"

    def project_dir(self, project_id: int) -> Path:
        """Directory holding one project's files, keyed by project id."""
        return self.projects_dir / f"project_{project_id}"

    def originals_dir(self, project_id: int) -> Path:
        return self.project_dir(project_id) / "originals"

    def thumbnails_dir(self, project_id: int) -> Path:
        return self.project_dir(project_id) / "thumbnails"

    def exports_dir(self, project_id: int) -> Path:
        return self.project_dir(project_id) / "exports"


def sanitize_name(name: str) -> str:
    """Replace characters that are unsafe in directory and file names."""
    cleaned = _UNSAFE_NAME_CHARS.sub("_", name).strip()
    return cleaned or "project"

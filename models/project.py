from datetime import datetime

from pydantic import BaseModel, Field


class Project(BaseModel):
    """A named collection of photos with an optional custom evaluation prompt."""

    id: int
    name: str
    prompt: str | None = None
    created_at: datetime
    updated_at: datetime


class ProjectWithStats(Project):
    photo_count: int = Field(default=0, ge=0)
    selected_count: int = Field(default=0, ge=0)
    scored_count: int = Field(default=0, ge=0)


class PromptTemplate(BaseModel):
    """Reusable evaluation prompt. Presets are seeded by migration and read-only."""

    id: int
    name: str
    prompt: str
    is_preset: bool = False
    created_at: datetime

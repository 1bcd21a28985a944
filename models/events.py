from pydantic import BaseModel, Field


class UploadProgress(BaseModel):
    """Emitted once per uploaded file, in submission order, whatever the outcome."""

    current: int = Field(ge=0)  # 1-based index of the file just processed
    total: int = Field(ge=0)
    filename: str


class AnalysisProgress(BaseModel):
    """Emitted after every batch attempt of a scoring or grouping run.

    `current` counts photos whose batch has been attempted, so it reaches
    `total` even when some batches failed.
    """

    current: int = Field(ge=0)
    total: int = Field(ge=0)
    message: str  # Human-readable status line

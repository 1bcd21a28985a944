"""Structured payloads extracted from vision-service responses.

The service is asked for bare JSON but its text is untrusted, so every batch
model carries a `parsed` tag: False means nothing usable came back, which the
reconcilers treat as "zero results for this batch" rather than as an error.
"""
from pydantic import BaseModel, ConfigDict, Field


class Evaluation(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    photo_id: int
    score: float
    comment: str | None = None


class GroupProposal(BaseModel):
    """Candidate cluster of visually similar photos from one grouping batch."""

    photo_ids: list[int] = Field(default_factory=list)
    reason: str = ""


class EvaluationBatch(BaseModel):
    evaluations: list[Evaluation] = Field(default_factory=list)
    parsed: bool = True

    @classmethod
    def empty(cls) -> "EvaluationBatch":
        return cls(parsed=False)


class GroupingBatch(BaseModel):
    groups: list[GroupProposal] = Field(default_factory=list)
    parsed: bool = True

    @classmethod
    def empty(cls) -> "GroupingBatch":
        return cls(parsed=False)

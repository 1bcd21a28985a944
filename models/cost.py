from pydantic import BaseModel, Field


class CostEstimate(BaseModel):
    photo_count: int = Field(ge=0)
    batch_count: int = Field(ge=0)
    estimated_input_tokens: int = Field(ge=0)
    estimated_output_tokens: int = Field(ge=0)
    estimated_cost: float = Field(ge=0.0)
    formatted_cost: str  # e.g. "$0.04"

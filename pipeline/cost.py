"""Cost estimate shown before a scoring run. Pure arithmetic, no API calls."""
from models.cost import CostEstimate
from pipeline.batching import SCORING_BATCH_SIZE, batch_count
from store.photo_store import PhotoStore

# Approximate pricing per million tokens
INPUT_COST_PER_MILLION = 3.0
OUTPUT_COST_PER_MILLION = 15.0

# Approximate token counts for one ~400px thumbnail request
TOKENS_PER_THUMBNAIL = 1500
TOKENS_PER_PHOTO_PROMPT = 50    # "[Photo ID: n]" marker
TOKENS_PER_BATCH_PROMPT = 250   # rubric and answer format
OUTPUT_TOKENS_PER_PHOTO = 100   # score + comment


def estimate(photo_count: int, batch_size: int = SCORING_BATCH_SIZE) -> CostEstimate:
    if photo_count <= 0:
        return CostEstimate(
            photo_count=0,
            batch_count=0,
            estimated_input_tokens=0,
            estimated_output_tokens=0,
            estimated_cost=0.0,
            formatted_cost="$0.00",
        )

    batches = batch_count(photo_count, batch_size)
    input_tokens = (
        photo_count * (TOKENS_PER_THUMBNAIL + TOKENS_PER_PHOTO_PROMPT)
        + batches * TOKENS_PER_BATCH_PROMPT
    )
    output_tokens = photo_count * OUTPUT_TOKENS_PER_PHOTO
    cost = (
        input_tokens / 1_000_000 * INPUT_COST_PER_MILLION
        + output_tokens / 1_000_000 * OUTPUT_COST_PER_MILLION
    )
    return CostEstimate(
        photo_count=photo_count,
        batch_count=batches,
        estimated_input_tokens=input_tokens,
        estimated_output_tokens=output_tokens,
        estimated_cost=cost,
        formatted_cost=f"${cost:.2f}",
    )


def estimate_for_project(store: PhotoStore, project_id: int, batch_size: int = SCORING_BATCH_SIZE) -> CostEstimate:
    """Estimate for the photos a scoring run on this project would send."""
    project = store.require_project(project_id)
    return estimate(store.count_unscored(project.id), batch_size)

from fastapi import APIRouter, Depends

from campus_connect.core.config import get_settings
from campus_connect.schemas.batch import BatchItemResult, BatchOut, BatchRequest, BatchSummary, TypeTally
from campus_connect.services.batch import run_batch
from campus_connect.services.repository import OpportunityRepository, get_repository

router = APIRouter()


@router.post("/batch", response_model=BatchOut)
async def create_batch(
    payload: BatchRequest,
    repository: OpportunityRepository = Depends(get_repository),
) -> BatchOut:
    settings = get_settings()
    outcome = await run_batch(
        repository,
        source=payload.source,
        opportunities=payload.opportunities,
        max_items=settings.batch_max_items,
    )

    results = None
    if len(outcome.results) <= settings.batch_results_detail_limit:
        results = [BatchItemResult(**result) for result in outcome.results]

    return BatchOut(
        summary=BatchSummary(**outcome.summary),
        breakdown={
            category: {opportunity_type: TypeTally(**tally) for opportunity_type, tally in types.items()}
            for category, types in outcome.breakdown.items()
        },
        results=results,
        message=outcome.message,
    )

from typing import Any

from fastapi import APIRouter, Body, Depends, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from campus_connect.api.params import require_uuid
from campus_connect.schemas.opportunities import (
    TYPE_FIELDS,
    EventOpportunityOut,
    OpportunityOut,
    OpportunityPatchRequest,
    StatsDataOut,
    StatsOut,
    TypeStatsOut,
    WorkOpportunityOut,
)
from campus_connect.services.repository import OpportunityRepository, get_repository

router = APIRouter()


# Declared before "/{opportunity_id}" so "stats" is not taken for an id.
@router.get("/stats", response_model=StatsOut)
async def opportunity_stats(repository: OpportunityRepository = Depends(get_repository)) -> StatsOut:
    stats = await repository.get_stats()
    return StatsOut(
        data=StatsDataOut(
            work=[TypeStatsOut(**row) for row in stats.get("work", [])],
            event=[TypeStatsOut(**row) for row in stats.get("event", [])],
        )
    )


@router.get("/{opportunity_id}", response_model=OpportunityOut, response_model_exclude_none=True)
async def get_opportunity(
    opportunity_id: str,
    repository: OpportunityRepository = Depends(get_repository),
) -> OpportunityOut:
    row = await repository.get_opportunity(require_uuid(opportunity_id))
    return OpportunityOut(data=_to_out(row))


@router.patch("/{opportunity_id}", response_model=OpportunityOut, response_model_exclude_none=True)
async def patch_opportunity(
    opportunity_id: str,
    payload: dict[str, Any] = Body(...),
    repository: OpportunityRepository = Depends(get_repository),
) -> OpportunityOut:
    require_uuid(opportunity_id)
    try:
        patch = OpportunityPatchRequest.model_validate(
            {key: value for key, value in payload.items() if key not in TYPE_FIELDS}
        )
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    updates = patch.model_dump(exclude_unset=True)
    # Type keys are forwarded so the repository refuses them.
    updates.update({key: payload[key] for key in TYPE_FIELDS if key in payload})

    row = await repository.update_opportunity(opportunity_id, updates)
    return OpportunityOut(data=_to_out(row), message="Opportunity updated successfully")


@router.delete("/{opportunity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_opportunity(
    opportunity_id: str,
    repository: OpportunityRepository = Depends(get_repository),
) -> Response:
    await repository.delete_opportunity(require_uuid(opportunity_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _to_out(row: dict[str, Any]) -> WorkOpportunityOut | EventOpportunityOut:
    if row.get("category") == "work":
        return WorkOpportunityOut(**row)
    return EventOpportunityOut(**row)

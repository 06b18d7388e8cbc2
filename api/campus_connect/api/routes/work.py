from fastapi import APIRouter, Depends, Query, status
from starlette.requests import Request

from campus_connect.api.params import echo_filters, page_request_from, query_bag
from campus_connect.schemas.opportunities import (
    PaginationOut,
    WorkCollectionOut,
    WorkListOut,
    WorkOpportunityCreate,
    WorkOpportunityOut,
    WorkWriteOut,
)
from campus_connect.services.query import page_meta
from campus_connect.services.repository import OpportunityRepository, get_repository

router = APIRouter()

INTERNSHIP_FILTER_ECHO = ("city", "country", "work_style", "skills", "search")
JOB_FILTER_ECHO = ("city", "country", "work_style", "experience", "search")


@router.post("/internships", response_model=WorkWriteOut, status_code=status.HTTP_201_CREATED)
async def create_internship(
    payload: WorkOpportunityCreate,
    repository: OpportunityRepository = Depends(get_repository),
) -> WorkWriteOut:
    return await _create("internship", "Internship", payload, repository)


@router.post("/jobs", response_model=WorkWriteOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: WorkOpportunityCreate,
    repository: OpportunityRepository = Depends(get_repository),
) -> WorkWriteOut:
    return await _create("job", "Job", payload, repository)


@router.get("/internships", response_model=WorkListOut)
async def list_internships(
    request: Request,
    repository: OpportunityRepository = Depends(get_repository),
) -> WorkListOut:
    return await _list("internship", request, repository, INTERNSHIP_FILTER_ECHO)


@router.get("/jobs", response_model=WorkListOut)
async def list_jobs(
    request: Request,
    repository: OpportunityRepository = Depends(get_repository),
) -> WorkListOut:
    return await _list("job", request, repository, JOB_FILTER_ECHO)


@router.get("/internships/featured", response_model=WorkCollectionOut, response_model_exclude_none=True)
async def featured_internships(
    limit: int = Query(default=4, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> WorkCollectionOut:
    rows = await repository.list_featured(opportunity_type="internship", limit=limit)
    return WorkCollectionOut(data=[WorkOpportunityOut(**row) for row in rows], count=len(rows))


@router.get("/jobs/featured", response_model=WorkCollectionOut, response_model_exclude_none=True)
async def featured_jobs(
    limit: int = Query(default=4, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> WorkCollectionOut:
    rows = await repository.list_featured(opportunity_type="job", limit=limit)
    return WorkCollectionOut(data=[WorkOpportunityOut(**row) for row in rows], count=len(rows))


@router.get("/work/organization/{name}", response_model=WorkCollectionOut, response_model_exclude_none=True)
async def work_by_organization(
    name: str,
    limit: int = Query(default=10, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> WorkCollectionOut:
    rows = await repository.find_work_by_organization(name=name, limit=limit)
    return WorkCollectionOut(
        data=[WorkOpportunityOut(**row) for row in rows],
        count=len(rows),
        organization=name,
    )


@router.get("/work/expiring", response_model=WorkCollectionOut, response_model_exclude_none=True)
async def expiring_work(
    days: int = Query(default=7, ge=1, le=365),
    limit: int = Query(default=20, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> WorkCollectionOut:
    rows = await repository.find_expiring_work(days=days, limit=limit)
    return WorkCollectionOut(
        data=[WorkOpportunityOut(**row) for row in rows],
        count=len(rows),
        expiring_in_days=days,
    )


async def _create(
    opportunity_type: str,
    label: str,
    payload: WorkOpportunityCreate,
    repository: OpportunityRepository,
) -> WorkWriteOut:
    row = await repository.create_opportunity(opportunity_type=opportunity_type, payload=payload.model_dump())
    return WorkWriteOut(data=WorkOpportunityOut(**row), message=f"{label} {row.get('action', 'created')} successfully")


async def _list(
    opportunity_type: str,
    request: Request,
    repository: OpportunityRepository,
    echo_keys: tuple[str, ...],
) -> WorkListOut:
    bag = query_bag(request)
    page_request = page_request_from(bag)
    rows, total = await repository.list_opportunities(
        opportunity_type=opportunity_type,
        filters=bag,
        page_request=page_request,
    )
    return WorkListOut(
        data=[WorkOpportunityOut(**row) for row in rows],
        pagination=PaginationOut(**page_meta(total, page_request)),
        filters=echo_filters(bag, echo_keys, work_type=opportunity_type),
    )

from fastapi import APIRouter, Depends, Query, status
from starlette.requests import Request

from campus_connect.api.params import echo_filters, page_request_from, query_bag
from campus_connect.schemas.opportunities import (
    EventCollectionOut,
    EventListOut,
    EventOpportunityCreate,
    EventOpportunityOut,
    EventType,
    EventWriteOut,
    PaginationOut,
)
from campus_connect.services.query import page_meta
from campus_connect.services.repository import OpportunityRepository, get_repository

router = APIRouter()

HACKATHON_FILTER_ECHO = ("city", "fees", "domain")
SCHOLARSHIP_FILTER_ECHO = ("city", "fees")
LEARNING_FILTER_ECHO = ("learning_type", "fees")


@router.post("/hackathons", response_model=EventWriteOut, status_code=status.HTTP_201_CREATED)
async def create_hackathon(
    payload: EventOpportunityCreate,
    repository: OpportunityRepository = Depends(get_repository),
) -> EventWriteOut:
    return await _create("hackathon", "Hackathon", payload, repository)


@router.post("/scholarships", response_model=EventWriteOut, status_code=status.HTTP_201_CREATED)
async def create_scholarship(
    payload: EventOpportunityCreate,
    repository: OpportunityRepository = Depends(get_repository),
) -> EventWriteOut:
    return await _create("scholarship", "Scholarship", payload, repository)


@router.post("/learning", response_model=EventWriteOut, status_code=status.HTTP_201_CREATED)
async def create_learning(
    payload: EventOpportunityCreate,
    repository: OpportunityRepository = Depends(get_repository),
) -> EventWriteOut:
    return await _create("learning", "Learning program", payload, repository)


@router.get("/hackathons", response_model=EventListOut)
async def list_hackathons(
    request: Request,
    repository: OpportunityRepository = Depends(get_repository),
) -> EventListOut:
    return await _list("hackathon", request, repository, HACKATHON_FILTER_ECHO)


@router.get("/scholarships", response_model=EventListOut)
async def list_scholarships(
    request: Request,
    repository: OpportunityRepository = Depends(get_repository),
) -> EventListOut:
    return await _list("scholarship", request, repository, SCHOLARSHIP_FILTER_ECHO)


@router.get("/learning", response_model=EventListOut)
async def list_learning(
    request: Request,
    repository: OpportunityRepository = Depends(get_repository),
) -> EventListOut:
    return await _list("learning", request, repository, LEARNING_FILTER_ECHO)


@router.get("/hackathons/featured", response_model=EventCollectionOut, response_model_exclude_none=True)
async def featured_hackathons(
    limit: int = Query(default=4, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> EventCollectionOut:
    rows = await repository.list_featured(opportunity_type="hackathon", limit=limit)
    return EventCollectionOut(data=[EventOpportunityOut(**row) for row in rows], count=len(rows))


@router.get("/learning/featured", response_model=EventCollectionOut, response_model_exclude_none=True)
async def featured_learning(
    limit: int = Query(default=4, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> EventCollectionOut:
    rows = await repository.list_featured(opportunity_type="learning", limit=limit)
    return EventCollectionOut(data=[EventOpportunityOut(**row) for row in rows], count=len(rows))


@router.get("/events/upcoming", response_model=EventCollectionOut, response_model_exclude_none=True)
async def upcoming_events(
    days: int = Query(default=30, ge=1, le=365),
    limit: int = Query(default=20, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> EventCollectionOut:
    rows = await repository.find_upcoming_events(days=days, limit=limit)
    return EventCollectionOut(
        data=[EventOpportunityOut(**row) for row in rows],
        count=len(rows),
        upcoming_in_days=days,
    )


@router.get("/events/free", response_model=EventCollectionOut, response_model_exclude_none=True)
async def free_events(
    event_type: EventType | None = Query(default=None, alias="type"),
    limit: int = Query(default=20, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> EventCollectionOut:
    rows = await repository.find_free_events(event_type=event_type, limit=limit)
    return EventCollectionOut(data=[EventOpportunityOut(**row) for row in rows], count=len(rows))


@router.get("/events/domain", response_model=EventCollectionOut, response_model_exclude_none=True)
async def events_by_domain(
    domain: str = Query(min_length=1),
    limit: int = Query(default=20, ge=1, le=50),
    repository: OpportunityRepository = Depends(get_repository),
) -> EventCollectionOut:
    domains = [item.strip() for item in domain.split(",") if item.strip()]
    rows = await repository.find_events_by_domain(domains=domains, limit=limit)
    return EventCollectionOut(data=[EventOpportunityOut(**row) for row in rows], count=len(rows))


async def _create(
    opportunity_type: str,
    label: str,
    payload: EventOpportunityCreate,
    repository: OpportunityRepository,
) -> EventWriteOut:
    row = await repository.create_opportunity(opportunity_type=opportunity_type, payload=payload.model_dump())
    return EventWriteOut(data=EventOpportunityOut(**row), message=f"{label} {row.get('action', 'created')} successfully")


async def _list(
    opportunity_type: str,
    request: Request,
    repository: OpportunityRepository,
    echo_keys: tuple[str, ...],
) -> EventListOut:
    bag = query_bag(request)
    page_request = page_request_from(bag)
    rows, total = await repository.list_opportunities(
        opportunity_type=opportunity_type,
        filters=bag,
        page_request=page_request,
    )
    return EventListOut(
        data=[EventOpportunityOut(**row) for row in rows],
        pagination=PaginationOut(**page_meta(total, page_request)),
        filters=echo_filters(bag, echo_keys, event_type=opportunity_type),
    )

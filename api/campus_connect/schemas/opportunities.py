from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from campus_connect.core.urls import is_public_http_url

WorkType = Literal["internship", "job"]
EventType = Literal["hackathon", "learning", "scholarship"]
WorkStyle = Literal["remote", "hybrid", "onsite"]
Fees = Literal["paid", "unpaid"]
LearningType = Literal["workshop", "course", "bootcamp", "mentorship"]
WorkStatus = Literal["active", "expired"]
EventStatus = Literal["active", "expired", "archived"]
UpsertAction = Literal["created", "updated"]

TITLE_MAX_LENGTH = 500
MAX_TAGS = 10
MAX_SKILLS = 20
MAX_DOMAINS = 10
TYPE_FIELDS = ("type", "work_type", "event_type")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _OpportunityFields(BaseModel):
    """Fields and checks shared by create and patch payloads of both stores."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True, str_strip_whitespace=True)

    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    organization: str | None = Field(default=None, max_length=200)
    image_url: str | None = None
    deadline: datetime | None = None
    tags: list[str] | None = Field(default=None, max_length=MAX_TAGS)

    @field_validator("image_url")
    @classmethod
    def _check_image_url(cls, value: str | None) -> str | None:
        if value and not is_public_http_url(value):
            raise ValueError("image_url must be a valid URL")
        return value or None

    @field_validator("deadline")
    @classmethod
    def _normalize_deadline(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None


class _OpportunityCreate(_OpportunityFields):
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    apply_url: str
    source: str | None = Field(default=None, max_length=100)
    external_id: str | None = Field(default=None, max_length=255)
    is_verified: bool = False
    is_featured: bool = False

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        if not value:
            raise ValueError("Title cannot be empty")
        return value

    @field_validator("apply_url")
    @classmethod
    def _check_apply_url(cls, value: str) -> str:
        if not is_public_http_url(value):
            raise ValueError("apply_url must be a valid HTTP/HTTPS URL (not localhost)")
        return value

    @field_validator("deadline")
    @classmethod
    def _check_future_deadline(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        value = _as_utc(value)
        if value < datetime.now(timezone.utc):
            raise ValueError("Deadline must be a future date")
        return value


class _WorkFields(BaseModel):
    work_style: WorkStyle | None = None
    company: str | None = Field(default=None, max_length=200)
    stipend: str | None = Field(default=None, max_length=100)
    duration: str | None = Field(default=None, max_length=50)
    salary: str | None = Field(default=None, max_length=100)
    experience: str | None = Field(default=None, max_length=100)
    skills: list[str] | None = Field(default=None, max_length=MAX_SKILLS)
    who_can_apply: str | None = Field(default=None, max_length=255)

    @field_validator("work_style", mode="before")
    @classmethod
    def _lower_work_style(cls, value: Any) -> Any:
        return value.strip().lower() or None if isinstance(value, str) else value


class _EventFields(BaseModel):
    team_size: str | None = Field(default=None, max_length=50)
    fees: Fees | None = None
    perks: str | None = None
    event_date: datetime | None = None
    learning_type: LearningType | None = None
    domain: list[str] | None = Field(default=None, max_length=MAX_DOMAINS)

    @field_validator("fees", "learning_type", mode="before")
    @classmethod
    def _lower_enum(cls, value: Any) -> Any:
        return value.strip().lower() or None if isinstance(value, str) else value

    @field_validator("event_date")
    @classmethod
    def _normalize_event_date(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None


class WorkOpportunityCreate(_OpportunityCreate, _WorkFields):
    pass


class EventOpportunityCreate(_OpportunityCreate, _EventFields):
    pass


class OpportunityPatchRequest(_OpportunityFields, _WorkFields, _EventFields):
    title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    is_verified: bool | None = None
    is_featured: bool | None = None
    status: EventStatus | None = None

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str | None) -> str | None:
        if value is not None and not value:
            raise ValueError("Title cannot be empty")
        return value


class WorkOpportunityOut(BaseModel):
    id: str
    work_type: WorkType
    title: str
    apply_url: str
    city: str | None = None
    country: str | None = None
    work_style: str | None = None
    organization: str | None = None
    company: str | None = None
    image_url: str | None = None
    stipend: str | None = None
    duration: str | None = None
    salary: str | None = None
    experience: str | None = None
    skills: list[str] = Field(default_factory=list)
    who_can_apply: str | None = None
    deadline: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    source: str | None = None
    external_id: str | None = None
    status: str = "active"
    is_verified: bool = False
    is_featured: bool = False
    view_count: int = 0
    posted_date: datetime | None = None
    last_seen_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    action: UpsertAction | None = None
    category: Literal["work"] | None = None


class EventOpportunityOut(BaseModel):
    id: str
    event_type: EventType
    title: str
    apply_url: str
    city: str | None = None
    country: str | None = None
    organization: str | None = None
    image_url: str | None = None
    team_size: str | None = None
    fees: str | None = None
    perks: str | None = None
    event_date: datetime | None = None
    learning_type: str | None = None
    deadline: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    domain: list[str] = Field(default_factory=list)
    source: str | None = None
    external_id: str | None = None
    status: str = "active"
    is_verified: bool = False
    is_featured: bool = False
    view_count: int = 0
    posted_date: datetime | None = None
    last_seen_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    action: UpsertAction | None = None
    category: Literal["event"] | None = None


class PaginationOut(BaseModel):
    # Response validation re-reads the aliased dump, so the alias must validate too.
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")
    has_more: bool = Field(alias="hasMore")


class WorkListOut(BaseModel):
    data: list[WorkOpportunityOut]
    pagination: PaginationOut
    filters: dict[str, Any] = Field(default_factory=dict)


class EventListOut(BaseModel):
    data: list[EventOpportunityOut]
    pagination: PaginationOut
    filters: dict[str, Any] = Field(default_factory=dict)


class WorkWriteOut(BaseModel):
    data: WorkOpportunityOut
    message: str


class EventWriteOut(BaseModel):
    data: EventOpportunityOut
    message: str


class WorkCollectionOut(BaseModel):
    data: list[WorkOpportunityOut]
    count: int
    organization: str | None = None
    expiring_in_days: int | None = None


class EventCollectionOut(BaseModel):
    data: list[EventOpportunityOut]
    count: int
    upcoming_in_days: int | None = None


class OpportunityOut(BaseModel):
    data: WorkOpportunityOut | EventOpportunityOut
    message: str | None = None


class TypeStatsOut(BaseModel):
    type: str
    total: int
    active: int
    expired: int
    archived: int
    featured: int
    verified: int


class StatsDataOut(BaseModel):
    work: list[TypeStatsOut] = Field(default_factory=list)
    event: list[TypeStatsOut] = Field(default_factory=list)


class StatsOut(BaseModel):
    data: StatsDataOut

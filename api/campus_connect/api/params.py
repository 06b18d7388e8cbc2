from typing import Any

from starlette.requests import Request

from campus_connect.core.config import get_settings
from campus_connect.core.errors import InvalidIdentifierError
from campus_connect.core.urls import is_valid_uuid
from campus_connect.services.query import PageRequest, paginate


def query_bag(request: Request) -> dict[str, Any]:
    """Query params as a plain dict; repeated keys become lists."""
    bag: dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        bag[key] = values if len(values) > 1 else values[0]
    return bag


def page_request_from(bag: dict[str, Any]) -> PageRequest:
    settings = get_settings()
    return paginate(
        bag.get("page"),
        bag.get("limit"),
        default_limit=settings.pagination_default_limit,
        max_limit=settings.pagination_max_limit,
    )


def echo_filters(bag: dict[str, Any], keys: tuple[str, ...], **fixed: str) -> dict[str, Any]:
    echoed: dict[str, Any] = dict(fixed)
    for key in keys:
        if bag.get(key) not in (None, ""):
            echoed[key] = bag[key]
    return echoed


def require_uuid(opportunity_id: str) -> str:
    if not is_valid_uuid(opportunity_id):
        raise InvalidIdentifierError()
    return opportunity_id

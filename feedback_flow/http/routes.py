"""FastAPI routes wrapping the query engine in the success/error envelope."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Union

from fastapi import APIRouter, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, validator

from ..config import Settings
from ..errors import ErrorType, FeedbackFlowError, InvalidRequestError
from ..pagination import OLDEST_FIRST, Pagination
from ..search import SearchService
from ..statistics import StatisticsEngine
from ..status import PurchaseStatusAggregator
from ..telemetry import events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@dataclass
class Services:
    """Engine components shared by every request, stored on ``app.state``."""

    settings: Settings
    status: PurchaseStatusAggregator
    statistics: StatisticsEngine
    search: SearchService
    today: Callable[[], date] = date.today


class BatchStatusRequest(BaseModel):
    purchaseIds: List[str] = []
    page: Optional[Union[int, str]] = 1
    limit: Optional[Union[int, str]] = 10
    sort: str = "date"
    order: str = "desc"


class SearchRequest(BaseModel):
    query: Optional[str] = None
    limit: int = 50

    @validator("query", pre=True)
    def normalize_query(cls, value: Any) -> Optional[str]:
        if value is None or not isinstance(value, str):
            return None
        return value


# ----------------------------------------------------------------------
# Purchase status and lists
# ----------------------------------------------------------------------
@router.get("/purchase-status")
def purchase_status(
    request: Request,
    limitToNotRefunded: bool = False,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: str = "date",
    order: str = "desc",
    x_tester_uuid: Optional[str] = Header(None),
) -> JSONResponse:
    def handler(services: Services, tester: str) -> Dict[str, Any]:
        pagination = Pagination(
            page=page,
            limit=services.settings.page_limit if limit is None else limit,
            sort=sort,
            order=order,
        ).normalized()
        result = services.status.get_purchase_status(
            tester,
            limitToNotRefunded,
            pagination.page,
            pagination.limit,
            pagination.sort,
            pagination.order,
        )
        body = _listing(result, pagination)
        body["pageInfo"] = result.page_info.to_dict()
        return body

    return _respond(request, x_tester_uuid, handler)


@router.post("/purchase-status-batch")
def purchase_status_batch(
    request: Request,
    payload: BatchStatusRequest,
    x_tester_uuid: Optional[str] = Header(None),
) -> JSONResponse:
    def handler(services: Services, tester: str) -> Dict[str, Any]:
        if not payload.purchaseIds:
            raise InvalidRequestError("purchaseIds must be a non-empty array")
        result = services.status.get_purchase_status_batch(
            tester,
            payload.purchaseIds,
            payload.page,
            payload.limit,
            payload.sort,
            payload.order,
        )
        return {
            "data": [row.to_dict() for row in result.results],
            "pageInfo": result.page_info.to_dict(),
        }

    return _respond(request, x_tester_uuid, handler)


@router.get("/purchases/refunded")
def refunded_purchases(
    request: Request,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: str = "date",
    order: str = "desc",
    x_tester_uuid: Optional[str] = Header(None),
) -> JSONResponse:
    pagination = Pagination(page=page, limit=limit, sort=sort, order=order)
    return _respond(
        request,
        x_tester_uuid,
        lambda services, tester: _listing(services.status.refunded(tester, pagination), pagination),
    )


@router.get("/purchases/not-refunded")
def not_refunded_purchases(
    request: Request,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: str = "date",
    order: str = "desc",
    x_tester_uuid: Optional[str] = Header(None),
) -> JSONResponse:
    pagination = Pagination(page=page, limit=limit, sort=sort, order=order)
    return _respond(
        request,
        x_tester_uuid,
        lambda services, tester: _listing(services.status.not_refunded(tester, pagination), pagination),
    )


@router.get("/purchases/ready-to-refund")
def ready_to_refund_purchases(
    request: Request,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: str = OLDEST_FIRST.sort,
    order: str = OLDEST_FIRST.order,
    x_tester_uuid: Optional[str] = Header(None),
) -> JSONResponse:
    pagination = Pagination(page=page, limit=limit, sort=sort, order=order)
    return _respond(
        request,
        x_tester_uuid,
        lambda services, tester: _listing(
            services.status.ready_for_refund(tester, pagination), pagination
        ),
    )


@router.get("/purchases/refunded-amount")
def refunded_amount(request: Request, x_tester_uuid: Optional[str] = Header(None)) -> JSONResponse:
    return _respond(
        request,
        x_tester_uuid,
        lambda services, tester: {"amount": services.statistics.refunded_amount(tester)},
    )


@router.get("/purchases/not-refunded-amount")
def not_refunded_amount(request: Request, x_tester_uuid: Optional[str] = Header(None)) -> JSONResponse:
    return _respond(
        request,
        x_tester_uuid,
        lambda services, tester: {"amount": services.statistics.not_refunded_amount(tester)},
    )


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------
@router.post("/purchase/search")
def search_purchases(
    request: Request,
    payload: SearchRequest,
    x_tester_uuid: Optional[str] = Header(None),
) -> JSONResponse:
    def handler(services: Services, tester: str) -> Dict[str, Any]:
        if not payload.query:
            raise InvalidRequestError("Query is required and must be a string")
        minimum = services.settings.search_min_query_length
        if len(payload.query) < minimum:
            raise InvalidRequestError(f"Query must be at least {minimum} characters long")
        return {"data": services.search.search_purchases(tester, payload.query, payload.limit)}

    return _respond(request, x_tester_uuid, handler)


# ----------------------------------------------------------------------
# Statistics
# ----------------------------------------------------------------------
@router.get("/stats/purchases")
def purchase_statistics(request: Request, x_tester_uuid: Optional[str] = Header(None)) -> JSONResponse:
    return _respond(
        request,
        x_tester_uuid,
        lambda services, tester: {"data": services.statistics.get_purchase_statistics(tester).to_dict()},
    )


@router.get("/stats/refund-balance")
def refund_balance(
    request: Request,
    daysLimit: Optional[int] = None,
    purchaseLimit: Optional[int] = None,
    x_tester_uuid: Optional[str] = Header(None),
) -> JSONResponse:
    return _respond(
        request,
        x_tester_uuid,
        lambda services, tester: services.statistics.refund_balance(
            tester, daysLimit, purchaseLimit, services.today()
        ).to_dict(),
    )


@router.get("/stats/refund-delay")
def refund_delay(
    request: Request,
    daysLimit: Optional[int] = None,
    x_tester_uuid: Optional[str] = Header(None),
) -> JSONResponse:
    return _respond(
        request,
        x_tester_uuid,
        lambda services, tester: services.statistics.refund_delay(
            tester, daysLimit, services.today()
        ).to_dict(),
    )


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _listing(result, pagination: Pagination) -> Dict[str, Any]:
    resolved = pagination.normalized()
    return {
        "data": [row.to_dict() for row in result.results],
        "total": result.total_count,
        "page": resolved.page,
        "limit": resolved.limit,
    }


def _respond(
    request: Request,
    tester_uuid: Optional[str],
    handler: Callable[[Services, str], Dict[str, Any]],
) -> JSONResponse:
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    if not tester_uuid or not tester_uuid.strip():
        return _failure(request_id, request, ErrorType.UNAUTHORIZED, "Unauthorized", 401)
    services = _get_services(request)
    try:
        body = handler(services, tester_uuid.strip())
    except InvalidRequestError as exc:
        return _failure(request_id, request, exc.error_type, f"Invalid request: {exc}", 400)
    except FeedbackFlowError as exc:
        logger.exception("Request %s failed on %s", request_id, request.url.path)
        return _failure(request_id, request, exc.error_type, str(exc), 500)
    except Exception as exc:
        logger.exception("Unexpected error for request %s on %s", request_id, request.url.path)
        return _failure(request_id, request, ErrorType.UNKNOWN, f"Internal error: {exc}", 500)
    return JSONResponse(content={"success": True, **body})


async def request_validation_failure(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report unparseable query or body values in the standard envelope."""

    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    return _failure(request_id, request, ErrorType.INVALID_REQUEST, f"Invalid request: {problems}", 400)


def _failure(
    request_id: str,
    request: Request,
    err_type: ErrorType,
    message: str,
    status_code: int,
) -> JSONResponse:
    events.log_error(
        request_id,
        err_type,
        {"path": request.url.path, "status": status_code, "message": message},
    )
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if not isinstance(services, Services):
        raise RuntimeError("Feedback Flow services not configured")
    return services

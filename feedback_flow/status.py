"""Purchase status aggregation: joins, sorting and pagination per tester."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import (
    Feedback,
    PaginatedResult,
    Publication,
    Purchase,
    PurchaseStatus,
    PurchaseWithFeedback,
    Refund,
)
from .pagination import OLDEST_FIRST, Pagination, paginate, resolve, sort_rows
from .repository import FeedbackFlowDB

logger = logging.getLogger(__name__)

# PurchaseStatus exposes the purchase id under ``purchase``
_STATUS_FIELDS = {"id": "purchase"}


@dataclass
class WorkflowIndex:
    """Feedback, publication and refund rows keyed by purchase id."""

    feedbacks: Dict[str, Feedback]
    publications: Dict[str, Publication]
    refunds: Dict[str, Refund]

    @classmethod
    def load(cls, db: FeedbackFlowDB, purchase_ids: Iterable[str]) -> "WorkflowIndex":
        wanted = set(purchase_ids)
        return cls(
            feedbacks=_first_by_purchase(db.feedbacks.filter(lambda f: f.purchase in wanted)),
            publications=_first_by_purchase(db.publications.filter(lambda p: p.purchase in wanted)),
            refunds=_first_by_purchase(db.refunds.filter(lambda r: r.purchase in wanted)),
        )

    def is_ready_for_refund(self, purchase: Purchase) -> bool:
        return (
            not purchase.refunded
            and purchase.id in self.feedbacks
            and purchase.id in self.publications
        )


def _first_by_purchase(rows: Iterable[Any]) -> Dict[str, Any]:
    index: Dict[str, Any] = {}
    for row in rows:
        index.setdefault(row.purchase, row)
    return index


def _status_getter(row: PurchaseStatus, key: str) -> Any:
    return getattr(row, _STATUS_FIELDS.get(key, key))


def _purchase_getter(row: Any, key: str) -> Any:
    return getattr(row, key)


class PurchaseStatusAggregator:
    """Compute per-tester purchase status views over a repository."""

    def __init__(self, db: FeedbackFlowDB) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get_purchase_status(
        self,
        tester_uuid: str,
        limit_to_not_refunded: bool = False,
        page: int = 1,
        limit: int = 10,
        sort: str = "date",
        order: str = "desc",
    ) -> PaginatedResult:
        pagination = Pagination(page=page, limit=limit, sort=sort, order=order).normalized()
        if limit_to_not_refunded:
            purchases = self._db.purchases.filter_by(tester_uuid=tester_uuid, refunded=False)
        else:
            purchases = self._db.purchases.filter_by(tester_uuid=tester_uuid)
        return self._status_page(purchases, pagination)

    def get_purchase_status_batch(
        self,
        tester_uuid: str,
        purchase_ids: Sequence[str],
        page: int = 1,
        limit: int = 10,
        sort: str = "date",
        order: str = "desc",
    ) -> PaginatedResult:
        pagination = Pagination(page=page, limit=limit, sort=sort, order=order).normalized()
        wanted = set(purchase_ids)
        purchases = [
            purchase
            for purchase in self._db.purchases.filter_by(tester_uuid=tester_uuid)
            if purchase.id in wanted
        ]
        return self._status_page(purchases, pagination)

    def ready_for_refund(
        self,
        tester_uuid: str,
        pagination: Optional[Pagination] = None,
    ) -> PaginatedResult:
        """Unrefunded purchases with feedback and publication, oldest first by default."""

        resolved = resolve(pagination, default=OLDEST_FIRST)
        purchases = self._db.purchases.filter_by(tester_uuid=tester_uuid, refunded=False)
        index = WorkflowIndex.load(self._db, (p.id for p in purchases))
        rows: List[PurchaseWithFeedback] = []
        for purchase in purchases:
            if not index.is_ready_for_refund(purchase):
                continue
            feedback = index.feedbacks[purchase.id]
            publication = index.publications[purchase.id]
            rows.append(
                PurchaseWithFeedback(
                    purchase=purchase,
                    feedback=feedback.feedback,
                    feedback_date=feedback.date,
                    publication_screenshot=publication.screenshot,
                    publication_date=publication.date,
                )
            )
        ordered = sort_rows(rows, resolved, lambda row, key: getattr(row.purchase, key))
        page_rows, page_info = paginate(ordered, resolved)
        return PaginatedResult(results=page_rows, page_info=page_info)

    def refunded(self, tester_uuid: str, pagination: Optional[Pagination] = None) -> PaginatedResult:
        return self._purchase_page(tester_uuid, True, resolve(pagination))

    def not_refunded(self, tester_uuid: str, pagination: Optional[Pagination] = None) -> PaginatedResult:
        return self._purchase_page(tester_uuid, False, resolve(pagination))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _purchase_page(self, tester_uuid: str, refunded: bool, pagination: Pagination) -> PaginatedResult:
        purchases = self._db.purchases.filter_by(tester_uuid=tester_uuid, refunded=refunded)
        ordered = sort_rows(purchases, pagination, _purchase_getter)
        page_rows, page_info = paginate(ordered, pagination)
        return PaginatedResult(results=page_rows, page_info=page_info)

    def _status_page(self, purchases: List[Purchase], pagination: Pagination) -> PaginatedResult:
        index = WorkflowIndex.load(self._db, (p.id for p in purchases))
        statuses = [self._to_status(purchase, index) for purchase in purchases]
        ordered = sort_rows(statuses, pagination, _status_getter)
        page_rows, page_info = paginate(ordered, pagination)
        return PaginatedResult(results=page_rows, page_info=page_info)

    def _to_status(self, purchase: Purchase, index: WorkflowIndex) -> PurchaseStatus:
        publication = index.publications.get(purchase.id)
        refund = index.refunds.get(purchase.id)
        if refund is not None and not purchase.refunded:
            logger.warning(
                "Purchase %s has a refund row but is not flagged refunded", purchase.id
            )
        return PurchaseStatus(
            purchase=purchase.id,
            tester_uuid=purchase.tester_uuid,
            date=purchase.date,
            order=purchase.order,
            description=purchase.description,
            amount=purchase.amount,
            refunded=purchase.refunded or refund is not None,
            has_feedback=purchase.id in index.feedbacks,
            has_publication=publication is not None,
            has_refund=refund is not None,
            purchase_screenshot=purchase.screenshot or None,
            publication_screenshot=publication.screenshot if publication else None,
            screenshot_summary=purchase.screenshot_summary,
            transaction_id=refund.transaction_id if refund else None,
        )

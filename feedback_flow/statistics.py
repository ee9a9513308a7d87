"""Per-tester purchase statistics: totals, refund balance and refund delay."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple

from .models import (
    Purchase,
    PurchasesStatisticsData,
    RefundBalance,
    RefundDelayData,
    RefundDelayReport,
    StatisticsLimit,
)
from .pagination import Pagination, parse_day, sort_rows
from .repository import FeedbackFlowDB
from .status import WorkflowIndex

logger = logging.getLogger(__name__)

_MOST_RECENT = Pagination(sort="date", order="desc")


class StatisticsEngine:
    """Aggregate counts and amounts over a tester's purchases on demand."""

    def __init__(self, db: FeedbackFlowDB, *, statistics_limit: int = 100) -> None:
        self._db = db
        self._statistics_limit = statistics_limit

    def get_purchase_statistics(self, tester_uuid: str) -> PurchasesStatisticsData:
        purchases = self._db.purchases.filter_by(tester_uuid=tester_uuid)
        index = WorkflowIndex.load(self._db, (p.id for p in purchases))
        stats = PurchasesStatisticsData()
        for purchase in purchases:
            stats.nb_total += 1
            stats.total_purchase_amount += purchase.amount
            if purchase.refunded:
                stats.nb_refunded += 1
                stats.total_refunded_amount += purchase.amount
            else:
                stats.nb_not_refunded += 1
                stats.total_not_refunded_amount += purchase.amount
                if index.is_ready_for_refund(purchase):
                    stats.nb_ready_for_refund += 1
        return stats

    def refunded_amount(self, tester_uuid: str) -> float:
        return _sum_amounts(self._db.purchases.filter_by(tester_uuid=tester_uuid, refunded=True))

    def not_refunded_amount(self, tester_uuid: str) -> float:
        return _sum_amounts(self._db.purchases.filter_by(tester_uuid=tester_uuid, refunded=False))

    def refund_balance(
        self,
        tester_uuid: str,
        days_limit: Optional[int] = None,
        purchase_limit: Optional[int] = None,
        today: Optional[date] = None,
    ) -> RefundBalance:
        """Compare purchased and refunded amounts over a bounded window.

        The window is the last *days_limit* days when given, otherwise the
        *purchase_limit* most recent refunded purchases, otherwise the
        configured default count. The chosen window is reported back.
        """

        purchases, window = self._refunded_window(tester_uuid, days_limit, purchase_limit, today)
        ids = {purchase.id for purchase in purchases}
        refunds = self._db.refunds.filter(lambda refund: refund.purchase in ids)
        purchased = _sum_amounts(purchases)
        refunded = sum(refund.amount for refund in refunds)
        return RefundBalance(
            purchased_amount=purchased,
            refunded_amount=refunded,
            balance=purchased - refunded,
            limit=window,
        )

    def refund_delay(
        self,
        tester_uuid: str,
        days_limit: Optional[int] = None,
        today: Optional[date] = None,
    ) -> RefundDelayReport:
        purchases, _ = self._refunded_window(tester_uuid, days_limit, None, today)
        index = WorkflowIndex.load(self._db, (p.id for p in purchases))
        rows: List[RefundDelayData] = []
        for purchase in purchases:
            refund = index.refunds.get(purchase.id)
            if refund is None:
                continue
            delay = (parse_day(refund.refund_date) - parse_day(purchase.date)).days
            if delay < 0:
                logger.warning(
                    "Refund for purchase %s is dated %s, before the purchase date %s",
                    purchase.id,
                    refund.refund_date,
                    purchase.date,
                )
            rows.append(
                RefundDelayData(
                    purchase_id=purchase.id,
                    purchase_amount=purchase.amount,
                    refund_amount=refund.amount,
                    delay_in_days=delay,
                    purchase_date=purchase.date,
                    refund_date=refund.refund_date,
                    order=purchase.order,
                )
            )
        average = round(sum(row.delay_in_days for row in rows) / len(rows), 2) if rows else 0
        return RefundDelayReport(data=rows, average_delay_in_days=average)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _refunded_window(
        self,
        tester_uuid: str,
        days_limit: Optional[int],
        purchase_limit: Optional[int],
        today: Optional[date],
    ) -> Tuple[List[Purchase], StatisticsLimit]:
        refunded = sort_rows(
            self._db.purchases.filter_by(tester_uuid=tester_uuid, refunded=True),
            _MOST_RECENT,
            lambda purchase, key: getattr(purchase, key),
        )
        if days_limit is not None:
            cutoff = (today or date.today()) - timedelta(days=days_limit)
            selected = [p for p in refunded if parse_day(p.date) >= cutoff]
            return selected, StatisticsLimit(type="days", value=days_limit)
        if purchase_limit is not None:
            count = max(0, purchase_limit)
            return refunded[:count], StatisticsLimit(type="purchases", value=count)
        return refunded[: self._statistics_limit], StatisticsLimit(
            type="default", value=self._statistics_limit
        )


def _sum_amounts(purchases: List[Purchase]) -> float:
    return sum((purchase.amount for purchase in purchases), 0.0)

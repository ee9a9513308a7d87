from __future__ import annotations

import logging
from datetime import date

import pytest

from feedback_flow.models import StatisticsLimit
from feedback_flow.repository import InMemoryDB
from feedback_flow.statistics import StatisticsEngine


def _refunded_db(pairs):
    """Tester "t" with one refunded purchase per (purchase_date, refund_date) pair."""

    purchases = []
    refunds = []
    for index, (bought, refunded) in enumerate(pairs):
        pid = f"p{index}"
        purchases.append(
            {
                "id": pid,
                "testerUuid": "t",
                "date": bought,
                "order": f"ORD-{index}",
                "description": "item",
                "amount": 10.0,
                "refunded": True,
            }
        )
        refunds.append({"purchase": pid, "date": refunded, "refundDate": refunded, "amount": 8.0})
    return InMemoryDB({"purchases": purchases, "refunds": refunds})


def test_purchase_statistics_counts_and_sums(memory_db):
    stats = StatisticsEngine(memory_db).get_purchase_statistics("tester-1")

    assert stats.nb_total == 4
    assert stats.nb_refunded == 1
    assert stats.nb_not_refunded == 3
    assert stats.nb_ready_for_refund == 1
    assert stats.total_refunded_amount == pytest.approx(10.99)
    assert stats.total_not_refunded_amount == pytest.approx(110.98)
    assert stats.total_purchase_amount == pytest.approx(121.97)
    assert stats.nb_total == stats.nb_refunded + stats.nb_not_refunded
    assert stats.total_purchase_amount == pytest.approx(
        stats.total_refunded_amount + stats.total_not_refunded_amount
    )


def test_purchase_statistics_for_unknown_tester_are_zero(memory_db):
    stats = StatisticsEngine(memory_db).get_purchase_statistics("nobody")
    assert stats.to_dict() == {
        "nbRefunded": 0,
        "nbNotRefunded": 0,
        "nbReadyForRefund": 0,
        "nbTotal": 0,
        "totalRefundedAmount": 0.0,
        "totalNotRefundedAmount": 0.0,
        "totalPurchaseAmount": 0.0,
    }


def test_refunded_and_not_refunded_amounts(memory_db):
    engine = StatisticsEngine(memory_db)
    assert engine.refunded_amount("tester-1") == pytest.approx(10.99)
    assert engine.not_refunded_amount("tester-1") == pytest.approx(110.98)
    assert engine.refunded_amount("tester-2") == pytest.approx(99.0)


def test_refund_balance_default_window(memory_db):
    balance = StatisticsEngine(memory_db, statistics_limit=100).refund_balance("tester-1")

    assert balance.purchased_amount == pytest.approx(10.99)
    assert balance.refunded_amount == pytest.approx(10.99)
    assert balance.balance == pytest.approx(0.0)
    assert balance.limit == StatisticsLimit(type="default", value=100)


def test_refund_balance_is_purchased_minus_refunded(memory_db):
    balance = StatisticsEngine(memory_db).refund_balance("tester-2")

    assert balance.purchased_amount == pytest.approx(99.0)
    assert balance.refunded_amount == pytest.approx(95.0)
    assert balance.balance == pytest.approx(4.0)


def test_refund_balance_days_window_uses_today(memory_db):
    engine = StatisticsEngine(memory_db)

    recent = engine.refund_balance("tester-1", days_limit=30, today=date(2024, 2, 1))
    stale = engine.refund_balance("tester-1", days_limit=30, today=date(2024, 3, 1))

    assert recent.purchased_amount == pytest.approx(10.99)
    assert recent.limit.to_dict() == {"type": "days", "value": 30}
    assert stale.purchased_amount == 0
    assert stale.refunded_amount == 0


def test_refund_balance_purchase_window_takes_most_recent():
    db = _refunded_db([("2024-01-01", "2024-01-05"), ("2024-03-01", "2024-03-02"), ("2024-02-01", "2024-02-03")])

    balance = StatisticsEngine(db).refund_balance("t", purchase_limit=2)

    assert balance.limit == StatisticsLimit(type="purchases", value=2)
    assert balance.purchased_amount == pytest.approx(20.0)
    assert balance.refunded_amount == pytest.approx(16.0)


def test_refund_balance_days_limit_wins_over_purchase_limit(memory_db):
    balance = StatisticsEngine(memory_db).refund_balance(
        "tester-1", days_limit=7, purchase_limit=5, today=date(2024, 1, 12)
    )
    assert balance.limit.type == "days"


def test_refund_delay_report(memory_db):
    report = StatisticsEngine(memory_db).refund_delay("tester-1")

    (row,) = report.data
    assert row.purchase_id == "a"
    assert row.delay_in_days == 10
    assert row.purchase_amount == pytest.approx(10.99)
    assert row.refund_amount == pytest.approx(10.99)
    assert row.order == "ORD-001"
    assert report.average_delay_in_days == 10


def test_refund_delay_average_is_rounded_mean():
    db = _refunded_db([("2024-01-01", "2024-01-02"), ("2024-01-01", "2024-01-03"), ("2024-01-01", "2024-01-03")])
    report = StatisticsEngine(db).refund_delay("t")
    assert sorted(row.delay_in_days for row in report.data) == [1, 2, 2]
    assert report.average_delay_in_days == pytest.approx(1.67)


def test_refund_delay_is_zero_without_refunds(memory_db):
    report = StatisticsEngine(memory_db).refund_delay("nobody")
    assert report.data == []
    assert report.average_delay_in_days == 0


def test_refund_delay_passes_negative_values_through(caplog):
    db = _refunded_db([("2024-01-10", "2024-01-07")])
    caplog.set_level(logging.WARNING, logger="feedback_flow.statistics")

    report = StatisticsEngine(db).refund_delay("t")

    assert report.data[0].delay_in_days == -3
    assert report.average_delay_in_days == -3
    assert "before the purchase date" in caplog.text


def test_refund_delay_handles_timestamps():
    db = _refunded_db([("2024-01-01T23:30:00Z", "2024-01-04T01:00:00.000Z")])
    report = StatisticsEngine(db).refund_delay("t")
    assert report.data[0].delay_in_days == 3


def test_three_purchase_scenario():
    db = InMemoryDB(
        {
            "purchases": [
                {"id": "A", "testerUuid": "t", "date": "2024-01-01", "order": "1", "description": "A", "amount": 10.99, "refunded": True},
                {"id": "B", "testerUuid": "t", "date": "2024-01-02", "order": "2", "description": "B", "amount": 20.99},
                {"id": "C", "testerUuid": "t", "date": "2024-01-03", "order": "3", "description": "C", "amount": 59.99},
            ],
            "feedbacks": [
                {"purchase": "A", "date": "2024-01-04", "feedback": "ok"},
                {"purchase": "B", "date": "2024-01-05", "feedback": "ok"},
            ],
            "publications": [{"purchase": "A", "date": "2024-01-06", "screenshot": "pub-A"}],
            "refunds": [{"purchase": "A", "date": "2024-01-08", "refundDate": "2024-01-08", "amount": 10.99}],
        }
    )

    stats = StatisticsEngine(db).get_purchase_statistics("t")

    assert stats.nb_total == 3
    assert stats.nb_refunded == 1
    assert stats.nb_not_refunded == 2
    assert stats.nb_ready_for_refund == 0
    assert stats.total_purchase_amount == pytest.approx(91.97)
    assert stats.total_refunded_amount == pytest.approx(10.99)
    assert stats.total_not_refunded_amount == pytest.approx(80.98)

"""Record and result types exchanged between storage, engine and routes."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


@dataclass
class Purchase:
    id: str
    tester_uuid: str
    date: str
    order: str
    description: str
    amount: float
    screenshot: str = ""
    refunded: bool = False
    screenshot_summary: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Purchase":
        return cls(
            id=str(data["id"]),
            tester_uuid=str(data.get("testerUuid", data.get("tester_uuid", ""))),
            date=str(data["date"]),
            order=str(data.get("order", "")),
            description=str(data.get("description", "")),
            amount=float(data.get("amount") or 0.0),
            screenshot=data.get("screenshot") or "",
            refunded=bool(data.get("refunded", False)),
            screenshot_summary=data.get("screenshotSummary", data.get("screenshot_summary")),
            created_at=data.get("createdAt", data.get("created_at")),
            updated_at=data.get("updatedAt", data.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "testerUuid": self.tester_uuid,
                "date": self.date,
                "order": self.order,
                "description": self.description,
                "amount": self.amount,
                "screenshot": self.screenshot,
                "screenshotSummary": self.screenshot_summary,
                "refunded": self.refunded,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
            }
        )


@dataclass
class Feedback:
    purchase: str
    date: str
    feedback: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feedback":
        return cls(
            purchase=str(data["purchase"]),
            date=str(data["date"]),
            feedback=data.get("feedback") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"purchase": self.purchase, "date": self.date, "feedback": self.feedback}


@dataclass
class Publication:
    purchase: str
    date: str
    screenshot: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Publication":
        return cls(
            purchase=str(data["purchase"]),
            date=str(data["date"]),
            screenshot=data.get("screenshot") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"purchase": self.purchase, "date": self.date, "screenshot": self.screenshot}


@dataclass
class Refund:
    purchase: str
    date: str
    refund_date: str
    amount: float
    transaction_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Refund":
        refund_date = data.get("refundDate", data.get("refund_date", data.get("refunddate")))
        return cls(
            purchase=str(data["purchase"]),
            date=str(data["date"]),
            refund_date=str(refund_date),
            amount=float(data.get("amount") or 0.0),
            transaction_id=data.get("transactionId", data.get("transaction_id")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "purchase": self.purchase,
                "date": self.date,
                "refundDate": self.refund_date,
                "amount": self.amount,
                "transactionId": self.transaction_id,
            }
        )


@dataclass
class PurchaseStatus:
    """Purchase joined with the presence of its feedback, publication and refund."""

    purchase: str
    tester_uuid: str
    date: str
    order: str
    description: str
    amount: float
    refunded: bool
    has_feedback: bool
    has_publication: bool
    has_refund: bool
    purchase_screenshot: Optional[str] = None
    publication_screenshot: Optional[str] = None
    screenshot_summary: Optional[str] = None
    transaction_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "purchase": self.purchase,
            "testerUuid": self.tester_uuid,
            "date": self.date,
            "order": self.order,
            "description": self.description,
            "amount": self.amount,
            "refunded": self.refunded,
            "hasFeedback": self.has_feedback,
            "hasPublication": self.has_publication,
            "hasRefund": self.has_refund,
            "purchaseScreenshot": self.purchase_screenshot,
            "publicationScreenshot": self.publication_screenshot,
            "screenshotSummary": self.screenshot_summary,
            "transactionId": self.transaction_id,
        }


@dataclass
class PurchaseWithFeedback:
    purchase: Purchase
    feedback: str
    feedback_date: str
    publication_screenshot: Optional[str] = None
    publication_date: Optional[str] = None

    @property
    def id(self) -> str:
        return self.purchase.id

    def to_dict(self) -> Dict[str, Any]:
        payload = self.purchase.to_dict()
        payload.update(
            {
                "feedback": self.feedback,
                "feedbackDate": self.feedback_date,
                "publicationScreenshot": self.publication_screenshot,
                "publicationDate": self.publication_date,
            }
        )
        return payload


@dataclass(frozen=True)
class PageInfo:
    total_count: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_previous_page: bool
    next_page: Optional[int]
    previous_page: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "currentPage": self.current_page,
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
            "nextPage": self.next_page,
            "previousPage": self.previous_page,
        }


@dataclass
class PaginatedResult:
    """One page of rows plus the pre-pagination count."""

    results: List[Any]
    page_info: PageInfo

    @property
    def total_count(self) -> int:
        return self.page_info.total_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [row.to_dict() for row in self.results],
            "totalCount": self.total_count,
            "pageInfo": self.page_info.to_dict(),
        }


@dataclass
class PurchasesStatisticsData:
    nb_refunded: int = 0
    nb_not_refunded: int = 0
    nb_ready_for_refund: int = 0
    nb_total: int = 0
    total_refunded_amount: float = 0.0
    total_not_refunded_amount: float = 0.0
    total_purchase_amount: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nbRefunded": self.nb_refunded,
            "nbNotRefunded": self.nb_not_refunded,
            "nbReadyForRefund": self.nb_ready_for_refund,
            "nbTotal": self.nb_total,
            "totalRefundedAmount": self.total_refunded_amount,
            "totalNotRefundedAmount": self.total_not_refunded_amount,
            "totalPurchaseAmount": self.total_purchase_amount,
        }


@dataclass(frozen=True)
class StatisticsLimit:
    """Window that produced a statistics figure, disclosed to the caller."""

    type: str
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "value": self.value}


@dataclass
class RefundBalance:
    purchased_amount: float
    refunded_amount: float
    balance: float
    limit: StatisticsLimit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "purchasedAmount": self.purchased_amount,
            "refundedAmount": self.refunded_amount,
            "balance": self.balance,
            "limit": self.limit.to_dict(),
        }


@dataclass
class RefundDelayData:
    purchase_id: str
    purchase_amount: float
    refund_amount: float
    delay_in_days: int
    purchase_date: str
    refund_date: str
    order: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "purchaseId": self.purchase_id,
            "purchaseAmount": self.purchase_amount,
            "refundAmount": self.refund_amount,
            "delayInDays": self.delay_in_days,
            "purchaseDate": self.purchase_date,
            "refundDate": self.refund_date,
            "order": self.order,
        }


@dataclass
class RefundDelayReport:
    data: List[RefundDelayData] = field(default_factory=list)
    average_delay_in_days: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [row.to_dict() for row in self.data],
            "averageDelayInDays": self.average_delay_in_days,
        }

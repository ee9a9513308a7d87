"""In-memory database used by tests and local development."""
from __future__ import annotations

import copy
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..models import Feedback, Publication, Purchase, Refund
from .base import EntityRepository, FeedbackFlowDB, T

COLLECTIONS = ("purchases", "feedbacks", "publications", "refunds")


class InMemoryRepository(EntityRepository[T]):
    def __init__(self, key: Callable[[T], str]) -> None:
        self._items: List[T] = []
        self._key = key

    def get_all(self) -> List[T]:
        return [copy.copy(item) for item in self._items]

    def add(self, item: T) -> str:
        self._items.append(copy.copy(item))
        return self._key(item)

    def replace_all(self, items: List[T]) -> None:
        self._items = [copy.copy(item) for item in items]

    def _update(self, key: str, **changes: Any) -> bool:
        for item in self._items:
            if self._key(item) == key:
                for name, value in changes.items():
                    setattr(item, name, value)
                return True
        return False


class PurchaseRepository(InMemoryRepository[Purchase]):
    def __init__(self) -> None:
        super().__init__(key=lambda purchase: purchase.id)

    def add(self, item: Purchase) -> str:
        if not item.id:
            item = copy.copy(item)
            item.id = str(uuid.uuid4())
        return super().add(item)

    def mark_refunded(self, purchase_id: str) -> bool:
        return self._update(purchase_id, refunded=True)


class RefundRepository(InMemoryRepository[Refund]):
    def __init__(self, purchases: PurchaseRepository) -> None:
        super().__init__(key=lambda refund: refund.purchase)
        self._purchases = purchases

    def add(self, item: Refund) -> str:
        purchase_id = super().add(item)
        self._purchases.mark_refunded(purchase_id)
        return purchase_id


class InMemoryDB(FeedbackFlowDB):
    """Database kept in process memory, iterated in insertion order."""

    def __init__(self, initial_data: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.purchases = PurchaseRepository()
        self.feedbacks = InMemoryRepository[Feedback](key=lambda feedback: feedback.purchase)
        self.publications = InMemoryRepository[Publication](key=lambda publication: publication.purchase)
        self.refunds = RefundRepository(self.purchases)
        if initial_data:
            self.reset(initial_data)

    def reset(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        self.purchases.replace_all([Purchase.from_dict(row) for row in data.get("purchases", [])])
        self.feedbacks.replace_all([Feedback.from_dict(row) for row in data.get("feedbacks", [])])
        self.publications.replace_all(
            [Publication.from_dict(row) for row in data.get("publications", [])]
        )
        self.refunds.replace_all([Refund.from_dict(row) for row in data.get("refunds", [])])

    def get_raw_data(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            name: [item.to_dict() for item in getattr(self, name).get_all()]
            for name in COLLECTIONS
        }

"""Repository interfaces the query engine reads through."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from ..models import Feedback, Publication, Purchase, Refund

T = TypeVar("T")

Predicate = Callable[[T], bool]


class EntityRepository(ABC, Generic[T]):
    """Read access to one entity collection, in stable iteration order."""

    @abstractmethod
    def get_all(self) -> List[T]:
        raise NotImplementedError

    @abstractmethod
    def add(self, item: T) -> str:
        raise NotImplementedError

    def filter(self, predicate: Predicate) -> List[T]:
        return [item for item in self.get_all() if predicate(item)]

    def find(self, predicate: Predicate) -> Optional[T]:
        for item in self.get_all():
            if predicate(item):
                return item
        return None

    def filter_by(self, **criteria: Any) -> List[T]:
        """Equality query on attribute names, e.g. ``filter_by(tester_uuid=...)``."""

        return self.filter(lambda item: _matches(item, criteria))


def _matches(item: Any, criteria: Dict[str, Any]) -> bool:
    return all(getattr(item, name) == value for name, value in criteria.items())


class FeedbackFlowDB(ABC):
    """Bundle of the four repositories used by the engine."""

    purchases: EntityRepository[Purchase]
    feedbacks: EntityRepository[Feedback]
    publications: EntityRepository[Publication]
    refunds: EntityRepository[Refund]

    @abstractmethod
    def reset(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_raw_data(self) -> Dict[str, List[Dict[str, Any]]]:
        raise NotImplementedError

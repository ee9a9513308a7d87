"""Fuzzy purchase search scoped to one tester."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ..config import DEFAULT_SEARCH_FIELDS
from ..models import Purchase
from ..repository import FeedbackFlowDB
from .fuzzy import DEFAULT_THRESHOLD, FuzzyMatcher

logger = logging.getLogger(__name__)


class SearchService:
    """Return IDs of a tester's purchases whose fields fuzzy-match a query.

    Results follow repository order and are not ranked by score.
    """

    def __init__(
        self,
        db: FeedbackFlowDB,
        *,
        matcher: Optional[FuzzyMatcher] = None,
        fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
        max_limit: int = 1000,
    ) -> None:
        self._db = db
        self._matcher = matcher or FuzzyMatcher(threshold=DEFAULT_THRESHOLD)
        self._fields = tuple(fields)
        self._max_limit = max_limit

    def search_purchases(self, tester_uuid: str, query: str, limit: int = 50) -> List[str]:
        if not query or not query.strip():
            return []
        bounded = min(max(1, limit), self._max_limit)
        matches: List[str] = []
        for purchase in self._db.purchases.filter_by(tester_uuid=tester_uuid):
            if self._matcher.matches_any(query, self._searchable(purchase)):
                matches.append(purchase.id)
                if len(matches) >= bounded:
                    break
        logger.debug("Search %r for tester %s matched %d purchases", query, tester_uuid, len(matches))
        return matches

    def _searchable(self, purchase: Purchase) -> Dict[str, object]:
        return {name: getattr(purchase, name, None) for name in self._fields}

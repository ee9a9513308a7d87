"""Text normalisation, similarity scoring and fuzzy purchase search."""

from .fuzzy import (
    FuzzyMatcher,
    calculate_similarity,
    fuzzy_match,
    fuzzy_search_fields,
    levenshtein_distance,
    normalize_text,
)
from .service import SearchService

__all__ = [
    "FuzzyMatcher",
    "SearchService",
    "calculate_similarity",
    "fuzzy_match",
    "fuzzy_search_fields",
    "levenshtein_distance",
    "normalize_text",
]

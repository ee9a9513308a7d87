"""Lightweight fuzzy string matching utilities."""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_THRESHOLD = 0.6

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_PUNCTUATION = re.compile(r"[.,]")


def normalize_text(text: str) -> str:
    """Fold case, accents and ``.``/``,`` so comparisons are symmetric."""

    folded = unicodedata.normalize("NFD", text.lower())
    folded = _COMBINING_MARKS.sub("", folded)
    return _PUNCTUATION.sub(" ", folded).strip()


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            insert_cost = current[j - 1] + 1
            delete_cost = previous[j] + 1
            replace_cost = previous[j - 1] + (ca != cb)
            current.append(min(insert_cost, delete_cost, replace_cost))
        previous = current
    return previous[-1]


def calculate_similarity(a: str, b: str) -> float:
    """Return ``1 - distance / longest`` for two already normalised strings."""

    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longest = max(len(a), len(b))
    return 1.0 - levenshtein_distance(a, b) / longest


def fuzzy_match(query: str, text: str, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Return True when every query word approximately occurs in *text*.

    A normalised substring hit short-circuits; otherwise each word of the
    query must reach *threshold* against at least one word of the text.
    Word order is irrelevant.
    """

    if not query or not text:
        return False

    query_norm = normalize_text(query)
    text_norm = normalize_text(text)
    if query_norm in text_norm:
        return True

    query_words = [word for word in query_norm.split() if word]
    text_words = [word for word in text_norm.split() if word]
    for query_word in query_words:
        if not any(
            calculate_similarity(query_word, text_word) >= threshold
            for text_word in text_words
        ):
            return False
    return True


def fuzzy_search_fields(
    query: str,
    fields: Mapping[str, object],
    threshold: Optional[float] = None,
) -> bool:
    """Return True if *query* fuzzy-matches any value of *fields*."""

    effective = DEFAULT_THRESHOLD if threshold is None else threshold
    return any(
        fuzzy_match(query, _stringify(value), effective)
        for value in fields.values()
        if value is not None
    )


def _stringify(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class FuzzyMatcher:
    """Match helper bound to a similarity threshold."""

    threshold: float = DEFAULT_THRESHOLD

    def matches(self, query: str, text: str) -> bool:
        return fuzzy_match(query, text, self.threshold)

    def matches_any(self, query: str, fields: Mapping[str, object]) -> bool:
        return fuzzy_search_fields(query, fields, self.threshold)

"""
Fuzzy search over task-like records.

The pipeline only depends on ``search(items, query, keys)``; the similarity
measure behind it is pluggable. Two measures ship with the app:

- SequenceSimilarity: edit-distance style ratio from difflib (default)
- TrigramSimilarity: Jaccard overlap of character trigrams

Both score a query against the whole text and against every run of words in
the text that is as long as the query, so "groceris" still finds
"Buy groceries for the week".
"""

import re
from difflib import SequenceMatcher
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Set

from django.conf import settings

_WORD_RE = re.compile(r'\w+', re.UNICODE)


def _normalize(text: str) -> str:
    return ' '.join(_WORD_RE.findall(text.lower()))


def _windows(query: str, text: str) -> List[str]:
    """The whole text plus every run of words as long as the query."""
    words = text.split()
    size = max(1, len(query.split()))
    candidates = [text]
    if len(words) > size:
        candidates.extend(' '.join(words[i:i + size]) for i in range(len(words) - size + 1))
    return candidates


class Similarity(Protocol):
    """Scores how well ``query`` matches ``text`` on a 0-1 scale."""

    def score(self, query: str, text: str) -> float: ...


class SequenceSimilarity:
    """Best difflib ratio of the query against the text or any word window."""

    def score(self, query: str, text: str) -> float:
        query = _normalize(query)
        text = _normalize(text)
        if not query or not text:
            return 0.0
        if query in text:
            return 1.0
        return max(SequenceMatcher(None, query, candidate).ratio() for candidate in _windows(query, text))


class TrigramSimilarity:
    """Best Jaccard overlap of padded trigrams against the text or any word window."""

    @staticmethod
    def _trigrams(value: str) -> Set[str]:
        padded = f"  {value} "
        return {padded[i:i + 3] for i in range(len(padded) - 2)}

    def score(self, query: str, text: str) -> float:
        query = _normalize(query)
        text = _normalize(text)
        if not query or not text:
            return 0.0
        if query in text:
            return 1.0
        query_grams = self._trigrams(query)
        best = 0.0
        for candidate in _windows(query, text):
            grams = self._trigrams(candidate)
            union = query_grams | grams
            if union:
                best = max(best, len(query_grams & grams) / len(union))
        return best


def default_threshold() -> float:
    return float(settings.PLANNER.get('SEARCH_THRESHOLD', 0.7))


def _field_text(item: Any, key: str) -> str:
    if isinstance(item, dict):
        value = item.get(key)
    else:
        value = getattr(item, key, None)
    return value if isinstance(value, str) else ''


def best_score(item: Any, query: str, keys: Sequence[str], similarity: Similarity) -> float:
    return max((similarity.score(query, _field_text(item, key)) for key in keys), default=0.0)


def search(
    items: Iterable[Any],
    query: str,
    keys: Sequence[str] = ('name', 'description'),
    similarity: Optional[Similarity] = None,
    threshold: Optional[float] = None
) -> List[Any]:
    """
    Return the items that match ``query`` on any of ``keys``.

    Input order is preserved; callers sort afterwards. A blank query matches
    everything.
    """
    items = list(items)
    if not query or not query.strip():
        return items
    similarity = similarity or SequenceSimilarity()
    if threshold is None:
        threshold = default_threshold()
    return [item for item in items if best_score(item, query, keys, similarity) >= threshold]

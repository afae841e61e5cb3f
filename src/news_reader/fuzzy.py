# news_reader/fuzzy.py
"""
Fuzzy index over in-memory documents (rapidfuzz).

Each configured key is scored with ``fuzz.partial_ratio`` and turned into a
distance in [0, 1] (0 = exact, 1 = nothing in common). A key matches when
its distance is <= ``threshold``; a document matches when at least one key
does. Matched keys are combined the same way as in Fuse.js: the product of
``distance ** weight``, so a document matching on several fields ranks
ahead of one matching on a single field.
"""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from rapidfuzz import fuzz, utils

T = TypeVar("T")

DEFAULT_KEYS: Tuple[str, ...] = ("title", "description", "content", "author.name")

KeySpec = Union[str, Tuple[str, float]]


@dataclass(frozen=True)
class SearchKey:
    path: str
    weight: float = 1.0

    @classmethod
    def parse(cls, spec: KeySpec) -> "SearchKey":
        if isinstance(spec, str):
            return cls(spec)
        path, weight = spec
        if weight <= 0:
            raise ValueError(f"key weight must be positive: {path}={weight}")
        return cls(path, float(weight))


@dataclass
class KeyMatch:
    key: str
    value: str
    score: float


@dataclass
class FuzzyResult(Generic[T]):
    item: T
    ref_index: int
    score: float
    matches: List[KeyMatch] = field(default_factory=list)


def get_path(doc: Any, path: str) -> Any:
    """'author.name' -> doc['author']['name'] (mappings or attributes)."""
    current = doc
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


def _texts(value: Any) -> Iterable[str]:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for v in value:
            yield from _texts(v)
    elif isinstance(value, str):
        if value:
            yield value
    else:
        yield str(value)


class FuzzyIndex(Generic[T]):
    """Immutable index over one document collection."""

    def __init__(
        self,
        docs: Sequence[T],
        keys: Sequence[KeySpec] = DEFAULT_KEYS,
        *,
        threshold: float = 0.4,
        min_match_char_length: int = 2,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self.docs = docs
        self.keys = [SearchKey.parse(k) for k in keys]
        self.threshold = threshold
        self.min_match_char_length = min_match_char_length
        # előfeldolgozott szövegek: (doc_idx, key) -> [(eredeti, normalizált)]
        self._records: List[List[Tuple[SearchKey, List[Tuple[str, str]]]]] = [
            [
                (key, [(text, utils.default_process(text)) for text in _texts(get_path(doc, key.path))])
                for key in self.keys
            ]
            for doc in docs
        ]

    def __len__(self) -> int:
        return len(self.docs)

    def _distance(self, pattern: str, text: str) -> float:
        if not text:
            return 1.0
        if len(text) < len(pattern):
            # partial_ratio would look for the short field inside the query
            return 1.0 - fuzz.ratio(pattern, text) / 100.0
        return 1.0 - fuzz.partial_ratio(pattern, text) / 100.0

    def search(self, query: str, limit: Optional[int] = None) -> List[FuzzyResult[T]]:
        pattern = utils.default_process(query or "")
        if len(pattern) < max(self.min_match_char_length, 1):
            return []

        results: List[FuzzyResult[T]] = []
        for idx, record in enumerate(self._records):
            matches: List[KeyMatch] = []
            total = 1.0
            for key, texts in record:
                best: Optional[Tuple[float, str]] = None
                for original, normalized in texts:
                    dist = self._distance(pattern, normalized)
                    if best is None or dist < best[0]:
                        best = (dist, original)
                if best is None or best[0] > self.threshold:
                    continue
                dist, original = best
                matches.append(KeyMatch(key=key.path, value=original, score=dist))
                total *= (sys.float_info.epsilon if dist == 0 else dist) ** key.weight
            if matches:
                results.append(FuzzyResult(item=self.docs[idx], ref_index=idx, score=total, matches=matches))

        # stable: ties keep document order
        results.sort(key=lambda r: (r.score, r.ref_index))
        if limit is not None:
            results = results[: max(limit, 0)]
        return results

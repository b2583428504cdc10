"""
Semantic search over the vector index.
"""

import asyncio
import time
from typing import List, Optional, Sequence

import numpy as np

from ..core import config
from ..core.errors import SearchProviderError
from ..util.logging import logger
from .embeddings import IEmbeddingProvider
from .index import VectorIndex
from .types import SearchResult


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors, in [-1, 1].

    Returns 0.0 when either vector has zero length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimensions differ: {va.shape} vs {vb.shape}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


class SemanticSearchEngine:
    """
    Scores every indexed entry against a query.

    combined = direct * direct_weight + category * category_weight, with the
    weights summing to 1. The default (1.0, 0.0) ranks on direct similarity
    alone.
    """

    def __init__(self, index: VectorIndex, provider: IEmbeddingProvider,
                 direct_weight: Optional[float] = None, category_weight: Optional[float] = None):
        if direct_weight is None and category_weight is None:
            direct_weight, category_weight = config.get_blend_weights()
        elif direct_weight is None:
            direct_weight = 1.0 - category_weight
        elif category_weight is None:
            category_weight = 1.0 - direct_weight

        if direct_weight < 0 or category_weight < 0 or abs(direct_weight + category_weight - 1.0) > 1e-6:
            raise ValueError("direct_weight and category_weight must be non-negative and sum to 1")

        self.index = index
        self.provider = provider
        self.direct_weight = direct_weight
        self.category_weight = category_weight

    async def embed_query(self, query: str) -> np.ndarray:
        """
        Embed the raw query text off the event loop.

        Raises:
            SearchProviderError: if the embedding provider fails
        """
        try:
            vector = await asyncio.to_thread(self.provider.embed_text, query)
        except Exception as e:
            logger.log_operation("search.embed_query", "failed", {"error": str(e)[:200]})
            raise SearchProviderError(f"Query embedding failed: {e}") from e
        return np.asarray(vector, dtype=np.float64)

    def score(self, query_vector: np.ndarray) -> List[SearchResult]:
        """Blended similarity for every entry, sorted descending, ties in corpus order."""
        if len(self.index) == 0:
            return []

        norm = np.linalg.norm(query_vector)
        if norm == 0:
            direct = np.zeros(len(self.index))
        else:
            direct = np.clip(self.index.entry_matrix @ (query_vector / norm), -1.0, 1.0)

        scores = direct * self.direct_weight
        if self.category_weight > 0:
            scores = scores + self._category_scores(query_vector, norm) * self.category_weight

        results = [
            SearchResult(entry=record.entry, similarity=float(score))
            for record, score in zip(self.index.records, scores)
        ]
        # sorted() is stable, so equal scores keep corpus order
        return sorted(results, key=lambda r: r.similarity, reverse=True)

    def _category_scores(self, query_vector: np.ndarray, norm: float) -> np.ndarray:
        if norm == 0 or self.index.category_matrix.size == 0:
            return np.zeros(len(self.index))

        per_category = np.clip(self.index.category_matrix @ (query_vector / norm), -1.0, 1.0)
        scores = np.zeros(len(self.index))
        for i, record in enumerate(self.index.records):
            row = self.index.category_row(record.entry.category)
            if row is not None:
                scores[i] = per_category[row]
        return scores

    async def search(self, query: str, threshold: Optional[float] = None) -> List[SearchResult]:
        """
        Return every entry scoring at or above `threshold`, best first.

        An empty list means nothing matched; it is not an error.
        """
        if threshold is None:
            threshold = config.SEARCH_THRESHOLD

        start_time = time.time()
        if len(self.index) == 0:
            return []

        query_vector = await self.embed_query(query)
        ranked = self.score(query_vector)
        matched = [result for result in ranked if result.similarity >= threshold]

        logger.log_search(query, len(ranked), len(matched), threshold, (time.time() - start_time) * 1000)
        return matched

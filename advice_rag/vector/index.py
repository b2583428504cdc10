"""
Vector index over the advice corpus.

One embedding per entry and one per distinct category. Built once at
startup, then read concurrently by every request without locking; a rebuild
produces a new VectorIndex instead of mutating the old one.
"""

import time
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core import config
from ..core.corpus import CorpusRepository
from ..core.errors import CacheInvalidError, IndexBuildError
from ..util.logging import logger
from .cache import (
    BuildLock,
    CacheManifest,
    backup_path,
    copy_to_backup,
    load_manifest,
    restore_backup,
    save_manifest,
)
from .embeddings import IEmbeddingProvider
from .types import CategoryVector, EmbeddingRecord


def _normalized_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Stack vectors into unit rows. Zero rows stay zero."""
    if not vectors:
        return np.zeros((0, 0), dtype=np.float64)
    matrix = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms > 0, norms, 1.0)
    return matrix / safe


class VectorIndex:
    """Immutable handle over embedding records and category vectors."""

    def __init__(self, records: Sequence[EmbeddingRecord], category_vectors: Sequence[CategoryVector], model_id: str):
        self._records: Tuple[EmbeddingRecord, ...] = tuple(records)
        self._category_vectors: Tuple[CategoryVector, ...] = tuple(category_vectors)
        self.model_id = model_id

        self._entry_matrix = _normalized_matrix([r.vector for r in self._records])
        self._entry_matrix.setflags(write=False)
        self._category_matrix = _normalized_matrix([c.vector for c in self._category_vectors])
        self._category_matrix.setflags(write=False)
        self._category_row: Dict[str, int] = {c.category: i for i, c in enumerate(self._category_vectors)}

    @property
    def records(self) -> Tuple[EmbeddingRecord, ...]:
        return self._records

    @property
    def category_vectors(self) -> Tuple[CategoryVector, ...]:
        return self._category_vectors

    @property
    def entry_matrix(self) -> np.ndarray:
        """Unit-normalized entry vectors, one row per record in corpus order."""
        return self._entry_matrix

    @property
    def category_matrix(self) -> np.ndarray:
        return self._category_matrix

    def category_row(self, category: str) -> Optional[int]:
        return self._category_row.get(category)

    def __len__(self) -> int:
        return len(self._records)

    def to_manifest(self, corpus_fingerprint: str) -> CacheManifest:
        return CacheManifest(
            version=config.CACHE_VERSION,
            model=self.model_id,
            category_embeddings=list(self._category_vectors),
            embeddings=list(self._records),
            corpus_fingerprint=corpus_fingerprint,
        )

    @classmethod
    def from_manifest(cls, manifest: CacheManifest) -> "VectorIndex":
        return cls(manifest.embeddings, manifest.category_embeddings, manifest.model)

    @classmethod
    def compute(cls, corpus: CorpusRepository, provider: IEmbeddingProvider,
                batch_size: int = config.EMBED_BATCH_SIZE) -> "VectorIndex":
        """
        Embed every category and entry of the corpus.

        Raises:
            IndexBuildError: if the provider fails for any text
        """
        start_time = time.time()
        categories = corpus.categories()
        entries = list(corpus.entries)

        try:
            category_vectors = [
                CategoryVector(category=category, vector=tuple(vector))
                for category, vector in zip(categories, _embed_batched(provider, categories, batch_size))
            ]
            entry_vectors = _embed_batched(provider, [e.search_text for e in entries], batch_size)
        except Exception as e:
            logger.log_index_event("compute", "failed", {"error": str(e)[:200]})
            raise IndexBuildError(f"Embedding computation failed: {e}") from e

        records = [EmbeddingRecord(entry=entry, vector=tuple(vector)) for entry, vector in zip(entries, entry_vectors)]

        logger.log_index_event("compute", details={
            "entries": len(records),
            "categories": len(category_vectors),
            "model": provider.model_id,
            "duration_ms": round((time.time() - start_time) * 1000, 2),
        })
        return cls(records, category_vectors, provider.model_id)

    @classmethod
    def build(cls, corpus: CorpusRepository, provider: IEmbeddingProvider,
              cache_path: Optional[str] = None,
              lock_timeout: Optional[float] = None,
              poll_interval: Optional[float] = None,
              force: bool = False) -> "VectorIndex":
        """
        Load the index from cache, or compute and persist it.

        Order of attempts: primary manifest, `.backup` manifest, then a full
        computation under the build lock. A process that finds the lock held
        waits for it to clear and reloads the cache the other process wrote.
        `force` skips both cache reads.

        Raises:
            IndexBuildError: on provider failure or lock wait timeout
        """
        cache_path = cache_path or config.EMBED_CACHE_PATH
        lock = BuildLock(
            cache_path,
            timeout=lock_timeout if lock_timeout is not None else config.INDEX_LOCK_TIMEOUT_SEC,
            poll_interval=poll_interval if poll_interval is not None else config.INDEX_LOCK_POLL_SEC,
        )
        model_id = provider.model_id

        if not force:
            index = cls._load_cached(cache_path, model_id, corpus)
            if index is not None:
                return index

        while True:
            if lock.try_acquire():
                with lock:
                    if not force:
                        # Another process may have finished between our read and the lock
                        index = cls._load_primary(cache_path, model_id, corpus)
                        if index is not None:
                            return index
                    return cls._compute_and_persist(corpus, provider, cache_path)

            lock.wait_until_released()
            index = cls._load_primary(cache_path, model_id, corpus)
            if index is not None:
                return index
            logger.log_index_event("reload_after_wait", "invalid", {"path": cache_path})

    @classmethod
    def _load_primary(cls, cache_path: str, model_id: str, corpus: CorpusRepository) -> Optional["VectorIndex"]:
        try:
            manifest = load_manifest(cache_path, model_id, corpus)
        except CacheInvalidError as e:
            logger.log_cache_event("load", cache_path, "invalid", str(e))
            return None
        logger.log_cache_event("load", cache_path)
        return cls.from_manifest(manifest)

    @classmethod
    def _load_cached(cls, cache_path: str, model_id: str, corpus: CorpusRepository) -> Optional["VectorIndex"]:
        index = cls._load_primary(cache_path, model_id, corpus)
        if index is not None:
            return index

        backup = backup_path(cache_path)
        try:
            manifest = load_manifest(backup, model_id, corpus)
        except CacheInvalidError as e:
            logger.log_cache_event("load", backup, "invalid", str(e))
            return None

        restore_backup(cache_path)
        return cls.from_manifest(manifest)

    @classmethod
    def _compute_and_persist(cls, corpus: CorpusRepository, provider: IEmbeddingProvider,
                             cache_path: str) -> "VectorIndex":
        index = cls.compute(corpus, provider)

        prior_valid = cls._is_valid_manifest(cache_path, provider.model_id, corpus)
        if prior_valid:
            copy_to_backup(cache_path)

        save_manifest(index.to_manifest(corpus.fingerprint()), cache_path)

        if not prior_valid:
            copy_to_backup(cache_path)
        return index

    @staticmethod
    def _is_valid_manifest(path: str, model_id: str, corpus: CorpusRepository) -> bool:
        try:
            load_manifest(path, model_id, corpus)
        except CacheInvalidError:
            return False
        return True


def _embed_batched(provider: IEmbeddingProvider, texts: List[str], batch_size: int) -> List[List[float]]:
    vectors = []
    for start in range(0, len(texts), max(1, batch_size)):
        batch = texts[start:start + batch_size]
        embedded = provider.embed_texts(batch)
        if len(embedded) != len(batch):
            raise ValueError(f"Provider returned {len(embedded)} vectors for {len(batch)} texts")
        vectors.extend(embedded)
    return vectors

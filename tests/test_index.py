"""
Vector index build tests: cache reuse, backup fallback, locking and failures.
"""

import json
import os
import threading
import numpy as np
import pytest
from unittest.mock import patch

from advice_rag.core.corpus import AdviceEntry, CorpusRepository
from advice_rag.core.errors import IndexBuildError
from advice_rag.vector.cache import BuildLock, backup_path, lock_path, save_manifest
from advice_rag.vector.embeddings import DeterministicHashEmbedding
from advice_rag.vector.index import VectorIndex


class CountingEmbedding(DeterministicHashEmbedding):
    """Hash embedding that counts provider calls and can be salted or broken."""

    def __init__(self, dimension=8, salt="", fail=False):
        super().__init__(dimension)
        self.salt = salt
        self.fail = fail
        self.calls = 0

    def embed_text(self, text):
        self.calls += 1
        if self.fail:
            raise RuntimeError("embedding service unavailable")
        return super().embed_text(self.salt + text)


@pytest.fixture
def corpus():
    return CorpusRepository([
        AdviceEntry(entry_id=0, category="Fundraising", sub_category="Seed",
                    advice="Raise when you don't need it.", advice_context="", source_link="https://example.com/1"),
        AdviceEntry(entry_id=1, category="Hiring", sub_category="Early team",
                    advice="Hire slowly.", advice_context="Fire fast.", source_link="https://example.com/2"),
        AdviceEntry(entry_id=2, category="Fundraising", sub_category="Series A",
                    advice="Know your metrics.", advice_context="", source_link="https://example.com/3"),
    ])


@pytest.fixture
def cache_path(tmp_path):
    return str(tmp_path / "data" / "embeddings.json")


def build(corpus, provider, cache_path, **kwargs):
    kwargs.setdefault("lock_timeout", 2)
    kwargs.setdefault("poll_interval", 0.01)
    return VectorIndex.build(corpus, provider, cache_path=cache_path, **kwargs)


def test_compute_shapes(corpus):
    index = VectorIndex.compute(corpus, CountingEmbedding())

    assert len(index) == 3
    assert [c.category for c in index.category_vectors] == ["Fundraising", "Hiring"]
    assert index.entry_matrix.shape == (3, 8)
    assert np.allclose(np.linalg.norm(index.entry_matrix, axis=1), 1.0)
    assert index.category_row("Hiring") == 1


def test_matrices_read_only(corpus):
    index = VectorIndex.compute(corpus, CountingEmbedding())
    with pytest.raises(ValueError):
        index.entry_matrix[0, 0] = 1.0


def test_first_build_writes_cache_and_backup(corpus, cache_path):
    provider = CountingEmbedding()
    build(corpus, provider, cache_path)

    assert os.path.exists(cache_path)
    assert os.path.exists(backup_path(cache_path))
    assert not os.path.exists(lock_path(cache_path))
    assert provider.calls == 5  # 2 categories + 3 entries


def test_second_build_uses_cache(corpus, cache_path):
    first = build(corpus, CountingEmbedding(), cache_path)

    provider = CountingEmbedding()
    second = build(corpus, provider, cache_path)

    assert provider.calls == 0
    assert np.allclose(first.entry_matrix, second.entry_matrix)
    assert [r.entry for r in second.records] == list(corpus.entries)


def test_corrupt_cache_falls_back_to_backup(corpus, cache_path):
    build(corpus, CountingEmbedding(), cache_path)
    with open(cache_path, "w", encoding="utf-8") as handle:
        handle.write("corrupted")

    provider = CountingEmbedding()
    index = build(corpus, provider, cache_path)

    assert provider.calls == 0
    assert len(index) == 3
    with open(cache_path, encoding="utf-8") as handle:
        assert handle.read() != "corrupted"


def test_model_change_recomputes(corpus, cache_path):
    build(corpus, CountingEmbedding(dimension=8), cache_path)

    provider = CountingEmbedding(dimension=16)
    index = build(corpus, provider, cache_path)

    assert provider.calls == 5
    assert index.model_id == "hash-16"
    assert index.entry_matrix.shape == (3, 16)


def test_force_rebuild_backs_up_prior_cache(corpus, cache_path):
    build(corpus, CountingEmbedding(), cache_path)
    with open(cache_path, encoding="utf-8") as handle:
        prior = handle.read()

    provider = CountingEmbedding(salt="v2:")
    build(corpus, provider, cache_path, force=True)

    assert provider.calls == 5
    with open(backup_path(cache_path), encoding="utf-8") as handle:
        assert handle.read() == prior
    with open(cache_path, encoding="utf-8") as handle:
        assert handle.read() != prior


def test_provider_failure_raises_and_releases_lock(corpus, cache_path):
    with pytest.raises(IndexBuildError):
        build(corpus, CountingEmbedding(fail=True), cache_path)

    assert not os.path.exists(lock_path(cache_path))
    assert not os.path.exists(cache_path)


def test_waits_for_other_builder(corpus, cache_path):
    """A held lock makes the build wait, then load what the holder wrote."""
    other = BuildLock(cache_path, timeout=2, poll_interval=0.01)
    assert other.try_acquire()

    def finish_other_build():
        index = VectorIndex.compute(corpus, CountingEmbedding())
        save_manifest(index.to_manifest(corpus.fingerprint()), cache_path)
        other.release()

    timer = threading.Timer(0.1, finish_other_build)
    timer.start()
    try:
        provider = CountingEmbedding()
        index = build(corpus, provider, cache_path)
    finally:
        timer.join()

    assert provider.calls == 0
    assert len(index) == 3


def test_competes_again_when_holder_leaves_no_cache(corpus, cache_path):
    other = BuildLock(cache_path, timeout=2, poll_interval=0.01)
    assert other.try_acquire()

    timer = threading.Timer(0.05, other.release)
    timer.start()
    try:
        provider = CountingEmbedding()
        index = build(corpus, provider, cache_path)
    finally:
        timer.join()

    assert provider.calls == 5
    assert len(index) == 3


def test_lock_wait_timeout(corpus, cache_path):
    other = BuildLock(cache_path, timeout=2, poll_interval=0.01)
    assert other.try_acquire()
    try:
        with pytest.raises(IndexBuildError):
            build(corpus, CountingEmbedding(), cache_path, lock_timeout=0.05)
    finally:
        other.release()


def test_stale_lock_from_dead_builder_is_taken_over(corpus, cache_path):
    os.makedirs(os.path.dirname(cache_path), exist_ok=True)
    with open(lock_path(cache_path), "w", encoding="utf-8") as handle:
        json.dump({"pid": 424242, "acquired_at": "2024-01-01T00:00:00"}, handle)

    provider = CountingEmbedding()
    with patch("advice_rag.vector.cache.psutil.pid_exists", return_value=False):
        index = build(corpus, provider, cache_path, lock_timeout=0.05)

    assert provider.calls == 5
    assert len(index) == 3
    assert not os.path.exists(lock_path(cache_path))


def test_empty_corpus_builds_empty_index(cache_path):
    index = build(CorpusRepository([]), CountingEmbedding(), cache_path)
    assert len(index) == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

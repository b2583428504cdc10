"""
Persisted embedding cache: manifest (de)serialization, validation, backup
copies and the cross-process build lock.

Files sharing one directory:
    <cache>          the manifest
    <cache>.backup   last known good manifest
    <cache>.lock     present while a process is computing embeddings
"""

import json
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import psutil

from ..core.config import CACHE_VERSION
from ..core.corpus import AdviceEntry, CorpusRepository
from ..core.errors import CacheInvalidError, IndexBuildError
from ..util.logging import logger
from .types import CategoryVector, EmbeddingRecord


def backup_path(cache_path: str) -> str:
    return f"{cache_path}.backup"


def lock_path(cache_path: str) -> str:
    return f"{cache_path}.lock"


@dataclass
class CacheManifest:
    """Durable serialized form of a vector index."""
    version: str
    model: str
    category_embeddings: List[CategoryVector] = field(default_factory=list)
    embeddings: List[EmbeddingRecord] = field(default_factory=list)
    corpus_fingerprint: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert manifest to dictionary for JSON serialization."""
        entries = []
        for record in self.embeddings:
            entry = record.entry.to_dict(display=False)
            entry["entryId"] = record.entry.entry_id
            entries.append({"entry": entry, "vector": list(record.vector)})

        return {
            "version": self.version,
            "model": self.model,
            "corpusFingerprint": self.corpus_fingerprint,
            "categoryEmbeddings": [[c.category, list(c.vector)] for c in self.category_embeddings],
            "embeddings": entries,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], corpus: CorpusRepository) -> "CacheManifest":
        """
        Rebuild a manifest from JSON data, resolving entries against the corpus.

        Raises:
            CacheInvalidError: if the data is structurally wrong or an entry
                cannot be matched to the corpus
        """
        try:
            categories = [
                CategoryVector(category=str(category), vector=_as_vector(vector))
                for category, vector in data["categoryEmbeddings"]
            ]
            records = [
                EmbeddingRecord(entry=_resolve_entry(item["entry"], corpus), vector=_as_vector(item["vector"]))
                for item in data["embeddings"]
            ]
            return cls(
                version=str(data["version"]),
                model=str(data["model"]),
                category_embeddings=categories,
                embeddings=records,
                corpus_fingerprint=str(data.get("corpusFingerprint", "")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CacheInvalidError(f"Malformed cache manifest: {e}") from e

    def validate(self, expected_model: str, corpus: CorpusRepository) -> None:
        """Raise CacheInvalidError unless this manifest matches the current build."""
        if self.version != CACHE_VERSION:
            raise CacheInvalidError(f"Cache version {self.version!r} != {CACHE_VERSION!r}")
        if self.model != expected_model:
            raise CacheInvalidError(f"Cache model {self.model!r} != {expected_model!r}")
        if self.corpus_fingerprint != corpus.fingerprint():
            raise CacheInvalidError("Corpus changed since cache was written")
        if len(self.embeddings) != len(corpus):
            raise CacheInvalidError(
                f"Cache holds {len(self.embeddings)} embeddings for {len(corpus)} entries"
            )
        dimensions = {len(record.vector) for record in self.embeddings}
        dimensions.update(len(c.vector) for c in self.category_embeddings)
        if len(dimensions) > 1:
            raise CacheInvalidError(f"Inconsistent vector dimensions: {sorted(dimensions)}")


def _as_vector(values) -> Tuple[float, ...]:
    if not isinstance(values, list) or not values:
        raise ValueError("vector must be a non-empty list")
    return tuple(float(v) for v in values)


def _resolve_entry(data: Dict[str, Any], corpus: CorpusRepository) -> AdviceEntry:
    entry_id = data.get("entryId")
    if isinstance(entry_id, int):
        entry = corpus.get(entry_id)
        if entry is not None and entry.advice == data.get("advice") and entry.advice_context == data.get("adviceContext"):
            return entry

    entry = corpus.lookup_raw(data.get("advice", ""), data.get("adviceContext", ""))
    if entry is None:
        raise ValueError(f"cached entry not in corpus: {str(data.get('advice', ''))[:40]!r}")
    return entry


def load_manifest(path: str, expected_model: str, corpus: CorpusRepository) -> CacheManifest:
    """
    Load and validate a manifest file.

    Raises:
        CacheInvalidError: if the file is missing, unreadable, corrupt or stale
    """
    cache_file = Path(path)
    if not cache_file.exists():
        raise CacheInvalidError(f"No cache file at {path}")

    try:
        with cache_file.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as e:
        raise CacheInvalidError(f"Unreadable cache file {path}: {e}") from e

    if not isinstance(data, dict):
        raise CacheInvalidError(f"Cache file {path} is not a JSON object")

    manifest = CacheManifest.from_dict(data, corpus)
    manifest.validate(expected_model, corpus)
    return manifest


def save_manifest(manifest: CacheManifest, path: str) -> None:
    """Write the manifest atomically (temp file in the same directory, then rename)."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=target.name, suffix=".tmp", dir=str(target.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(manifest.to_dict(), handle)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.log_cache_event("saved", str(target))


def copy_to_backup(path: str) -> None:
    shutil.copyfile(path, backup_path(path))
    logger.log_cache_event("backup_written", backup_path(path))


def restore_backup(path: str) -> None:
    """Copy the backup over the primary manifest."""
    shutil.copyfile(backup_path(path), path)
    logger.log_cache_event("backup_restored", path)


class BuildLock:
    """
    Advisory lock file marking an in-progress index build.

    Presence of the file means a build is running. Acquisition uses
    O_CREAT | O_EXCL so exactly one process wins. The file records the
    holder's pid; waiters remove it once that process no longer exists.
    """

    def __init__(self, cache_path: str, timeout: float, poll_interval: float):
        self.path = lock_path(cache_path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False

        with os.fdopen(fd, "w") as handle:
            handle.write(json.dumps({"pid": os.getpid(), "acquired_at": datetime.now().isoformat()}))
        self._held = True
        logger.log_index_event("lock_acquired", details={"path": self.path})
        return True

    def release(self) -> None:
        if not self._held:
            return
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        self._held = False
        logger.log_index_event("lock_released", details={"path": self.path})

    def is_locked(self) -> bool:
        return os.path.exists(self.path)

    def holder_pid(self) -> Optional[int]:
        """Pid recorded in the lock file, or None while it is unreadable or being written."""
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                return int(json.load(handle)["pid"])
        except (OSError, ValueError, KeyError, TypeError):
            return None

    def is_stale(self) -> bool:
        """True when the lock was left behind by a process that no longer exists."""
        pid = self.holder_pid()
        return pid is not None and not psutil.pid_exists(pid)

    def break_stale(self) -> bool:
        """Remove a stale lock file. Returns True if one was removed."""
        if not self.is_stale():
            return False
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        logger.log_index_event("lock_stale_removed", "invalid", {"path": self.path})
        return True

    def wait_until_released(self) -> None:
        """
        Poll until the lock file disappears or is found stale.

        Raises:
            IndexBuildError: if the lock is still present after the timeout
        """
        logger.log_index_event("lock_wait", "waiting", {"path": self.path, "timeout": self.timeout})
        deadline = time.monotonic() + self.timeout
        while self.is_locked():
            if self.break_stale():
                return
            if time.monotonic() >= deadline:
                logger.log_index_event("lock_wait", "timeout", {"path": self.path})
                raise IndexBuildError(
                    f"Timed out after {self.timeout}s waiting for index build lock {self.path}"
                )
            time.sleep(self.poll_interval)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

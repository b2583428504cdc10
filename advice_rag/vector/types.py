"""
Vector index record types.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..core.corpus import AdviceEntry


@dataclass(frozen=True)
class EmbeddingRecord:
    """Embedding of one corpus entry."""

    entry: AdviceEntry
    """The embedded advice entry"""

    vector: Tuple[float, ...]
    """Embedding of the entry's search text"""


@dataclass(frozen=True)
class CategoryVector:
    """Embedding of one distinct category name."""

    category: str
    """Category value as it appears in the corpus"""

    vector: Tuple[float, ...]
    """Embedding of the category name"""


@dataclass(frozen=True)
class SearchResult:
    """Represents a scored match for a query."""

    entry: AdviceEntry
    """The matched advice entry"""

    similarity: float
    """Blended cosine similarity of the match (-1 to 1)"""

    def to_dict(self) -> Dict[str, Any]:
        return {"entry": self.entry.to_dict(), "similarity": self.similarity}

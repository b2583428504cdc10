"""
Advice corpus: CSV ingestion, text normalization and keyword browsing.
The repository is loaded once and is read-only afterwards.
"""

import csv
import hashlib
import math
import re
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import BROWSE_PAGE_SIZE
from ..util.logging import logger

REQUIRED_COLUMNS = ("Advice", "Category", "SubCategory")

_QUOTE_MAP = str.maketrans({
    "‘": "'", "’": "'", "“": '"', "”": '"',
    "–": "-", "—": "-", " ": " ",
})
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Normalize text for embedding and prompting: NFKC, plain quotes, single spaces."""
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text).translate(_QUOTE_MAP)
    return _WHITESPACE.sub(" ", text).strip()


@dataclass(frozen=True)
class AdviceEntry:
    """One advice record. `advice`/`advice_context` are normalized, `display_*` keep the raw text."""

    entry_id: int
    category: str
    sub_category: str
    advice: str
    advice_context: str
    source_title: str = ""
    source_type: str = ""
    source_link: str = ""
    display_advice: str = ""
    display_context: str = ""

    @property
    def search_text(self) -> str:
        """Text embedded for this entry."""
        return f"{self.category} {self.sub_category} {self.advice} {self.advice_context}"

    def to_dict(self, display: bool = True) -> Dict[str, Any]:
        """Serialize with camelCase keys. `display` selects raw over normalized text."""
        return {
            "category": self.category,
            "subCategory": self.sub_category,
            "advice": (self.display_advice or self.advice) if display else self.advice,
            "adviceContext": (self.display_context or self.advice_context) if display else self.advice_context,
            "sourceTitle": self.source_title,
            "sourceType": self.source_type,
            "sourceLink": self.source_link,
        }

    @classmethod
    def from_row(cls, entry_id: int, row: Dict[str, Any]) -> Optional["AdviceEntry"]:
        """Build an entry from a CSV row. Returns None when a required column is empty."""
        values = {k.strip(): (v or "").strip() for k, v in row.items() if k}
        if any(not values.get(column) for column in REQUIRED_COLUMNS):
            return None

        raw_advice = values.get("Advice", "")
        raw_context = values.get("AdviceContext", "")
        return cls(
            entry_id=entry_id,
            category=normalize_text(values.get("Category")),
            sub_category=normalize_text(values.get("SubCategory")),
            advice=normalize_text(raw_advice),
            advice_context=normalize_text(raw_context),
            source_title=normalize_text(values.get("SourceTitle")),
            source_type=normalize_text(values.get("SourceType")),
            source_link=values.get("SourceLink", ""),
            display_advice=raw_advice,
            display_context=raw_context,
        )


@dataclass
class BrowsePage:
    """One page of keyword browse results."""
    entries: List[AdviceEntry]
    categories: List[str]
    sub_categories: List[str]
    total: int
    start: int
    end: int
    total_pages: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "categories": self.categories,
            "subCategories": self.sub_categories,
            "total": self.total,
            "from": self.start,
            "to": self.end,
            "totalPages": self.total_pages,
        }


class CorpusRepository:
    """Immutable, ordered collection of advice entries."""

    def __init__(self, entries: Iterable[AdviceEntry]):
        self._entries: Tuple[AdviceEntry, ...] = tuple(entries)

    @classmethod
    def from_csv(cls, path: str) -> "CorpusRepository":
        """
        Load the corpus from a CSV file.

        Rows missing Advice, Category or SubCategory are skipped. Entry ids
        are assigned in file order over the kept rows.
        """
        csv_path = Path(path)
        if not csv_path.exists():
            raise FileNotFoundError(f"Corpus file not found: {path}")

        entries = []
        skipped = 0
        with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
            for row in csv.DictReader(handle):
                entry = AdviceEntry.from_row(len(entries), row)
                if entry is None:
                    skipped += 1
                    continue
                entries.append(entry)

        logger.log_operation("corpus.load", "success", {
            "path": str(csv_path), "entries": len(entries), "skipped": skipped
        })
        return cls(entries)

    @property
    def entries(self) -> Tuple[AdviceEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def get(self, entry_id: int) -> Optional[AdviceEntry]:
        if 0 <= entry_id < len(self._entries) and self._entries[entry_id].entry_id == entry_id:
            return self._entries[entry_id]
        for entry in self._entries:
            if entry.entry_id == entry_id:
                return entry
        return None

    def categories(self) -> List[str]:
        """Distinct categories in first-seen order."""
        return list(dict.fromkeys(entry.category for entry in self._entries))

    def fingerprint(self) -> str:
        """SHA-256 over the normalized corpus, used to invalidate stale caches."""
        digest = hashlib.sha256()
        for entry in self._entries:
            digest.update(entry.search_text.encode("utf-8"))
            digest.update(b"\x1f")
            digest.update(entry.source_link.encode("utf-8"))
            digest.update(b"\x1e")
        return digest.hexdigest()

    def lookup_raw(self, advice: str, advice_context: str) -> Optional[AdviceEntry]:
        """
        Find the entry whose normalized advice and context match.

        Several entries may normalize identically; the first one in corpus
        order wins.
        """
        for entry in self._entries:
            if entry.advice == advice and entry.advice_context == advice_context:
                return entry
        return None

    def browse(self, q: str = "", category: str = "", sub_category: str = "",
               page: int = 1, page_size: int = BROWSE_PAGE_SIZE) -> BrowsePage:
        """Case-insensitive substring filter with pagination (page is 1-based)."""
        needle = normalize_text(q).lower()
        category = (category or "").strip()
        sub_category = (sub_category or "").strip()

        matched = []
        for entry in self._entries:
            if category and entry.category.lower() != category.lower():
                continue
            if sub_category and entry.sub_category.lower() != sub_category.lower():
                continue
            if needle:
                haystack = " ".join((
                    entry.category, entry.sub_category, entry.advice,
                    entry.advice_context, entry.source_title,
                )).lower()
                if needle not in haystack:
                    continue
            matched.append(entry)

        sub_categories = sorted({
            entry.sub_category for entry in self._entries
            if not category or entry.category.lower() == category.lower()
        })

        total = len(matched)
        total_pages = math.ceil(total / page_size) if total else 0
        page = max(1, page)
        offset = (page - 1) * page_size
        page_entries = matched[offset:offset + page_size]

        return BrowsePage(
            entries=page_entries,
            categories=sorted(set(self.categories())),
            sub_categories=sub_categories,
            total=total,
            start=offset + 1 if page_entries else 0,
            end=offset + len(page_entries) if page_entries else 0,
            total_pages=total_pages,
        )

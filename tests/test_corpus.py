"""
Corpus loading, normalization and keyword browse tests.
"""

import csv
import pytest

from advice_rag.core.corpus import AdviceEntry, CorpusRepository, normalize_text

FIELDS = ["Category", "SubCategory", "Advice", "AdviceContext", "SourceTitle", "SourceType", "SourceLink"]


def write_corpus(path, rows):
    with open(path, "w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return str(path)


@pytest.fixture
def corpus_rows():
    return [
        {"Category": "Fundraising", "SubCategory": "Seed", "Advice": "Raise when you don’t need it.",
         "AdviceContext": "Leverage  matters.", "SourceTitle": "Episode 1", "SourceType": "Podcast",
         "SourceLink": "https://example.com/1"},
        {"Category": "Hiring", "SubCategory": "Early team", "Advice": "Hire slowly.",
         "AdviceContext": "", "SourceTitle": "Essay", "SourceType": "Blog",
         "SourceLink": "https://example.com/2"},
        {"Category": "", "SubCategory": "Seed", "Advice": "Missing category is skipped.",
         "AdviceContext": "", "SourceTitle": "", "SourceType": "", "SourceLink": ""},
        {"Category": "Fundraising", "SubCategory": "Series A", "Advice": "Know your metrics.",
         "AdviceContext": "Investors ask.", "SourceTitle": "Episode 2", "SourceType": "Podcast",
         "SourceLink": "https://example.com/3"},
    ]


@pytest.fixture
def corpus(tmp_path, corpus_rows):
    return CorpusRepository.from_csv(write_corpus(tmp_path / "advice.csv", corpus_rows))


def test_normalize_text():
    assert normalize_text("Don’t  “panic”\n— ever") == "Don't \"panic\" - ever"
    assert normalize_text(None) == ""
    assert normalize_text("   ") == ""


def test_load_skips_incomplete_rows(corpus):
    assert len(corpus) == 3
    assert [e.entry_id for e in corpus] == [0, 1, 2]
    assert corpus.get(2).advice == "Know your metrics."


def test_entry_keeps_display_text(corpus):
    entry = corpus.get(0)
    assert entry.advice == "Raise when you don't need it."
    assert entry.display_advice == "Raise when you don’t need it."
    assert entry.to_dict()["advice"] == "Raise when you don’t need it."
    assert entry.to_dict(display=False)["advice"] == "Raise when you don't need it."
    assert entry.advice_context == "Leverage matters."


def test_search_text_concatenates_fields(corpus):
    entry = corpus.get(0)
    assert entry.search_text == "Fundraising Seed Raise when you don't need it. Leverage matters."


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        CorpusRepository.from_csv(str(tmp_path / "missing.csv"))


def test_categories_first_seen_order(corpus):
    assert corpus.categories() == ["Fundraising", "Hiring"]


def test_fingerprint_changes_with_content(tmp_path, corpus, corpus_rows):
    same = CorpusRepository.from_csv(write_corpus(tmp_path / "same.csv", corpus_rows))
    assert same.fingerprint() == corpus.fingerprint()

    corpus_rows[0]["Advice"] = "Different advice."
    changed = CorpusRepository.from_csv(write_corpus(tmp_path / "changed.csv", corpus_rows))
    assert changed.fingerprint() != corpus.fingerprint()


def test_lookup_raw_first_match_wins():
    first = AdviceEntry(entry_id=0, category="A", sub_category="x", advice="Same", advice_context="ctx")
    second = AdviceEntry(entry_id=1, category="B", sub_category="y", advice="Same", advice_context="ctx")
    repo = CorpusRepository([first, second])

    assert repo.lookup_raw("Same", "ctx") is first
    assert repo.lookup_raw("Other", "ctx") is None


class TestBrowse:
    """Keyword browse used by the advice search endpoint."""

    def test_substring_match_is_case_insensitive(self, corpus):
        page = corpus.browse(q="HIRE")
        assert [e.entry_id for e in page.entries] == [1]
        assert page.total == 1

    def test_category_and_subcategory_filters(self, corpus):
        page = corpus.browse(category="fundraising")
        assert [e.entry_id for e in page.entries] == [0, 2]
        assert page.sub_categories == ["Seed", "Series A"]

        page = corpus.browse(category="Fundraising", sub_category="Seed")
        assert [e.entry_id for e in page.entries] == [0]

    def test_pagination(self, corpus):
        first = corpus.browse(page=1, page_size=2)
        assert first.to_dict()["from"] == 1
        assert first.to_dict()["to"] == 2
        assert first.total_pages == 2

        second = corpus.browse(page=2, page_size=2)
        assert [e.entry_id for e in second.entries] == [2]
        assert second.start == 3 and second.end == 3

    def test_page_past_the_end_is_empty(self, corpus):
        data = corpus.browse(page=5, page_size=2).to_dict()
        assert data["entries"] == []
        assert data["from"] == 0
        assert data["to"] == 0
        assert data["total"] == 3
        assert data["totalPages"] == 2

    def test_no_matches(self, corpus):
        page = corpus.browse(q="nothing like this")
        data = page.to_dict()
        assert data["entries"] == []
        assert data["total"] == 0
        assert data["from"] == 0
        assert data["totalPages"] == 0
        assert data["categories"] == ["Fundraising", "Hiring"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

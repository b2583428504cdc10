"""
Grounding and display selection tests.
"""

import pytest

from advice_rag.core.corpus import AdviceEntry
from advice_rag.vector.selection import QualitySelector
from advice_rag.vector.types import SearchResult


def ranked(*similarities):
    return [
        SearchResult(
            entry=AdviceEntry(entry_id=i, category="C", sub_category="S", advice=f"advice {i}", advice_context=""),
            similarity=s,
        )
        for i, s in enumerate(similarities)
    ]


@pytest.fixture
def selector():
    return QualitySelector(floor=0.49, gap=0.08, minimum=5, maximum=8, display=10)


def test_high_quality_threshold(selector):
    assert selector.high_quality_threshold(0.95) == pytest.approx(0.87)
    assert selector.high_quality_threshold(0.50) == pytest.approx(0.49)


def test_falls_back_to_top_five(selector):
    results = ranked(0.95, 0.90, 0.88, 0.70, 0.65, 0.50, 0.40)
    assert selector.select_grounding(results) == results[:5]


def test_small_input_returned_whole(selector):
    for n in range(0, 6):
        results = ranked(*[0.9 - 0.1 * i for i in range(n)])
        assert selector.select_grounding(results) == results


def test_high_quality_prefix_capped(selector):
    results = ranked(*[0.90 - 0.005 * i for i in range(12)])
    assert selector.select_grounding(results) == results[:8]


def test_high_quality_prefix_between_bounds(selector):
    results = ranked(0.80, 0.79, 0.78, 0.77, 0.76, 0.75, 0.60, 0.55)
    assert selector.select_grounding(results) == results[:6]


def test_floor_applies_to_weak_top_match(selector):
    # threshold is max(0.49, 0.52 - 0.08) = 0.49
    results = ranked(0.52, 0.51, 0.50, 0.50, 0.49, 0.49, 0.48, 0.47)
    assert selector.select_grounding(results) == results[:6]


def test_grounding_bounds_and_prefix(selector):
    patterns = [
        [0.99, 0.3, 0.2, 0.1, 0.05, 0.01, 0.0],
        [0.6] * 20,
        [0.9, 0.85, 0.84, 0.83, 0.82, 0.81, 0.80, 0.79, 0.78],
        [0.5, 0.49, 0.48],
    ]
    for sims in patterns:
        results = ranked(*sims)
        grounding = selector.select_grounding(results)
        assert min(5, len(results)) <= len(grounding) <= 8
        assert grounding == results[:len(grounding)]


def test_grounding_monotonic_in_input_length(selector):
    sims = [0.9 - 0.004 * i for i in range(15)]
    lengths = [len(selector.select_grounding(ranked(*sims[:n]))) for n in range(len(sims) + 1)]
    assert lengths == sorted(lengths)


def test_display_is_fixed_prefix(selector):
    results = ranked(*[0.9 - 0.01 * i for i in range(14)])
    display = selector.select_display(results)

    assert display == results[:10]
    assert len(display) >= len(selector.select_grounding(results))


def test_invalid_bounds():
    with pytest.raises(ValueError):
        QualitySelector(minimum=0)
    with pytest.raises(ValueError):
        QualitySelector(minimum=6, maximum=5)
    with pytest.raises(ValueError):
        QualitySelector(minimum=5, maximum=8, display=7)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

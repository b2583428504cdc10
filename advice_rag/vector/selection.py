"""
Quality-tiered selection of grounding and display sets from ranked results.
"""

from typing import List, Optional

from ..core import config
from .types import SearchResult


class QualitySelector:
    """
    Picks how many top results are good enough to ground an answer.

    floor:   minimum acceptable absolute similarity
    gap:     maximum drop-off from the best match
    minimum: entries always used when available
    maximum: hard cap on the grounding set
    display: size of the display set shown alongside the answer
    """

    def __init__(self, floor: Optional[float] = None, gap: Optional[float] = None,
                 minimum: Optional[int] = None, maximum: Optional[int] = None,
                 display: Optional[int] = None):
        self.floor = config.GROUNDING_FLOOR if floor is None else floor
        self.gap = config.GROUNDING_GAP if gap is None else gap
        self.minimum = config.GROUNDING_MIN if minimum is None else minimum
        self.maximum = config.GROUNDING_MAX if maximum is None else maximum
        self.display = config.DISPLAY_COUNT if display is None else display

        if self.minimum < 1 or self.maximum < self.minimum:
            raise ValueError("Grounding bounds must satisfy 1 <= minimum <= maximum")
        if self.display < self.maximum:
            raise ValueError("Display set must be at least as large as the grounding cap")

    def high_quality_threshold(self, top_similarity: float) -> float:
        return max(self.floor, top_similarity - self.gap)

    def select_grounding(self, ranked: List[SearchResult]) -> List[SearchResult]:
        """
        Prefix of `ranked` used to ground stage 1.

        Length is in [min(minimum, len(ranked)), maximum].
        """
        if len(ranked) <= self.minimum:
            return list(ranked)

        threshold = self.high_quality_threshold(ranked[0].similarity)
        high_quality = 0
        for result in ranked:
            if result.similarity < threshold:
                break
            high_quality += 1

        if high_quality > self.minimum:
            return list(ranked[:min(high_quality, self.maximum)])
        return list(ranked[:self.minimum])

    def select_display(self, ranked: List[SearchResult]) -> List[SearchResult]:
        """Fixed-size prefix of `ranked` for display, independent of grounding."""
        return list(ranked[:self.display])

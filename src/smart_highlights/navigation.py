"""
Per-rule match state and the global cross-document match ordering.

Each rule owns one :class:`RuleMatchState`. It holds the match ranges found in
every document the rule currently matches, the locally selected match per
document, and the cached global position of the last visited match. Every
invalidation is an explicit method call made by the engine or scanner.

Global order sorts documents by URI (plain string comparison), then matches
by start offset, then end offset. Indices exposed to callers are 1-based.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from smart_highlights.models import MatchLocation, NavigationDirection, Selection, TextRange


@dataclass
class DocumentMatchStats:
    """Matches of one rule in one document."""

    ranges: list[TextRange] = field(default_factory=list)
    current_index: Optional[int] = None

    @property
    def match_count(self) -> int:
        return len(self.ranges)


@dataclass
class RuleMatchState:
    """
    Match cache owned by a single rule.

    Attributes:
        stats: Match statistics keyed by document URI. Only documents with at
            least one match are kept.
        global_index: 1-based global index of the most recently visited match.
    """

    stats: dict[str, DocumentMatchStats] = field(default_factory=dict)
    global_index: Optional[int] = None

    def stats_for(self, uri: str) -> Optional[DocumentMatchStats]:
        return self.stats.get(uri)

    def record(self, uri: str, ranges: Sequence[TextRange], current_index: Optional[int] = None) -> None:
        """Store fresh matches for a document; zero matches drop the entry."""
        if not ranges:
            self.stats.pop(uri, None)
            return
        self.stats[uri] = DocumentMatchStats(ranges=sorted(ranges), current_index=current_index)

    def discard(self, uri: str) -> bool:
        return self.stats.pop(uri, None) is not None

    def reset_current(self, uri: str) -> None:
        """Forget the selected match in ``uri`` but keep its ranges navigable."""
        stats = self.stats.get(uri)
        if stats is not None:
            stats.current_index = None

    def clear(self) -> None:
        self.stats.clear()
        self.global_index = None

    def total_matches(self) -> int:
        return sum(stats.match_count for stats in self.stats.values())

    def global_order(self) -> list[MatchLocation]:
        """Every match in deterministic cross-document order."""
        order: list[MatchLocation] = []
        for uri in sorted(self.stats):
            for text_range in self.stats[uri].ranges:
                order.append(MatchLocation(uri=uri, start=text_range.start, end=text_range.end))
        return order

    def global_index_of(self, uri: str, local_index: Optional[int]) -> Optional[int]:
        """Map a 1-based local index in ``uri`` to its 1-based global index."""
        if not local_index or local_index <= 0:
            return None
        offset = 0
        for entry_uri in sorted(self.stats):
            stats = self.stats[entry_uri]
            if entry_uri == uri:
                if local_index > stats.match_count:
                    return None
                return offset + local_index
            offset += stats.match_count
        return None

    def local_index_of(self, uri: str, text_range: TextRange) -> Optional[int]:
        """1-based position of ``text_range`` among the matches in ``uri``."""
        stats = self.stats.get(uri)
        if stats is None:
            return None
        try:
            return stats.ranges.index(text_range) + 1
        except ValueError:
            return None


def selection_match_index(selection: Optional[Selection], ranges: Sequence[TextRange]) -> Optional[int]:
    """
    Find which match a selection points at.

    A non-empty selection picks the first match it equals or fully contains.
    A caret picks the first match containing it, ends inclusive.

    Returns:
        1-based index into ``ranges``, or None.
    """
    if selection is None or not ranges:
        return None

    for i, text_range in enumerate(ranges, start=1):
        if not selection.is_empty:
            if selection.start <= text_range.start and selection.end >= text_range.end:
                return i
            continue
        if text_range.start <= selection.start <= text_range.end:
            return i
    return None


def target_index(current: Optional[int], total: int, direction: NavigationDirection | str) -> int:
    """
    Pick the 0-based position to move to, wrapping at both ends.

    With no current position ``next`` goes to the first match and
    ``previous`` to the last.
    """
    if total <= 0:
        raise ValueError("Cannot navigate without matches")
    if NavigationDirection(direction) == NavigationDirection.NEXT:
        return 0 if current is None else (current + 1) % total
    return total - 1 if current is None else (current - 1 + total) % total

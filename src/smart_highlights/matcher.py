"""
Pattern compilation and match finding for highlight rules.

A rule's pattern is compiled once per mutation and then run over whole
document texts. Whole-word filtering is delegated to a policy object so the
language-aware variant and the separator fallback share one matching loop.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

from smart_highlights.config import DEFAULT_WORD_SEPARATORS
from smart_highlights.errors import InvalidPatternError
from smart_highlights.host import WordPatternProvider
from smart_highlights.models import TextRange

logger = logging.getLogger(__name__)


def compile_pattern(
    pattern: str,
    match_case: bool = False,
    use_regex: bool = False,
    rule_id: str | None = None,
) -> re.Pattern[str]:
    """
    Compile a rule pattern into a matcher.

    Literal patterns are escaped so every character matches itself. Matching
    is case-insensitive unless ``match_case`` is set.

    Args:
        pattern: Rule pattern text.
        match_case: Case-sensitive matching.
        use_regex: Interpret the pattern as a regular expression.
        rule_id: Rule being compiled, attached to errors.

    Returns:
        Compiled regular expression.

    Raises:
        InvalidPatternError: If ``use_regex`` is set and the pattern does not compile.
    """
    source = pattern if use_regex else re.escape(pattern)
    flags = 0 if match_case else re.IGNORECASE
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise InvalidPatternError(
            f"Invalid regular expression: {e}",
            pattern=pattern,
            rule_id=rule_id,
        ) from e


# =============================================================================
# Whole-word policies
# =============================================================================


class WholeWordPolicy(Protocol):
    """Decides whether a candidate match counts as a whole word."""

    def accepts(self, text: str, start: int, end: int) -> bool: ...


class SeparatorWordPolicy:
    """
    Whole-word test based on neighbouring characters.

    A neighbour is a word character unless it is whitespace or one of the
    configured separators. Text boundaries count as non-word.
    """

    def __init__(self, separators: str = DEFAULT_WORD_SEPARATORS):
        self.separators = frozenset(separators)

    def is_word_char(self, char: str) -> bool:
        return not (char.isspace() or char in self.separators)

    def accepts(self, text: str, start: int, end: int) -> bool:
        if start > 0 and self.is_word_char(text[start - 1]):
            return False
        if end < len(text) and self.is_word_char(text[end]):
            return False
        return True


def word_range_at(text: str, offset: int, word_pattern: re.Pattern[str]) -> Optional[TextRange]:
    """
    Find the word containing ``offset`` on its line.

    The word is the first non-empty ``word_pattern`` match on the line whose
    range includes the offset (either end inclusive).
    """
    line_start = text.rfind("\n", 0, offset) + 1
    line_end = text.find("\n", offset)
    if line_end == -1:
        line_end = len(text)
    if line_end > line_start and text[line_end - 1] == "\r" and offset < line_end:
        line_end -= 1

    column = offset - line_start
    for match in word_pattern.finditer(text, line_start, line_end):
        if match.start() == match.end():
            continue
        if match.start() - line_start <= column <= match.end() - line_start:
            return TextRange(match.start(), match.end())
        if match.start() - line_start > column:
            break
    return None


class WordPatternPolicy:
    """Whole-word test using a language word pattern: the match must be exactly one word."""

    def __init__(self, word_pattern: re.Pattern[str]):
        self.word_pattern = word_pattern

    def accepts(self, text: str, start: int, end: int) -> bool:
        word = word_range_at(text, start, self.word_pattern)
        return word is not None and word == TextRange(start, end)


def whole_word_policy_for(
    language_id: str,
    word_patterns: Optional[WordPatternProvider],
    separators: str = DEFAULT_WORD_SEPARATORS,
) -> WholeWordPolicy:
    """Pick the language word-pattern policy when one exists, else the separator policy."""
    if word_patterns is not None:
        pattern = word_patterns.word_pattern_for(language_id)
        if pattern is not None:
            return WordPatternPolicy(pattern)
    return SeparatorWordPolicy(separators)


def find_matches(
    text: str,
    matcher: re.Pattern[str],
    whole_word: Optional[WholeWordPolicy] = None,
) -> list[TextRange]:
    """
    Find every match of ``matcher`` in ``text``, left to right.

    Zero-width matches advance the scan by one character and are not emitted.
    When ``whole_word`` is given, candidates it rejects are dropped.

    Example:
        >>> find_matches("a.b aXb", compile_pattern("a.b"))
        [TextRange(start=0, end=3)]
    """
    ranges: list[TextRange] = []
    position = 0
    length = len(text)

    while position <= length:
        match = matcher.search(text, position)
        if match is None:
            break
        start, end = match.span()
        if start == end:
            position = end + 1
            continue
        if whole_word is None or whole_word.accepts(text, start, end):
            ranges.append(TextRange(start, end))
        position = end

    return ranges

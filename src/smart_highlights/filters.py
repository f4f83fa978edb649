"""File-name filters: ``|``-separated globs that restrict which files a rule applies to."""

from __future__ import annotations

import fnmatch
import re
from typing import Iterable, Optional

from smart_highlights.config import DEFAULT_FILE_FILTER_SEPARATOR
from smart_highlights.errors import ValidationError
from smart_highlights.scopes import file_name_for_uri


def _segments(value: str, separator: str) -> list[str]:
    return [part.strip() for part in value.split(separator) if part.strip()]


def normalize_file_filter(value: Optional[str], separator: str = DEFAULT_FILE_FILTER_SEPARATOR) -> Optional[str]:
    """
    Trim each glob and drop empty ones.

    Returns None when nothing remains, meaning "no filter".

    Example:
        >>> normalize_file_filter(" *.py | | *.md ")
        '*.py|*.md'
    """
    if not value:
        return None
    normalized = separator.join(_segments(value, separator))
    return normalized or None


def compile_file_filter(
    value: Optional[str],
    separator: str = DEFAULT_FILE_FILTER_SEPARATOR,
) -> Optional[list[re.Pattern[str]]]:
    """
    Compile a normalized filter into case-insensitive file-name matchers.

    ``*`` matches any run of characters and ``?`` a single character.

    Raises:
        ValidationError: If any glob contains a path separator.
    """
    if not value:
        return None
    patterns = _segments(value, separator)
    if not patterns:
        return None

    matchers: list[re.Pattern[str]] = []
    for pattern in patterns:
        if "/" in pattern or "\\" in pattern:
            raise ValidationError(
                f"Invalid file filter pattern '{pattern}': globs match file names, not paths",
                field="file_filter",
                details={"pattern": pattern},
            )
        matchers.append(re.compile(fnmatch.translate(pattern), re.IGNORECASE))
    return matchers


def is_file_included(uri: str, matchers: Optional[Iterable[re.Pattern[str]]]) -> bool:
    """True when there is no filter or the file name matches any glob."""
    if not matchers:
        return True
    file_name = file_name_for_uri(uri)
    return any(matcher.match(file_name) for matcher in matchers)

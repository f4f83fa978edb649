"""
Exception taxonomy for the highlight rule engine.

Every user-facing failure is raised before any rule or bucket is mutated, so
callers can surface ``str(error)`` as a single descriptive message and carry
on. Scan failures for individual files are logged and skipped by the scanner
rather than propagated.
"""

from __future__ import annotations

from typing import Any


# =============================================================================
# Custom Exceptions
# =============================================================================


class HighlightError(Exception):
    """Base exception for all highlight engine errors."""

    pass


class ValidationError(HighlightError):
    """Raised when a rule field is empty or malformed (pattern, color, filter)."""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        self.field = field
        self.details = details or {}
        super().__init__(message)


class InvalidPatternError(HighlightError):
    """Raised when a regular expression pattern cannot be compiled."""

    def __init__(self, message: str, pattern: str, rule_id: str | None = None):
        self.pattern = pattern
        self.rule_id = rule_id
        super().__init__(message)


class ScanFileError(HighlightError):
    """Raised when a single file cannot be read during a scope scan or opened for navigation."""

    def __init__(self, uri: str, message: str | None = None):
        self.uri = uri
        self.message = message or f"Could not scan file: {uri}"
        super().__init__(self.message)


class ScopeResolutionError(HighlightError):
    """Raised when a location cannot be parsed or has no containing folder."""

    def __init__(self, uri: str, message: str | None = None):
        self.uri = uri
        self.message = message or f"Cannot resolve a folder scope for: {uri}"
        super().__init__(self.message)


class RuleNotFoundError(HighlightError):
    """Raised when an operation references a rule id that does not exist."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Unknown highlight rule: {rule_id}")


class ConfigurationError(HighlightError):
    """Raised when the configuration file is invalid or unreadable."""

    pass

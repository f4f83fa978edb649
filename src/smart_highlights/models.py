"""
Pydantic models and value types for the highlight engine.

This module defines the data exchanged with callers of the engine: rule
creation payloads, rule snapshots for display, scope options, match
locations, and decoration styles. Hot-path values (offset ranges, selections,
positions) are plain frozen dataclasses.

All models are designed with:
- Field descriptions for documentation
- JSON serialization support via model_config
- Enum values serialized as their string form
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RuleScope(str, Enum):
    """
    The set of documents a rule applies to.

    Attributes:
        DOCUMENT: A single document.
        FOLDER: The files directly inside one folder.
        FOLDER_RECURSIVE: A folder and all of its descendants.
    """

    DOCUMENT = "document"
    FOLDER = "folder"
    FOLDER_RECURSIVE = "folderRecursive"


class RuleOption(str, Enum):
    """Boolean matching options that can be toggled on a rule."""

    MATCH_CASE = "matchCase"
    MATCH_WHOLE_WORD = "matchWholeWord"
    USE_REGEX = "useRegex"


class NavigationDirection(str, Enum):
    """Direction for cross-file match navigation."""

    NEXT = "next"
    PREVIOUS = "previous"


# =============================================================================
# Value types
# =============================================================================


@dataclass(frozen=True, order=True)
class TextRange:
    """A half-open ``[start, end)`` character offset range in a document."""

    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


@dataclass(frozen=True)
class Selection:
    """An editor selection as character offsets; ``start == end`` is a caret."""

    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    @classmethod
    def caret(cls, offset: int) -> "Selection":
        return cls(offset, offset)


@dataclass(frozen=True)
class Position:
    """Zero-based line and character position."""

    line: int
    character: int


# =============================================================================
# Payloads and snapshots
# =============================================================================


class RuleDraft(BaseModel):
    """
    Request model for creating a highlight rule.

    Attributes:
        document_uri: Document the rule is created from; scopes resolve against it.
        pattern: Literal text or regular expression to highlight.
        color: CSS-like color string, typically ``#RRGGBBAA``.
        match_case: Case-sensitive matching.
        match_whole_word: Only keep matches not adjacent to word characters.
        use_regex: Treat the pattern as a regular expression.
        scope: Preferred scope; the resolver falls back to ``document``.
        file_filter: Glob patterns on file names joined by ``|``.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "document_uri": "file:///home/user/project/src/app.py",
                "pattern": "TODO",
                "color": "#00c4ff55",
                "match_case": False,
                "match_whole_word": True,
                "use_regex": False,
                "scope": "folderRecursive",
                "file_filter": "*.py|*.md",
            }
        },
        use_enum_values=True,
    )

    document_uri: str = Field(
        ...,
        description="Document the rule is created from",
        min_length=1,
    )
    pattern: str = Field(
        ...,
        description="Literal text or regular expression to highlight",
    )
    color: str = Field(
        ...,
        description="Highlight color (CSS color or #RRGGBB[AA])",
    )
    match_case: bool = Field(default=False, description="Case-sensitive matching")
    match_whole_word: bool = Field(default=False, description="Whole-word matching")
    use_regex: bool = Field(default=False, description="Treat the pattern as a regular expression")
    scope: Optional[RuleScope] = Field(
        default=None,
        description="Preferred scope for the new rule",
    )
    file_filter: Optional[str] = Field(
        default=None,
        description="Glob patterns on file names joined by '|'",
        examples=["*.py", "*.ts|*.tsx"],
    )


class ScopeInfo(BaseModel):
    """A resolved scope identity: scope kind, target location, and bucket key."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    scope: RuleScope
    target_uri: str
    key: str


class ScopeOption(ScopeInfo):
    """A scope identity with human-readable labels for pickers."""

    label: str = Field(..., description="Short label such as 'Current Folder'")
    description: str = Field(default="", description="File or folder name shown next to the label")


class ScopeSelection(BaseModel):
    """Scope options for a document plus the scope new rules default to."""

    model_config = ConfigDict(use_enum_values=True)

    options: list[ScopeOption] = Field(default_factory=list)
    default_scope: Optional[RuleScope] = None


class MatchLocation(BaseModel):
    """One match of a rule in the global cross-document ordering."""

    model_config = ConfigDict(frozen=True)

    uri: str = Field(..., description="Document containing the match")
    start: int = Field(..., description="Start offset of the match", ge=0)
    end: int = Field(..., description="End offset of the match", ge=0)

    @property
    def range(self) -> TextRange:
        return TextRange(self.start, self.end)


class DecorationStyle(BaseModel):
    """
    Visual style for a rule's highlight decoration.

    Built as a pure function of the rule color by
    :func:`smart_highlights.colors.decoration_style`.
    """

    model_config = ConfigDict(frozen=True)

    background_color: str
    border: str
    border_radius: str = "2px"
    color: Optional[str] = Field(
        default=None,
        description="Readable foreground color; None keeps the host default",
    )
    overview_ruler_color: str
    overview_ruler_lane: str = "right"


class RuleSnapshot(BaseModel):
    """
    Display view of a rule relative to one document.

    Attributes:
        match_count: Total matches across every document the rule has stats for.
        current_match_index: Cached 1-based global index of the last visited match.
        document_match_count: Matches in ``document_uri``.
        document_match_index: 1-based current match in ``document_uri``.
        description: Options summary such as "Match Case / Regex".
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "18c3f0a2b1c-4f1e9a",
                "pattern": "TODO",
                "color": "#00c4ff55",
                "match_case": False,
                "match_whole_word": True,
                "use_regex": False,
                "scope": "folderRecursive",
                "target_uri": "file:///home/user/project/src",
                "file_filter": "*.py",
                "document_uri": "file:///home/user/project/src/app.py",
                "match_count": 12,
                "current_match_index": 3,
                "document_match_count": 2,
                "document_match_index": None,
                "description": "Whole Word",
            }
        },
        use_enum_values=True,
    )

    id: str
    pattern: str
    color: str
    match_case: bool
    match_whole_word: bool
    use_regex: bool
    scope: RuleScope
    target_uri: str
    file_filter: Optional[str] = None
    document_uri: str
    match_count: int = Field(default=0, ge=0)
    current_match_index: Optional[int] = Field(default=None, ge=1)
    document_match_count: int = Field(default=0, ge=0)
    document_match_index: Optional[int] = Field(default=None, ge=1)
    description: str = ""

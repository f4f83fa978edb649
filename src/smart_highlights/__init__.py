"""Smart Highlights - Scoped highlight rules with cross-file match navigation."""

__version__ = "0.1.0"

# Engine
from smart_highlights.engine import HighlightEngine
from smart_highlights.store import HighlightRule, RuleStore

# Configuration and errors
from smart_highlights.config import HighlightConfig, load_config
from smart_highlights.errors import (
    ConfigurationError,
    HighlightError,
    InvalidPatternError,
    RuleNotFoundError,
    ScanFileError,
    ScopeResolutionError,
    ValidationError,
)

# Models
from smart_highlights.models import (
    MatchLocation,
    NavigationDirection,
    RuleDraft,
    RuleOption,
    RuleScope,
    RuleSnapshot,
    ScopeSelection,
    TextRange,
)

# Headless workspace
from smart_highlights.workspace import HeadlessHost, LocalFileSystem

__all__ = [
    # Engine
    "HighlightEngine",
    "HighlightRule",
    "RuleStore",
    # Configuration and errors
    "HighlightConfig",
    "load_config",
    "HighlightError",
    "ValidationError",
    "InvalidPatternError",
    "ScanFileError",
    "ScopeResolutionError",
    "RuleNotFoundError",
    "ConfigurationError",
    # Models
    "RuleDraft",
    "RuleSnapshot",
    "RuleScope",
    "RuleOption",
    "NavigationDirection",
    "MatchLocation",
    "ScopeSelection",
    "TextRange",
    # Headless workspace
    "HeadlessHost",
    "LocalFileSystem",
]

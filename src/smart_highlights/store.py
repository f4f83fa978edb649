"""
Rule storage for scoped highlight rules.

This module owns every highlight rule and its decoration handle. Rules are
grouped into buckets keyed by their scope identity and mirrored in a flat id
index for direct lookup.

Features:
- Buckets keyed by ``"{scope}:{target_uri}"``, never retained empty
- Every mutation validates first and commits only on success
- Decoration handles disposed exactly once per handle
- Lookup of every rule applying to a document, file filters included

Example:
    >>> store = RuleStore()
    >>> draft = RuleDraft(document_uri="file:///work/a.py", pattern="TODO", color="#ffd40080")
    >>> factory = lambda color: host.create_decoration(decoration_style(color))
    >>> rule = store.create(draft, resolve_scope(draft.document_uri), factory)
    >>> store.bucket_keys()
    ['folderRecursive:file:///work']
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from smart_highlights.config import HighlightConfig
from smart_highlights.errors import InvalidPatternError, RuleNotFoundError, ValidationError
from smart_highlights.filters import compile_file_filter, is_file_included, normalize_file_filter
from smart_highlights.host import DecorationHandle
from smart_highlights.matcher import compile_pattern
from smart_highlights.models import RuleDraft, RuleOption, RuleScope, ScopeInfo
from smart_highlights.navigation import RuleMatchState
from smart_highlights.scopes import scope_applies_to_document, scope_key, scope_keys_for_uri

logger = logging.getLogger(__name__)

DecorationFactory = Callable[[str], DecorationHandle]

_OPTION_LABELS = (
    (RuleOption.MATCH_CASE, "Match Case"),
    (RuleOption.MATCH_WHOLE_WORD, "Whole Word"),
    (RuleOption.USE_REGEX, "Regex"),
)


def create_rule_id() -> str:
    """Opaque unique id: millisecond timestamp plus random suffix, both hex."""
    return f"{int(time.time() * 1000):x}-{uuid.uuid4().hex[:12]}"


# =============================================================================
# HighlightRule
# =============================================================================


@dataclass
class HighlightRule:
    """
    A persistent highlight rule.

    Attributes:
        id: Opaque unique identifier.
        pattern: Trimmed pattern text.
        color: Trimmed color string.
        scope: Scope kind.
        target_uri: Document URI for document scope, folder URI otherwise.
        matcher: Compiled pattern for the current pattern and options.
        decoration: Host decoration handle, None once disposed.
        file_filter: Normalized ``|``-joined file-name globs.
        filter_matchers: Compiled file filter, None when unfiltered.
        matches: Owned per-document match state.
    """

    id: str
    pattern: str
    color: str
    scope: RuleScope
    target_uri: str
    matcher: re.Pattern[str]
    decoration: Optional[DecorationHandle]
    match_case: bool = False
    match_whole_word: bool = False
    use_regex: bool = False
    file_filter: Optional[str] = None
    filter_matchers: Optional[list[re.Pattern[str]]] = None
    matches: RuleMatchState = field(default_factory=RuleMatchState)

    @property
    def key(self) -> str:
        return scope_key(self.scope, self.target_uri)

    @property
    def disposed(self) -> bool:
        return self.decoration is None

    @property
    def description(self) -> str:
        """Options summary such as "Match Case / Regex"."""
        parts = [label for option, label in _OPTION_LABELS if self.get_option(option)]
        return " / ".join(parts) if parts else "No options"

    def get_option(self, option: RuleOption | str) -> bool:
        return getattr(self, _option_attribute(option))

    def set_option(self, option: RuleOption | str, value: bool) -> None:
        setattr(self, _option_attribute(option), value)

    def includes_file(self, uri: str) -> bool:
        return is_file_included(uri, self.filter_matchers)

    def applies_to(self, document_uri: str) -> bool:
        """Scope and file filter both cover ``document_uri``."""
        return scope_applies_to_document(self.scope, self.target_uri, document_uri) and self.includes_file(
            document_uri
        )

    def release_decoration(self) -> None:
        """Dispose the decoration handle; later calls do nothing."""
        if self.decoration is not None:
            handle, self.decoration = self.decoration, None
            handle.dispose()


def _option_attribute(option: RuleOption | str) -> str:
    return {
        RuleOption.MATCH_CASE: "match_case",
        RuleOption.MATCH_WHOLE_WORD: "match_whole_word",
        RuleOption.USE_REGEX: "use_regex",
    }[RuleOption(option)]


def _require_text(value: str, field_name: str, message: str) -> str:
    trimmed = (value or "").strip()
    if not trimmed:
        raise ValidationError(message, field=field_name)
    return trimmed


# =============================================================================
# RuleStore Class
# =============================================================================


class RuleStore:
    """
    Owner of all highlight rules.

    Invariants:
        - A rule is in exactly one bucket, the one matching its key.
        - A rule appears exactly once in the id index.
        - No bucket is ever empty.

    Attributes:
        config: Engine configuration (file filter separator, folder depth).
    """

    def __init__(self, config: HighlightConfig | None = None):
        self.config = config or HighlightConfig()
        self._buckets: dict[str, list[HighlightRule]] = {}
        self._index: dict[str, HighlightRule] = {}

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._index

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, rule_id: str) -> Optional[HighlightRule]:
        return self._index.get(rule_id)

    def require(self, rule_id: str) -> HighlightRule:
        """
        Get a rule by id.

        Raises:
            RuleNotFoundError: If no rule has this id.
        """
        rule = self._index.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    def all_rules(self) -> list[HighlightRule]:
        return list(self._index.values())

    def bucket_keys(self) -> list[str]:
        return list(self._buckets)

    def rules_in_bucket(self, key: str) -> list[HighlightRule]:
        return list(self._buckets.get(key, []))

    def rules_for_uri(self, uri: str) -> list[HighlightRule]:
        """
        Every rule applying to ``uri``, in scope-key order.

        Document rules come first, then the immediate folder's rules, then
        recursive folder rules from the innermost ancestor outwards. Rules
        whose file filter excludes the file are dropped.
        """
        keys = scope_keys_for_uri(uri, self.config.max_folder_depth)
        rules: list[HighlightRule] = []
        for key in keys:
            rules.extend(self._buckets.get(key, []))
        return [rule for rule in rules if rule.includes_file(uri)]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(
        self,
        draft: RuleDraft,
        scope_info: ScopeInfo,
        decoration_factory: DecorationFactory,
    ) -> HighlightRule:
        """
        Validate a draft and store it as a new rule.

        The decoration is only allocated once the pattern, color and file
        filter are known to be valid.

        Raises:
            ValidationError: If the pattern or color is empty, or the file filter is invalid.
            InvalidPatternError: If a regex pattern does not compile.
        """
        pattern = _require_text(draft.pattern, "pattern", "Enter a value to highlight.")
        color = _require_text(draft.color, "color", "Pick a highlight color.")
        file_filter = normalize_file_filter(draft.file_filter, self.config.file_filter_separator)
        filter_matchers = compile_file_filter(file_filter, self.config.file_filter_separator)
        matcher = compile_pattern(pattern, match_case=draft.match_case, use_regex=draft.use_regex)

        rule = HighlightRule(
            id=create_rule_id(),
            pattern=pattern,
            color=color,
            scope=RuleScope(scope_info.scope),
            target_uri=scope_info.target_uri,
            matcher=matcher,
            decoration=decoration_factory(color),
            match_case=draft.match_case,
            match_whole_word=draft.match_whole_word,
            use_regex=draft.use_regex,
            file_filter=file_filter,
            filter_matchers=filter_matchers,
        )
        self._insert(rule)

        logger.info(
            f"Created highlight rule {rule.id}",
            extra={
                "rule_id": rule.id,
                "pattern": rule.pattern,
                "scope": rule.scope.value,
                "target_uri": rule.target_uri,
                "rules_for_key": len(self._buckets[rule.key]),
            },
        )
        return rule

    def change_scope(self, rule_id: str, scope_info: ScopeInfo) -> bool:
        """
        Move a rule to another scope identity.

        Returns:
            False when the identity is unchanged, True after moving. Moving
            clears every per-document match.
        """
        rule = self.require(rule_id)
        new_scope = RuleScope(scope_info.scope)
        if new_scope == rule.scope and scope_info.target_uri == rule.target_uri:
            return False

        previous_key = rule.key
        self._detach(rule)
        rule.scope = new_scope
        rule.target_uri = scope_info.target_uri
        rule.matches.clear()
        self._insert(rule)

        logger.info(
            f"Moved highlight rule {rule.id} to {rule.key}",
            extra={"rule_id": rule.id, "previous_key": previous_key, "next_key": rule.key},
        )
        return True

    def remove(self, rule_id: str) -> Optional[HighlightRule]:
        """Remove a rule, clear its matches and dispose its decoration."""
        rule = self._index.get(rule_id)
        if rule is None:
            logger.debug("Attempted to remove unknown rule", extra={"rule_id": rule_id})
            return None

        self._detach(rule)
        rule.matches.clear()
        rule.release_decoration()

        logger.info(
            f"Removed highlight rule {rule.id}",
            extra={
                "rule_id": rule.id,
                "scope_key": rule.key,
                "remaining_rules_for_key": len(self._buckets.get(rule.key, [])),
            },
        )
        return rule

    def remove_bucket(self, key: str) -> list[HighlightRule]:
        """Remove every rule stored under ``key``."""
        removed = []
        for rule in self.rules_in_bucket(key):
            if self.remove(rule.id) is not None:
                removed.append(rule)
        return removed

    def update_pattern(self, rule_id: str, pattern: str) -> HighlightRule:
        """
        Replace a rule's pattern after validating it.

        Raises:
            ValidationError: If the trimmed pattern is empty.
            InvalidPatternError: If the pattern does not compile with the rule's options.
        """
        rule = self.require(rule_id)
        trimmed = _require_text(pattern, "pattern", "Pattern cannot be empty.")
        matcher = compile_pattern(trimmed, match_case=rule.match_case, use_regex=rule.use_regex, rule_id=rule.id)

        rule.pattern = trimmed
        rule.matcher = matcher
        rule.matches.clear()
        return rule

    def toggle_option(self, rule_id: str, option: RuleOption | str) -> bool:
        """
        Flip a boolean option, rolling back if the pattern stops compiling.

        Returns:
            The option's new value.

        Raises:
            InvalidPatternError: If the toggled options make the pattern invalid.
                The option keeps its previous value.
        """
        rule = self.require(rule_id)
        previous = rule.get_option(option)
        rule.set_option(option, not previous)
        try:
            matcher = compile_pattern(
                rule.pattern, match_case=rule.match_case, use_regex=rule.use_regex, rule_id=rule.id
            )
        except InvalidPatternError:
            rule.set_option(option, previous)
            logger.warning(
                f"Rolled back {RuleOption(option).value} on rule {rule.id}: pattern is not a valid regex",
                extra={"rule_id": rule.id, "pattern": rule.pattern},
            )
            raise

        rule.matcher = matcher
        rule.matches.clear()
        return not previous

    def update_color(self, rule_id: str, color: str, decoration_factory: DecorationFactory) -> HighlightRule:
        """
        Change a rule's color, replacing its decoration handle.

        Raises:
            ValidationError: If the trimmed color is empty.
        """
        rule = self.require(rule_id)
        trimmed = _require_text(color, "color", "Color cannot be empty.")
        replacement = decoration_factory(trimmed)
        rule.release_decoration()
        rule.color = trimmed
        rule.decoration = replacement
        return rule

    def set_file_filter(self, rule_id: str, file_filter: Optional[str]) -> bool:
        """
        Replace a rule's file filter.

        Returns:
            True when the normalized filter changed.

        Raises:
            ValidationError: If a glob contains a path separator.
        """
        rule = self.require(rule_id)
        normalized = normalize_file_filter(file_filter, self.config.file_filter_separator)
        matchers = compile_file_filter(normalized, self.config.file_filter_separator)
        if normalized == rule.file_filter:
            return False

        rule.file_filter = normalized
        rule.filter_matchers = matchers
        for uri in list(rule.matches.stats):
            if not rule.includes_file(uri):
                rule.matches.discard(uri)
        rule.matches.global_index = None
        return True

    # -------------------------------------------------------------------------
    # Bucket bookkeeping
    # -------------------------------------------------------------------------

    def _insert(self, rule: HighlightRule) -> None:
        self._buckets.setdefault(rule.key, []).append(rule)
        self._index[rule.id] = rule

    def _detach(self, rule: HighlightRule) -> None:
        key = rule.key
        bucket = self._buckets.get(key)
        if bucket is not None:
            bucket[:] = [candidate for candidate in bucket if candidate.id != rule.id]
            if not bucket:
                del self._buckets[key]
        self._index.pop(rule.id, None)

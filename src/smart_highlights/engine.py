"""
Highlight engine: rule mutations, host events and cross-file navigation.

The engine owns a :class:`RuleStore` and a :class:`ScopeScanner` and keeps
every visible editor's decorations in sync with the rules that apply to it.
Mutations validate through the store before anything changes, then repaint
the affected editors, queue scope scans and notify change listeners.

Host events map to four entry points: ``handle_document_changed``,
``handle_active_editor_changed``, ``handle_selection_changed`` and
``handle_document_closed``.

Example:
    >>> host = HeadlessHost()
    >>> engine = HighlightEngine(host, LocalFileSystem())
    >>> editor = host.open_document("file:///work/notes.txt", "The Cat sat in the CATalog")
    >>> engine.handle_active_editor_changed(editor)
    >>> rule = engine.create_rule(RuleDraft(
    ...     document_uri="file:///work/notes.txt", pattern="cat", color="#ffd40080", scope="document"
    ... ))
    >>> editor.ranges_for(rule.decoration)
    [TextRange(start=4, end=7), TextRange(start=19, end=22)]
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from smart_highlights.colors import decoration_style
from smart_highlights.config import HighlightConfig
from smart_highlights.errors import ScanFileError
from smart_highlights.host import DecorationHandle, EditorHost, FileSystem, TextEditor, WordPatternProvider
from smart_highlights.languages import LanguageWordPatterns
from smart_highlights.matcher import find_matches, whole_word_policy_for
from smart_highlights.models import (
    MatchLocation,
    NavigationDirection,
    RuleDraft,
    RuleOption,
    RuleScope,
    RuleSnapshot,
    ScopeOption,
    ScopeSelection,
    Selection,
    TextRange,
)
from smart_highlights.navigation import selection_match_index, target_index
from smart_highlights.scanner import ScopeScanner
from smart_highlights.scopes import (
    canonical_uri,
    clear_message,
    creation_message,
    list_scope_options,
    resolve_scope,
    scope_applies_to_document,
)
from smart_highlights.store import HighlightRule, RuleStore

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class HighlightEngine:
    """
    Orchestrates highlight rules over an editor host.

    Attributes:
        host: Editor host receiving decorations, selections and messages.
        fs: File system used by scope scans.
        config: Engine configuration.
        word_patterns: Language word pattern provider for whole-word matching.
        store: Rule storage.
        scanner: Scope scanner for folder rules.
    """

    def __init__(
        self,
        host: EditorHost,
        fs: FileSystem,
        config: HighlightConfig | None = None,
        word_patterns: WordPatternProvider | None = None,
    ):
        self.host = host
        self.fs = fs
        self.config = config or HighlightConfig()
        self.word_patterns = word_patterns if word_patterns is not None else LanguageWordPatterns(self.config)
        self.store = RuleStore(self.config)
        self.scanner = ScopeScanner(
            host,
            fs,
            self.find_rule_matches,
            self.config,
            on_completed=self._on_scan_completed,
        )
        self._document_rule_ids: dict[str, set[str]] = {}
        self._listeners: list[Listener] = []

    # -------------------------------------------------------------------------
    # Change stream
    # -------------------------------------------------------------------------

    def on_did_change(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener fired after every state change.

        Returns:
            A callable that unsubscribes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.warning(f"Change listener error: {e}")

    def _debug(self, message: str, **data: Any) -> None:
        if self.config.debug_logging:
            logger.debug(message, extra=data)

    # -------------------------------------------------------------------------
    # Matching
    # -------------------------------------------------------------------------

    def find_rule_matches(self, rule: HighlightRule, text: str, language_id: str) -> list[TextRange]:
        """Match a rule against document text, applying its whole-word option."""
        policy = (
            whole_word_policy_for(language_id, self.word_patterns, self.config.word_separators)
            if rule.match_whole_word
            else None
        )
        return find_matches(text, rule.matcher, policy)

    def _create_decoration(self, color: str) -> DecorationHandle:
        return self.host.create_decoration(decoration_style(color))

    # -------------------------------------------------------------------------
    # Rule mutations
    # -------------------------------------------------------------------------

    def create_rule(self, draft: RuleDraft) -> HighlightRule:
        """
        Create a rule from a draft.

        Raises:
            ValidationError: Empty pattern or color, or invalid file filter.
            InvalidPatternError: The regex does not compile.
        """
        scope_info = resolve_scope(draft.document_uri, draft.scope)
        rule = self.store.create(draft, scope_info, self._create_decoration)
        self.scanner.schedule_scan(rule)
        self._refresh_scope(rule.scope, rule.target_uri)
        self.host.show_message(creation_message(rule.scope))
        self._notify()
        return rule

    def update_pattern(self, rule_id: str, pattern: str) -> HighlightRule:
        """
        Replace a rule's pattern.

        Raises:
            RuleNotFoundError: Unknown rule id.
            ValidationError: Empty pattern.
            InvalidPatternError: The regex does not compile; the rule is unchanged.
        """
        rule = self.store.update_pattern(rule_id, pattern)
        self.scanner.schedule_scan(rule)
        self._refresh_scope(rule.scope, rule.target_uri)
        self._notify()
        return rule

    def toggle_option(self, rule_id: str, option: RuleOption | str) -> bool:
        """
        Flip one of ``matchCase``, ``matchWholeWord`` or ``useRegex``.

        Returns:
            The option's new value.

        Raises:
            RuleNotFoundError: Unknown rule id.
            InvalidPatternError: The pattern is not a valid regex; the option is rolled back.
        """
        value = self.store.toggle_option(rule_id, option)
        rule = self.store.require(rule_id)
        self._refresh_scope(rule.scope, rule.target_uri)
        self.scanner.schedule_scan(rule)
        self._notify()
        return value

    def update_color(self, rule_id: str, color: str) -> HighlightRule:
        """
        Change a rule's color and replace its decoration.

        Raises:
            RuleNotFoundError: Unknown rule id.
            ValidationError: Empty color.
        """
        rule = self.store.require(rule_id)
        previous = rule.decoration
        rule = self.store.update_color(rule_id, color, self._create_decoration)
        if previous is not None:
            for editor in self.host.visible_editors():
                editor.set_decorations(previous, [])
        self._refresh_scope(rule.scope, rule.target_uri)
        self._notify()
        return rule

    def set_file_filter(self, rule_id: str, file_filter: Optional[str]) -> bool:
        """
        Replace a rule's file filter.

        Returns:
            True when the filter changed.

        Raises:
            RuleNotFoundError: Unknown rule id.
            ValidationError: A glob contains a path separator.
        """
        changed = self.store.set_file_filter(rule_id, file_filter)
        if not changed:
            return False
        rule = self.store.require(rule_id)
        self._refresh_scope(rule.scope, rule.target_uri)
        self.scanner.schedule_scan(rule)
        self._notify()
        return True

    def change_scope(self, rule_id: str, scope: RuleScope | str, document_uri: str) -> bool:
        """
        Move a rule to ``scope`` resolved against ``document_uri``.

        Returns:
            False when the resolved scope identity is the rule's current one.

        Raises:
            RuleNotFoundError: Unknown rule id.
        """
        rule = self.store.require(rule_id)
        scope_info = resolve_scope(document_uri, scope)
        if RuleScope(scope_info.scope) == rule.scope and scope_info.target_uri == rule.target_uri:
            return False

        previous_scope, previous_target = rule.scope, rule.target_uri
        self._clear_rule_from_documents(rule)
        self.store.change_scope(rule_id, scope_info)
        self.scanner.schedule_scan(rule)
        self._refresh_scope(previous_scope, previous_target)
        self._refresh_scope(rule.scope, rule.target_uri)
        self._notify()
        return True

    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule. Returns False for an unknown id."""
        rule = self.store.get(rule_id)
        if rule is None:
            return False
        self._clear_rule_from_documents(rule)
        self.store.remove(rule_id)
        self._refresh_scope(rule.scope, rule.target_uri)
        self._notify()
        return True

    def clear_scope(self, key: str) -> int:
        """
        Delete every rule under a scope key.

        Returns:
            Number of rules removed.
        """
        rules = self.store.rules_in_bucket(key)
        if not rules:
            return 0
        for rule in rules:
            self._clear_rule_from_documents(rule)
        removed = self.store.remove_bucket(key)
        self._refresh_scope(rules[0].scope, rules[0].target_uri)
        self.host.show_message(clear_message(rules[0].scope))
        self._notify()
        return len(removed)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def snapshots(self, document_uri: Optional[str]) -> list[RuleSnapshot]:
        """Display view of every rule applying to ``document_uri``."""
        if not document_uri:
            return []
        document_uri = canonical_uri(document_uri)
        return [self.snapshot(rule.id, document_uri) for rule in self.store.rules_for_uri(document_uri)]

    def snapshot(self, rule_id: str, document_uri: str) -> RuleSnapshot:
        """
        Display view of one rule relative to ``document_uri``.

        Raises:
            RuleNotFoundError: Unknown rule id.
        """
        rule = self.store.require(rule_id)
        document_uri = canonical_uri(document_uri)
        stats = rule.matches.stats_for(document_uri)
        return RuleSnapshot(
            id=rule.id,
            pattern=rule.pattern,
            color=rule.color,
            match_case=rule.match_case,
            match_whole_word=rule.match_whole_word,
            use_regex=rule.use_regex,
            scope=rule.scope,
            target_uri=rule.target_uri,
            file_filter=rule.file_filter,
            document_uri=document_uri,
            match_count=rule.matches.total_matches(),
            current_match_index=rule.matches.global_index,
            document_match_count=stats.match_count if stats else 0,
            document_match_index=stats.current_index if stats else None,
            description=rule.description,
        )

    def scope_selection(self, document_uri: Optional[str]) -> ScopeSelection:
        """Scope options for a document and the default scope for new rules."""
        if not document_uri:
            return ScopeSelection(options=[], default_scope=None)
        return ScopeSelection(
            options=list_scope_options(document_uri),
            default_scope=resolve_scope(document_uri).scope,
        )

    def clearable_scopes(self, document_uri: str) -> list[tuple[ScopeOption, int]]:
        """Scope options for a document that currently hold rules, with rule counts."""
        result = []
        for option in list_scope_options(document_uri):
            count = len(self.store.rules_in_bucket(option.key))
            if count:
                result.append((option, count))
        return result

    async def wait_for_scans(self) -> None:
        await self.scanner.wait_idle()

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    async def navigate(
        self,
        rule_id: str,
        direction: NavigationDirection | str,
        document_uri: Optional[str] = None,
    ) -> Optional[MatchLocation]:
        """
        Move to the next or previous match of a rule across documents.

        The current position is taken, in order, from the active editor's
        selection, the last selected match in ``document_uri``, then the
        rule's cached global index. The target document is shown, its rules
        applied, and the match selected and revealed.

        Returns:
            The match navigated to, or None when the rule has no matches.

        Raises:
            RuleNotFoundError: Unknown rule id.
            ScanFileError: The target document could not be opened. Its
                matches are dropped so the next call moves past it.
        """
        rule = self.store.require(rule_id)
        await self.scanner.ensure_scan(rule)

        order = rule.matches.global_order()
        if not order:
            self.host.show_message(f'No matches were found for "{rule.pattern}".')
            return None

        current = self._current_global_position(rule, document_uri)
        position = target_index(current, len(order), direction)
        target = order[position]

        try:
            editor = await self.host.show_document(target.uri)
        except (OSError, UnicodeDecodeError) as e:
            rule.matches.discard(target.uri)
            rule.matches.global_index = None
            logger.warning(f"Dropped matches for unreadable document {target.uri}: {e}", extra={"rule_id": rule.id})
            self.host.show_message(f"Could not open {target.uri}.", "warning")
            self._notify()
            raise ScanFileError(target.uri, f"Could not open {target.uri}: {e}") from e
        self.apply_rules(editor)
        editor.set_selection(target.range)
        editor.reveal_range(target.range)

        stats = rule.matches.stats_for(target.uri)
        if stats is not None:
            stats.current_index = rule.matches.local_index_of(target.uri, target.range)
        rule.matches.global_index = position + 1

        self._debug(
            "Navigated to match",
            rule_id=rule.id,
            direction=NavigationDirection(direction).value,
            uri=target.uri,
            global_index=position + 1,
            total=len(order),
        )
        self._notify()
        return target

    def _current_global_position(self, rule: HighlightRule, document_uri: Optional[str]) -> Optional[int]:
        editor = self.host.active_editor()
        if editor is not None:
            active_uri = canonical_uri(editor.document.uri)
            stats = rule.matches.stats_for(active_uri)
            if stats is not None:
                local = selection_match_index(editor.selection, stats.ranges)
                global_index = rule.matches.global_index_of(active_uri, local)
                if global_index:
                    return global_index - 1

        if document_uri:
            document_uri = canonical_uri(document_uri)
            stats = rule.matches.stats_for(document_uri)
            if stats is not None:
                global_index = rule.matches.global_index_of(document_uri, stats.current_index)
                if global_index:
                    return global_index - 1

        if rule.matches.global_index and rule.matches.global_index > 0:
            return rule.matches.global_index - 1
        return None

    # -------------------------------------------------------------------------
    # Host events
    # -------------------------------------------------------------------------

    def handle_document_changed(self, document_uri: str) -> None:
        """Re-apply rules to every editor showing an edited document."""
        document_uri = canonical_uri(document_uri)
        if not self.store.rules_for_uri(document_uri):
            return
        for editor in self._editors_for(document_uri):
            self.apply_rules(editor)
        self._notify()

    def handle_active_editor_changed(self, editor: Optional[TextEditor]) -> None:
        if editor is not None:
            self.apply_rules(editor)
            self._update_current_indices(editor)
        self._notify()

    def handle_selection_changed(self, editor: TextEditor, selection: Optional[Selection] = None) -> None:
        if self._update_current_indices(editor, selection):
            self._notify()

    def handle_document_closed(self, document_uri: str) -> None:
        """
        Drop per-document state for a closed document.

        Document-scoped rules lose their stats for it. Folder-scoped rules
        keep their scanned matches and only forget the selected match.
        Rules themselves are never deleted.
        """
        document_uri = canonical_uri(document_uri)
        rule_ids = self._document_rule_ids.pop(document_uri, None)
        if not rule_ids:
            return

        editors = self._editors_for(document_uri)
        for rule_id in rule_ids:
            rule = self.store.get(rule_id)
            if rule is None:
                continue
            if rule.scope == RuleScope.DOCUMENT:
                rule.matches.discard(document_uri)
            else:
                rule.matches.reset_current(document_uri)
            if rule.decoration is not None:
                for editor in editors:
                    editor.set_decorations(rule.decoration, [])

        self._debug("Cleared document state", document_uri=document_uri, rule_count=len(rule_ids))
        self._notify()

    # -------------------------------------------------------------------------
    # Applying rules
    # -------------------------------------------------------------------------

    def apply_rules(self, editor: TextEditor) -> None:
        """
        Recompute and paint every applicable rule in one editor.

        Rules that applied before but no longer do have their decorations
        cleared and their stats for this document dropped.
        """
        document = editor.document
        uri = canonical_uri(document.uri)
        rules = self.store.rules_for_uri(uri)
        previous_ids = self._document_rule_ids.get(uri, set())
        next_ids: set[str] = set()
        is_active = editor is self.host.active_editor()

        self._debug("Applying rules to document", document_uri=uri, rule_count=len(rules), active=is_active)

        text = document.get_text()
        for rule in rules:
            if rule.decoration is None:
                continue
            ranges = self.find_rule_matches(rule, text, document.language_id)
            current = selection_match_index(editor.selection, ranges) if is_active else None
            rule.matches.record(uri, ranges, current)
            editor.set_decorations(rule.decoration, ranges)
            next_ids.add(rule.id)

        for rule_id in previous_ids - next_ids:
            rule = self.store.get(rule_id)
            if rule is None:
                continue
            if rule.decoration is not None:
                editor.set_decorations(rule.decoration, [])
            rule.matches.discard(uri)

        if next_ids:
            self._document_rule_ids[uri] = next_ids
        else:
            self._document_rule_ids.pop(uri, None)

    def _update_current_indices(self, editor: TextEditor, selection: Optional[Selection] = None) -> bool:
        uri = canonical_uri(editor.document.uri)
        rules = self.store.rules_for_uri(uri)
        if not rules:
            return False

        selection = selection or editor.selection
        changed = False
        for rule in rules:
            stats = rule.matches.stats_for(uri)
            ranges = stats.ranges if stats is not None else []
            index = selection_match_index(selection, ranges)
            if stats is not None and stats.current_index != index:
                stats.current_index = index
                changed = True
            global_index = rule.matches.global_index_of(uri, index)
            if rule.matches.global_index != global_index:
                rule.matches.global_index = global_index
                changed = True
        return changed

    def _editors_for(self, document_uri: str) -> list[TextEditor]:
        document_uri = canonical_uri(document_uri)
        return [editor for editor in self.host.visible_editors() if canonical_uri(editor.document.uri) == document_uri]

    def _refresh_scope(self, scope: RuleScope | str, target_uri: str) -> None:
        for editor in self.host.visible_editors():
            if scope_applies_to_document(scope, target_uri, editor.document.uri):
                self.apply_rules(editor)

    def _clear_rule_from_documents(self, rule: HighlightRule) -> None:
        uris = set(rule.matches.stats)
        uris.update(uri for uri, ids in self._document_rule_ids.items() if rule.id in ids)
        for uri in uris:
            if rule.decoration is not None:
                for editor in self._editors_for(uri):
                    editor.set_decorations(rule.decoration, [])
            rule.matches.discard(uri)
            ids = self._document_rule_ids.get(uri)
            if ids is not None:
                ids.discard(rule.id)
                if not ids:
                    del self._document_rule_ids[uri]

    def _on_scan_completed(self, rule: HighlightRule) -> None:
        self._notify()

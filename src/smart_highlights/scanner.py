"""
Background scope scanning for folder-scoped highlight rules.

Folder rules apply to files that may not be open. This module enumerates
the files in a rule's scope, matches each one, and records the results in
the rule's match state so counts and navigation cover the whole scope.

Features:
- One scan in flight per rule, with at most one coalesced rescan queued
- Open documents are matched from their live text, others read from disk
- Per-file failures are logged and skipped
- Scans of removed or moved rules stop at the next file boundary
- Requests made outside an event loop are deferred to the next ``ensure_scan``

Example:
    >>> scanner = ScopeScanner(host, LocalFileSystem(), engine.find_rule_matches)
    >>> scanner.schedule_scan(rule)
    >>> await scanner.ensure_scan(rule)
    >>> rule.matches.total_matches()
    12
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from smart_highlights.config import HighlightConfig
from smart_highlights.errors import HighlightError, ScanFileError
from smart_highlights.host import EditorHost, FileSystem
from smart_highlights.languages import detect_language_id
from smart_highlights.models import RuleScope, TextRange
from smart_highlights.scopes import canonical_uri
from smart_highlights.store import HighlightRule

logger = logging.getLogger(__name__)

RuleMatcher = Callable[[HighlightRule, str, str], list[TextRange]]


class ScanState(str, Enum):
    """
    Scan lifecycle of one rule.

    Attributes:
        IDLE: No scan in flight.
        RUNNING: A scan is in flight.
        RUNNING_PENDING: A scan is in flight and one more was requested.
    """

    IDLE = "idle"
    RUNNING = "running"
    RUNNING_PENDING = "running_pending"


# =============================================================================
# ScopeScanner Class
# =============================================================================


class ScopeScanner:
    """
    Coalescing scanner for folder and recursive folder rules.

    Attributes:
        host: Editor host, used to find open documents.
        fs: File system used to enumerate and read files.
        match_rule: Callable returning a rule's matches for ``(rule, text, language_id)``.
        config: Scan excludes, file cap and extension mapping.
        on_completed: Called with the rule after each completed scan.
    """

    def __init__(
        self,
        host: EditorHost,
        fs: FileSystem,
        match_rule: RuleMatcher,
        config: HighlightConfig | None = None,
        on_completed: Optional[Callable[[HighlightRule], None]] = None,
    ):
        self.host = host
        self.fs = fs
        self.match_rule = match_rule
        self.config = config or HighlightConfig()
        self.on_completed = on_completed

        self._states: dict[str, ScanState] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._deferred: dict[str, HighlightRule] = {}

    def state_of(self, rule_id: str) -> ScanState:
        return self._states.get(rule_id, ScanState.IDLE)

    def is_deferred(self, rule_id: str) -> bool:
        return rule_id in self._deferred

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule_scan(self, rule: HighlightRule) -> None:
        """
        Request a scan of ``rule``'s scope.

        Document rules are never scanned. A request while a scan is in flight
        marks one rescan as pending; further requests collapse into it.
        """
        if rule.scope == RuleScope.DOCUMENT:
            self._deferred.pop(rule.id, None)
            return

        state = self.state_of(rule.id)
        if state != ScanState.IDLE:
            self._states[rule.id] = ScanState.RUNNING_PENDING
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred[rule.id] = rule
            logger.debug("Deferred scope scan until an event loop runs", extra={"rule_id": rule.id})
            return

        self._deferred.pop(rule.id, None)
        self._states[rule.id] = ScanState.RUNNING
        self._tasks[rule.id] = loop.create_task(self._run(rule))

    async def ensure_scan(self, rule: HighlightRule) -> None:
        """Request a scan of ``rule`` and wait until it, and any queued rescan, finish."""
        if rule.scope == RuleScope.DOCUMENT:
            return
        self.schedule_scan(rule)
        task = self._tasks.get(rule.id)
        if task is not None:
            await task

    async def wait_idle(self) -> None:
        """Start deferred scans and wait until no scan is in flight."""
        for rule in list(self._deferred.values()):
            if not rule.disposed:
                self.schedule_scan(rule)
        self._deferred.clear()
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()))

    async def _run(self, rule: HighlightRule) -> None:
        try:
            while True:
                try:
                    await self.perform_scan(rule)
                except HighlightError as e:
                    logger.warning(f"Failed to scan scope for rule {rule.id}: {e}")
                if self.state_of(rule.id) == ScanState.RUNNING_PENDING and not rule.disposed:
                    self._states[rule.id] = ScanState.RUNNING
                    continue
                break
        finally:
            self._states.pop(rule.id, None)
            self._tasks.pop(rule.id, None)

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    async def collect_uris(self, rule: HighlightRule) -> list[str]:
        """
        Enumerate the files in a rule's scope.

        ``folder`` lists immediate children; ``folderRecursive`` walks the tree
        with the configured excludes and file cap. Enumeration failures yield
        an empty list.
        """
        try:
            if rule.scope == RuleScope.DOCUMENT:
                return [rule.target_uri]
            if rule.scope == RuleScope.FOLDER:
                return await self.fs.list_files(rule.target_uri)
            return await self.fs.find_files(rule.target_uri, self.config.scan_excludes, self.config.scan_max_files)
        except (OSError, HighlightError) as e:
            logger.debug(
                f"Failed to enumerate files for scope: {e}",
                extra={"rule_id": rule.id, "scope": rule.scope.value, "target_uri": rule.target_uri},
            )
            return []

    async def perform_scan(self, rule: HighlightRule) -> int:
        """
        Scan every included file in the rule's scope.

        Files with matches get fresh stats with no current match; files
        without matches lose their stats, as do files that are no longer
        enumerated (deleted or filtered out) unless they are still open and
        in scope. On completion the rule's cached global index is cleared and
        ``on_completed`` fires.

        Returns:
            Number of files processed.
        """
        scope_key = rule.key
        uris = [canonical_uri(uri) for uri in await self.collect_uris(rule) if rule.includes_file(uri)]
        processed = 0

        for uri in uris:
            if self._abandoned(rule, scope_key, processed):
                return processed
            try:
                await self._scan_file(rule, uri, scope_key)
            except ScanFileError as e:
                logger.warning(f"Skipped file during scope scan: {e}", extra={"rule_id": rule.id, "file": e.uri})
                rule.matches.discard(uri)
            processed += 1

        if self._abandoned(rule, scope_key, processed):
            return processed
        self._drop_stale_stats(rule, uris)
        rule.matches.global_index = None
        logger.info(
            f"Completed scope scan for rule {rule.id}",
            extra={
                "rule_id": rule.id,
                "scope": rule.scope.value,
                "target_uri": rule.target_uri,
                "files_processed": processed,
                "total_matches": rule.matches.total_matches(),
            },
        )
        if self.on_completed is not None:
            self.on_completed(rule)
        return processed

    def _abandoned(self, rule: HighlightRule, scope_key: str, processed: int) -> bool:
        if rule.disposed or rule.key != scope_key:
            logger.debug(
                "Abandoned scope scan for removed or moved rule",
                extra={"rule_id": rule.id, "files_processed": processed},
            )
            return True
        return False

    def _drop_stale_stats(self, rule: HighlightRule, scanned: list[str]) -> None:
        keep = set(scanned)
        for uri in list(rule.matches.stats):
            if uri in keep:
                continue
            if self.host.find_open_document(uri) is not None and rule.applies_to(uri):
                continue
            rule.matches.discard(uri)
            logger.debug("Dropped stats for file outside the scan", extra={"rule_id": rule.id, "file": uri})

    async def _scan_file(self, rule: HighlightRule, uri: str, scope_key: str) -> None:
        document = self.host.find_open_document(uri)
        if document is not None:
            text = document.get_text()
            language_id = document.language_id
        else:
            try:
                text = await self.fs.read_text(uri)
            except (OSError, UnicodeDecodeError) as e:
                raise ScanFileError(uri, f"Could not read {uri}: {e}") from e
            language_id = detect_language_id(uri, self.config.extensions)

        if rule.disposed or rule.key != scope_key:
            return

        ranges = self.match_rule(rule, text, language_id)
        rule.matches.record(uri, ranges)

"""
In-process editor host and local file system.

``HeadlessHost`` keeps open documents, one editor per open document, the
active editor, decoration handles and user-facing messages in memory. It is
what the MCP server drives, and what tests use to observe decorations.
``LocalFileSystem`` serves folder scans from disk.
"""

from __future__ import annotations

import asyncio
import bisect
import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from smart_highlights.config import HighlightConfig
from smart_highlights.languages import detect_language_id
from smart_highlights.models import DecorationStyle, Position, Selection, TextRange
from smart_highlights.scopes import canonical_uri, path_to_uri, uri_to_path

logger = logging.getLogger(__name__)


# =============================================================================
# Documents and editors
# =============================================================================


class Document:
    """An open text document held in memory."""

    def __init__(self, uri: str, text: str, language_id: str):
        self.uri = uri
        self.language_id = language_id
        self.version = 1
        self._text = text
        self._line_starts: Optional[list[int]] = None

    def get_text(self) -> str:
        return self._text

    def set_text(self, text: str) -> None:
        self._text = text
        self._line_starts = None
        self.version += 1

    @property
    def line_starts(self) -> list[int]:
        if self._line_starts is None:
            starts = [0]
            for index, char in enumerate(self._text):
                if char == "\n":
                    starts.append(index + 1)
            self._line_starts = starts
        return self._line_starts

    def position_at(self, offset: int) -> Position:
        offset = max(0, min(offset, len(self._text)))
        line = bisect.bisect_right(self.line_starts, offset) - 1
        return Position(line=line, character=offset - self.line_starts[line])

    def offset_at(self, position: Position) -> int:
        if position.line < 0:
            return 0
        if position.line >= len(self.line_starts):
            return len(self._text)
        start = self.line_starts[position.line]
        next_start = (
            self.line_starts[position.line + 1] - 1
            if position.line + 1 < len(self.line_starts)
            else len(self._text)
        )
        return min(start + max(position.character, 0), next_start)


@dataclass(eq=False)
class Decoration:
    """A decoration handle. ``dispose_count`` records every dispose call."""

    style: DecorationStyle
    dispose_count: int = 0

    @property
    def disposed(self) -> bool:
        return self.dispose_count > 0

    def dispose(self) -> None:
        self.dispose_count += 1


@dataclass(eq=False)
class HeadlessEditor:
    """An editor showing one document, recording decorations and reveals."""

    document: Document
    selection: Selection = field(default_factory=lambda: Selection.caret(0))
    decorations: dict[Decoration, list[TextRange]] = field(default_factory=dict)
    revealed: Optional[TextRange] = None

    def set_decorations(self, handle: Decoration, ranges: Sequence[TextRange]) -> None:
        if ranges:
            self.decorations[handle] = list(ranges)
        else:
            self.decorations.pop(handle, None)

    def set_selection(self, selection: TextRange) -> None:
        self.selection = Selection(selection.start, selection.end)

    def reveal_range(self, text_range: TextRange) -> None:
        self.revealed = text_range

    def ranges_for(self, handle: Optional[Decoration]) -> list[TextRange]:
        if handle is None:
            return []
        return list(self.decorations.get(handle, []))


# =============================================================================
# HeadlessHost Class
# =============================================================================


class HeadlessHost:
    """
    Editor host kept entirely in memory.

    Every open document has a visible editor. Opening or showing a document
    makes its editor active. Messages shown to the user are appended to
    ``messages`` as ``(level, text)`` pairs.
    """

    def __init__(self, config: HighlightConfig | None = None):
        self.config = config or HighlightConfig()
        self.messages: list[tuple[str, str]] = []
        self.decorations: list[Decoration] = []
        self._editors: dict[str, HeadlessEditor] = {}
        self._active_uri: Optional[str] = None

    # -------------------------------------------------------------------------
    # Workspace control
    # -------------------------------------------------------------------------

    def open_document(
        self,
        uri: str,
        text: Optional[str] = None,
        language_id: Optional[str] = None,
        activate: bool = True,
    ) -> HeadlessEditor:
        """
        Open a document, reading it from disk when ``text`` is omitted.

        Opening an already open document returns its editor unchanged. Documents
        are keyed by their canonical URI, so equivalent spellings share an editor.

        Raises:
            OSError: If the text must be read from disk and cannot be.
        """
        uri = canonical_uri(uri)
        editor = self._editors.get(uri)
        if editor is None:
            if text is None:
                text = Path(uri_to_path(uri)).read_text(encoding="utf-8")
            language = language_id or detect_language_id(uri, self.config.extensions)
            editor = HeadlessEditor(document=Document(uri, text, language))
            self._editors[uri] = editor
            logger.debug("Opened document", extra={"uri": uri, "language_id": language})
        if activate:
            self._active_uri = uri
        return editor

    def close_document(self, uri: str) -> Optional[Document]:
        uri = canonical_uri(uri)
        editor = self._editors.pop(uri, None)
        if editor is None:
            return None
        if self._active_uri == uri:
            self._active_uri = next(reversed(self._editors), None)
        return editor.document

    def activate(self, uri: str) -> Optional[HeadlessEditor]:
        uri = canonical_uri(uri)
        editor = self._editors.get(uri)
        if editor is not None:
            self._active_uri = uri
        return editor

    def edit_document(self, uri: str, text: str) -> Optional[Document]:
        editor = self._editors.get(canonical_uri(uri))
        if editor is None:
            return None
        editor.document.set_text(text)
        length = len(text)
        editor.selection = Selection(min(editor.selection.start, length), min(editor.selection.end, length))
        return editor.document

    # -------------------------------------------------------------------------
    # EditorHost protocol
    # -------------------------------------------------------------------------

    def active_editor(self) -> Optional[HeadlessEditor]:
        if self._active_uri is None:
            return None
        return self._editors.get(self._active_uri)

    def visible_editors(self) -> list[HeadlessEditor]:
        return list(self._editors.values())

    def find_open_document(self, uri: str) -> Optional[Document]:
        editor = self._editors.get(canonical_uri(uri))
        return editor.document if editor is not None else None

    async def show_document(self, uri: str) -> HeadlessEditor:
        uri = canonical_uri(uri)
        if uri in self._editors:
            return self.open_document(uri)
        text = await asyncio.to_thread(Path(uri_to_path(uri)).read_text, encoding="utf-8")
        return self.open_document(uri, text)

    def create_decoration(self, style: DecorationStyle) -> Decoration:
        decoration = Decoration(style=style)
        self.decorations.append(decoration)
        return decoration

    def show_message(self, message: str, level: str = "info") -> None:
        self.messages.append((level, message))
        logger.info(message, extra={"level": level})


# =============================================================================
# LocalFileSystem Class
# =============================================================================


def should_exclude(relative_path: str, patterns: Sequence[str], is_dir: bool = False) -> bool:
    """
    Check a path relative to the scan root against exclude globs.

    Directories are tested with a trailing slash so ``**/out/**`` prunes the
    ``out`` folder itself.

    Args:
        relative_path: POSIX style path relative to the scan root.
        patterns: Glob patterns such as ``**/node_modules/**``.
        is_dir: Whether the path is a directory.

    Returns:
        True if the path should be skipped.
    """
    candidate = relative_path + "/" if is_dir else relative_path
    parts = candidate.split("/")

    for pattern in patterns:
        if fnmatch.fnmatchcase(candidate, pattern):
            return True
        if pattern.startswith("**/"):
            tail = pattern[3:]
            for i in range(len(parts)):
                if fnmatch.fnmatchcase("/".join(parts[i:]), tail):
                    return True
    return False


def discover_files(directory: Path, excludes: Sequence[str], max_results: int) -> list[Path]:
    """Walk ``directory`` in sorted order, pruning excluded folders, up to ``max_results`` files."""
    files: list[Path] = []

    for root, dirs, filenames in os.walk(directory):
        root_path = Path(root)
        relative_root = root_path.relative_to(directory).as_posix()
        prefix = "" if relative_root == "." else relative_root + "/"

        dirs[:] = sorted(d for d in dirs if not should_exclude(prefix + d, excludes, is_dir=True))

        for filename in sorted(filenames):
            if should_exclude(prefix + filename, excludes):
                continue
            files.append(root_path / filename)
            if len(files) >= max_results:
                logger.warning(
                    f"Recursive scan of {directory} stopped at {max_results} files",
                    extra={"directory": str(directory), "max_results": max_results},
                )
                return files

    return files


class LocalFileSystem:
    """File access for scans, with blocking calls moved off the event loop."""

    async def list_files(self, folder_uri: str) -> list[str]:
        """
        List regular files directly inside a folder.

        Raises:
            OSError: If the folder cannot be read.
        """
        folder = uri_to_path(folder_uri)
        return await asyncio.to_thread(self._list_immediate, folder)

    @staticmethod
    def _list_immediate(folder: str) -> list[str]:
        with os.scandir(folder) as entries:
            return sorted(path_to_uri(entry.path) for entry in entries if entry.is_file())

    async def find_files(self, folder_uri: str, excludes: Sequence[str], max_results: int) -> list[str]:
        folder = Path(uri_to_path(folder_uri))
        if not folder.is_dir():
            raise FileNotFoundError(f"Folder not found: {folder}")
        paths = await asyncio.to_thread(discover_files, folder, list(excludes), max_results)
        return [path_to_uri(str(path)) for path in paths]

    async def read_text(self, uri: str) -> str:
        return await asyncio.to_thread(Path(uri_to_path(uri)).read_text, encoding="utf-8")

"""
Interfaces the engine needs from its editor host and file system.

The engine never renders anything itself. It asks the host for decoration
handles, pushes ranges into editors, and reads files through a
:class:`FileSystem`. :mod:`smart_highlights.workspace` provides an in-process
implementation of all of these.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol, Sequence, runtime_checkable

from smart_highlights.models import DecorationStyle, Position, Selection, TextRange


@runtime_checkable
class TextDocument(Protocol):
    """An open text document."""

    @property
    def uri(self) -> str: ...

    @property
    def language_id(self) -> str: ...

    def get_text(self) -> str: ...

    def position_at(self, offset: int) -> Position: ...

    def offset_at(self, position: Position) -> int: ...


class DecorationHandle(Protocol):
    """A host decoration type owned by exactly one rule."""

    def dispose(self) -> None: ...


@runtime_checkable
class TextEditor(Protocol):
    """A visible editor showing one document."""

    @property
    def document(self) -> TextDocument: ...

    @property
    def selection(self) -> Selection: ...

    def set_decorations(self, handle: DecorationHandle, ranges: Sequence[TextRange]) -> None: ...

    def set_selection(self, selection: TextRange) -> None: ...

    def reveal_range(self, text_range: TextRange) -> None: ...


class EditorHost(Protocol):
    """
    Editor-side services: editors, documents, decorations and messages.

    ``find_open_document`` must treat equivalent spellings of a ``file`` URI as
    the same document. ``show_document`` raises OSError when the file cannot
    be opened.
    """

    def active_editor(self) -> Optional[TextEditor]: ...

    def visible_editors(self) -> list[TextEditor]: ...

    def find_open_document(self, uri: str) -> Optional[TextDocument]: ...

    async def show_document(self, uri: str) -> TextEditor: ...

    def create_decoration(self, style: DecorationStyle) -> DecorationHandle: ...

    def show_message(self, message: str, level: str = "info") -> None: ...


class FileSystem(Protocol):
    """Asynchronous file access used by folder scans."""

    async def list_files(self, folder_uri: str) -> list[str]:
        """Return the URIs of regular files directly inside ``folder_uri``."""
        ...

    async def find_files(self, folder_uri: str, excludes: Sequence[str], max_results: int) -> list[str]:
        """Return up to ``max_results`` file URIs below ``folder_uri``, skipping ``excludes`` globs."""
        ...

    async def read_text(self, uri: str) -> str: ...


class WordPatternProvider(Protocol):
    """Supplies the word pattern for a language id, or None when there is none."""

    def word_pattern_for(self, language_id: str) -> Optional[re.Pattern[str]]: ...

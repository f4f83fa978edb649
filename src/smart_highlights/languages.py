"""
Language identification and word-pattern lookup for whole-word matching.

This module maps documents to language identifiers and resolves the
language-specific "word pattern" (a regular expression describing one word
token) used to decide whether a match is a whole word.

Features:
- File extension based language detection with configurable overrides
- Word patterns from inline configuration or language-configuration files
  (JSON, JSON with comments, or YAML)
- Lookups cached per language id and per configuration file
- Unreadable or invalid configuration is cached as "no pattern"

Example:
    >>> detect_language_id("file:///src/app.py")
    'python'
    >>> registry = LanguageWordPatterns(HighlightConfig(word_patterns={"python": r"\\w+"}))
    >>> registry.word_pattern_for("python").pattern
    '\\\\w+'
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

import yaml

from smart_highlights.config import HighlightConfig

logger = logging.getLogger(__name__)

PLAINTEXT = "plaintext"

# Default extension to language id mapping
EXTENSION_LANGUAGE_IDS: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".pyw": "python",
    ".pyx": "python",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".mts": "typescript",
    ".cts": "typescript",
    ".json": "json",
    ".jsonc": "jsonc",
    ".md": "markdown",
    ".markdown": "markdown",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".xml": "xml",
    ".sh": "shellscript",
    ".bash": "shellscript",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".rb": "ruby",
    ".php": "php",
    ".sql": "sql",
    ".txt": PLAINTEXT,
    ".log": "log",
}

# Regex flags understood in word pattern definitions
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


def detect_language_id(location: str, extensions: dict[str, str] | None = None) -> str:
    """
    Detect a document's language id from its URI or path.

    Args:
        location: Document URI (``file:///...``) or plain path.
        extensions: Optional overrides, extension (with dot) to language id.

    Returns:
        Lowercase language id, ``plaintext`` when the extension is unknown.
    """
    path = unquote(urlsplit(location).path) if "://" in location or location.startswith("untitled:") else location
    extension = posixpath.splitext(path.replace("\\", "/"))[1].lower()
    if not extension:
        return PLAINTEXT
    if extensions and extension in extensions:
        return extensions[extension]
    return EXTENSION_LANGUAGE_IDS.get(extension, PLAINTEXT)


# =============================================================================
# Configuration parsing helpers
# =============================================================================


def strip_json_comments(content: str) -> str:
    """Remove ``//`` and ``/* */`` comments outside of string literals."""
    output: list[str] = []
    in_string = False
    delimiter = ""
    in_line_comment = False
    in_block_comment = False
    i = 0
    length = len(content)

    while i < length:
        char = content[i]
        nxt = content[i + 1] if i + 1 < length else ""

        if in_line_comment:
            if char == "\n":
                in_line_comment = False
                output.append(char)
            i += 1
            continue

        if in_block_comment:
            if char == "*" and nxt == "/":
                in_block_comment = False
                i += 2
            else:
                i += 1
            continue

        if in_string:
            output.append(char)
            if char == "\\" and i + 1 < length:
                output.append(nxt)
                i += 2
                continue
            if char == delimiter:
                in_string = False
            i += 1
            continue

        if char in ('"', "'", "`"):
            in_string = True
            delimiter = char
            output.append(char)
        elif char == "/" and nxt == "/":
            in_line_comment = True
            i += 2
            continue
        elif char == "/" and nxt == "*":
            in_block_comment = True
            i += 2
            continue
        else:
            output.append(char)
        i += 1

    return "".join(output)


def compile_word_pattern(source: str, flags: str = "") -> re.Pattern[str]:
    """Compile a word pattern, translating JavaScript style flag letters."""
    compiled_flags = 0
    for letter in flags:
        compiled_flags |= _FLAG_MAP.get(letter, 0)
    return re.compile(source, compiled_flags)


def extract_word_pattern(config: Any) -> re.Pattern[str] | None:
    """
    Extract ``wordPattern`` from a parsed language configuration.

    Accepts either a plain pattern string or ``{"pattern": ..., "flags": ...}``.

    Raises:
        re.error: If the pattern does not compile.
    """
    if not isinstance(config, dict):
        return None
    raw = config.get("wordPattern")
    if not raw:
        return None
    if isinstance(raw, str):
        return compile_word_pattern(raw)
    if isinstance(raw, dict) and isinstance(raw.get("pattern"), str):
        flags = raw.get("flags") if isinstance(raw.get("flags"), str) else ""
        return compile_word_pattern(raw["pattern"], flags)
    return None


def load_language_configuration(path: Path) -> Any:
    """Parse a language configuration file (JSON, JSONC or YAML)."""
    raw = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return yaml.safe_load(raw)
    return json.loads(strip_json_comments(raw))


# =============================================================================
# LanguageWordPatterns Class
# =============================================================================


class LanguageWordPatterns:
    """
    Word pattern provider backed by configuration.

    Resolution order for a language id:
    1. ``languages.word_patterns`` inline entries
    2. Each file listed under ``languages.configurations`` for the language

    When neither yields a pattern the caller falls back to the separator
    based whole-word policy.

    Attributes:
        config: Engine configuration.
    """

    def __init__(self, config: HighlightConfig | None = None):
        self.config = config or HighlightConfig()
        self._language_cache: dict[str, re.Pattern[str] | None] = {}
        self._file_cache: dict[str, re.Pattern[str] | None] = {}

    def word_pattern_for(self, language_id: str) -> re.Pattern[str] | None:
        """
        Get the word pattern for a language id, or None when none is configured.

        Results (including misses) are cached per language id.
        """
        if language_id in self._language_cache:
            return self._language_cache[language_id]

        pattern = self._load_for_language(language_id)
        self._language_cache[language_id] = pattern
        return pattern

    def _load_for_language(self, language_id: str) -> re.Pattern[str] | None:
        inline = self.config.word_patterns.get(language_id)
        if inline:
            try:
                return compile_word_pattern(inline)
            except re.error as e:
                logger.warning(f"Invalid inline word pattern for {language_id}: {e}")

        for config_path in self.config.language_configurations.get(language_id, []):
            pattern = self._pattern_from_file(config_path)
            if pattern is not None:
                return pattern
        return None

    def _pattern_from_file(self, config_path: str) -> re.Pattern[str] | None:
        if config_path in self._file_cache:
            return self._file_cache[config_path]

        path = Path(config_path)
        pattern: re.Pattern[str] | None = None
        if path.exists():
            try:
                pattern = extract_word_pattern(load_language_configuration(path))
            except (OSError, ValueError, yaml.YAMLError, re.error) as e:
                logger.warning(f"Failed to read wordPattern from {config_path}: {e}")
                pattern = None
        else:
            logger.debug(
                "Language configuration not found",
                extra={"config_path": config_path},
            )

        self._file_cache[config_path] = pattern
        return pattern

    def clear_cache(self) -> None:
        """Forget cached lookups so configuration changes are picked up."""
        self._language_cache.clear()
        self._file_cache.clear()

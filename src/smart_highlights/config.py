"""
Configuration loading for the highlight engine.

Settings are read from a YAML file and fall back to built-in defaults when the
file is missing. The file is located, in order, from an explicit path, the
``SMART_HIGHLIGHTS_CONFIG`` environment variable, or ``highlights.yaml`` in the
current working directory.

Example config::

    word_separators: "~!@#$%^&*()-=+[{]}|;:,.<>/?"
    max_folder_depth: 50
    scan:
      max_files: 2000
      excludes:
        - "**/node_modules/**"
        - "**/.git/**"
    languages:
      extensions:
        ".mdx": markdown
      word_patterns:
        python: '[A-Za-z_][A-Za-z0-9_]*'
      configurations:
        typescript:
          - /opt/editor/extensions/typescript/language-configuration.json
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from smart_highlights.errors import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Defaults
# =============================================================================


DEFAULT_WORD_SEPARATORS = "~!@#$%^&*()-=+[{]}\\|;:'\",.<>/?"

DEFAULT_SCAN_EXCLUDES = [
    "**/node_modules/**",
    "**/.git/**",
    "**/out/**",
    "**/dist/**",
    "**/build/**",
]

DEFAULT_SCAN_MAX_FILES = 2000
DEFAULT_MAX_FOLDER_DEPTH = 50
DEFAULT_FILE_FILTER_SEPARATOR = "|"

CONFIG_ENV_VAR = "SMART_HIGHLIGHTS_CONFIG"
DEBUG_ENV_VAR = "SMART_HIGHLIGHTS_DEBUG"
DEFAULT_CONFIG_FILENAME = "highlights.yaml"


@dataclass
class HighlightConfig:
    """
    Engine configuration loaded from highlights.yaml.

    Attributes:
        word_separators: Characters treated as non-word for whole-word matching
            when no language word pattern is available.
        scan_excludes: Glob patterns skipped by recursive folder scans.
        scan_max_files: Upper bound on files enumerated by a recursive scan.
        max_folder_depth: Maximum number of ancestor folders considered.
        file_filter_separator: Separator between glob patterns in a file filter.
        extensions: Extra extension to language id mappings.
        word_patterns: Inline word patterns keyed by language id.
        language_configurations: Language configuration files keyed by language id.
        debug_logging: Whether verbose per-document traces are emitted.
    """

    word_separators: str = DEFAULT_WORD_SEPARATORS
    scan_excludes: list[str] = field(default_factory=lambda: list(DEFAULT_SCAN_EXCLUDES))
    scan_max_files: int = DEFAULT_SCAN_MAX_FILES
    max_folder_depth: int = DEFAULT_MAX_FOLDER_DEPTH
    file_filter_separator: str = DEFAULT_FILE_FILTER_SEPARATOR
    extensions: dict[str, str] = field(default_factory=dict)
    word_patterns: dict[str, str] = field(default_factory=dict)
    language_configurations: dict[str, list[str]] = field(default_factory=dict)
    debug_logging: bool = field(default_factory=lambda: os.environ.get(DEBUG_ENV_VAR) != "0")


def _resolve_config_path(path: str | os.PathLike[str] | None) -> Path | None:
    """
    Locate the configuration file.

    Checks in order:
    1. Explicit path argument
    2. SMART_HIGHLIGHTS_CONFIG environment variable
    3. highlights.yaml in the current working directory
    """
    if path is not None:
        return Path(path)
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        return Path(env_path)
    candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
    if candidate.exists():
        return candidate
    return None


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def load_config(path: str | os.PathLike[str] | None = None) -> HighlightConfig:
    """
    Load configuration from YAML, falling back to defaults.

    Args:
        path: Optional explicit path to a YAML config file.

    Returns:
        HighlightConfig with all configuration values.

    Raises:
        ConfigurationError: If the file exists but is not valid YAML or cannot be read.
    """
    config_path = _resolve_config_path(path)
    if config_path is None:
        return HighlightConfig()

    if not config_path.exists():
        logger.warning(f"Config file not found at {config_path}, using defaults")
        return HighlightConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    scan = data.get("scan") or {}
    languages = data.get("languages") or {}
    defaults = HighlightConfig()

    config = HighlightConfig(
        word_separators=data.get("word_separators", DEFAULT_WORD_SEPARATORS),
        scan_excludes=_as_str_list(scan.get("excludes", DEFAULT_SCAN_EXCLUDES)),
        scan_max_files=int(scan.get("max_files", DEFAULT_SCAN_MAX_FILES)),
        max_folder_depth=int(data.get("max_folder_depth", DEFAULT_MAX_FOLDER_DEPTH)),
        file_filter_separator=data.get("file_filter_separator", DEFAULT_FILE_FILTER_SEPARATOR),
        extensions={
            (ext if ext.startswith(".") else f".{ext}").lower(): str(lang)
            for ext, lang in (languages.get("extensions") or {}).items()
        },
        word_patterns={str(k): str(v) for k, v in (languages.get("word_patterns") or {}).items()},
        language_configurations={
            str(k): _as_str_list(v) for k, v in (languages.get("configurations") or {}).items()
        },
        debug_logging=bool(data.get("debug_logging", defaults.debug_logging)),
    )

    logger.info(
        f"Loaded configuration from {config_path}",
        extra={
            "config_path": str(config_path),
            "scan_max_files": config.scan_max_files,
            "languages_configured": sorted(config.language_configurations),
        },
    )
    return config

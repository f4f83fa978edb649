"""Tests for language detection and word pattern lookup."""

import json

from smart_highlights.config import HighlightConfig
from smart_highlights.languages import (
    LanguageWordPatterns,
    detect_language_id,
    extract_word_pattern,
    strip_json_comments,
)


def test_detect_language_id():
    assert detect_language_id("file:///work/src/app.py") == "python"
    assert detect_language_id("file:///work/src/App.TSX") == "typescriptreact"
    assert detect_language_id("/work/README.md") == "markdown"
    assert detect_language_id("file:///work/Makefile") == "plaintext"
    assert detect_language_id("file:///work/data.unknown") == "plaintext"


def test_detect_language_id_overrides():
    assert detect_language_id("file:///work/page.mdx", {".mdx": "markdown"}) == "markdown"


def test_strip_json_comments_keeps_strings():
    content = '{\n  // line comment\n  "url": "http://example.com", /* block */ "x": 1\n}'
    parsed = json.loads(strip_json_comments(content))
    assert parsed == {"url": "http://example.com", "x": 1}


def test_extract_word_pattern_forms():
    assert extract_word_pattern({"wordPattern": "[a-z]+"}).pattern == "[a-z]+"
    flagged = extract_word_pattern({"wordPattern": {"pattern": "[a-z]+", "flags": "i"}})
    assert flagged.match("ABC")
    assert extract_word_pattern({"comments": {}}) is None
    assert extract_word_pattern(["not", "a", "mapping"]) is None


def test_inline_word_pattern():
    registry = LanguageWordPatterns(HighlightConfig(word_patterns={"css": r"[\w-]+"}))
    assert registry.word_pattern_for("css").pattern == r"[\w-]+"
    assert registry.word_pattern_for("python") is None


def test_word_pattern_from_jsonc_file(tmp_path):
    config_file = tmp_path / "language-configuration.json"
    config_file.write_text(
        '{\n  // word definition\n  "wordPattern": {"pattern": "[\\\\w$]+", "flags": "u"}\n}\n',
        encoding="utf-8",
    )
    registry = LanguageWordPatterns(
        HighlightConfig(language_configurations={"javascript": [str(config_file)]})
    )
    pattern = registry.word_pattern_for("javascript")
    assert pattern is not None
    assert pattern.fullmatch("$scope")


def test_word_pattern_from_yaml_file(tmp_path):
    config_file = tmp_path / "lang.yaml"
    config_file.write_text("wordPattern: '[a-z]+'\n", encoding="utf-8")
    registry = LanguageWordPatterns(HighlightConfig(language_configurations={"toy": [str(config_file)]}))
    assert registry.word_pattern_for("toy").pattern == "[a-z]+"


def test_invalid_configuration_is_cached_as_none(tmp_path):
    """Unreadable configurations yield no pattern and are not re-read."""
    config_file = tmp_path / "broken.json"
    config_file.write_text('{"wordPattern": "(unclosed"}', encoding="utf-8")
    registry = LanguageWordPatterns(HighlightConfig(language_configurations={"toy": [str(config_file)]}))
    assert registry.word_pattern_for("toy") is None

    config_file.write_text('{"wordPattern": "[a-z]+"}', encoding="utf-8")
    assert registry.word_pattern_for("toy") is None

    registry.clear_cache()
    assert registry.word_pattern_for("toy").pattern == "[a-z]+"


def test_missing_configuration_file(tmp_path):
    registry = LanguageWordPatterns(
        HighlightConfig(language_configurations={"toy": [str(tmp_path / "missing.json")]})
    )
    assert registry.word_pattern_for("toy") is None

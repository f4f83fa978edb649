"""Smart Highlights MCP Server - scoped highlight rules over a headless workspace."""

from __future__ import annotations

import logging
import os
import sys

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError as PydanticValidationError

from smart_highlights.colors import suggest_color
from smart_highlights.config import HighlightConfig, load_config
from smart_highlights.engine import HighlightEngine
from smart_highlights.errors import HighlightError
from smart_highlights.models import RuleDraft, Selection
from smart_highlights.scopes import creation_message, path_to_uri, resolve_scope
from smart_highlights.workspace import HeadlessHost, LocalFileSystem

# ────────────────────────────────────────────
# LOGGING SETUP
# ────────────────────────────────────────────

logger = logging.getLogger("smart_highlights")

# ────────────────────────────────────────────
# SERVER INSTANTIATION
# ────────────────────────────────────────────

mcp = FastMCP(
    name="Smart Highlights",
    instructions="Persistent highlight rules for text documents. Rules apply to one file, one folder, or a folder and its subfolders, and support cross-file next/previous match navigation.",
)

_engine: HighlightEngine | None = None
_host: HeadlessHost | None = None


def get_engine() -> HighlightEngine:
    """Get the server's engine, creating it with the loaded configuration on first use."""
    global _engine, _host
    if _engine is None:
        config = load_config()
        _host = HeadlessHost(config)
        _engine = HighlightEngine(_host, LocalFileSystem(), config)
    return _engine


def get_host() -> HeadlessHost:
    engine = get_engine()
    host = engine.host
    if not isinstance(host, HeadlessHost):
        raise RuntimeError("Server engine is not attached to a headless workspace")
    return host


def _failure(error: Exception) -> dict:
    logger.warning(f"{type(error).__name__}: {error}")
    return {"success": False, "message": str(error)}


def _snapshot(rule_id: str, document_uri: str | None) -> dict:
    engine = get_engine()
    if not document_uri:
        document_uri = engine.store.require(rule_id).target_uri
    return engine.snapshot(rule_id, document_uri).model_dump()


def _rules(document_uri: str) -> list[dict]:
    return [snapshot.model_dump() for snapshot in get_engine().snapshots(document_uri)]


# ────────────────────────────────────────────
# TOOLS: WORKSPACE
# ────────────────────────────────────────────


@mcp.tool()
def open_document(
    path: str | None = None,
    uri: str | None = None,
    text: str | None = None,
    language_id: str | None = None,
) -> dict:
    """Open a document and make it the active editor. Pass a file path or a file:// URI; text is read from disk unless given. Returns the rules applying to the document with their match counts."""
    if not uri and not path:
        return {"success": False, "message": "Provide a path or a uri."}
    document_uri = uri or path_to_uri(os.path.abspath(path))
    try:
        editor = get_host().open_document(document_uri, text=text, language_id=language_id)
    except (OSError, HighlightError) as e:
        return _failure(e)
    get_engine().handle_active_editor_changed(editor)
    document_uri = editor.document.uri
    logger.info(f"open_document: {document_uri}")
    return {
        "success": True,
        "uri": document_uri,
        "language_id": editor.document.language_id,
        "rules": _rules(document_uri),
    }


@mcp.tool()
def close_document(uri: str) -> dict:
    """Close an open document. Rules are kept; folder rules keep their scanned match counts."""
    host = get_host()
    engine = get_engine()
    if host.close_document(uri) is None:
        return {"success": False, "message": f"Document is not open: {uri}"}
    engine.handle_document_closed(uri)
    engine.handle_active_editor_changed(host.active_editor())
    logger.info(f"close_document: {uri}")
    return {"success": True, "uri": uri}


@mcp.tool()
def edit_document(uri: str, text: str) -> dict:
    """Replace the full text of an open document and re-apply its highlight rules."""
    if get_host().edit_document(uri, text) is None:
        return {"success": False, "message": f"Document is not open: {uri}"}
    get_engine().handle_document_changed(uri)
    return {"success": True, "uri": uri, "rules": _rules(uri)}


@mcp.tool()
def select_range(uri: str, start: int, end: int | None = None) -> dict:
    """Activate an open document and set its selection (character offsets). Omitting end places a caret."""
    host = get_host()
    engine = get_engine()
    previous = host.active_editor()
    editor = host.activate(uri)
    if editor is None:
        return {"success": False, "message": f"Document is not open: {uri}"}
    if editor is not previous:
        engine.handle_active_editor_changed(editor)
    selection = Selection(start, start if end is None else end)
    editor.selection = selection
    engine.handle_selection_changed(editor, selection)
    return {"success": True, "uri": uri, "rules": _rules(uri)}


# ────────────────────────────────────────────
# TOOLS: RULES
# ────────────────────────────────────────────


@mcp.tool()
async def create_rule(
    document_uri: str,
    pattern: str,
    color: str | None = None,
    match_case: bool = False,
    match_whole_word: bool = False,
    use_regex: bool = False,
    scope: str | None = None,
    file_filter: str | None = None,
) -> dict:
    """Create a highlight rule from a document. scope is 'document', 'folder' or 'folderRecursive' (default: folderRecursive when the document has a folder). file_filter is a '|'-separated list of file name globs. A color is suggested when omitted."""
    engine = get_engine()
    if color is None:
        color = suggest_color(rule.color for rule in engine.store.all_rules())
    try:
        draft = RuleDraft(
            document_uri=document_uri,
            pattern=pattern,
            color=color,
            match_case=match_case,
            match_whole_word=match_whole_word,
            use_regex=use_regex,
            scope=scope,
            file_filter=file_filter,
        )
        rule = engine.create_rule(draft)
    except (HighlightError, PydanticValidationError) as e:
        return _failure(e)
    await engine.wait_for_scans()
    logger.info(f"create_rule: {rule.id} in {rule.key}")
    return {"success": True, "message": creation_message(rule.scope), "rule": _snapshot(rule.id, document_uri)}


@mcp.tool()
def list_rules(document_uri: str) -> dict:
    """List the rules applying to a document with total and per-document match counts."""
    return {"success": True, "rules": _rules(document_uri)}


@mcp.tool()
def scope_options(document_uri: str) -> dict:
    """Scope choices for a document, the default scope for new rules, and how many rules each scope holds."""
    engine = get_engine()
    selection = engine.scope_selection(document_uri)
    counts = {option.key: count for option, count in engine.clearable_scopes(document_uri)}
    result = selection.model_dump()
    for option in result["options"]:
        option["rule_count"] = counts.get(option["key"], 0)
    result["success"] = True
    return result


@mcp.tool()
async def update_pattern(rule_id: str, pattern: str, document_uri: str | None = None) -> dict:
    """Change a rule's pattern. The rule is left unchanged when the pattern is empty or an invalid regular expression."""
    engine = get_engine()
    try:
        rule = engine.update_pattern(rule_id, pattern)
    except HighlightError as e:
        return _failure(e)
    await engine.wait_for_scans()
    return {"success": True, "rule": _snapshot(rule.id, document_uri)}


@mcp.tool()
def update_color(rule_id: str, color: str, document_uri: str | None = None) -> dict:
    """Change a rule's highlight color."""
    engine = get_engine()
    try:
        rule = engine.update_color(rule_id, color)
    except HighlightError as e:
        return _failure(e)
    return {"success": True, "rule": _snapshot(rule.id, document_uri)}


@mcp.tool()
async def toggle_option(rule_id: str, option: str, document_uri: str | None = None) -> dict:
    """Toggle 'matchCase', 'matchWholeWord' or 'useRegex' on a rule. Enabling useRegex on a pattern that is not a valid regular expression fails and keeps the previous value."""
    engine = get_engine()
    try:
        value = engine.toggle_option(rule_id, option)
    except HighlightError as e:
        return _failure(e)
    except ValueError:
        return {"success": False, "message": f"Unknown option: {option}"}
    await engine.wait_for_scans()
    return {"success": True, "option": option, "value": value, "rule": _snapshot(rule_id, document_uri)}


@mcp.tool()
async def set_file_filter(rule_id: str, file_filter: str | None = None, document_uri: str | None = None) -> dict:
    """Restrict a rule to file names matching '|'-separated globs such as '*.py|*.md'. An empty filter removes the restriction."""
    engine = get_engine()
    try:
        changed = engine.set_file_filter(rule_id, file_filter)
    except HighlightError as e:
        return _failure(e)
    await engine.wait_for_scans()
    return {"success": True, "changed": changed, "rule": _snapshot(rule_id, document_uri)}


@mcp.tool()
async def change_scope(rule_id: str, scope: str, document_uri: str) -> dict:
    """Move a rule to another scope resolved against a document: 'document', 'folder' or 'folderRecursive'."""
    engine = get_engine()
    try:
        changed = engine.change_scope(rule_id, scope, document_uri)
    except HighlightError as e:
        return _failure(e)
    except ValueError:
        return {"success": False, "message": f"Unknown scope: {scope}"}
    await engine.wait_for_scans()
    return {"success": True, "changed": changed, "rule": _snapshot(rule_id, document_uri)}


@mcp.tool()
def delete_rule(rule_id: str) -> dict:
    """Delete a highlight rule and remove its highlights."""
    if not get_engine().delete_rule(rule_id):
        return {"success": False, "message": f"Unknown highlight rule: {rule_id}"}
    logger.info(f"delete_rule: {rule_id}")
    return {"success": True, "message": "Highlight removed."}


@mcp.tool()
def clear_scope(document_uri: str, scope: str) -> dict:
    """Delete every rule stored under one of a document's scopes ('document', 'folder' or 'folderRecursive')."""
    try:
        key = resolve_scope(document_uri, scope).key
    except ValueError:
        return {"success": False, "message": f"Unknown scope: {scope}"}
    removed = get_engine().clear_scope(key)
    if not removed:
        return {"success": False, "message": "There are no highlights to clear."}
    logger.info(f"clear_scope: {key}, {removed} rules")
    return {"success": True, "removed": removed, "key": key}


@mcp.tool()
async def navigate(rule_id: str, direction: str = "next", document_uri: str | None = None) -> dict:
    """Jump to the next or previous match of a rule across every file in its scope, wrapping at the ends. Returns the selected match location."""
    engine = get_engine()
    try:
        location = await engine.navigate(rule_id, direction, document_uri)
    except HighlightError as e:
        return _failure(e)
    except ValueError:
        return {"success": False, "message": f"Unknown direction: {direction}"}
    rule = engine.store.require(rule_id)
    if location is None:
        return {"success": False, "message": f'No matches were found for "{rule.pattern}".'}
    return {
        "success": True,
        "location": location.model_dump(),
        "global_index": rule.matches.global_index,
        "total": rule.matches.total_matches(),
        "rule": _snapshot(rule_id, location.uri),
    }


# ────────────────────────────────────────────
# RESOURCES
# ────────────────────────────────────────────


def get_config_resource(config: HighlightConfig) -> str:
    """Format engine configuration as text."""
    lines = [
        "# Smart Highlights Configuration",
        "",
        f"Word separators: {config.word_separators}",
        f"Max folder depth: {config.max_folder_depth}",
        f"File filter separator: {config.file_filter_separator}",
        f"Scan max files: {config.scan_max_files}",
        "",
        "Scan excludes:",
    ]
    lines.extend(f"  - {pattern}" for pattern in config.scan_excludes)
    if config.language_configurations:
        lines.append("")
        lines.append("Language configurations:")
        for language, paths in sorted(config.language_configurations.items()):
            lines.append(f"  - {language}: {', '.join(paths)}")
    return "\n".join(lines)


@mcp.resource("highlights://config")
def config_resource() -> str:
    """Smart Highlights matching and scanning configuration."""
    return get_config_resource(get_engine().config)


# ────────────────────────────────────────────
# ENTRY POINT
# ────────────────────────────────────────────


def main() -> None:
    config = load_config()
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if config.debug_logging else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    logger.info("Starting Smart Highlights MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

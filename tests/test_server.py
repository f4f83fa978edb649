"""Tests for MCP tools."""

import asyncio

import pytest

from smart_highlights import server
from smart_highlights.config import HighlightConfig
from smart_highlights.scopes import path_to_uri

DOC = "file:///work/notes.txt"


@pytest.fixture(autouse=True)
def server_engine(monkeypatch, engine, host):
    monkeypatch.setattr(server, "_engine", engine)
    monkeypatch.setattr(server, "_host", host)
    return engine


def test_open_document_with_text():
    """open_document opens an in-memory document and reports its language."""
    result = server.open_document(uri=DOC, text="cat cat")
    assert result["success"] is True
    assert result["language_id"] == "plaintext"
    assert result["rules"] == []


def test_open_document_requires_location():
    """open_document without a path or uri fails."""
    result = server.open_document()
    assert result["success"] is False


def test_open_document_missing_file(tmp_path):
    """open_document reports unreadable files instead of raising."""
    result = server.open_document(path=str(tmp_path / "missing.txt"))
    assert result["success"] is False


def test_create_rule_document_scope(host):
    """create_rule returns the rule snapshot with match counts."""
    server.open_document(uri=DOC, text="cat and cat")
    result = asyncio.run(server.create_rule(DOC, "cat", color="#ffd40080", scope="document"))
    assert result["success"] is True
    assert result["message"] == "Highlight added to the current file."
    assert result["rule"]["match_count"] == 2
    assert result["rule"]["description"] == "No options"


def test_create_rule_suggests_color():
    """create_rule picks a color when none is given."""
    server.open_document(uri=DOC, text="cat")
    result = asyncio.run(server.create_rule(DOC, "cat", scope="document"))
    assert result["rule"]["color"].startswith("#")


def test_create_rule_invalid_regex():
    """create_rule with an invalid regex fails without creating a rule."""
    result = asyncio.run(server.create_rule(DOC, "(", use_regex=True, scope="document"))
    assert result["success"] is False
    assert server.list_rules(DOC)["rules"] == []


def test_create_rule_unknown_scope():
    """create_rule rejects unknown scope names."""
    result = asyncio.run(server.create_rule(DOC, "cat", scope="everywhere"))
    assert result["success"] is False


def test_folder_rule_and_navigation(workspace):
    """A folder rule counts matches in unopened files and navigation crosses into them."""
    a_uri = path_to_uri(str(workspace / "a.txt"))
    b_uri = path_to_uri(str(workspace / "b.txt"))
    server.open_document(path=str(workspace / "a.txt"))
    created = asyncio.run(server.create_rule(a_uri, "cat", scope="folder", file_filter="*.txt"))
    rule_id = created["rule"]["id"]
    assert created["rule"]["match_count"] == 5
    assert created["rule"]["document_match_count"] == 2

    server.select_range(a_uri, 8, 11)
    result = asyncio.run(server.navigate(rule_id, "next", a_uri))
    assert result["success"] is True
    assert result["location"] == {"uri": b_uri, "start": 0, "end": 3}
    assert result["global_index"] == 3
    assert result["total"] == 5
    assert result["rule"]["document_match_index"] == 1


def test_navigate_after_file_deleted(workspace):
    """navigate keeps working after a matched file is deleted from the folder."""
    a_uri = path_to_uri(str(workspace / "a.txt"))
    server.open_document(path=str(workspace / "a.txt"))
    rule_id = asyncio.run(server.create_rule(a_uri, "cat", scope="folder", file_filter="*.txt"))["rule"]["id"]
    (workspace / "b.txt").unlink()

    results = [asyncio.run(server.navigate(rule_id, "next", a_uri)) for _ in range(5)]

    assert all(result["success"] for result in results)
    assert {result["location"]["uri"] for result in results} == {a_uri}
    assert results[-1]["total"] == 2


def test_navigate_reports_unopenable_target(workspace, host, monkeypatch):
    """navigate fails cleanly when the target file cannot be opened."""
    a_uri = path_to_uri(str(workspace / "a.txt"))
    b_uri = path_to_uri(str(workspace / "b.txt"))
    server.open_document(path=str(workspace / "a.txt"))
    rule_id = asyncio.run(server.create_rule(a_uri, "cat", scope="folder", file_filter="*.txt"))["rule"]["id"]

    async def unreadable(uri):
        raise PermissionError(uri)

    monkeypatch.setattr(host, "show_document", unreadable)
    result = asyncio.run(server.navigate(rule_id, "previous"))
    assert result["success"] is False
    assert f"Could not open {b_uri}" in result["message"]


def test_open_document_canonicalizes_uri(workspace):
    """Equivalent URI spellings of one file report a single set of matches."""
    a_uri = path_to_uri(str(workspace / "a.txt"))
    opened = server.open_document(uri=a_uri.replace("file://", "file://localhost", 1))
    assert opened["uri"] == a_uri
    created = asyncio.run(server.create_rule(a_uri, "cat", scope="folder", file_filter="a.txt"))
    assert created["rule"]["match_count"] == 2


def test_navigate_invalid_direction():
    """navigate rejects unknown directions."""
    server.open_document(uri=DOC, text="cat")
    created = asyncio.run(server.create_rule(DOC, "cat", scope="document"))
    result = asyncio.run(server.navigate(created["rule"]["id"], "sideways"))
    assert result["success"] is False
    assert "Unknown direction" in result["message"]


def test_navigate_without_matches():
    """navigate reports when a rule matches nothing."""
    server.open_document(uri=DOC, text="nothing")
    created = asyncio.run(server.create_rule(DOC, "zebra", scope="document"))
    result = asyncio.run(server.navigate(created["rule"]["id"]))
    assert result == {"success": False, "message": 'No matches were found for "zebra".'}


def test_toggle_option():
    """toggle_option flips an option and rejects unknown ones."""
    server.open_document(uri=DOC, text="Cat cat")
    rule_id = asyncio.run(server.create_rule(DOC, "cat", scope="document"))["rule"]["id"]
    result = asyncio.run(server.toggle_option(rule_id, "matchCase", DOC))
    assert result["value"] is True
    assert result["rule"]["match_count"] == 1

    unknown = asyncio.run(server.toggle_option(rule_id, "fuzzy"))
    assert unknown["success"] is False


def test_toggle_regex_rollback():
    """toggle_option keeps useRegex off when the pattern is not a valid regex."""
    server.open_document(uri=DOC, text="f(x)")
    rule_id = asyncio.run(server.create_rule(DOC, "(", scope="document"))["rule"]["id"]
    result = asyncio.run(server.toggle_option(rule_id, "useRegex"))
    assert result["success"] is False
    assert server.list_rules(DOC)["rules"][0]["use_regex"] is False


def test_update_pattern_and_color():
    """update_pattern and update_color return the updated snapshot."""
    server.open_document(uri=DOC, text="cat dog dog")
    rule_id = asyncio.run(server.create_rule(DOC, "cat", scope="document"))["rule"]["id"]
    result = asyncio.run(server.update_pattern(rule_id, "dog", DOC))
    assert result["rule"]["pattern"] == "dog"
    assert result["rule"]["match_count"] == 2
    assert asyncio.run(server.update_pattern(rule_id, "  "))["success"] is False

    colored = server.update_color(rule_id, "#ff595e80", DOC)
    assert colored["rule"]["color"] == "#ff595e80"


def test_edit_and_select():
    """edit_document re-applies rules; select_range updates the current match."""
    server.open_document(uri=DOC, text="cat")
    asyncio.run(server.create_rule(DOC, "cat", scope="document"))
    edited = server.edit_document(DOC, "cat cat cat")
    assert edited["rules"][0]["match_count"] == 3
    selected = server.select_range(DOC, 5)
    assert selected["rules"][0]["document_match_index"] == 2
    assert server.select_range("file:///work/closed.txt", 0)["success"] is False


def test_set_file_filter(workspace):
    """set_file_filter narrows a folder rule and rejects path globs."""
    a_uri = path_to_uri(str(workspace / "a.txt"))
    server.open_document(path=str(workspace / "a.txt"))
    rule_id = asyncio.run(server.create_rule(a_uri, "cat", scope="folder"))["rule"]["id"]
    result = asyncio.run(server.set_file_filter(rule_id, "b.txt"))
    assert result["changed"] is True
    assert result["rule"]["match_count"] == 3
    assert asyncio.run(server.set_file_filter(rule_id, "sub/*.txt"))["success"] is False


def test_change_scope_and_scope_options(workspace):
    """change_scope moves a rule and scope_options reports rule counts per scope."""
    a_uri = path_to_uri(str(workspace / "a.txt"))
    server.open_document(path=str(workspace / "a.txt"))
    rule_id = asyncio.run(server.create_rule(a_uri, "cat", scope="document"))["rule"]["id"]
    result = asyncio.run(server.change_scope(rule_id, "folderRecursive", a_uri))
    assert result["changed"] is True
    assert result["rule"]["match_count"] == 7

    options = server.scope_options(a_uri)
    assert options["default_scope"] == "folderRecursive"
    assert [option["rule_count"] for option in options["options"]] == [0, 0, 1]
    assert asyncio.run(server.change_scope(rule_id, "galaxy", a_uri))["success"] is False


def test_delete_and_clear_scope():
    """delete_rule and clear_scope remove rules and report unknown targets."""
    server.open_document(uri=DOC, text="cat dog")
    first = asyncio.run(server.create_rule(DOC, "cat", scope="document"))["rule"]["id"]
    asyncio.run(server.create_rule(DOC, "dog", scope="document"))

    assert server.delete_rule(first)["success"] is True
    assert server.delete_rule(first)["success"] is False
    cleared = server.clear_scope(DOC, "document")
    assert cleared["removed"] == 1
    assert server.clear_scope(DOC, "document")["success"] is False


def test_close_document(host):
    """close_document keeps rules and fails for documents that are not open."""
    server.open_document(uri=DOC, text="cat")
    asyncio.run(server.create_rule(DOC, "cat", scope="document"))
    assert server.close_document(DOC)["success"] is True
    assert host.active_editor() is None
    assert len(server.list_rules(DOC)["rules"]) == 1
    assert server.close_document(DOC)["success"] is False


def test_config_resource():
    """The config resource lists scan settings."""
    text = server.get_config_resource(HighlightConfig(language_configurations={"css": ["/opt/css.json"]}))
    assert "Scan max files: 2000" in text
    assert "**/node_modules/**" in text
    assert "css: /opt/css.json" in text

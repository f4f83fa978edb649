"""Tests for the rule store."""

import pytest

from smart_highlights.errors import InvalidPatternError, RuleNotFoundError, ValidationError
from smart_highlights.models import RuleDraft, RuleOption, RuleScope, TextRange
from smart_highlights.scopes import resolve_scope
from smart_highlights.store import RuleStore
from smart_highlights.workspace import Decoration
from smart_highlights.colors import decoration_style

DOC = "file:///work/src/app.py"


class _Factory:
    def __init__(self):
        self.created = []

    def __call__(self, color):
        decoration = Decoration(style=decoration_style(color))
        self.created.append(decoration)
        return decoration


def _create(store, factory, **overrides):
    fields = {"document_uri": DOC, "pattern": "TODO", "color": "#ffd40080", "scope": RuleScope.DOCUMENT}
    fields.update(overrides)
    draft = RuleDraft(**fields)
    return store.create(draft, resolve_scope(draft.document_uri, draft.scope), factory)


def test_create_indexes_and_buckets():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory, pattern="  TODO  ")
    assert rule.pattern == "TODO"
    assert store.get(rule.id) is rule
    assert store.bucket_keys() == [f"document:{DOC}"]
    assert store.rules_for_uri(DOC) == [rule]
    assert len(factory.created) == 1


def test_create_rejects_empty_pattern_and_color():
    store = RuleStore()
    factory = _Factory()
    with pytest.raises(ValidationError) as excinfo:
        _create(store, factory, pattern="   ")
    assert excinfo.value.field == "pattern"
    with pytest.raises(ValidationError):
        _create(store, factory, color=" ")
    assert len(store) == 0
    assert factory.created == []


def test_create_rejects_invalid_regex_before_allocating():
    """No decoration is created and nothing is stored for an invalid regex."""
    store = RuleStore()
    factory = _Factory()
    with pytest.raises(InvalidPatternError):
        _create(store, factory, pattern="(", use_regex=True)
    assert len(store) == 0
    assert store.bucket_keys() == []
    assert factory.created == []


def test_remove_last_rule_drops_bucket():
    """Removing the last rule of a bucket removes the bucket key."""
    store = RuleStore()
    factory = _Factory()
    first = _create(store, factory)
    second = _create(store, factory, pattern="FIXME")
    store.remove(first.id)
    assert store.bucket_keys() == [f"document:{DOC}"]
    store.remove(second.id)
    assert store.bucket_keys() == []
    assert len(store) == 0


def test_remove_disposes_decoration_once():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory)
    decoration = rule.decoration
    assert store.remove(rule.id) is rule
    assert store.remove(rule.id) is None
    rule.release_decoration()
    assert decoration.dispose_count == 1
    assert rule.disposed


def test_change_scope_moves_between_buckets():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory)
    rule.matches.record(DOC, [TextRange(0, 4)])

    assert not store.change_scope(rule.id, resolve_scope(DOC, RuleScope.DOCUMENT))
    assert store.change_scope(rule.id, resolve_scope(DOC, RuleScope.FOLDER))
    assert store.bucket_keys() == ["folder:file:///work/src"]
    assert rule.scope == RuleScope.FOLDER
    assert rule.target_uri == "file:///work/src"
    assert rule.matches.stats == {}


def test_rules_for_uri_spans_ancestor_scopes():
    store = RuleStore()
    factory = _Factory()
    doc_rule = _create(store, factory)
    folder_rule = _create(store, factory, scope=RuleScope.FOLDER)
    recursive_rule = _create(store, factory, document_uri="file:///work/top.py", scope=RuleScope.FOLDER_RECURSIVE)
    other = _create(store, factory, document_uri="file:///elsewhere/x.py", scope=RuleScope.FOLDER_RECURSIVE)

    rules = store.rules_for_uri(DOC)
    assert rules == [doc_rule, folder_rule, recursive_rule]
    assert other not in rules


def test_rules_for_uri_applies_file_filter():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory, scope=RuleScope.FOLDER, file_filter="*.md")
    assert store.rules_for_uri(DOC) == []
    assert store.rules_for_uri("file:///work/src/README.md") == [rule]


def test_update_pattern_validates_first():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory, pattern="a+", use_regex=True)
    with pytest.raises(InvalidPatternError):
        store.update_pattern(rule.id, "a(")
    assert rule.pattern == "a+"
    with pytest.raises(ValidationError):
        store.update_pattern(rule.id, "  ")
    store.update_pattern(rule.id, " b+ ")
    assert rule.pattern == "b+"
    assert rule.matcher.pattern == "b+"


def test_toggle_rolls_back_on_invalid_regex():
    """Enabling useRegex on "(" fails and leaves the rule unchanged."""
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory, pattern="(")
    with pytest.raises(InvalidPatternError):
        store.toggle_option(rule.id, RuleOption.USE_REGEX)
    assert rule.use_regex is False
    assert rule.pattern == "("
    assert rule.matcher.search("f(x)")


def test_toggle_updates_matcher():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory, pattern="todo")
    assert rule.matcher.search("TODO")
    assert store.toggle_option(rule.id, "matchCase") is True
    assert not rule.matcher.search("TODO")
    assert rule.description == "Match Case"


def test_update_color_replaces_decoration():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory)
    old = rule.decoration
    store.update_color(rule.id, " #ff595e80 ", factory)
    assert rule.color == "#ff595e80"
    assert old.dispose_count == 1
    assert rule.decoration is factory.created[-1]
    assert rule.decoration.dispose_count == 0
    with pytest.raises(ValidationError):
        store.update_color(rule.id, "", factory)


def test_set_file_filter_drops_excluded_stats():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory, scope=RuleScope.FOLDER)
    rule.matches.record(DOC, [TextRange(0, 4)])
    rule.matches.record("file:///work/src/notes.md", [TextRange(0, 4)])
    assert store.set_file_filter(rule.id, " *.md | ")
    assert rule.file_filter == "*.md"
    assert list(rule.matches.stats) == ["file:///work/src/notes.md"]
    assert not store.set_file_filter(rule.id, "*.md")
    with pytest.raises(ValidationError):
        store.set_file_filter(rule.id, "src/*.py")


def test_unknown_rule_id():
    store = RuleStore()
    with pytest.raises(RuleNotFoundError):
        store.require("missing")
    assert store.get("missing") is None


def test_description():
    store = RuleStore()
    factory = _Factory()
    assert _create(store, factory).description == "No options"
    rule = _create(store, factory, match_case=True, match_whole_word=True, use_regex=True)
    assert rule.description == "Match Case / Whole Word / Regex"


def test_applies_to_checks_scope_and_filter():
    store = RuleStore()
    factory = _Factory()
    rule = _create(store, factory, scope=RuleScope.FOLDER, file_filter="*.py")
    assert rule.applies_to("file:///work/src/other.py")
    assert not rule.applies_to("file:///work/src/notes.md")
    assert not rule.applies_to("file:///work/other.py")

"""
Scope identities and document location helpers.

A rule lives under one ``(scope, target_uri)`` identity. For ``document``
scope the target is the document URI; for ``folder`` and ``folderRecursive``
it is the URI of the document's containing folder. Folder hierarchies are
only derived for ``file:`` URIs; any other scheme resolves to document scope.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

from smart_highlights.config import DEFAULT_MAX_FOLDER_DEPTH
from smart_highlights.errors import ScopeResolutionError
from smart_highlights.models import RuleScope, ScopeInfo, ScopeOption

logger = logging.getLogger(__name__)

FILE_SCHEME = "file"

SCOPE_LABELS = {
    RuleScope.DOCUMENT: "Current File",
    RuleScope.FOLDER: "Current Folder",
    RuleScope.FOLDER_RECURSIVE: "Folder + Subfolders",
}

_SCOPE_DESCRIPTIONS = {
    RuleScope.DOCUMENT: "File only",
    RuleScope.FOLDER: "Folder only",
    RuleScope.FOLDER_RECURSIVE: "Folder + subfolders",
}

_CREATION_MESSAGES = {
    RuleScope.DOCUMENT: "Highlight added to the current file.",
    RuleScope.FOLDER: "Highlight added for this folder.",
    RuleScope.FOLDER_RECURSIVE: "Highlight added for this folder and its subfolders.",
}

_CLEAR_TARGETS = {
    RuleScope.DOCUMENT: "file",
    RuleScope.FOLDER: "folder",
    RuleScope.FOLDER_RECURSIVE: "folder and subfolders",
}


# =============================================================================
# URI helpers
# =============================================================================


def path_to_uri(path: str) -> str:
    """Convert an absolute file system path to a ``file://`` URI."""
    posix = path.replace("\\", "/")
    if not posix.startswith("/"):
        posix = "/" + posix
    return f"{FILE_SCHEME}://{quote(posix)}"


def uri_scheme(uri: str) -> str:
    return urlsplit(uri).scheme.lower()


def uri_to_path(uri: str) -> str:
    """
    Convert a ``file://`` URI to a path.

    Raises:
        ScopeResolutionError: If the URI does not use the file scheme.
    """
    parts = urlsplit(uri)
    if parts.scheme.lower() != FILE_SCHEME:
        raise ScopeResolutionError(uri, f"Not a file location: {uri}")
    return unquote(parts.path)


def canonical_uri(uri: str) -> str:
    """
    Single spelling of a document location, used wherever URIs key state.

    ``file`` URIs are rebuilt from their path, so ``file://localhost/a.txt``
    and ``file:///a%2Etxt`` both become ``file:///a.txt``. Other schemes are
    returned unchanged.
    """
    if uri_scheme(uri) != FILE_SCHEME:
        return uri
    return path_to_uri(uri_to_path(uri))


def containing_folder_uri(uri: str) -> Optional[str]:
    """The URI of the folder containing ``uri``, or None at the root or for non-file URIs."""
    try:
        path = uri_to_path(uri)
    except ScopeResolutionError:
        return None
    parent = posixpath.dirname(path)
    if not parent or parent == path:
        return None
    return path_to_uri(parent)


def folder_hierarchy(uri: str, max_depth: int = DEFAULT_MAX_FOLDER_DEPTH) -> list[str]:
    """
    List the folders containing ``uri``, innermost first.

    Example:
        >>> folder_hierarchy("file:///work/src/app.py")
        ['file:///work/src', 'file:///work', 'file:///']
    """
    folders: list[str] = []
    current = containing_folder_uri(uri)
    while current is not None and len(folders) < max_depth:
        folders.append(current)
        current = containing_folder_uri(current)
    return folders


def normalize_for_comparison(uri: str) -> str:
    """Normalize a location for equality tests: separators unified, case folded."""
    if uri_scheme(uri) == FILE_SCHEME:
        path = posixpath.normpath(uri_to_path(uri).replace("\\", "/"))
        return path.lower()
    return uri.lower()


def uris_equal(a: str, b: str) -> bool:
    return normalize_for_comparison(a) == normalize_for_comparison(b)


def is_descendant(candidate: str, folder: str) -> bool:
    """True if ``candidate`` is ``folder`` or lies anywhere below it."""
    candidate_path = normalize_for_comparison(candidate)
    folder_path = normalize_for_comparison(folder).rstrip("/")
    if candidate_path == folder_path:
        return True
    return candidate_path.startswith(folder_path + "/")


def file_name_for_uri(uri: str) -> str:
    """Last path segment of a location, used for file filters and labels."""
    parts = urlsplit(uri)
    path = unquote(parts.path)
    name = posixpath.basename(path.rstrip("/"))
    return name or path or uri


def folder_label(folder_uri: str) -> str:
    if uri_scheme(folder_uri) != FILE_SCHEME:
        return folder_uri
    path = uri_to_path(folder_uri)
    return posixpath.basename(path) or path


# =============================================================================
# Scope identities
# =============================================================================


def scope_key(scope: RuleScope | str, target_uri: str) -> str:
    """Bucket key for a scope identity."""
    return f"{RuleScope(scope).value}:{target_uri}"


def _scope_info(scope: RuleScope, target_uri: str) -> ScopeInfo:
    return ScopeInfo(scope=scope, target_uri=target_uri, key=scope_key(scope, target_uri))


def resolve_scope(document_uri: str, preferred: RuleScope | str | None = None) -> ScopeInfo:
    """
    Resolve the scope identity a new or moved rule should use.

    Folder scopes target the document's immediate folder. A preferred folder
    scope with no folder available falls back to document scope. Without a
    preference the default is ``folderRecursive`` when a folder exists.

    Args:
        document_uri: Document the rule is created from.
        preferred: Requested scope, or None for the default.

    Returns:
        Resolved ScopeInfo.
    """
    document_uri = canonical_uri(document_uri)
    folder_uri = containing_folder_uri(document_uri)
    document_info = _scope_info(RuleScope.DOCUMENT, document_uri)

    if preferred is None:
        if folder_uri is not None:
            return _scope_info(RuleScope.FOLDER_RECURSIVE, folder_uri)
        return document_info

    preferred = RuleScope(preferred)
    if preferred == RuleScope.DOCUMENT or folder_uri is None:
        if preferred != RuleScope.DOCUMENT:
            logger.debug(
                "No folder for document, falling back to document scope",
                extra={"document_uri": document_uri, "preferred": preferred.value},
            )
        return document_info
    return _scope_info(preferred, folder_uri)


def list_scope_options(document_uri: str) -> list[ScopeOption]:
    """Scope choices for a document in picker order: file, folder, folder + subfolders."""
    options = [
        ScopeOption(
            **resolve_scope(document_uri, RuleScope.DOCUMENT).model_dump(),
            label=SCOPE_LABELS[RuleScope.DOCUMENT],
            description=file_name_for_uri(document_uri),
        )
    ]

    folder_uri = containing_folder_uri(document_uri)
    if folder_uri is not None:
        for scope in (RuleScope.FOLDER, RuleScope.FOLDER_RECURSIVE):
            options.append(
                ScopeOption(
                    **resolve_scope(document_uri, scope).model_dump(),
                    label=SCOPE_LABELS[scope],
                    description=folder_label(folder_uri),
                )
            )
    return options


def scope_keys_for_uri(uri: str, max_depth: int = DEFAULT_MAX_FOLDER_DEPTH) -> list[str]:
    """
    Every bucket key whose rules could apply to ``uri``.

    The document key, the immediate folder key, and a ``folderRecursive`` key
    for each ancestor folder.
    """
    keys = [scope_key(RuleScope.DOCUMENT, canonical_uri(uri))]
    folders = folder_hierarchy(uri, max_depth)
    if folders:
        keys.append(scope_key(RuleScope.FOLDER, folders[0]))
        keys.extend(scope_key(RuleScope.FOLDER_RECURSIVE, folder) for folder in folders)
    return keys


def scope_applies_to_document(scope: RuleScope | str, target_uri: str, document_uri: str) -> bool:
    """Whether a rule with this scope identity covers ``document_uri`` (file filter aside)."""
    scope = RuleScope(scope)
    if scope == RuleScope.DOCUMENT:
        return canonical_uri(document_uri) == canonical_uri(target_uri)

    folder_uri = containing_folder_uri(document_uri)
    if folder_uri is None:
        return False
    if scope == RuleScope.FOLDER:
        return uris_equal(folder_uri, target_uri)
    return is_descendant(folder_uri, target_uri)


def describe_scope(scope: RuleScope | str) -> str:
    return _SCOPE_DESCRIPTIONS[RuleScope(scope)]


def creation_message(scope: RuleScope | str) -> str:
    """Confirmation shown after a rule is created in ``scope``."""
    return _CREATION_MESSAGES[RuleScope(scope)]


def clear_message(scope: RuleScope | str) -> str:
    """Confirmation shown after every rule in a scope is cleared."""
    return f"All highlights cleared for this {_CLEAR_TARGETS[RuleScope(scope)]}."

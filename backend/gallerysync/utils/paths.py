"""Remote path normalization and cache namespaces."""

from __future__ import annotations

import posixpath

ROOT_PATH = "/"
DISK_SCOPE = "disk"
_PUBLIC_PREFIX = "public:"
_REMOTE_PREFIXES = ("disk:", "app:", "trash:")


def normalize_path(path: str | None) -> str:
    """Canonical cache key for a remote path.

    ``None``/empty and ``disk:/`` map to the root sentinel; the remote's
    ``disk:`` style prefixes are dropped and trailing slashes removed.
    """
    if not path:
        return ROOT_PATH
    for prefix in _REMOTE_PREFIXES:
        if path.startswith(prefix):
            path = path[len(prefix):]
            break
    if not path.startswith("/"):
        path = "/" + path
    path = posixpath.normpath(path)
    # normpath keeps a leading "//"
    if path.startswith("//"):
        path = "/" + path.lstrip("/")
    return path


def parent_of(path: str) -> str | None:
    """Logical parent of a normalized path; ``None`` for the root."""
    path = normalize_path(path)
    if path == ROOT_PATH:
        return None
    return posixpath.dirname(path) or ROOT_PATH


def public_scope(public_key: str) -> str:
    """Namespace for rows fetched through a public link."""
    return f"{_PUBLIC_PREFIX}{public_key}"


def is_public_scope(scope: str) -> bool:
    return scope.startswith(_PUBLIC_PREFIX)

"""Object path value objects and the path codec.

Paths are kept normalized and unencoded; percent-encoding happens only
when a path is formatted for the wire.
"""

from __future__ import annotations

from typing import NewType
from urllib.parse import quote

ObjectPath = NewType("ObjectPath", str)

SEPARATOR = "/"
ROOT = ObjectPath(SEPARATOR)


def normalize_path(path: str) -> ObjectPath:
    """Normalize a path to its absolute, single-slash form.

    Args:
        path: Raw path, e.g. ``"user//stor/dir/"``.

    Returns:
        Normalized path, e.g. ``"/user/stor/dir"``.
    """
    parts = [part for part in path.split(SEPARATOR) if part]
    if not parts:
        return ROOT
    return ObjectPath(SEPARATOR + SEPARATOR.join(parts))


def format_path(path: str) -> str:
    """Normalize and percent-encode a path for use in a request URL."""
    return quote(normalize_path(path), safe=SEPARATOR)


def join_path(directory: str, name: str) -> ObjectPath:
    """Qualify a leaf name with the directory it was listed from.

    The directory may or may not end in a separator.
    """
    base = normalize_path(directory)
    if base == ROOT:
        return ObjectPath(SEPARATOR + name)
    return ObjectPath(f"{base}{SEPARATOR}{name}")


def last_item_in_path(path: str) -> str:
    """Return the final segment of a path (or URL path)."""
    normalized = normalize_path(path)
    if normalized == ROOT:
        return ""
    return normalized.rsplit(SEPARATOR, 1)[-1]


def parent_paths(path: str) -> list[ObjectPath]:
    """List every ancestor of ``path`` plus the path itself, root excluded.

    Example:
        ``parent_paths("/a/b/c")`` is ``["/a", "/a/b", "/a/b/c"]``.
    """
    parts = [part for part in path.split(SEPARATOR) if part]
    return [
        ObjectPath(SEPARATOR + SEPARATOR.join(parts[: i + 1]))
        for i in range(len(parts))
    ]


def home_directory(account: str) -> ObjectPath:
    """Derive an account's home directory.

    Subusers (``account/subuser``) share the parent account's home.
    """
    login = account.strip(SEPARATOR).split(SEPARATOR, 1)[0]
    if not login:
        raise ValueError("Account name must not be empty")
    return ObjectPath(SEPARATOR + login)

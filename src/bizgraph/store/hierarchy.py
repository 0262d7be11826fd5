"""
Hierarchy paths: primary keys joined by ".", ancestor first.

Paths allow subtree listings with a single prefix query. There is no escaping,
so keys must not contain the delimiter.
"""

from __future__ import annotations

from typing import Optional

from ..errors import HierarchyPathError

DELIMITER = "."


def validate_key(key: str) -> str:
    if not key:
        raise HierarchyPathError("hierarchy path segment must be non-empty")
    if DELIMITER in key:
        raise HierarchyPathError(
            f"key {key!r} contains the hierarchy delimiter {DELIMITER!r}"
        )
    return key


def build_path(*segments: Optional[str]) -> str:
    """
    Join the keys of the ancestors that exist, then the entity's own key.

    None segments (missing optional ancestors) are dropped; the order of the
    remaining ones is kept.
    """
    keys = [validate_key(seg) for seg in segments if seg is not None]
    if not keys:
        raise HierarchyPathError("hierarchy path needs at least one key")
    return DELIMITER.join(keys)


def split_path(path: str) -> list[str]:
    return path.split(DELIMITER) if path else []


def is_within(path: Optional[str], ancestor: str) -> bool:
    """True if `path` is `ancestor` itself or lies below it."""
    if path is None:
        return False
    return path == ancestor or path.startswith(ancestor + DELIMITER)

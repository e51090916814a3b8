# src/core/paths.py — v1
"""Dot-separated path expressions over nested dicts and lists.

Semantics:
  - Segments are separated by '.'; numeric segments index into lists
    (``items.1.id``) and are plain string keys on dicts.
  - Reading through None, a scalar, or a missing key yields MISSING.
  - Writing creates missing intermediate dicts and replaces any scalar found
    on the way. A list met by a non-numeric segment is replaced by a dict.
"""

from __future__ import annotations

from typing import Any


class _Missing:
    """Sentinel for "no value at this path" (distinct from a stored None)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def split_path(path: str) -> list[str]:
    """Split a path expression into segments, ignoring empty ones."""
    return [seg for seg in path.split(".") if seg != ""]


def _as_index(segment: str) -> int | None:
    if segment.isdigit():
        return int(segment)
    return None


def _child(container: Any, segment: str) -> Any:
    """Return the child at `segment`, or MISSING."""
    if isinstance(container, dict):
        return container.get(segment, MISSING)
    if isinstance(container, list):
        index = _as_index(segment)
        if index is not None and index < len(container):
            return container[index]
    return MISSING


def get_nested_value(obj: Any, path: str, default: Any = MISSING) -> Any:
    """Read the value at `path`; never raises.

    Returns `default` (MISSING unless given) when any segment is absent or
    traversal hits a non-container.
    """
    segments = split_path(path)
    if not segments:
        return default
    current = obj
    for segment in segments:
        current = _child(current, segment)
        if current is MISSING:
            return default
    return current


def has_nested_value(obj: Any, path: str) -> bool:
    return get_nested_value(obj, path) is not MISSING


def _set_child(container: Any, segment: str, value: Any) -> None:
    if isinstance(container, list):
        index = _as_index(segment)
        if index is not None:
            if index >= len(container):
                container.extend([None] * (index + 1 - len(container)))
            container[index] = value
            return
        raise TypeError(f"Cannot use non-numeric segment {segment!r} on a list")
    container[segment] = value


def set_nested_value(obj: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Write `value` at `path`, creating intermediate containers.

    Returns `obj` so calls can be chained. Writing the same value twice leaves
    the structure unchanged.
    """
    segments = split_path(path)
    if not segments:
        raise ValueError("Path expression must contain at least one segment")

    current: Any = obj
    for segment, following in zip(segments, segments[1:]):
        child = _child(current, segment)
        if not isinstance(child, (dict, list)) or (
            isinstance(child, list) and _as_index(following) is None
        ):
            child = {}
            _set_child(current, segment, child)
        current = child

    _set_child(current, segments[-1], value)
    return obj


def delete_nested_value(obj: Any, path: str, prune: bool = True) -> bool:
    """Delete the value at `path`.

    With `prune`, dicts left empty by the deletion are removed from their
    parents, walking back up to (but excluding) the root.

    Returns:
        True if something was deleted.
    """
    segments = split_path(path)
    if not segments:
        return False

    chain: list[tuple[Any, str]] = []
    current = obj
    for segment in segments[:-1]:
        child = _child(current, segment)
        if not isinstance(child, (dict, list)):
            return False
        chain.append((current, segment))
        current = child

    last = segments[-1]
    if isinstance(current, dict):
        if last not in current:
            return False
        del current[last]
    elif isinstance(current, list):
        index = _as_index(last)
        if index is None or index >= len(current):
            return False
        del current[index]
    else:
        return False

    if prune:
        for parent, segment in reversed(chain):
            child = _child(parent, segment)
            if isinstance(child, dict) and not child:
                if isinstance(parent, dict):
                    del parent[segment]
                else:
                    del parent[int(segment)]
            else:
                break
    return True

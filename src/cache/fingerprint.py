# src/cache/fingerprint.py — v2
"""Content addresses for transformation path cache entries.

The address of a (source, target) pair is a SHA-256 over the canonical JSON
of both descriptors, so structurally equal descriptors always land on the
same entry regardless of key order, vectors or metadata.
"""

from __future__ import annotations

import hashlib

from semantic_mediator.core.models import SemanticDescriptor

_ENTRY_ID_PREFIX = "tp_"


def compute_path_key(source: SemanticDescriptor, target: SemanticDescriptor) -> str:
    """Hex digest addressing the (source, target) pair."""
    payload = (
        '{"source":' + source.canonical_json() + ',"target":' + target.canonical_json() + "}"
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def entry_id_for_key(key: str) -> str:
    """Stable cache entry id derived from a pair key."""
    return f"{_ENTRY_ID_PREFIX}{key[:32]}"

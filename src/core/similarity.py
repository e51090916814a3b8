# src/core/similarity.py — v1
"""Descriptor similarity without the oracle.

Identical shapes score 1.0; descriptors that both carry an embedding vector
are compared by cosine similarity. Anything else has to be scored by the
inference oracle (see cache/path_cache.py).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from semantic_mediator.core.models import SemanticDescriptor

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors, clamped to [0, 1].

    Raises:
        ValueError: If the vectors have different dimensions.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape} vs {vb.shape}")
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm < 1e-10:
        return 0.0
    score = float(va @ vb) / norm
    return max(0.0, min(1.0, score))


def local_descriptor_similarity(
    a: SemanticDescriptor, b: SemanticDescriptor
) -> float | None:
    """Similarity computable without the oracle, or None if it needs one."""
    if a.fingerprint() == b.fingerprint():
        return 1.0
    if a.vector and b.vector:
        try:
            return cosine_similarity(a.vector, b.vector)
        except ValueError as exc:
            logger.debug("Vector comparison skipped for %s/%s: %s", a.entity, b.entity, exc)
    return None


def clamp_score(value: object) -> float:
    """Parse an oracle similarity answer into [0, 1]; unparseable → 0.0."""
    try:
        score = float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0
    if np.isnan(score):
        return 0.0
    return max(0.0, min(1.0, score))

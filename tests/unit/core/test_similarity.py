# tests/unit/core/test_similarity.py — v1
"""Tests for core/similarity.py."""

from __future__ import annotations

import pytest

from semantic_mediator.core.models import SemanticDescriptor
from semantic_mediator.core.similarity import (
    clamp_score,
    cosine_similarity,
    local_descriptor_similarity,
)


class TestCosineSimilarity:
    def test_identical(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_clamped(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == 0.0

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError, match="Dimension mismatch"):
            cosine_similarity([1.0], [1.0, 2.0])


class TestLocalDescriptorSimilarity:
    def test_identical_shape(self):
        assert local_descriptor_similarity(
            SemanticDescriptor(entity="User"), SemanticDescriptor(entity="User")
        ) == 1.0

    def test_vectors(self):
        a = SemanticDescriptor(entity="User", vector=[1.0, 0.0])
        b = SemanticDescriptor(entity="Person", vector=[1.0, 0.0])
        assert local_descriptor_similarity(a, b) == pytest.approx(1.0)

    def test_needs_oracle(self):
        assert local_descriptor_similarity(
            SemanticDescriptor(entity="User"), SemanticDescriptor(entity="Person")
        ) is None

    def test_mismatched_vectors_need_oracle(self):
        a = SemanticDescriptor(entity="User", vector=[1.0])
        b = SemanticDescriptor(entity="Person", vector=[1.0, 0.0])
        assert local_descriptor_similarity(a, b) is None


class TestClampScore:
    @pytest.mark.parametrize(
        "raw, expected",
        [("0.85", 0.85), (" 1 \n", 1.0), ("1.7", 1.0), ("-0.2", 0.0), ("high", 0.0), ("nan", 0.0)],
    )
    def test_parse(self, raw, expected):
        assert clamp_score(raw) == pytest.approx(expected)

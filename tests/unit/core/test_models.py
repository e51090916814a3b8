# tests/unit/core/test_models.py — v1
"""Tests for core/models.py — descriptors, operations, paths, verdicts."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from semantic_mediator.core.models import (
    ComputeOperation,
    ConvertOperation,
    SemanticDescriptor,
    TransformationPath,
    UnknownOperation,
    ValidationResult,
)


class TestSemanticDescriptor:
    def test_fingerprint_ignores_key_order(self):
        a = SemanticDescriptor.model_validate(
            {"entity": "User", "attributes": {"a": {"type": "string"}, "b": {"type": "number"}}}
        )
        b = SemanticDescriptor.model_validate(
            {"entity": "User", "attributes": {"b": {"type": "number"}, "a": {"type": "string"}}}
        )
        assert a.fingerprint() == b.fingerprint()

    def test_fingerprint_ignores_vector_and_metadata(self):
        a = SemanticDescriptor(entity="User")
        b = SemanticDescriptor(entity="User", vector=[0.1, 0.2], metadata={"owner": "x"})
        assert a.fingerprint() == b.fingerprint()

    def test_fingerprint_changes_with_shape(self):
        assert SemanticDescriptor(entity="User").fingerprint() != SemanticDescriptor(
            entity="Profile"
        ).fingerprint()

    def test_frozen(self):
        d = SemanticDescriptor(entity="User")
        with pytest.raises(ValidationError):
            d.entity = "Other"


class TestTransformationPath:
    def test_camel_case_keys(self):
        path = TransformationPath.model_validate(
            {
                "mappings": [
                    {"source": "age", "target": "years",
                     "transform": {"type": "convert", "params": {"targetType": "number"}}}
                ],
                "recommendedStrategy": "direct_mapping",
                "intermediateSteps": ["x"],
            }
        )
        assert path.recommended_strategy == "direct_mapping"
        assert isinstance(path.mappings[0].transform, ConvertOperation)
        assert path.mappings[0].transform.params.target_type == "number"
        assert path.intermediate_steps == ["x"]

    def test_unknown_operation_type_is_kept(self):
        path = TransformationPath.model_validate(
            {"mappings": [], "transformations": [{"type": "enrich", "params": {"k": 1}}]}
        )
        op = path.transformations[0]
        assert isinstance(op, UnknownOperation)
        assert op.type == "enrich"

    def test_compute_on_error(self):
        path = TransformationPath.model_validate(
            {
                "transformations": [
                    {"type": "compute", "params": {"target": "t", "expression": "x"},
                     "onError": "raise"}
                ]
            }
        )
        op = path.transformations[0]
        assert isinstance(op, ComputeOperation)
        assert op.on_error == "raise"

    def test_ids_are_unique(self):
        assert TransformationPath().id != TransformationPath().id

    def test_mapped_targets_and_recipe(self):
        path = TransformationPath.model_validate(
            {"mappings": [{"source": "a", "target": "b"}, {"source": "c", "target": "d.e"}]}
        )
        assert path.mapped_targets == {"b", "d.e"}
        assert set(path.recipe()) == {"mappings", "transformations", "recommended_strategy"}


class TestValidationResult:
    def test_string_issues_coerced(self):
        verdict = ValidationResult.model_validate({"valid": False, "issues": ["bad email"]})
        assert verdict.issues[0].description == "bad email"

    def test_null_issues(self):
        verdict = ValidationResult.model_validate({"valid": True, "issues": None})
        assert verdict.issues == []

    def test_valid_required(self):
        with pytest.raises(ValidationError):
            ValidationResult.model_validate({"issues": []})

# tests/unit/engine/test_operations.py — v1
"""Tests for engine/operations.py — value conversions and the operation executor."""

from __future__ import annotations

import pytest

from semantic_mediator.core.errors import OperationError, OracleError
from semantic_mediator.core.models import (
    ComputeOperation,
    ConvertOperation,
    FilterOperation,
    FormatOperation,
    LlmOperation,
    MergeOperation,
)
from semantic_mediator.core.paths import MISSING
from semantic_mediator.engine.operations import (
    OperationExecutor,
    convert_value,
    format_value,
)


class TestFormatValue:
    @pytest.mark.parametrize(
        "fmt, expected",
        [("uppercase", " ADA "), ("lowercase", " ada "), ("capitalize", " ada "), ("trim", "ada")],
    )
    def test_formats(self, fmt, expected):
        assert format_value(" ada ", fmt) == expected

    def test_capitalize_first_letter_only(self):
        assert format_value("ada LOVELACE", "capitalize") == "Ada LOVELACE"

    def test_non_string_unchanged(self):
        assert format_value(42, "uppercase") == 42

    def test_unknown_format(self):
        assert format_value("ada", "reverse") == "ada"


class TestConvertValue:
    def test_number(self):
        assert convert_value("36", "number") == 36
        assert convert_value("3.5", "number") == 3.5
        assert convert_value(True, "number") == 1

    def test_number_invalid(self):
        with pytest.raises(ValueError):
            convert_value("thirty", "number")

    @pytest.mark.parametrize("raw, expected", [("false", False), ("0", False), ("", False), ("yes", True), (1, True)])
    def test_boolean(self, raw, expected):
        assert convert_value(raw, "boolean") is expected

    def test_string(self):
        assert convert_value(None, "string") == ""
        assert convert_value(False, "string") == "false"
        assert convert_value(12, "string") == "12"

    def test_date_from_iso(self):
        assert convert_value("2024-03-01T10:00:00Z", "date") == "2024-03-01T10:00:00+00:00"

    def test_date_from_epoch_ms(self):
        assert convert_value(0, "date") == "1970-01-01T00:00:00+00:00"

    def test_array(self):
        assert convert_value("x", "array") == ["x"]
        assert convert_value(["x"], "array") == ["x"]


class TestOperationExecutor:
    @pytest.mark.asyncio
    async def test_convert_failure_passthrough(self, scripted_oracle):
        executor = OperationExecutor(scripted_oracle())
        op = ConvertOperation.model_validate({"params": {"targetType": "number"}})
        assert await executor.apply_value_operation("n/a", op) == "n/a"

    @pytest.mark.asyncio
    async def test_convert_failure_raise(self, scripted_oracle):
        executor = OperationExecutor(scripted_oracle())
        op = ConvertOperation.model_validate({"params": {"targetType": "number"}, "onError": "raise"})
        with pytest.raises(OperationError, match="convert"):
            await executor.apply_value_operation("n/a", op)

    @pytest.mark.asyncio
    async def test_llm_value(self, scripted_oracle):
        oracle = scripted_oracle(llm_value="Ada Lovelace")
        executor = OperationExecutor(oracle)
        op = LlmOperation.model_validate({"params": {"instruction": "title case"}})
        assert await executor.apply_value_operation("ada lovelace", op) == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_llm_without_instruction_skips_oracle(self, scripted_oracle):
        oracle = scripted_oracle()
        executor = OperationExecutor(oracle)
        assert await executor.apply_value_operation("x", LlmOperation()) == "x"
        oracle.generate_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_failure_passthrough(self, scripted_oracle):
        executor = OperationExecutor(scripted_oracle(llm_value=OracleError("down")))
        op = LlmOperation.model_validate({"params": {"instruction": "x"}})
        assert await executor.apply_value_operation("keep", op) == "keep"

    def test_merge(self, scripted_oracle):
        executor = OperationExecutor(scripted_oracle())
        result = {"contact": {"email": "a@b.c"}}
        op = MergeOperation.model_validate(
            {"params": {"sources": [{"path": "contact.email", "target": "login"},
                                    {"path": "missing", "target": "never"}]}}
        )
        executor.merge(result, op)
        assert result == {"contact": {"email": "a@b.c"}, "login": "a@b.c"}

    def test_filter_prunes(self, scripted_oracle):
        executor = OperationExecutor(scripted_oracle())
        result = {"a": {"secret": 1}, "b": 2}
        executor.filter(result, FilterOperation.model_validate({"params": {"paths": ["a.secret"]}}))
        assert result == {"b": 2}

    @pytest.mark.asyncio
    async def test_compute_reads_original_data(self, scripted_oracle):
        oracle = scripted_oracle(compute="72")
        executor = OperationExecutor(oracle)
        op = ComputeOperation.model_validate(
            {"params": {"target": "double", "expression": "age * 2", "inputs": {"age": "age", "x": "nope"}}}
        )
        assert await executor.compute({"age": 36}, op) == 72
        prompt = oracle.generate_content.call_args.args[0]
        assert '"age": 36' in prompt
        assert '"x": null' in prompt

    @pytest.mark.asyncio
    async def test_compute_incomplete(self, scripted_oracle):
        executor = OperationExecutor(scripted_oracle())
        assert await executor.compute({}, ComputeOperation()) is MISSING

    @pytest.mark.asyncio
    async def test_compute_failure_policies(self, scripted_oracle):
        executor = OperationExecutor(scripted_oracle(compute=OracleError("down")))
        base = {"params": {"target": "t", "expression": "e"}}
        assert await executor.compute({}, ComputeOperation.model_validate(base)) is MISSING
        with pytest.raises(OperationError):
            await executor.compute({}, ComputeOperation.model_validate({**base, "onError": "raise"}))

    @pytest.mark.asyncio
    async def test_format_through_executor(self, scripted_oracle):
        executor = OperationExecutor(scripted_oracle())
        op = FormatOperation.model_validate({"params": {"format": "uppercase"}})
        assert await executor.apply_value_operation("ada", op) == "ADA"

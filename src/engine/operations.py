# src/engine/operations.py — v1
"""Operation interpreters used by the built-in strategies.

Value operations (format, convert, llm) rewrite a single mapped value.
Result operations (merge, filter, compute) act on the result document after
all mappings ran. Each operation carries an on_error policy: "passthrough"
keeps the input unchanged, "raise" surfaces an OperationError.
"""

from __future__ import annotations

import copy
import logging
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

from semantic_mediator.core.errors import OperationError
from semantic_mediator.core.models import (
    ComputeOperation,
    ConvertOperation,
    FilterOperation,
    FormatOperation,
    LlmOperation,
    MergeOperation,
)
from semantic_mediator.core.paths import (
    MISSING,
    delete_nested_value,
    get_nested_value,
    set_nested_value,
)
from semantic_mediator.llm.oracle import parse_lenient_response
from semantic_mediator.llm.prompts import (
    COMPUTE_PROMPT,
    LLM_VALUE_PROMPT,
    context_block,
    to_json,
)

if TYPE_CHECKING:
    from semantic_mediator.llm.oracle import InferenceOracle

logger = logging.getLogger(__name__)

_FALSY_STRINGS = frozenset({"", "false", "0", "no", "off", "null", "none"})


# --- Pure value conversions ---


def format_value(value: Any, fmt: str | None) -> Any:
    """Apply a string format; non-strings and unknown formats pass unchanged."""
    if not fmt or not isinstance(value, str):
        return value
    if fmt == "uppercase":
        return value.upper()
    if fmt == "lowercase":
        return value.lower()
    if fmt == "capitalize":
        return value[:1].upper() + value[1:]
    if fmt == "trim":
        return value.strip()
    logger.debug("Unknown format %r, value unchanged", fmt)
    return value


def _to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    text = str(value).strip()
    if text == "":
        return 0
    number = float(text)
    return int(number) if number.is_integer() and "." not in text and "e" not in text.lower() else number


def _to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return bool(value)


def _to_date(value: Any) -> str:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Numeric dates are epoch milliseconds.
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


def _to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return to_json(value)
    return str(value)


def convert_value(value: Any, target_type: str | None) -> Any:
    """Coerce a value to string, number, boolean, date (ISO 8601) or array.

    Raises:
        ValueError: If the value cannot be coerced (number, date).
    """
    if not target_type:
        return value
    if target_type == "string":
        return _to_string(value)
    if target_type == "number":
        return _to_number(value)
    if target_type == "boolean":
        return _to_boolean(value)
    if target_type == "date":
        return _to_date(value)
    if target_type == "array":
        return value if isinstance(value, list) else [value]
    logger.debug("Unknown target type %r, value unchanged", target_type)
    return value


# --- Executor ---


class OperationExecutor:
    """Runs operations, consulting the oracle for llm/compute."""

    def __init__(self, oracle: InferenceOracle) -> None:
        self._oracle = oracle

    async def apply_value_operation(
        self, value: Any, operation: Any, context: Any = None
    ) -> Any:
        """Apply a per-mapping transform to a single value."""
        try:
            if isinstance(operation, FormatOperation):
                return format_value(value, operation.params.format)
            if isinstance(operation, ConvertOperation):
                return convert_value(value, operation.params.target_type)
            if isinstance(operation, LlmOperation):
                return await self._transform_with_llm(value, operation, context)
        except Exception as e:
            return self._handle_failure(operation, value, e)

        logger.warning("Unsupported mapping transform %r, value unchanged", operation.type)
        return value

    def merge(self, result: dict[str, Any], operation: MergeOperation) -> None:
        """Copy already-computed result values to other result paths."""
        try:
            for source in operation.params.sources:
                if not source.path or not source.target:
                    continue
                value = get_nested_value(result, source.path)
                if value is MISSING:
                    continue
                set_nested_value(result, source.target, copy.deepcopy(value))
        except Exception as e:
            self._handle_failure(operation, None, e)

    def filter(self, result: dict[str, Any], operation: FilterOperation) -> None:
        """Delete result paths, pruning parents left empty."""
        for path in operation.params.paths:
            delete_nested_value(result, path, prune=True)

    async def compute(
        self, data: Any, operation: ComputeOperation, context: Any = None
    ) -> Any:
        """Evaluate the expression over inputs read from the original data.

        Returns MISSING when the operation is incomplete or failed with the
        passthrough policy, meaning nothing should be written.
        """
        params = operation.params
        if not params.target or not params.expression:
            return MISSING

        inputs = {}
        for name, path in params.inputs.items():
            value = get_nested_value(data, path)
            inputs[name] = None if value is MISSING else value

        prompt = COMPUTE_PROMPT.format(
            expression=params.expression,
            inputs=to_json(inputs),
            context=context_block(context),
        )
        try:
            response = await self._oracle.generate_content(
                prompt, temperature=0.1, max_tokens=500
            )
        except Exception as e:
            return self._handle_failure(operation, MISSING, e)
        return parse_lenient_response(response)

    async def _transform_with_llm(
        self, value: Any, operation: LlmOperation, context: Any
    ) -> Any:
        instruction = operation.params.instruction
        if not instruction:
            return value
        prompt = LLM_VALUE_PROMPT.format(
            value=to_json(value),
            instruction=instruction,
            context=context_block(context),
        )
        response = await self._oracle.generate_content(
            prompt, temperature=0.1, max_tokens=1000
        )
        return parse_lenient_response(response)

    @staticmethod
    def _handle_failure(operation: Any, fallback: Any, error: Exception) -> Any:
        if operation.on_error == "raise":
            raise OperationError(f"{operation.type} operation failed: {error}") from error
        logger.warning("%s operation failed, passing value through: %s", operation.type, error)
        return fallback

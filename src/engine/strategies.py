# src/engine/strategies.py — v1
"""Transformation strategies and the strategy registry.

A strategy turns (data, path, context) into converted data. The registry
maps names to strategies and owns the fallback rule: an unset or unknown
strategy name resolves to "default".
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

from semantic_mediator.core.errors import InvalidStrategyError, NoStrategyAvailableError
from semantic_mediator.core.models import (
    ComputeOperation,
    FilterOperation,
    MergeOperation,
    TransformationPath,
)
from semantic_mediator.core.paths import MISSING, get_nested_value, set_nested_value
from semantic_mediator.llm.oracle import parse_lenient_response
from semantic_mediator.llm.prompts import LLM_STRATEGY_PROMPT, context_block, to_json

if TYPE_CHECKING:
    from semantic_mediator.engine.operations import OperationExecutor
    from semantic_mediator.llm.oracle import InferenceOracle

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = "default"

# Alternate spellings accepted in oracle-produced paths.
STRATEGY_ALIASES: dict[str, str] = {"directMapping": "direct_mapping"}


class TransformationStrategy(ABC):
    """Executes a transformation path against input data."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key."""

    @abstractmethod
    async def apply(
        self, data: Any, path: TransformationPath, context: Any = None
    ) -> Any:
        """Return the converted data. The input must not be mutated."""


class DirectMappingStrategy(TransformationStrategy):
    """Pure structural copy: mappings only, transforms ignored."""

    @property
    def name(self) -> str:
        return "direct_mapping"

    async def apply(
        self, data: Any, path: TransformationPath, context: Any = None
    ) -> Any:
        result: dict[str, Any] = {}
        for mapping in path.mappings:
            value = get_nested_value(data, mapping.source)
            if value is MISSING:
                continue
            set_nested_value(result, mapping.target, copy.deepcopy(value))
        return result


class DefaultStrategy(TransformationStrategy):
    """Mappings with per-mapping transforms, then merge/filter/compute.

    compute operations are started as soon as they are reached and run
    concurrently with the rest of the steps; all of them are awaited and
    written to the result before apply() returns.
    """

    def __init__(self, operations: OperationExecutor) -> None:
        self._operations = operations

    @property
    def name(self) -> str:
        return DEFAULT_STRATEGY

    async def apply(
        self, data: Any, path: TransformationPath, context: Any = None
    ) -> Any:
        result: dict[str, Any] = {}

        for mapping in path.mappings:
            value = get_nested_value(data, mapping.source)
            if value is MISSING:
                continue
            value = copy.deepcopy(value)
            if mapping.transform is not None:
                value = await self._operations.apply_value_operation(
                    value, mapping.transform, context
                )
            set_nested_value(result, mapping.target, value)

        computations: list[tuple[str, asyncio.Task]] = []
        try:
            for operation in path.transformations:
                if isinstance(operation, MergeOperation):
                    self._operations.merge(result, operation)
                elif isinstance(operation, FilterOperation):
                    self._operations.filter(result, operation)
                elif isinstance(operation, ComputeOperation):
                    task = asyncio.ensure_future(
                        self._operations.compute(data, operation, context)
                    )
                    computations.append((operation.params.target or "", task))
                else:
                    logger.warning("Unknown transformation type: %s", operation.type)

            values = await asyncio.gather(*(task for _, task in computations))
        except BaseException:
            for _, task in computations:
                task.cancel()
            raise

        for (target, _), value in zip(computations, values):
            if value is not MISSING:
                set_nested_value(result, target, value)
        return result


class LlmStrategy(TransformationStrategy):
    """Hands the whole path and data to the oracle.

    The answer is used as-is: parsed JSON when possible, raw text otherwise.
    """

    def __init__(self, oracle: InferenceOracle) -> None:
        self._oracle = oracle

    @property
    def name(self) -> str:
        return "llm"

    async def apply(
        self, data: Any, path: TransformationPath, context: Any = None
    ) -> Any:
        prompt = LLM_STRATEGY_PROMPT.format(
            data=to_json(data),
            path=to_json(path.recipe()),
            context=context_block(context),
        )
        response = await self._oracle.generate_content(
            prompt, temperature=0.1, max_tokens=2000
        )
        return parse_lenient_response(response)


class FunctionStrategy(TransformationStrategy):
    """Adapts a plain callable ``fn(data, path, context)`` (sync or async)."""

    def __init__(self, name: str, fn: Callable[..., Any]) -> None:
        if not callable(fn):
            raise InvalidStrategyError(f"Strategy {name!r} is not callable")
        self._name = name
        self._fn = fn

    @property
    def name(self) -> str:
        return self._name

    async def apply(
        self, data: Any, path: TransformationPath, context: Any = None
    ) -> Any:
        result = self._fn(data, path, context)
        if inspect.isawaitable(result):
            result = await result
        return result


class StrategyRegistry:
    """Name → strategy table. Last registration wins."""

    def __init__(self) -> None:
        self._strategies: dict[str, TransformationStrategy] = {}

    def register(
        self, name: str, strategy: TransformationStrategy | Callable[..., Any]
    ) -> bool:
        """Register or overwrite a strategy.

        Raises:
            InvalidStrategyError: If the name is empty or the strategy is
                neither a TransformationStrategy nor callable.
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidStrategyError("Strategy name must be a non-empty string")
        if not isinstance(strategy, TransformationStrategy):
            strategy = FunctionStrategy(name, strategy)
        if name in self._strategies:
            logger.warning("Transformation strategy '%s' already exists, overwriting", name)
        self._strategies[name] = strategy
        logger.debug("Transformation strategy '%s' registered", name)
        return True

    def unregister(self, name: str) -> bool:
        return self._strategies.pop(name, None) is not None

    def names(self) -> list[str]:
        return list(self._strategies)

    def resolve(self, name: str | None) -> TransformationStrategy:
        """Find the strategy for `name`, falling back to the default one.

        Raises:
            NoStrategyAvailableError: If even the default strategy is missing.
        """
        requested = STRATEGY_ALIASES.get(name, name) if name else DEFAULT_STRATEGY
        strategy = self._strategies.get(requested)
        if strategy is not None:
            return strategy

        if name:
            logger.warning("Transformation strategy '%s' not found, using default", name)
        strategy = self._strategies.get(DEFAULT_STRATEGY)
        if strategy is None:
            raise NoStrategyAvailableError(
                "No transformation strategy available, not even default strategy"
            )
        return strategy

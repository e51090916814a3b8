# src/engine/transformation_engine.py — v1
"""Transformation engine: derives, executes, validates and optimizes paths.

Derivation, validation, optimization and evaluation consult the inference
oracle. Execution dispatches to a named strategy from the registry.
Successful derivations (and, when enabled, executions) are appended to the
provenance history in the document store, separate from the path cache.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from pydantic import ValidationError

from semantic_mediator.core.errors import (
    MediatorError,
    OperationError,
    PathParseError,
    ValidationParseError,
)
from semantic_mediator.core.models import (
    QualityEvaluation,
    SemanticDescriptor,
    TransformationPath,
    ValidationResult,
)
from semantic_mediator.engine.operations import OperationExecutor
from semantic_mediator.engine.strategies import (
    DefaultStrategy,
    DirectMappingStrategy,
    LlmStrategy,
    StrategyRegistry,
    TransformationStrategy,
)
from semantic_mediator.llm.oracle import parse_json_response
from semantic_mediator.llm.prompts import (
    EVALUATE_PROMPT,
    GENERATE_PATH_PROMPT,
    OPTIMIZE_PROMPT,
    VALIDATE_PROMPT,
    context_block,
    to_json,
)
from semantic_mediator.storage.models import RECORD_PATH_HISTORY

if TYPE_CHECKING:
    from semantic_mediator.llm.oracle import InferenceOracle
    from semantic_mediator.storage.base_document_store import BaseDocumentStore

logger = logging.getLogger(__name__)


def _descriptor_payload(descriptor: SemanticDescriptor) -> dict[str, Any]:
    return descriptor.model_dump(mode="json", exclude={"vector"}, exclude_none=True)


class TransformationEngine:
    """Strategy registry plus oracle-backed path derivation."""

    def __init__(
        self,
        oracle: InferenceOracle,
        store: BaseDocumentStore | None = None,
        record_executions: bool = True,
    ) -> None:
        self._oracle = oracle
        self._store = store
        self._record_executions = record_executions
        self._strategies = StrategyRegistry()
        self._register_default_strategies()

    def _register_default_strategies(self) -> None:
        operations = OperationExecutor(self._oracle)
        for strategy in (
            DefaultStrategy(operations),
            LlmStrategy(self._oracle),
            DirectMappingStrategy(),
        ):
            self._strategies.register(strategy.name, strategy)

    # --- Derivation ---

    async def generate_transformation_path(
        self,
        source: SemanticDescriptor,
        target: SemanticDescriptor,
        context: Any = None,
    ) -> TransformationPath:
        """Ask the oracle for a path from `source` to `target`.

        Raises:
            OracleError: The oracle call failed.
            PathParseError: The answer is not a usable transformation path.
        """
        prompt = GENERATE_PATH_PROMPT.format(
            source=to_json(_descriptor_payload(source)),
            target=to_json(_descriptor_payload(target)),
            context=context_block(context),
        )
        response = await self._oracle.generate_content(
            prompt, temperature=0.2, max_tokens=2000
        )
        path = self._parse_path(response, source, target)

        await self._record_history(
            "path_generation",
            {
                "path_id": path.id,
                "source_descriptor": _descriptor_payload(source),
                "target_descriptor": _descriptor_payload(target),
                "path": path.recipe(),
                "context": context or {},
            },
        )
        logger.debug(
            "Generated path %s: %s -> %s (%d mappings, strategy=%s)",
            path.id,
            source.entity,
            target.entity,
            len(path.mappings),
            path.recommended_strategy,
        )
        return path

    @staticmethod
    def _parse_path(
        response: str, source: SemanticDescriptor, target: SemanticDescriptor
    ) -> TransformationPath:
        try:
            raw = parse_json_response(response)
        except ValueError as e:
            raise PathParseError(f"Transformation path is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise PathParseError(
                f"Transformation path must be a JSON object, got {type(raw).__name__}"
            )
        raw.pop("id", None)
        raw.pop("sourceDescriptor", None)
        raw.pop("targetDescriptor", None)
        try:
            return TransformationPath.model_validate(
                {**raw, "source_descriptor": source, "target_descriptor": target}
            )
        except ValidationError as e:
            raise PathParseError(f"Invalid transformation path structure: {e}") from e

    # --- Execution ---

    async def execute_transformation(
        self, data: Any, path: TransformationPath, context: Any = None
    ) -> Any:
        """Run `path` against `data` with the path's recommended strategy.

        Unset or unknown strategies fall back to "default".

        Raises:
            NoStrategyAvailableError: Not even "default" is registered.
            OperationError: An operation with on_error="raise" failed, or a
                custom strategy raised.
            OracleError: The llm strategy could not reach the oracle.
        """
        strategy = self._strategies.resolve(path.recommended_strategy)
        start = time.monotonic()
        try:
            result = await strategy.apply(data, path, context)
        except MediatorError:
            raise
        except Exception as e:
            raise OperationError(
                f"Strategy '{strategy.name}' failed: {e}"
            ) from e
        execution_ms = int((time.monotonic() - start) * 1000)

        if self._record_executions:
            await self._record_history(
                "execution",
                {
                    "path_id": path.id,
                    "strategy": strategy.name,
                    "source_data": data,
                    "result": result,
                    "context": context or {},
                    "execution_ms": execution_ms,
                },
            )
        logger.debug("Executed path %s with %s in %dms", path.id, strategy.name, execution_ms)
        return result

    # --- Validation ---

    async def validate_transformation(
        self,
        result: Any,
        target_descriptor: SemanticDescriptor,
        context: Any = None,
    ) -> ValidationResult:
        """Ask the oracle whether `result` fits `target_descriptor`.

        Raises:
            OracleError: The oracle call failed.
            ValidationParseError: The answer is not a usable verdict.
        """
        prompt = VALIDATE_PROMPT.format(
            result=to_json(result),
            target=to_json(_descriptor_payload(target_descriptor)),
            context=context_block(context),
        )
        response = await self._oracle.generate_content(
            prompt, temperature=0.1, max_tokens=1500
        )
        try:
            raw = parse_json_response(response)
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            verdict = ValidationResult.model_validate(raw)
        except ValueError as e:
            raise ValidationParseError(f"Unusable validation verdict: {e}") from e

        logger.debug(
            "Validation for %s: %s (%d issues)",
            target_descriptor.entity,
            "valid" if verdict.valid else "invalid",
            len(verdict.issues),
        )
        return verdict

    # --- Optimization ---

    async def optimize_transformation_path(
        self, path: TransformationPath, metrics: dict[str, Any] | None = None
    ) -> TransformationPath:
        """Ask the oracle for a cheaper equivalent path.

        The optimized path keeps the original descriptors. If it no longer
        writes every target field of the original mappings, it is rejected
        and the original path is returned.

        Raises:
            OracleError: The oracle call failed.
            PathParseError: The answer is not a usable transformation path.
        """
        prompt = OPTIMIZE_PROMPT.format(
            path=to_json(path.recipe()),
            metrics=f"\nPerformance metrics:\n{to_json(metrics)}\n" if metrics else "",
        )
        response = await self._oracle.generate_content(
            prompt, temperature=0.2, max_tokens=2000
        )
        optimized = self._parse_path(
            response, path.source_descriptor, path.target_descriptor
        )

        dropped = path.mapped_targets - optimized.mapped_targets
        if dropped:
            logger.warning(
                "Rejected optimization of %s: drops target fields %s",
                path.id,
                sorted(dropped),
            )
            return path

        await self._record_history(
            "optimization",
            {
                "original_path_id": path.id,
                "optimized_path_id": optimized.id,
                "original": path.recipe(),
                "optimized": optimized.recipe(),
                "metrics": metrics or {},
            },
        )
        return optimized

    # --- Evaluation ---

    async def evaluate_transformation(
        self,
        source: Any,
        target: Any,
        path: TransformationPath,
        expected_outcome: str = "",
    ) -> QualityEvaluation:
        """Score a completed transformation (0-100 per criterion).

        Never raises: on any failure the scores are zero and `error` is set.
        """
        strategy = path.recommended_strategy or "quality_evaluation"
        prompt = EVALUATE_PROMPT.format(
            source=to_json(source),
            target=to_json(target),
            expected_outcome=expected_outcome or "(not specified)",
            strategy=strategy,
        )
        try:
            response = await self._oracle.generate_content(prompt)
            raw = parse_json_response(response)
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            evaluation = QualityEvaluation.model_validate(raw)
        except (MediatorError, ValueError) as e:
            logger.error("Error evaluating transformation: %s", e)
            return QualityEvaluation(strategy=strategy, error=str(e))
        return evaluation.model_copy(
            update={"strategy": strategy, "timestamp": datetime.now(timezone.utc)}
        )

    # --- Strategy registry ---

    def get_available_transformation_strategies(self) -> list[str]:
        return self._strategies.names()

    def register_transformation_strategy(
        self, name: str, strategy: TransformationStrategy | Callable[..., Any]
    ) -> bool:
        """Register (or overwrite) a strategy.

        Raises:
            InvalidStrategyError: Empty name or non-callable strategy.
        """
        return self._strategies.register(name, strategy)

    def unregister_transformation_strategy(self, name: str) -> bool:
        return self._strategies.unregister(name)

    # --- Provenance ---

    async def get_transformation_history(
        self, limit: int | None = None, kind: str | None = None
    ) -> list[dict[str, Any]]:
        """Provenance records, oldest first (newest `limit` when given)."""
        if self._store is None:
            return []
        records = await self._store.get_by_type(RECORD_PATH_HISTORY)
        entries = [
            {"id": r.id, **r.content}
            for r in records
            if kind is None or r.content.get("kind") == kind
        ]
        return entries[-limit:] if limit else entries

    async def _record_history(self, kind: str, content: dict[str, Any]) -> None:
        if self._store is None:
            return
        try:
            await self._store.store(
                RECORD_PATH_HISTORY,
                {
                    "kind": kind,
                    **content,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
        except Exception as e:
            logger.warning("Failed to record %s provenance: %s", kind, e)

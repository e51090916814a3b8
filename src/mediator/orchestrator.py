# src/mediator/orchestrator.py — v1
"""Mediator orchestrator: one translation, end to end.

Sequence for translate(source_module, target_module, data):
  1. Resolve both descriptors through the semantic registry.
  2. Cache hit → execute → count the use → "cache-hit" event.
  3. Miss → derive → execute → validate.
  4. Invalid (or confidence below threshold) → human review. Approval
     continues (a reviewer correction replaces the result); rejection,
     cancellation or timeout raise TransformationInvalidError.
  5. Store the path → "derived" event.

Concurrent misses on the same (source, target) pair share one derivation:
later callers await the first caller's path and run it on their own data
("coalesced" event). Every branch, failures included, emits one event.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

from semantic_mediator.cache.fingerprint import compute_path_key
from semantic_mediator.core.errors import TransformationInvalidError
from semantic_mediator.core.models import (
    SemanticDescriptor,
    TransformationEvent,
    TranslationOutcome,
    TransformationPath,
    ValidationResult,
)
from semantic_mediator.engine.strategies import DEFAULT_STRATEGY
from semantic_mediator.logging.context import clear_context, set_request_context, set_step

if TYPE_CHECKING:
    from semantic_mediator.cache.path_cache import TransformationPathCache
    from semantic_mediator.engine.transformation_engine import TransformationEngine
    from semantic_mediator.monitoring.base_sink import BaseEventSink
    from semantic_mediator.registry.semantic_registry import BaseSemanticRegistry
    from semantic_mediator.review.escalation import ReviewEscalation

logger = logging.getLogger(__name__)


def _consume_exception(future: asyncio.Future) -> None:
    # Derivation futures nobody awaited must not warn on garbage collection.
    if not future.cancelled():
        future.exception()


class MediatorOrchestrator:
    """Stateless per call; holds only the in-flight derivation table."""

    def __init__(
        self,
        registry: BaseSemanticRegistry,
        cache: TransformationPathCache,
        engine: TransformationEngine,
        review: ReviewEscalation | None = None,
        events: BaseEventSink | None = None,
        review_enabled: bool = True,
        review_timeout_ms: int | None = None,
        review_confidence_threshold: float = 0.0,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._engine = engine
        self._review = review
        self._events = events
        self._review_enabled = review_enabled and review is not None
        self._review_timeout_ms = review_timeout_ms
        self._confidence_threshold = review_confidence_threshold
        self._inflight: dict[str, asyncio.Future] = {}

    async def translate(
        self,
        source_module: str,
        target_module: str,
        data: Any,
        context: dict[str, Any] | None = None,
    ) -> Any:
        """Convert `data` from the source module's shape to the target's.

        Raises:
            DescriptorNotFoundError: A module has no registered descriptor.
            OracleError, PathParseError, ValidationParseError: Derivation or
                validation could not be completed.
            TransformationInvalidError: The result failed validation and no
                reviewer approved it.
        """
        outcome = await self.translate_with_outcome(
            source_module, target_module, data, context
        )
        return outcome.data

    async def translate_with_outcome(
        self,
        source_module: str,
        target_module: str,
        data: Any,
        context: dict[str, Any] | None = None,
    ) -> TranslationOutcome:
        """Like translate(), but also report how the result was obtained."""
        request_id = uuid.uuid4().hex[:12]
        set_request_context(request_id, source_module, target_module)
        start = time.monotonic()
        state: dict[str, Any] = {"strategy": DEFAULT_STRATEGY, "review_id": None}

        try:
            set_step("resolve")
            source = await self._registry.get_descriptor(source_module)
            target = await self._registry.get_descriptor(target_module)

            key = compute_path_key(source, target)
            while True:
                leader = self._inflight.get(key)
                if leader is None:
                    set_step("lookup")
                    cached = await self._cache.retrieve(source, target)
                    if cached is not None:
                        state["strategy"] = cached.recommended_strategy or DEFAULT_STRATEGY
                        result = await self._run_cached(
                            cached, data, context, source_module, target_module
                        )
                        return self._finish(
                            "cache-hit", result, source_module, target_module, start,
                            state, request_id, cache_id=cached.cache_id,
                        )
                    # The lookup may have yielded to a caller that started deriving.
                    leader = self._inflight.get(key)
                if leader is None:
                    break

                set_step("coalesce")
                logger.debug("Awaiting in-flight derivation for %s", key[:12])
                try:
                    shared: TransformationPath = await asyncio.shield(leader)
                except asyncio.CancelledError:
                    if not leader.cancelled():
                        raise
                    # The deriving caller went away; look again or take over.
                    logger.info("In-flight derivation for %s was cancelled, retrying", key[:12])
                    continue
                state["strategy"] = shared.recommended_strategy or DEFAULT_STRATEGY
                result = await self._run_cached(
                    shared, data, context, source_module, target_module
                )
                return self._finish(
                    "coalesced", result, source_module, target_module, start,
                    state, request_id, cache_id=shared.cache_id,
                )

            future = asyncio.get_running_loop().create_future()
            future.add_done_callback(_consume_exception)
            self._inflight[key] = future
            try:
                result, stored = await self._derive(
                    source, target, data, context, source_module, target_module, state
                )
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
                raise
            else:
                future.set_result(stored)
            finally:
                self._inflight.pop(key, None)
            return self._finish(
                "derived", result, source_module, target_module, start,
                state, request_id, cache_id=stored.cache_id,
            )

        except (Exception, asyncio.CancelledError) as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            logger.warning("Translation %s->%s failed: %s", source_module, target_module, e)
            self._emit(
                TransformationEvent(
                    kind="failed",
                    source_module=source_module,
                    target_module=target_module,
                    strategy=state["strategy"],
                    latency_ms=latency_ms,
                    success=False,
                    review_id=state["review_id"],
                    error=f"{type(e).__name__}: {e}",
                )
            )
            raise
        finally:
            clear_context()

    async def _run_cached(
        self,
        path: TransformationPath,
        data: Any,
        context: dict[str, Any] | None,
        source_module: str,
        target_module: str,
    ) -> Any:
        set_step("execute")
        result = await self._engine.execute_transformation(data, path, context)
        if path.cache_id:
            await self._cache.update_usage_statistics(
                path.cache_id,
                {"source_module": source_module, "target_module": target_module},
            )
        return result

    async def _derive(
        self,
        source: SemanticDescriptor,
        target: SemanticDescriptor,
        data: Any,
        context: dict[str, Any] | None,
        source_module: str,
        target_module: str,
        state: dict[str, Any],
    ) -> tuple[Any, TransformationPath]:
        """Derive, execute, validate (and escalate), then store the path."""
        derive_context = {
            **(context or {}),
            "source_module": source_module,
            "target_module": target_module,
        }
        set_step("derive")
        path = await self._engine.generate_transformation_path(source, target, derive_context)
        state["strategy"] = path.recommended_strategy or DEFAULT_STRATEGY

        set_step("execute")
        result = await self._engine.execute_transformation(data, path, context)

        set_step("validate")
        verdict = await self._engine.validate_transformation(result, target, context)
        if self._needs_review(verdict):
            set_step("review")
            result = await self._escalate(
                data, result, path, target, verdict, source_module, target_module, state
            )

        set_step("store")
        cache_id = await self._cache.store(
            source,
            target,
            path,
            {"source_module": source_module, "target_module": target_module},
        )
        return result, path.model_copy(update={"cache_id": cache_id})

    def _needs_review(self, verdict: ValidationResult) -> bool:
        if not verdict.valid:
            return True
        return (
            verdict.confidence is not None
            and verdict.confidence < self._confidence_threshold
        )

    async def _escalate(
        self,
        data: Any,
        result: Any,
        path: TransformationPath,
        target: SemanticDescriptor,
        verdict: ValidationResult,
        source_module: str,
        target_module: str,
        state: dict[str, Any],
    ) -> Any:
        """Hand the result to a human; return the (possibly corrected) result."""
        issues = [i.model_dump() for i in verdict.issues]
        if not self._review_enabled:
            raise TransformationInvalidError(
                f"Transformation {source_module}->{target_module} failed validation",
                issues=issues,
            )

        review_id = await self._review.request_review(
            data={"source_data": data, "result": result, "path": path.recipe()},
            context={
                "source_module": source_module,
                "target_module": target_module,
                "target_descriptor": target.model_dump(mode="json", exclude={"vector"}),
                "issues": issues,
                "confidence": verdict.confidence,
                "valid": verdict.valid,
            },
            timeout_ms=self._review_timeout_ms,
        )
        state["review_id"] = review_id
        record = await self._review.wait_for_outcome(review_id)

        if record is None or not record.approved:
            status = record.status if record is not None else "missing"
            raise TransformationInvalidError(
                f"Transformation {source_module}->{target_module} was not approved "
                f"(review {review_id}: {status})",
                issues=issues,
                review_id=review_id,
                review_status=status,
            )
        logger.info("Review %s approved the transformation", review_id)
        return record.corrected_data if record.has_correction else result

    def _finish(
        self,
        kind: str,
        result: Any,
        source_module: str,
        target_module: str,
        start: float,
        state: dict[str, Any],
        request_id: str,
        cache_id: str | None = None,
    ) -> TranslationOutcome:
        latency_ms = int((time.monotonic() - start) * 1000)
        self._emit(
            TransformationEvent(
                kind=kind,
                source_module=source_module,
                target_module=target_module,
                strategy=state["strategy"],
                latency_ms=latency_ms,
                success=True,
                cache_id=cache_id,
                review_id=state["review_id"],
            )
        )
        return TranslationOutcome(
            data=result,
            kind=kind,
            source_module=source_module,
            target_module=target_module,
            strategy=state["strategy"],
            latency_ms=latency_ms,
            cache_id=cache_id,
            review_id=state["review_id"],
            request_id=request_id,
        )

    def _emit(self, event: TransformationEvent) -> None:
        if self._events is None:
            return
        try:
            self._events.emit(event)
        except Exception:
            logger.exception("Event sink raised on %s event", event.kind)

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

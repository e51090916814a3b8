# src/review/escalation.py — v1
"""Human review escalation.

State machine: pending → completed | cancelled | timeout. Every transition
out of pending is terminal, cancels the request's timeout timer and notifies
all registered callbacks with the final record. Transitions mutate the
in-memory table synchronously, so a timer firing after feedback (or the
reverse) always sees the terminal state and does nothing.

The document store receives a copy of every record for history; a store
failure is logged and never blocks a transition.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from pydantic import ValidationError

from semantic_mediator.core.errors import MediatorError
from semantic_mediator.core.paths import MISSING, get_nested_value
from semantic_mediator.llm.oracle import parse_json_response
from semantic_mediator.llm.prompts import FEEDBACK_ANALYSIS_PROMPT, to_json
from semantic_mediator.review.models import FeedbackAnalysis, ReviewRequest
from semantic_mediator.storage.models import RECORD_REVIEW

if TYPE_CHECKING:
    from semantic_mediator.llm.oracle import InferenceOracle
    from semantic_mediator.storage.base_document_store import BaseDocumentStore

logger = logging.getLogger(__name__)

ReviewCallback = Callable[[ReviewRequest], Any]

NO_FEEDBACK_INSIGHTS = "No feedback data available for analysis"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _remaining_seconds(record: ReviewRequest) -> float:
    created = record.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    elapsed = (_utcnow() - created).total_seconds()
    return max(0.0, record.timeout_ms / 1000 - elapsed)


def _matches(record: ReviewRequest, filters: dict[str, Any] | None) -> bool:
    """All dotted-key filters equal the record's values."""
    if not filters:
        return True
    payload = record.model_dump()
    for key, expected in filters.items():
        value = get_nested_value(payload, key)
        if value is MISSING or value != expected:
            return False
    return True


class ReviewEscalation:
    """Tracks review requests, timeouts, callbacks and outcome waiters."""

    def __init__(
        self,
        store: BaseDocumentStore | None = None,
        oracle: InferenceOracle | None = None,
        default_timeout_ms: int | None = None,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._default_timeout_ms = default_timeout_ms
        self._reviews: dict[str, ReviewRequest] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._waiters: dict[str, list[asyncio.Future]] = {}
        self._callbacks: dict[str, ReviewCallback] = {}
        self._background: set[asyncio.Task] = set()
        self._loaded = False
        self._load_lock = asyncio.Lock()

    # --- Requests ---

    async def request_review(
        self,
        data: Any,
        context: dict[str, Any] | None = None,
        timeout_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Create a pending review and return its id.

        With a positive timeout (explicit or the configured default) the
        review moves to ``timeout`` if still pending when the timer elapses.
        """
        await self._ensure_loaded()
        review_id = f"review_{uuid.uuid4().hex[:16]}"
        timeout_ms = self._default_timeout_ms if timeout_ms is None else timeout_ms
        record = ReviewRequest(
            id=review_id,
            data=data,
            context=dict(context or {}),
            timeout_ms=timeout_ms,
            metadata=dict(metadata or {}),
        )
        self._reviews[review_id] = record

        if timeout_ms and timeout_ms > 0:
            self._arm_timer(review_id, timeout_ms / 1000)

        await self._persist(record)
        logger.info("Human review requested: %s", review_id)
        return review_id

    async def submit_feedback(
        self,
        review_id: str,
        feedback: Any,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """pending → completed. False (no-op) if absent or not pending."""
        await self._ensure_loaded()
        record = self._transition(
            review_id, "completed", feedback=feedback, metadata=metadata
        )
        if record is None:
            return False
        await self._persist(record)
        logger.info("Feedback submitted for review %s", review_id)
        return True

    async def cancel_review(self, review_id: str, reason: str | None = None) -> bool:
        """pending → cancelled. False (no-op) if absent or not pending."""
        await self._ensure_loaded()
        record = self._transition(review_id, "cancelled", reason=reason)
        if record is None:
            return False
        await self._persist(record)
        logger.info("Review %s cancelled: %s", review_id, reason or "no reason given")
        return True

    def _handle_timeout(self, review_id: str) -> None:
        self._timers.pop(review_id, None)
        record = self._transition(review_id, "timeout", reason="Review timed out")
        if record is None:
            return
        logger.warning("Review %s timed out", review_id)
        self._spawn(self._persist(record))

    def _transition(
        self,
        review_id: str,
        status: str,
        feedback: Any = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ReviewRequest | None:
        """Apply a terminal transition; None when not allowed."""
        current = self._reviews.get(review_id)
        if current is None:
            logger.warning("Review request not found: %s", review_id)
            return None
        if current.status != "pending":
            logger.warning(
                "Review request is not pending: %s, status: %s", review_id, current.status
            )
            return None

        timer = self._timers.pop(review_id, None)
        if timer is not None:
            timer.cancel()

        now = _utcnow()
        update: dict[str, Any] = {
            "status": status,
            "updated_at": now,
            "completed_at": now,
            "metadata": {**current.metadata, **(metadata or {})},
        }
        if feedback is not None:
            update["feedback"] = feedback
        if reason is not None:
            update["reason"] = reason
        record = current.model_copy(update=update)
        self._reviews[review_id] = record

        for waiter in self._waiters.pop(review_id, []):
            if not waiter.done():
                waiter.set_result(record)
        self._trigger_callbacks(record)
        return record

    # --- Queries ---

    async def get_review_status(self, review_id: str) -> ReviewRequest | None:
        await self._ensure_loaded()
        record = self._reviews.get(review_id)
        return record.model_copy(deep=True) if record is not None else None

    async def get_pending_reviews(
        self, filters: dict[str, Any] | None = None, limit: int = 10
    ) -> list[ReviewRequest]:
        """Pending reviews matching the filters, oldest first."""
        await self._ensure_loaded()
        pending = [
            r for r in self._reviews.values()
            if r.status == "pending" and _matches(r, filters)
        ]
        pending.sort(key=lambda r: r.created_at)
        return [r.model_copy(deep=True) for r in pending[:limit]]

    async def get_feedback_history(
        self, filters: dict[str, Any] | None = None, limit: int = 50
    ) -> list[ReviewRequest]:
        """Completed reviews matching the filters, most recently completed first."""
        await self._ensure_loaded()
        completed = [
            r for r in self._reviews.values()
            if r.status == "completed" and _matches(r, filters)
        ]
        completed.sort(key=lambda r: r.completed_at or r.updated_at, reverse=True)
        return [r.model_copy(deep=True) for r in completed[:limit]]

    async def wait_for_outcome(
        self, review_id: str, timeout: float | None = None
    ) -> ReviewRequest | None:
        """Wait until the review leaves pending; None for unknown ids.

        Raises:
            asyncio.TimeoutError: If `timeout` seconds elapse first.
        """
        await self._ensure_loaded()
        record = self._reviews.get(review_id)
        if record is None:
            return None
        if record.is_terminal:
            return record
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(review_id, []).append(future)
        if timeout is None:
            return await future
        return await asyncio.wait_for(future, timeout)

    # --- Callbacks ---

    def register_callback(self, callback: ReviewCallback) -> str:
        """Register an observer of terminal transitions (sync or async)."""
        if not callable(callback):
            raise TypeError("Review callback must be callable")
        callback_id = f"callback_{uuid.uuid4().hex[:12]}"
        self._callbacks[callback_id] = callback
        return callback_id

    def remove_callback(self, callback_id: str) -> bool:
        return self._callbacks.pop(callback_id, None) is not None

    def _trigger_callbacks(self, record: ReviewRequest) -> None:
        for callback_id, callback in list(self._callbacks.items()):
            try:
                result = callback(record.model_copy(deep=True))
                if inspect.isawaitable(result):
                    self._spawn(self._await_callback(callback_id, result))
            except Exception:
                logger.exception("Error in review callback %s", callback_id)

    @staticmethod
    async def _await_callback(callback_id: str, awaitable: Any) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Error in review callback %s", callback_id)

    # --- Analysis ---

    async def analyze_feedback_patterns(self) -> FeedbackAnalysis:
        """Oracle analysis over the latest completed reviews."""
        history = await self.get_feedback_history(limit=100)
        if not history:
            return FeedbackAnalysis(patterns=[], insights=NO_FEEDBACK_INSIGHTS)

        summary = [
            {
                "id": r.id,
                "feedback": r.feedback,
                "approved": r.approved,
                "corrected": r.has_correction,
                "response_seconds": (
                    (r.completed_at - r.created_at).total_seconds()
                    if r.completed_at
                    else None
                ),
                "context": r.context,
                "metadata": r.metadata,
            }
            for r in history
        ]
        if self._oracle is None:
            return FeedbackAnalysis(
                patterns=[],
                insights="Feedback analysis needs an inference oracle",
                error="oracle not configured",
            )

        try:
            response = await self._oracle.generate_content(
                FEEDBACK_ANALYSIS_PROMPT.format(history=to_json(summary)),
                temperature=0.3,
                max_tokens=2000,
            )
            raw = parse_json_response(response)
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            return FeedbackAnalysis.model_validate(raw)
        except (MediatorError, ValueError) as e:
            logger.error("Error analyzing feedback patterns: %s", e)
            return FeedbackAnalysis(
                patterns=[],
                insights="Failed to analyze feedback patterns due to an error",
                error=str(e),
            )

    # --- Persistence ---

    async def _ensure_loaded(self) -> None:
        """Pull review history from the store once (in-memory records win).

        Reloaded pending reviews get their timeout timer back, measured from
        the original creation time; overdue ones time out on the next tick.
        """
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            if self._store is not None:
                try:
                    records = await self._store.get_by_type(RECORD_REVIEW)
                except Exception as e:
                    logger.warning("Could not load review history: %s", e)
                    records = []
                for stored in records:
                    if stored.id in self._reviews:
                        continue
                    try:
                        record = ReviewRequest.model_validate(stored.content)
                    except ValidationError as e:
                        logger.warning("Skipping malformed review record %s: %s", stored.id, e)
                        continue
                    self._reviews[record.id] = record
                    if record.status == "pending" and record.timeout_ms and record.timeout_ms > 0:
                        self._arm_timer(record.id, _remaining_seconds(record))
            self._loaded = True

    def _arm_timer(self, review_id: str, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._timers[review_id] = loop.call_later(delay, self._handle_timeout, review_id)

    async def _persist(self, record: ReviewRequest) -> None:
        if self._store is None:
            return
        try:
            await self._store.store(
                RECORD_REVIEW, record.model_dump(mode="json"), record_id=record.id
            )
        except Exception as e:
            logger.warning("Failed to persist review %s: %s", record.id, e)

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def close(self) -> None:
        """Cancel pending timers and wait for background work."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

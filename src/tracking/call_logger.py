# src/tracking/call_logger.py — v1
"""Oracle call logging.

Every call made through LLMOracle is recorded here, successful or not, so
token usage and failure rates can be inspected after a run.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from semantic_mediator.llm.models import Completion
from semantic_mediator.tracking.models import OracleCallRecord, OracleCallStats

logger = logging.getLogger(__name__)


class CallLogger:
    """Accumulates oracle call records for a mediator context."""

    def __init__(self) -> None:
        self._records: list[OracleCallRecord] = []

    def record(
        self,
        component: str,
        step: str,
        completion: Completion,
    ) -> OracleCallRecord:
        """Record a successful call.

        Args:
            component: Oracle-consuming component (e.g. "transformation_engine").
            step: Step identifier (e.g. "generate_path").
            completion: Provider answer with token usage.

        Returns:
            The recorded OracleCallRecord.
        """
        record = OracleCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            component=component,
            step=step,
            provider=completion.provider,
            model=completion.model,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            total_tokens=completion.total_tokens,
            latency_ms=completion.latency_ms,
            status="success",
            stop_reason=completion.stop_reason,
        )
        self._records.append(record)
        return record

    def record_failure(
        self,
        component: str,
        step: str,
        provider: str,
        model: str,
        error: str,
        latency_ms: int = 0,
    ) -> OracleCallRecord:
        """Record a call that raised before producing a response."""
        record = OracleCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            component=component,
            step=step,
            provider=provider,
            model=model,
            latency_ms=latency_ms,
            status="failed",
            error=error,
        )
        self._records.append(record)
        return record

    @property
    def records(self) -> list[OracleCallRecord]:
        """All recorded calls."""
        return list(self._records)

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed across all calls."""
        return sum(r.total_tokens for r in self._records)

    @property
    def total_calls(self) -> int:
        return len(self._records)

    def stats_by_component(self) -> dict[str, OracleCallStats]:
        """Aggregate records per component."""
        grouped: dict[str, list[OracleCallRecord]] = {}
        for r in self._records:
            grouped.setdefault(r.component, []).append(r)
        return {
            component: OracleCallStats(
                component=component,
                total_calls=len(records),
                failure_count=sum(1 for r in records if r.status == "failed"),
                total_tokens=sum(r.total_tokens for r in records),
                avg_latency_ms=sum(r.latency_ms for r in records) / len(records),
                max_latency_ms=max(r.latency_ms for r in records),
            )
            for component, records in grouped.items()
        }

    def save(self, path: Path) -> None:
        """Save all records to a JSON Lines file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            for record in self._records:
                f.write(json.dumps(record.model_dump(), default=str) + "\n")
        logger.debug("Saved %d oracle call records to %s", len(self._records), path)

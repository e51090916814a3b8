# src/review/models.py — v1
"""Review escalation models: ReviewRequest and feedback analysis."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

ReviewStatus = Literal["pending", "completed", "cancelled", "timeout"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "cancelled", "timeout"})

_APPROVE_DECISIONS = frozenset({"approve", "approved", "accept", "accepted"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReviewRequest(BaseModel):
    """A human review request and its lifecycle state.

    Only pending requests may change; completed, cancelled and timeout are
    terminal.
    """

    id: str
    data: Any = None
    context: dict[str, Any] = Field(default_factory=dict)
    status: ReviewStatus = "pending"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    feedback: Any = None
    reason: str | None = None
    timeout_ms: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def approved(self) -> bool:
        """True when completed with feedback that approves the result.

        Accepted feedback shapes: ``{"approved": true}`` or
        ``{"decision": "approve"}``.
        """
        if self.status != "completed" or not isinstance(self.feedback, dict):
            return False
        if self.feedback.get("approved") is True:
            return True
        decision = self.feedback.get("decision")
        return isinstance(decision, str) and decision.lower() in _APPROVE_DECISIONS

    @property
    def corrected_data(self) -> Any:
        """Replacement result supplied by the reviewer, if any."""
        if isinstance(self.feedback, dict):
            for key in ("corrected_data", "correctedData"):
                if key in self.feedback:
                    return self.feedback[key]
        return None

    @property
    def has_correction(self) -> bool:
        return isinstance(self.feedback, dict) and (
            "corrected_data" in self.feedback or "correctedData" in self.feedback
        )


class FeedbackAnalysis(BaseModel):
    patterns: list[Any] = Field(default_factory=list)
    insights: str = ""
    error: str | None = None

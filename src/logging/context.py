# src/logging/context.py — v1
"""Contextual logging support — attach request_id, module pair and step to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set once per translation request, read by the log formatters.
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_source_module: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "source_module", default=None
)
_target_module: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "target_module", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    request_id: str | None = None
    source_module: str | None = None
    target_module: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        request_id=_request_id.get(),
        source_module=_source_module.get(),
        target_module=_target_module.get(),
        step=_step.get(),
    )


def set_request_context(request_id: str, source_module: str, target_module: str) -> None:
    """Set request-level context (called once per translation)."""
    _request_id.set(request_id)
    _source_module.set(source_module)
    _target_module.set(target_module)


def set_step(step: str | None) -> None:
    """Set the current pipeline step (lookup, derive, execute, validate, review)."""
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _request_id.set(None)
    _source_module.set(None)
    _target_module.set(None)
    _step.set(None)

# src/core/errors.py — v1
"""Typed error taxonomy for the mediation core.

Oracle- and persistence-facing failures are re-raised as one of these types
with the originating message embedded. Review timeouts are not errors: they
are a terminal review state observed through callbacks or status queries.
"""

from __future__ import annotations


class MediatorError(Exception):
    """Base class for all mediation errors."""


class OracleError(MediatorError):
    """The inference oracle call itself failed (transport, provider, quota)."""


class PathParseError(MediatorError):
    """The oracle returned something that is not a usable transformation path."""


class ValidationParseError(MediatorError):
    """The oracle returned something that is not a usable validation verdict."""


class NoStrategyAvailableError(MediatorError):
    """Neither the requested nor the default strategy is registered."""


class InvalidStrategyError(MediatorError):
    """A strategy registration was rejected (bad name or non-callable)."""


class OperationError(MediatorError):
    """An operation declared with on_error="raise" failed."""


class DescriptorNotFoundError(MediatorError):
    """The semantic registry has no descriptor for a module."""


class PersistenceError(MediatorError):
    """A document store operation failed."""


class TransformationInvalidError(MediatorError):
    """Validation failed and no human reviewer approved the result."""

    def __init__(
        self,
        message: str,
        issues: list | None = None,
        review_id: str | None = None,
        review_status: str | None = None,
    ) -> None:
        self.issues = issues or []
        self.review_id = review_id
        self.review_status = review_status
        super().__init__(message)

"""Exceptions raised by the optimization workflow.

Degenerate numeric input (zero total score, non-positive ceiling, NaN) is
never raised; the components fall back to the original value instead. What
remains here are the failures a caller has to react to.
"""

from __future__ import annotations

from typing import Any


class OptimizationError(Exception):
    """Base exception for all optimization workflow errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class PreconditionFailure(OptimizationError):
    """Raised before any computation when the request cannot be honoured."""


class MissingMarginGoalError(PreconditionFailure):
    """Raised when ``propose`` is called without a margin goal."""

    def __init__(self) -> None:
        super().__init__(
            "A margin goal (increase or decrease) must be selected before optimizing"
        )


class CampaignNotFoundError(OptimizationError):
    """Raised when the campaign store has no campaign with the given id."""


class StaleProposalError(OptimizationError):
    """Raised on apply when the proposed ids no longer match the stored lines."""


class InvariantViolationError(OptimizationError):
    """Raised on apply when a proposal fails one of the invariant checks."""

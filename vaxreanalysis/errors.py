"""
Exception types for the re-analysis pipeline.

Data and specification problems are raised before any fitting starts.
Convergence failures keep the partial fit and its diagnostics so the
pipeline can report them. Comparison errors reject invalid rankings.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ReanalysisError(Exception):
    """Base class carrying the model / stage the failure belongs to."""

    kind = "error"

    def __init__(self, message: str, model: Optional[str] = None, stage: Optional[str] = None):
        self.message = message
        self.model = model
        self.stage = stage
        super().__init__(self._format())

    def _format(self) -> str:
        context = [part for part in (self.model, self.stage) if part]
        if context:
            return f"[{' / '.join(context)}] {self.message}"
        return self.message

    def with_context(self, model: Optional[str] = None, stage: Optional[str] = None) -> "ReanalysisError":
        """Fill in missing context in place and return self for re-raising."""
        if model and not self.model:
            self.model = model
        if stage and not self.stage:
            self.stage = stage
        self.args = (self._format(),)
        return self


# =============================================================================
# DATA ERRORS
# =============================================================================

class DataError(ReanalysisError, ValueError):
    kind = "data"


class MissingColumnError(DataError):
    """Required column absent from the input table."""


class OutOfRangeError(DataError):
    """Score outside its closed measurement interval."""


class IncompleteRecordError(DataError):
    """A participant lacks (or duplicates) an item x phase cell."""


# =============================================================================
# SPECIFICATION ERRORS
# =============================================================================

class SpecificationError(ReanalysisError, ValueError):
    kind = "specification"


class IllPosedModelError(SpecificationError):
    """Response values violate the support of the chosen family."""


class UnidentifiableRandomEffectError(SpecificationError):
    """A random-effect grouping has a group with a single observation."""


# =============================================================================
# CONVERGENCE
# =============================================================================

class ConvergenceError(ReanalysisError, RuntimeError):
    """
    Optimizer or sampler did not converge.

    ``fitted`` holds whatever estimates were produced and ``diagnostics``
    the statistics that failed, so the result can still be inspected.
    """

    kind = "convergence"

    def __init__(
        self,
        message: str,
        fitted: Any = None,
        diagnostics: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        self.fitted = fitted
        self.diagnostics = dict(diagnostics or {})
        super().__init__(message, model=model, stage=stage)


# =============================================================================
# COMPARISON ERRORS
# =============================================================================

class ComparisonError(ReanalysisError, ValueError):
    kind = "comparison"


class IncommensurableComparisonError(ComparisonError):
    """Models were fit to different outcome representations."""


class MissingPosteriorError(ComparisonError):
    """LOO requested for a model without posterior draws."""

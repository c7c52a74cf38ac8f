"""Constrained optimization."""

from .alm import (
    AugmentedLagrangianMethod,
    AugmentedLagrangianProblem,
    AugmentedLagrangianResult,
    AugmentedLagrangianSettings,
    ConstrainedProblem,
)

__all__ = [
    "AugmentedLagrangianMethod",
    "AugmentedLagrangianProblem",
    "AugmentedLagrangianResult",
    "AugmentedLagrangianSettings",
    "ConstrainedProblem",
]

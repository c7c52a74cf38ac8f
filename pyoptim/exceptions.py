"""Custom exceptions."""

from typing import Optional

import numpy as np
import numpy.typing as npt


class ProblemCapabilityError(TypeError):
    """Raised when a problem lacks a capability a solver or strategy requires."""

    def __init__(self, message: str, missing: Optional[list] = None) -> None:
        self.message = message
        self.missing = missing or []

    def __str__(self) -> str:
        """Pretty-print error."""
        if not self.missing:
            return self.message
        return f"{self.message} (missing: {', '.join(self.missing)})"


class OptimizationError(Exception):
    """Base class for optimization errors."""

    def __init__(
        self,
        message: str,
        iteration: Optional[int] = None,
        last_iterate: Optional[npt.NDArray[np.float64]] = None,
    ) -> None:
        self.message = message
        self.iteration = iteration
        self.last_iterate = last_iterate

    def __str__(self) -> str:
        """Pretty-print error."""
        if self.iteration is None:
            return self.message
        return f"{self.message} (iteration {self.iteration})"


class EvaluationError(OptimizationError):
    """Raised when a problem callback is evaluated outside its valid domain.

    Problems raise this from `value`, `gradient`, `hessian_vector_product` or `prox`.
    Solvers never retry it: they attach the iteration count and the last valid
    iterate, then re-raise.

    """


class NumericalFailure(OptimizationError):
    """Raised when NaN or Inf shows up in a gradient, direction or step."""

    def __init__(
        self,
        message: str,
        quantity: str,
        iteration: Optional[int] = None,
        last_iterate: Optional[npt.NDArray[np.float64]] = None,
    ) -> None:
        super().__init__(message, iteration=iteration, last_iterate=last_iterate)
        self.quantity = quantity

    def __str__(self) -> str:
        """Pretty-print error."""
        return f"{super().__str__()} [non-finite {self.quantity}]"


class NewtonStepError(Exception):
    """Raised when we cannot calculate Newton step."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __str__(self) -> str:
        """Pretty-print error."""
        return self.message


class LineSearchFailure(Exception):
    """Raised when a line search cannot find an acceptable step."""

    def __init__(self, message: str, step: Optional[float] = None) -> None:
        self.message = message
        self.step = step

    def __str__(self) -> str:
        """Pretty-print error."""
        if self.step is None:
            return self.message
        return f"{self.message} (last step = {self.step:.03g})"


class InvalidDescentDirectionError(LineSearchFailure):
    """Raised when the search direction is not a descent direction.

    Usually this is because a quasi-Newton or Newton model was badly conditioned and
    there was some numerical issue.

    """

    def __init__(self, message: str, directional_derivative: float) -> None:
        self.message = message
        self.step = None
        self.directional_derivative = directional_derivative

    def __str__(self) -> str:
        """Pretty-print error."""
        msg = (
            f"{self.message} (∇f^T d = {self.directional_derivative} >= 0, "
            "but should be < 0)"
        )
        return msg


class SufficientDecreaseError(LineSearchFailure):
    """Raised when backtracking ran out of trials without sufficient decrease.

    Usually this happens because the linear model doesn't hold even for small step
    sizes, which indicates severe curvature or an inaccurate gradient.

    """

    def __init__(
        self,
        message: str,
        step: float,
        required_improvement: float,
        actual_improvement: float,
    ) -> None:
        self.message = message
        self.step = step
        self.required_improvement = required_improvement
        self.actual_improvement = actual_improvement

    def __str__(self) -> str:
        """Pretty-print error."""
        msg = (
            f"{self.message} (step = {self.step:.03g}; required improvement >= "
            f"{self.required_improvement:.03g}; actual improvement = "
            f"{self.actual_improvement:.03g})"
        )
        return msg


class IntervalCollapseError(LineSearchFailure):
    """Raised when the bracketing interval shrinks without satisfying Wolfe."""

    def __init__(self, message: str, step: float, interval_width: float) -> None:
        self.message = message
        self.step = step
        self.interval_width = interval_width

    def __str__(self) -> str:
        """Pretty-print error."""
        return (
            f"{self.message} (step = {self.step:.03g}; "
            f"interval width = {self.interval_width:.03g})"
        )


class SolverFailedError(OptimizationError):
    """Raised by `SolverResult.raise_for_status` for unsuccessful runs."""

    def __init__(self, message: str, result) -> None:
        super().__init__(
            message, iteration=result.nits, last_iterate=result.solution
        )
        self.result = result

    def __str__(self) -> str:
        """Pretty-print error."""
        return f"{self.message} (status = {self.result.status.name})"

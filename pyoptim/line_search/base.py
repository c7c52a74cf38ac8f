r"""Line search base classes.

A line search works with phi(t) = f(x + t * d) for a descent direction d and
returns a step t satisfying some acceptance condition. Every line search in this
package:
- refuses directions with g^T * d >= 0,
- clips the initial trial step into [min_step, max_step],
- never modifies the problem or its arguments,
- treats a non-finite trial objective as a rejected trial,
- raises LineSearchFailure (or a subclass) when no acceptable step turns up within
  its trial budget. With failure_policy="accept_best", it instead returns the best
  trial seen, flagged with success=False, when there is one.

"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal, Optional, Tuple

import numpy as np
import numpy.typing as npt

from ..exceptions import InvalidDescentDirectionError, LineSearchFailure
from ..problem import Capability

SQRT_EPS = float(np.sqrt(np.finfo(np.float64).eps))

FailurePolicy = Literal["raise", "accept_best"]


@dataclass
class LineSearchArgs:
    r"""Arguments to a line search.

    Parameters
    ----------
     x : vector
        Current point.
     f : float
        Objective at x.
     g : vector
        Gradient at x (gradient of the smooth part, for proximal problems).
     direction : vector
        Search direction. Need not be normalized.
     step : float, default=1.0
        Initial trial step.
     proximal : bool, default=False
        If True, trial points are prox(x + t * d, t) rather than x + t * d.
     smooth_f : float, optional
        Smooth part of the objective at x. Set for proximal steps taken from an
        extrapolated point, where f may be +inf (x outside the domain of the
        nonsmooth term). Backtracking searches then accept x+ on the upper bound
           f(x+) <= smooth_f + g^T * (x+ - x) + \| x+ - x \|_2^2 / (2 * t)
        instead of on a decrease in F.

    """

    x: npt.NDArray[np.float64]
    f: float
    g: npt.NDArray[np.float64]
    direction: npt.NDArray[np.float64]
    step: float = 1.0
    proximal: bool = False
    smooth_f: Optional[float] = None

    @property
    def directional_derivative(self) -> float:
        """Calculate g^T * d."""
        return float(np.dot(self.g, self.direction))


@dataclass
class LineSearchResult:
    """Wrapper for the result of a line search.

    Parameters
    ----------
     step : float
        Accepted step.
     x : vector
        New point.
     f : float
        Objective at the new point.
     g : vector
        Gradient at the new point.
     n_evals : int
        Number of objective evaluations.
     success : bool, default=True
        False if the acceptance condition was not met and the best trial was
        returned instead (failure_policy="accept_best").

    """

    step: float
    x: npt.NDArray[np.float64]
    f: float
    g: npt.NDArray[np.float64]
    n_evals: int
    success: bool = True


class LineSearch(ABC):
    """Base class for line searches.

    Parameters
    ----------
     min_step : float, default=sqrt(machine epsilon)
        Smallest step considered.
     max_step : float, default=100.0
        Largest step considered.
     failure_policy : {"raise", "accept_best"}, default="raise"
        What to do when the trial budget runs out. See module docstring.

    """

    required_capabilities: Tuple[Capability, ...] = (
        Capability.VALUE,
        Capability.GRADIENT,
    )
    supports_prox: bool = False

    def __init__(
        self,
        min_step: float = SQRT_EPS,
        max_step: float = 1e2,
        failure_policy: FailurePolicy = "raise",
    ) -> None:
        if not 0 < min_step <= max_step:
            raise ValueError("Need 0 < min_step <= max_step.")
        if failure_policy not in ("raise", "accept_best"):
            raise ValueError(f"Unknown failure_policy: {failure_policy}")
        self.min_step = min_step
        self.max_step = max_step
        self.failure_policy = failure_policy

    def reset(self, problem: Any, f0: float) -> None:
        """Prepare for a new solver run. Stateless line searches ignore this."""

    @abstractmethod
    def search(self, problem: Any, args: LineSearchArgs) -> LineSearchResult:
        """Find an acceptable step along args.direction.

        Parameters
        ----------
         problem : problem
            Offers value and gradient (and prox, if args.proximal).
         args : LineSearchArgs
            Current point and direction.

        Returns
        -------
         res : LineSearchResult
            Accepted step and new point.

        Raises
        ------
         LineSearchFailure
            If no acceptable step is found.

        """

    def _initial_step(self, args: LineSearchArgs) -> float:
        if not np.isfinite(args.step) or args.step <= 0:
            raise LineSearchFailure("Initial step must be positive and finite.")
        return min(max(args.step, self.min_step), self.max_step)

    def _check_descent(self, args: LineSearchArgs) -> float:
        dg = args.directional_derivative
        if not dg < 0:
            raise InvalidDescentDirectionError(
                message="Search direction was not a descent direction.",
                directional_derivative=dg,
            )
        return dg

    def _trial_point(
        self, problem: Any, args: LineSearchArgs, step: float
    ) -> npt.NDArray[np.float64]:
        x_new = args.x + step * args.direction
        if args.proximal:
            return problem.prox(x_new, step)
        return x_new

    def _fallback(
        self,
        problem: Any,
        best: Optional[Tuple[float, npt.NDArray[np.float64], float]],
        error: LineSearchFailure,
        n_evals: int,
    ) -> LineSearchResult:
        """Apply the failure policy."""
        if self.failure_policy == "accept_best" and best is not None:
            step, x_new, f_new = best
            self._accept(f_new)
            return LineSearchResult(
                step=step,
                x=x_new,
                f=f_new,
                g=problem.gradient(x_new),
                n_evals=n_evals,
                success=False,
            )
        raise error

    def _accept(self, f_new: float) -> None:
        """Hook called with the objective at every accepted point."""


class FixedStepLineSearch(LineSearch):
    """Take the proposed step without testing it.

    Used when an accelerator or step scheduler alone controls the step length.

    """

    supports_prox = True

    def search(self, problem: Any, args: LineSearchArgs) -> LineSearchResult:
        """Step to x + t * d (or its prox)."""
        step = self._initial_step(args)
        x_new = self._trial_point(problem, args, step)
        return LineSearchResult(
            step=step,
            x=x_new,
            f=problem.value(x_new),
            g=problem.gradient(x_new),
            n_evals=1,
        )

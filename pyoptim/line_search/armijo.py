"""Backtracking line search on the Armijo condition."""

from typing import Any, Optional, Tuple

import numpy as np
import numpy.typing as npt

from ..exceptions import SufficientDecreaseError
from ..problem import split_value
from .base import SQRT_EPS, FailurePolicy, LineSearch, LineSearchArgs, LineSearchResult


class ArmijoLineSearch(LineSearch):
    r"""Backtracking line search.

    Starting from the initial step, multiply by `shrink` until
       f(x + t * d) <= f(x) + c1 * t * g^T * d.
    In proximal mode the trial point is x+ = prox(x + t * d, t) and the condition is
       F(x+) <= F(x) - (c1 / t) * \| x+ - x \|_2^2,
    which reduces to the Armijo condition when d = -g and prox is the identity.
    When the search starts from an extrapolated point (args.smooth_f is set), the
    test is instead the upper bound on the smooth part
       f(x+) <= f(x) + g^T * (x+ - x) + \| x+ - x \|_2^2 / (2 * t),
    which holds for every t <= 1 / L when the gradient of f is L-Lipschitz.

    Parameters
    ----------
     c1 : float, default=1e-4
        Sufficient decrease parameter, in (0, 1).
     shrink : float, default=0.5
        Factor by which the step is reduced after a rejected trial, in (0, 1).
     max_trials : int, default=30
        Maximum number of objective evaluations.
     min_step, max_step, failure_policy
        See LineSearch.

    """

    supports_prox = True

    def __init__(
        self,
        c1: float = 1e-4,
        shrink: float = 0.5,
        max_trials: int = 30,
        min_step: float = SQRT_EPS,
        max_step: float = 1e2,
        failure_policy: FailurePolicy = "raise",
    ) -> None:
        super().__init__(
            min_step=min_step, max_step=max_step, failure_policy=failure_policy
        )
        if not 0 < c1 < 1:
            raise ValueError("c1 must be in (0, 1).")
        if not 0 < shrink < 1:
            raise ValueError("shrink must be in (0, 1).")
        if max_trials < 1:
            raise ValueError("max_trials must be at least 1.")
        self.c1 = c1
        self.shrink = shrink
        self.max_trials = max_trials

    def _reference_value(self, args: LineSearchArgs) -> float:
        """Value the trial objective is compared against."""
        return args.f

    def _required_decrease(
        self,
        args: LineSearchArgs,
        x_new: npt.NDArray[np.float64],
        step: float,
        dg: float,
    ) -> float:
        if args.proximal:
            dx = x_new - args.x
            return self.c1 * np.dot(dx, dx) / step
        return -self.c1 * step * dg

    def _upper_bound_gap(
        self,
        args: LineSearchArgs,
        x_new: npt.NDArray[np.float64],
        step: float,
        smooth_new: float,
    ) -> float:
        """Slack in the quadratic upper bound on the smooth part at x_new."""
        dx = x_new - args.x
        bound = args.smooth_f + np.dot(args.g, dx) + np.dot(dx, dx) / (2.0 * step)
        return bound - smooth_new

    def search(self, problem: Any, args: LineSearchArgs) -> LineSearchResult:
        """Backtrack until sufficient decrease."""
        dg = self._check_descent(args)
        reference = self._reference_value(args)
        step = self._initial_step(args)
        upper_bound_test = args.proximal and args.smooth_f is not None

        best: Optional[Tuple[float, npt.NDArray[np.float64], float]] = None
        required = actual = np.nan
        n_evals = 0
        for _ in range(self.max_trials):
            x_new = self._trial_point(problem, args, step)
            if upper_bound_test:
                smooth_new, f_new = split_value(problem, x_new)
            else:
                f_new = problem.value(x_new)
            n_evals += 1
            if np.isfinite(f_new):
                if upper_bound_test:
                    required = 0.0
                    actual = self._upper_bound_gap(args, x_new, step, smooth_new)
                else:
                    required = self._required_decrease(args, x_new, step, dg)
                    actual = reference - f_new
                if actual >= required:
                    self._accept(f_new)
                    return LineSearchResult(
                        step=step,
                        x=x_new,
                        f=f_new,
                        g=problem.gradient(x_new),
                        n_evals=n_evals,
                    )
                if f_new < args.f and (best is None or f_new < best[2]):
                    best = (step, x_new, f_new)

            if step <= self.min_step:
                break
            step = max(step * self.shrink, self.min_step)

        error = SufficientDecreaseError(
            message="Small step sizes did not adequately decrease objective.",
            step=step,
            required_improvement=required,
            actual_improvement=actual,
        )
        return self._fallback(problem, best, error, n_evals)

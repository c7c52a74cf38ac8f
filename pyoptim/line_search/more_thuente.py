r"""Line search of Moré and Thuente.

Finds a step satisfying the strong Wolfe conditions,
   f(x + t * d) <= f(x) + c1 * t * g^T * d,
   | \nabla f(x + t * d)^T * d | <= c2 * | g^T * d |,
by safeguarded cubic and quadratic interpolation on an interval of uncertainty.

Reference: Moré, J. J. and Thuente, D. J., Line Search Algorithms with Guaranteed
Sufficient Decrease, ACM Trans. Math. Softw. 20(3), 1994. The interval logic below
follows the authors' MINPACK-2 routines.

"""

from typing import Any, Optional, Tuple

import numpy as np
import numpy.typing as npt

from ..exceptions import IntervalCollapseError, LineSearchFailure
from .base import SQRT_EPS, FailurePolicy, LineSearch, LineSearchArgs, LineSearchResult

XTRAPL = 1.1
XTRAPU = 4.0


def _cubic_gamma(theta: float, s: float, da: float, db: float) -> float:
    return s * np.sqrt(max(0.0, (theta / s) ** 2 - (da / s) * (db / s)))


def safeguarded_step(
    stx: float,
    fx: float,
    dx: float,
    sty: float,
    fy: float,
    dy: float,
    stp: float,
    fp: float,
    dp: float,
    brackt: bool,
    stpmin: float,
    stpmax: float,
) -> Tuple[float, float, float, float, float, float, float, bool]:
    """Compute a safeguarded trial step and update the interval of uncertainty.

    (stx, fx, dx) is the best step so far, (sty, fy, dy) the other endpoint and
    (stp, fp, dp) the current trial, each given as (step, value, derivative).

    Returns
    -------
     stx, fx, dx, sty, fy, dy : float
        Updated endpoints.
     stp : float
        Next trial step.
     brackt : bool
        Whether a minimizer has been bracketed.

    """
    sgnd = dp * np.sign(dx)

    if fp > fx:
        # Higher function value: the minimum is bracketed.
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        gamma = _cubic_gamma(theta, s, dx, dp)
        if stp < stx:
            gamma = -gamma
        p = (gamma - dx) + theta
        q = ((gamma - dx) + gamma) + dp
        stpc = stx + (p / q) * (stp - stx)
        stpq = stx + ((dx / ((fx - fp) / (stp - stx) + dx)) / 2.0) * (stp - stx)
        if abs(stpc - stx) < abs(stpq - stx):
            stpf = stpc
        else:
            stpf = stpc + (stpq - stpc) / 2.0
        brackt = True
    elif sgnd < 0:
        # Derivatives have opposite sign: the minimum is bracketed.
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        gamma = _cubic_gamma(theta, s, dx, dp)
        if stp > stx:
            gamma = -gamma
        p = (gamma - dp) + theta
        q = ((gamma - dp) + gamma) + dx
        stpc = stp + (p / q) * (stx - stp)
        stpq = stp + (dp / (dp - dx)) * (stx - stp)
        if abs(stpc - stp) > abs(stpq - stp):
            stpf = stpc
        else:
            stpf = stpq
        brackt = True
    elif abs(dp) < abs(dx):
        # Same sign, derivative magnitude decreases.
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        gamma = _cubic_gamma(theta, s, dx, dp)
        if stp > stx:
            gamma = -gamma
        p = (gamma - dp) + theta
        q = (gamma + (dx - dp)) + gamma
        r = p / q
        if r < 0 and gamma != 0:
            stpc = stp + r * (stx - stp)
        elif stp > stx:
            stpc = stpmax
        else:
            stpc = stpmin
        stpq = stp + (dp / (dp - dx)) * (stx - stp)

        if brackt:
            if abs(stpc - stp) < abs(stpq - stp):
                stpf = stpc
            else:
                stpf = stpq
            if stp > stx:
                stpf = min(stp + 0.66 * (sty - stp), stpf)
            else:
                stpf = max(stp + 0.66 * (sty - stp), stpf)
        else:
            if abs(stpc - stp) > abs(stpq - stp):
                stpf = stpc
            else:
                stpf = stpq
            stpf = min(max(stpf, stpmin), stpmax)
    else:
        # Same sign, derivative magnitude does not decrease.
        if brackt:
            theta = 3.0 * (fp - fy) / (sty - stp) + dy + dp
            s = max(abs(theta), abs(dy), abs(dp))
            gamma = _cubic_gamma(theta, s, dy, dp)
            if stp > sty:
                gamma = -gamma
            p = (gamma - dp) + theta
            q = ((gamma - dp) + gamma) + dy
            stpf = stp + (p / q) * (sty - stp)
        elif stp > stx:
            stpf = stpmax
        else:
            stpf = stpmin

    if fp > fx:
        sty, fy, dy = stp, fp, dp
    else:
        if sgnd < 0:
            sty, fy, dy = stx, fx, dx
        stx, fx, dx = stp, fp, dp

    return stx, fx, dx, sty, fy, dy, stpf, brackt


class MoreThuenteLineSearch(LineSearch):
    """Strong Wolfe line search.

    Needs both values and gradients at trial points. Does not support proximal
    problems.

    Parameters
    ----------
     c1 : float, default=1e-4
        Sufficient decrease parameter.
     c2 : float, default=0.9
        Curvature parameter. Need 0 < c1 < c2 < 1.
     xtol : float, default=1e-10
        Relative width below which the interval of uncertainty is considered
        collapsed.
     max_trials : int, default=20
        Maximum number of function evaluations.
     min_step, max_step, failure_policy
        See LineSearch. With failure_policy="accept_best", the returned step is the
        trial with the lowest objective among those satisfying sufficient decrease.

    """

    def __init__(
        self,
        c1: float = 1e-4,
        c2: float = 0.9,
        xtol: float = 1e-10,
        max_trials: int = 20,
        min_step: float = SQRT_EPS,
        max_step: float = 1e2,
        failure_policy: FailurePolicy = "raise",
    ) -> None:
        super().__init__(
            min_step=min_step, max_step=max_step, failure_policy=failure_policy
        )
        if not 0 < c1 < c2 < 1:
            raise ValueError("Need 0 < c1 < c2 < 1.")
        if xtol <= 0:
            raise ValueError("xtol must be positive.")
        if max_trials < 1:
            raise ValueError("max_trials must be at least 1.")
        self.c1 = c1
        self.c2 = c2
        self.xtol = xtol
        self.max_trials = max_trials

    def search(self, problem: Any, args: LineSearchArgs) -> LineSearchResult:
        """Search for a step satisfying the strong Wolfe conditions."""
        if args.proximal:
            raise LineSearchFailure(
                "Moré-Thuente line search does not support proximal steps."
            )
        ginit = self._check_descent(args)
        finit = args.f
        gtest = self.c1 * ginit
        stpmin = self.min_step
        stpmax = self.max_step
        stp = self._initial_step(args)

        brackt = False
        stage = 1
        width = stpmax - stpmin
        width1 = 2.0 * width
        stx, fx, gx = 0.0, finit, ginit
        sty, fy, gy = 0.0, finit, ginit
        stmin, stmax = 0.0, stp + XTRAPU * stp

        best: Optional[Tuple[float, npt.NDArray[np.float64], float]] = None
        n_evals = 0
        error: LineSearchFailure = LineSearchFailure(
            "Moré-Thuente line search exceeded its trial budget."
        )
        for _ in range(self.max_trials):
            x_new = args.x + stp * args.direction
            f = problem.value(x_new)
            n_evals += 1
            g_new = problem.gradient(x_new) if np.isfinite(f) else None
            g = np.dot(g_new, args.direction) if g_new is not None else np.nan
            if not (np.isfinite(f) and np.isfinite(g)):
                # Pull back toward the best point and cap further extrapolation.
                stpmax = max(stp, stpmin)
                stmax = min(stmax, stpmax)
                stp = max(stx + 0.5 * (stp - stx), stpmin)
                error = LineSearchFailure(
                    "Objective was not finite at any trial step.", step=stp
                )
                continue

            ftest = finit + stp * gtest
            if f <= ftest and (best is None or f < best[2]):
                best = (stp, x_new, f)

            if f <= ftest and abs(g) <= self.c2 * (-ginit):
                return LineSearchResult(
                    step=stp, x=x_new, f=f, g=g_new, n_evals=n_evals
                )

            if stage == 1 and f <= ftest and g >= 0:
                stage = 2

            if brackt and (stp <= stmin or stp >= stmax):
                error = LineSearchFailure(
                    "Rounding errors prevent further progress.", step=stp
                )
                break
            if stp == stpmax and f <= ftest and g <= gtest:
                error = LineSearchFailure("Step reached the upper bound.", step=stp)
                break
            if stp == stpmin and (f > ftest or g >= gtest):
                error = LineSearchFailure("Step reached the lower bound.", step=stp)
                break

            if stage == 1 and fx >= f > ftest:
                # Use the modified function psi(t) = phi(t) - t * gtest until a step
                # with nonnegative derivative and sufficient decrease turns up.
                fm = f - stp * gtest
                fxm = fx - stx * gtest
                fym = fy - sty * gtest
                gm = g - gtest
                gxm = gx - gtest
                gym = gy - gtest
                stx, fxm, gxm, sty, fym, gym, stp, brackt = safeguarded_step(
                    stx, fxm, gxm, sty, fym, gym, stp, fm, gm, brackt, stmin, stmax
                )
                fx = fxm + stx * gtest
                fy = fym + sty * gtest
                gx = gxm + gtest
                gy = gym + gtest
            else:
                stx, fx, gx, sty, fy, gy, stp, brackt = safeguarded_step(
                    stx, fx, gx, sty, fy, gy, stp, f, g, brackt, stmin, stmax
                )

            if brackt:
                # Bisect if the interval did not shrink enough.
                if abs(sty - stx) >= 0.66 * width1:
                    stp = stx + 0.5 * (sty - stx)
                width1 = width
                width = abs(sty - stx)
                stmin, stmax = min(stx, sty), max(stx, sty)
            else:
                stmin = stp + XTRAPL * (stp - stx)
                stmax = stp + XTRAPU * (stp - stx)

            stp = min(max(stp, stpmin), stpmax)

            if brackt and stmax - stmin <= self.xtol * stmax:
                error = IntervalCollapseError(
                    message="Interval of uncertainty collapsed before the strong "
                    "Wolfe conditions were met.",
                    step=stp,
                    interval_width=stmax - stmin,
                )
                break

        return self._fallback(problem, best, error, n_evals)

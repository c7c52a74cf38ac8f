"""BFGS with a dense inverse Hessian approximation."""

from typing import Any, Optional

import numpy as np
import numpy.typing as npt

from ..line_search import LineSearch
from ..logger import IterationLogger
from ..optimization import IterateState, LineSearchSolver, OptimizationSettings

EPS = np.finfo(np.float64).eps


def has_sufficient_curvature(
    s: npt.NDArray[np.float64], y: npt.NDArray[np.float64]
) -> bool:
    """Check s^T * y > eps * |s| * |y|, the condition for a safe secant update."""
    sy = np.dot(s, y)
    return bool(np.isfinite(sy)) and sy > EPS * np.linalg.norm(s) * np.linalg.norm(y)


class BFGS(LineSearchSolver):
    r"""BFGS quasi-Newton method.

    Keeps an approximation H of the inverse Hessian and uses d = -H * g. After each
    step, with s = x_{k+1} - x_k, y = g_{k+1} - g_k and rho = 1 / s^T * y,
       H <- (I - rho * s * y^T) * H * (I - rho * y * s^T) + rho * s * s^T.
    H starts as the identity and is rescaled to (s^T * y / y^T * y) * I just before
    the first update (Nocedal and Wright, eq. 6.20). Updates are skipped when the
    curvature condition fails. If d is not a descent direction (which can only
    happen through rounding), H is reset and we use d = -g.

    The first step is scaled so that the first trial moves x by at most 1.

    Needs a line search satisfying the Wolfe conditions to keep H positive definite;
    the default is Moré-Thuente.

    """

    def __init__(
        self,
        problem: Any,
        line_search: Optional[LineSearch] = None,
        settings: Optional[OptimizationSettings] = None,
        logger: Optional[IterationLogger] = None,
    ) -> None:
        """Initialize solver."""
        super().__init__(problem, line_search=line_search, settings=settings, logger=logger)
        self.H: Optional[npt.NDArray[np.float64]] = None
        self.n_skipped = 0

    def start(self, state: IterateState) -> None:
        """Reset H to the identity."""
        super().start(state)
        self.H = np.eye(state.x.shape[0])
        self._scaled = False
        self.n_skipped = 0

    def search_direction(
        self, state: IterateState, g: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Calculate -H * g."""
        d = -self.H @ g
        if not np.dot(d, g) < 0:
            self.H = np.eye(g.shape[0])
            self._scaled = False
            d = -g
        return d

    def initial_step(self, state: IterateState) -> float:
        """Scale the very first step by 1 / |g|."""
        if not self._scaled:
            return min(self.settings.initial_step, 1.0 / np.linalg.norm(state.g))
        return self.settings.initial_step

    def update(self, old: IterateState, new: IterateState) -> None:
        """Apply the BFGS update."""
        s = new.x - old.x
        y = new.g - old.g
        if not has_sufficient_curvature(s, y):
            self.n_skipped += 1
            return

        sy = np.dot(s, y)
        if not self._scaled:
            self.H = (sy / np.dot(y, y)) * np.eye(s.shape[0])
            self._scaled = True

        rho = 1.0 / sy
        Hy = self.H @ y
        self.H += (rho * rho * np.dot(y, Hy) + rho) * np.outer(s, s) - rho * (
            np.outer(s, Hy) + np.outer(Hy, s)
        )

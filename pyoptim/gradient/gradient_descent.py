"""Gradient descent, optionally proximal, accelerated and scheduled."""

from typing import Any, Optional, Tuple

import numpy as np
import numpy.typing as npt

from ..line_search import FixedStepLineSearch, LineSearch
from ..logger import IterationLogger
from ..optimization import (
    IterateState,
    LineSearchSolver,
    OptimizationSettings,
    require_finite,
)
from ..problem import split_value, with_prox
from .accelerators import Accelerator
from .schedulers import StepHistory, StepScheduler


class GradientDescent(LineSearchSolver):
    r"""Gradient descent.

    At each iteration:
    1. the accelerator picks the base point y (x_k, or an extrapolated point),
    2. the raw gradient at y is turned into a direction d by the accelerator,
    3. the scheduler (or the accelerator's preferred step) proposes a step t,
    4. the line search accepts a step from y along d.

    In proximal mode the problem is wrapped with `with_prox`, trial points are
    prox(y + t * d, t), and the stationarity measure is the norm of the gradient
    mapping, | x - prox(x - g, 1) |.

    Parameters
    ----------
     problem : problem
        Needs value and gradient (and prox, in proximal mode; problems without one
        get the identity).
     line_search : LineSearch, optional
        Defaults to FixedStepLineSearch with min_step at the smallest normal float,
        so the scheduler alone sets the step.
     accelerator : Accelerator, optional
        Defaults to plain steepest descent.
     scheduler : StepScheduler, optional
        Defaults to a constant step.
     settings, logger
        See Solver.
     proximal : bool, default=False
        Use proximal steps.

    """

    def __init__(
        self,
        problem: Any,
        line_search: Optional[LineSearch] = None,
        accelerator: Optional[Accelerator] = None,
        scheduler: Optional[StepScheduler] = None,
        settings: Optional[OptimizationSettings] = None,
        logger: Optional[IterationLogger] = None,
        proximal: bool = False,
    ) -> None:
        """Initialize solver."""
        if proximal:
            problem = with_prox(problem)
        super().__init__(problem, line_search=line_search, settings=settings, logger=logger)
        if proximal and not self.line_search.supports_prox:
            raise ValueError(
                f"{type(self.line_search).__name__} does not support proximal steps."
            )
        self.proximal = proximal
        self.accelerator = accelerator if accelerator is not None else Accelerator()
        self.scheduler = scheduler if scheduler is not None else StepScheduler()
        self._step = self.settings.initial_step

    def default_line_search(self) -> LineSearch:
        """Take the scheduled step as is, however small."""
        return FixedStepLineSearch(min_step=np.finfo(np.float64).tiny)

    def start(self, state: IterateState) -> None:
        """Reset line search, accelerator and scheduler."""
        super().start(state)
        self.accelerator.reset(state.x)
        if self.accelerator.preferred_step is not None:
            self._step = self.accelerator.preferred_step
        else:
            self._step = self.settings.initial_step
        self.scheduler.reset(self._step)

    def stationarity(self, state: IterateState) -> float:
        """Calculate gradient (mapping) norm."""
        if not self.proximal:
            return super().stationarity(state)
        return float(np.linalg.norm(state.x - self.problem.prox(state.x - state.g, 1.0)))

    def base_point(
        self, state: IterateState
    ) -> Tuple[npt.NDArray[np.float64], float, npt.NDArray[np.float64], Optional[float]]:
        """Evaluate at the accelerator's lookahead point.

        In proximal mode the lookahead point may lie outside the domain of the
        nonsmooth term, so F there may be +inf. Only the smooth part has to be finite.

        """
        y = self.accelerator.lookahead(state)
        if y is state.x:
            return state.x, state.f, state.g, None

        g_y = self.problem.gradient(y)
        require_finite(g_y, "gradient")
        if not self.proximal:
            f_y = self.problem.value(y)
            require_finite(f_y, "objective")
            return y, f_y, g_y, None

        smooth_y, f_y = split_value(self.problem, y)
        require_finite(smooth_y, "objective")
        return y, f_y, g_y, smooth_y

    def search_direction(
        self, state: IterateState, g: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Let the accelerator transform the gradient."""
        return self.accelerator.apply(g, state)

    def initial_step(self, state: IterateState) -> float:
        """Ask the scheduler."""
        self._step = self.scheduler.next_step(
            StepHistory(iteration=state.iteration, step=self._step, s=state.s, y=state.y)
        )
        return self._step

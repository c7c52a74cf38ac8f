"""Limited-memory BFGS."""

from typing import Any, Optional

import numpy as np
import numpy.typing as npt

from ..history import HistoryBuffer, two_loop_recursion
from ..line_search import LineSearch
from ..logger import IterationLogger
from ..optimization import IterateState, LineSearchSolver, OptimizationSettings
from .bfgs import has_sufficient_curvature


class LBFGS(LineSearchSolver):
    """L-BFGS quasi-Newton method.

    Stores the last `memory` curvature pairs in a HistoryBuffer and computes the
    direction with the two-loop recursion, in O(n * memory) time and memory. Pairs
    failing the curvature condition are not stored. If the direction is not a descent
    direction, the history is cleared and we use -g.

    Parameters
    ----------
     problem : problem
        Needs value and gradient.
     memory : int, default=10
        Number of pairs kept.
     line_search : LineSearch, optional
        Defaults to Moré-Thuente.
     settings, logger
        See Solver.

    """

    def __init__(
        self,
        problem: Any,
        memory: int = 10,
        line_search: Optional[LineSearch] = None,
        settings: Optional[OptimizationSettings] = None,
        logger: Optional[IterationLogger] = None,
    ) -> None:
        """Initialize solver."""
        if memory < 1:
            raise ValueError("memory must be at least 1.")
        super().__init__(problem, line_search=line_search, settings=settings, logger=logger)
        self.memory = memory
        self.history: Optional[HistoryBuffer] = None
        self.n_skipped = 0

    def start(self, state: IterateState) -> None:
        """Allocate an empty history."""
        super().start(state)
        self.history = HistoryBuffer(self.memory, state.x.shape[0])
        self.n_skipped = 0

    def search_direction(
        self, state: IterateState, g: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Run the two-loop recursion."""
        d = two_loop_recursion(self.history, g)
        if not np.dot(d, g) < 0:
            self.history.clear()
            d = -g
        return d

    def initial_step(self, state: IterateState) -> float:
        """Scale the step by 1 / |g| while the history is empty."""
        if len(self.history) == 0:
            return min(self.settings.initial_step, 1.0 / np.linalg.norm(state.g))
        return self.settings.initial_step

    def update(self, old: IterateState, new: IterateState) -> None:
        """Store the new curvature pair."""
        s = new.x - old.x
        y = new.g - old.g
        if not has_sufficient_curvature(s, y):
            self.n_skipped += 1
            return
        self.history.append(s, y)

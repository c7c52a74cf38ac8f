"""Base optimization classes."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import numpy.typing as npt
from matplotlib.axes import Axes

from .exceptions import (
    EvaluationError,
    LineSearchFailure,
    NumericalFailure,
    SolverFailedError,
)
from .line_search import LineSearch, LineSearchArgs, MoreThuenteLineSearch
from .logger import IterationLogger, IterationRecord, PrintLogger
from .problem import Capability, require_capabilities


@dataclass
class OptimizationSettings:
    """Optimization settings.

    Parameters
    ----------
    gradient_tolerance : float, default=1e-6
        We stop as soon as the norm of the gradient (or, for proximal methods, the
        gradient mapping) falls below this threshold.
    objective_tolerance : float, default=1e-12
        Threshold on the relative change in objective, |f_k - f_{k-1}| / (|f_{k-1}| +
        1). Used together with `step_tolerance`: we only stop when both the objective
        and the iterate have stalled.
    step_tolerance : float, default=1e-12
        Threshold on |x_k - x_{k-1}|.
    max_iterations : int, default=500
        Maximum number of outer iterations. Hitting it is reported as a status, not
        an error.
    initial_step : float, default=1.0
        Initial trial step passed to the line search at each iteration. Solvers with
        their own step heuristics (quasi-Newton methods on the first iteration, step
        schedulers) override it.
    verbose : bool, default=False
        If True, print status along with how long it took to execute each step.

    """

    gradient_tolerance: float = 1e-6
    objective_tolerance: float = 1e-12
    step_tolerance: float = 1e-12
    max_iterations: int = 500
    initial_step: float = 1.0
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.gradient_tolerance < 0:
            raise ValueError("gradient_tolerance must be non-negative.")
        if self.objective_tolerance < 0:
            raise ValueError("objective_tolerance must be non-negative.")
        if self.step_tolerance < 0:
            raise ValueError("step_tolerance must be non-negative.")
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative.")
        if not self.initial_step > 0:
            raise ValueError("initial_step must be positive.")


class SolverStatus(Enum):
    """Solver status.

    A solver starts INITIALIZED, moves to RUNNING when `solve` is called, and ends
    in exactly one of the remaining states.

    """

    INITIALIZED = "initialized"
    RUNNING = "running"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    LINE_SEARCH_FAILED = "line_search_failed"
    NUMERICAL_FAILURE = "numerical_failure"
    CANCELLED = "cancelled"
    EVALUATION_FAILED = "evaluation_failed"

    @property
    def is_terminal(self) -> bool:
        """Whether the run is over."""
        return self not in (SolverStatus.INITIALIZED, SolverStatus.RUNNING)


STATUS_MESSAGES = {
    SolverStatus.CONVERGED: "Optimization converged to the desired tolerance.",
    SolverStatus.MAX_ITERATIONS_REACHED: "Maximum number of iterations reached.",
    SolverStatus.CANCELLED: "Optimization was cancelled by the callback.",
}


@dataclass
class OptimizationResult:
    """Wrapper for generic optimization result."""

    solution: npt.NDArray[np.float64]


@dataclass
class SolverResult(OptimizationResult):
    """Wrapper for the results of an unconstrained solver.

    Parameters
    ----------
     solution : vector
        The last valid iterate.
     objective_value : float
        Objective value at the solution.
     gradient_norm : float
        Norm of the gradient (or gradient mapping) at the solution.
     nits : int
        Number of completed iterations.
     status : SolverStatus
        Terminal status.
     message : str
        Summary of result.
     objective_values, gradient_norms : List[float]
        Objective value and gradient norm at each iterate, starting with x0.

    """

    objective_value: float
    gradient_norm: float
    nits: int
    status: SolverStatus
    message: str
    objective_values: List[float] = field(default_factory=list)
    gradient_norms: List[float] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether the solver converged."""
        return self.status == SolverStatus.CONVERGED

    def raise_for_status(self) -> None:
        """Raise SolverFailedError unless the solver converged."""
        if not self.success:
            raise SolverFailedError(message=self.message, result=self)

    def plot_convergence(self, ax: Optional[Axes] = None) -> Axes:
        """Plot convergence."""
        if ax is None:
            _, ax = plt.subplots()

        ax.plot(
            [ii for ii in range(len(self.gradient_norms))],
            self.gradient_norms,
            marker="o",
        )
        ax.set_yscale("log")
        ax.set_xlabel("Iteration")
        ax.set_ylabel("Gradient Norm")
        return ax


@dataclass
class IterateState:
    """Current iterate, along with the previous one.

    Parameters
    ----------
     x : vector
        Current point.
     f : float
        Objective at x.
     g : vector
        Gradient at x.
     iteration : int, default=0
        Number of completed iterations.
     step : float, default=0.0
        Step accepted by the line search in the last iteration.
     gradient_norm : float
        Stationarity measure at x, filled in by the solver.
     x_prev, f_prev, g_prev : optional
        Previous point, objective and gradient. None at the starting point.

    """

    x: npt.NDArray[np.float64]
    f: float
    g: npt.NDArray[np.float64]
    iteration: int = 0
    step: float = 0.0
    gradient_norm: float = np.nan
    x_prev: Optional[npt.NDArray[np.float64]] = None
    f_prev: Optional[float] = None
    g_prev: Optional[npt.NDArray[np.float64]] = None

    @property
    def s(self) -> Optional[npt.NDArray[np.float64]]:
        """Calculate x_k - x_{k-1}."""
        if self.x_prev is None:
            return None
        return self.x - self.x_prev

    @property
    def y(self) -> Optional[npt.NDArray[np.float64]]:
        """Calculate g_k - g_{k-1}."""
        if self.g_prev is None:
            return None
        return self.g - self.g_prev

    def advance(
        self,
        x: npt.NDArray[np.float64],
        f: float,
        g: npt.NDArray[np.float64],
        step: float,
    ) -> "IterateState":
        """Create the state for the next iterate."""
        return IterateState(
            x=x,
            f=f,
            g=g,
            iteration=self.iteration + 1,
            step=step,
            x_prev=self.x,
            f_prev=self.f,
            g_prev=self.g,
        )

    def record(self) -> IterationRecord:
        """Summarize for loggers and callbacks."""
        return IterationRecord(
            iteration=self.iteration,
            x=self.x,
            f=self.f,
            gradient_norm=self.gradient_norm,
            step_length=self.step,
        )


def require_finite(value: Any, quantity: str) -> None:
    """Raise NumericalFailure if value contains NaN or Inf."""
    if not np.all(np.isfinite(value)):
        raise NumericalFailure(
            message=f"Encountered non-finite {quantity}.", quantity=quantity
        )


class Solver(ABC):
    """Base class for an unconstrained solver.

    Parameters
    ----------
     problem : problem
        Must offer every capability in `required_capabilities`; checked here.
     settings : OptimizationSettings, optional
        Settings.
     logger : IterationLogger, optional
        Receives one record per iteration. Defaults to a PrintLogger when
        settings.verbose is set.

    """

    required_capabilities: Tuple[Capability, ...] = (
        Capability.VALUE,
        Capability.GRADIENT,
    )

    def __init__(
        self,
        problem: Any,
        settings: Optional[OptimizationSettings] = None,
        logger: Optional[IterationLogger] = None,
    ) -> None:
        """Initialize solver."""
        require_capabilities(problem, self.required_capabilities, type(self).__name__)
        self.problem = problem
        if settings is None:
            self.settings: OptimizationSettings = OptimizationSettings()
        else:
            self.settings = settings

        if logger is None and self.settings.verbose:
            logger = PrintLogger()
        self.logger = logger
        self.status = SolverStatus.INITIALIZED

    def solve(
        self,
        x0: npt.NDArray[np.float64],
        callback: Optional[Callable[[IterationRecord], Optional[bool]]] = None,
    ) -> SolverResult:
        """Minimize the objective starting from x0.

        Parameters
        ----------
         x0 : vector
            Initial guess. Not modified.
         callback : Callable, optional
            Called with an IterationRecord before each iteration. Returning True
            cancels the run.

        Returns
        -------
         res : SolverResult
            The solution, status and history.

        Raises
        ------
         EvaluationError
            If the problem could not be evaluated. The error carries the iteration
            and the last valid iterate.

        """
        x = np.array(x0, dtype=np.float64)
        if x.ndim != 1:
            raise ValueError("x0 must be a vector.")

        self.status = SolverStatus.RUNNING
        if self.settings.verbose:
            overall_start_time = time.time()
            print(f"  Starting {type(self).__name__}")

        try:
            state = self.initialize(x)
        except EvaluationError as e:
            self.status = SolverStatus.EVALUATION_FAILED
            e.iteration = 0
            e.last_iterate = x
            raise

        objective_values: List[float] = []
        gradient_norms: List[float] = []
        message = ""
        try:
            require_finite(state.f, "objective")
            require_finite(state.g, "gradient")
            state.gradient_norm = self.stationarity(state)
        except NumericalFailure as e:
            self.status = SolverStatus.NUMERICAL_FAILURE
            message = str(e)
        except EvaluationError as e:
            self.status = SolverStatus.EVALUATION_FAILED
            e.iteration = 0
            e.last_iterate = x
            raise

        if self.status == SolverStatus.RUNNING:
            self._log(state, objective_values, gradient_norms)
            self.start(state)
            if state.gradient_norm <= self.settings.gradient_tolerance:
                self.status = SolverStatus.CONVERGED

        while self.status == SolverStatus.RUNNING:
            if state.iteration >= self.settings.max_iterations:
                self.status = SolverStatus.MAX_ITERATIONS_REACHED
                break

            if callback is not None and callback(state.record()):
                self.status = SolverStatus.CANCELLED
                break

            if self.settings.verbose:
                start_time = time.time()

            try:
                new_state = self.iterate(state)
                require_finite(new_state.x, "iterate")
                require_finite(new_state.f, "objective")
                require_finite(new_state.g, "gradient")
                new_state.gradient_norm = self.stationarity(new_state)
            except EvaluationError as e:
                self.status = SolverStatus.EVALUATION_FAILED
                e.iteration = state.iteration
                e.last_iterate = state.x
                raise
            except LineSearchFailure as e:
                self.status = SolverStatus.LINE_SEARCH_FAILED
                message = f"Line search failed: {e}"
                break
            except NumericalFailure as e:
                e.iteration = state.iteration
                e.last_iterate = state.x
                self.status = SolverStatus.NUMERICAL_FAILURE
                message = str(e)
                break

            state = new_state
            self._log(state, objective_values, gradient_norms)
            if self.settings.verbose:
                end_time = time.time()
                print(
                    f"  {state.iteration:04d} Iteration completed in "
                    f"{1000 * (end_time - start_time):.03f} ms"
                )

            if self.has_converged(state):
                self.status = SolverStatus.CONVERGED

        if not message:
            message = STATUS_MESSAGES[self.status]

        if self.settings.verbose:
            overall_end_time = time.time()
            print(
                f"  {type(self).__name__} finished after {state.iteration} iterations "
                f"in {1000 * (overall_end_time - overall_start_time):.03f} ms: "
                f"{message}"
            )

        return SolverResult(
            solution=state.x,
            objective_value=state.f,
            gradient_norm=state.gradient_norm,
            nits=state.iteration,
            status=self.status,
            message=message,
            objective_values=objective_values,
            gradient_norms=gradient_norms,
        )

    def _log(
        self,
        state: IterateState,
        objective_values: List[float],
        gradient_norms: List[float],
    ) -> None:
        objective_values.append(state.f)
        gradient_norms.append(state.gradient_norm)
        if self.logger is not None:
            self.logger.log(state.record())

    def initialize(self, x: npt.NDArray[np.float64]) -> IterateState:
        """Evaluate the problem at the starting point."""
        return IterateState(x=x, f=self.problem.value(x), g=self.problem.gradient(x))

    def start(self, state: IterateState) -> None:
        """Reset per-run solver state. Called once per run, after x0 is evaluated."""

    def stationarity(self, state: IterateState) -> float:
        """Calculate the stationarity measure compared against gradient_tolerance."""
        return float(np.linalg.norm(state.g))

    def has_converged(self, state: IterateState) -> bool:
        """Check termination criteria."""
        if state.gradient_norm <= self.settings.gradient_tolerance:
            return True

        if state.f_prev is None or state.x_prev is None:
            return False

        relative_change = abs(state.f - state.f_prev) / (abs(state.f_prev) + 1.0)
        return (
            relative_change <= self.settings.objective_tolerance
            and np.linalg.norm(state.x - state.x_prev) <= self.settings.step_tolerance
        )

    @abstractmethod
    def iterate(self, state: IterateState) -> IterateState:
        """Perform one iteration.

        Raises
        ------
         LineSearchFailure
            If no acceptable step was found.
         NumericalFailure
            If some quantity was not finite.

        """


class LineSearchSolver(Solver):
    """Base class for solvers taking one line search step per iteration.

    Each iteration picks a base point and a direction, hands them to the line search,
    and then lets the solver update whatever model it keeps (e.g. a quasi-Newton
    approximation) from the old and new iterates.

    Parameters
    ----------
     problem : problem
        The problem.
     line_search : LineSearch, optional
        Defaults to `default_line_search()`.
     settings, logger
        See Solver.

    """

    proximal: bool = False

    def __init__(
        self,
        problem: Any,
        line_search: Optional[LineSearch] = None,
        settings: Optional[OptimizationSettings] = None,
        logger: Optional[IterationLogger] = None,
    ) -> None:
        """Initialize solver."""
        super().__init__(problem, settings=settings, logger=logger)
        if line_search is None:
            line_search = self.default_line_search()
        require_capabilities(
            problem, line_search.required_capabilities, type(line_search).__name__
        )
        self.line_search = line_search

    def default_line_search(self) -> LineSearch:
        """Line search used when none is supplied."""
        return MoreThuenteLineSearch()

    def start(self, state: IterateState) -> None:
        """Reset the line search."""
        self.line_search.reset(self.problem, state.f)

    def base_point(
        self, state: IterateState
    ) -> Tuple[npt.NDArray[np.float64], float, npt.NDArray[np.float64], Optional[float]]:
        """Point the line search starts from, with its objective and gradient.

        The last entry is the smooth part of the objective there, for proximal steps
        from a point other than the current iterate, and None otherwise. See
        LineSearchArgs.smooth_f.

        """
        return state.x, state.f, state.g, None

    @abstractmethod
    def search_direction(
        self, state: IterateState, g: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Calculate the search direction, given the gradient at the base point."""

    def initial_step(self, state: IterateState) -> float:
        """Initial trial step for the line search."""
        return self.settings.initial_step

    def update(self, old: IterateState, new: IterateState) -> None:
        """Update solver state after a successful step."""

    def iterate(self, state: IterateState) -> IterateState:
        """Take one line search step."""
        x, f, g, smooth_f = self.base_point(state)
        direction = self.search_direction(state, g)
        require_finite(direction, "direction")

        res = self.line_search.search(
            self.problem,
            LineSearchArgs(
                x=x,
                f=f,
                g=g,
                direction=direction,
                step=self.initial_step(state),
                proximal=self.proximal,
                smooth_f=smooth_f,
            ),
        )
        new_state = state.advance(res.x, res.f, res.g, res.step)
        self.update(state, new_state)
        return new_state

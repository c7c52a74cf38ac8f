r"""Augmented Lagrangian method.

Solves
   minimize    f(x)
   subject to  c(x) = 0
               h(x) <= 0
by a sequence of unconstrained minimizations of the augmented Lagrangian
   L(x) = f(x) + lambda^T * c(x) + (rho / 2) * \| c(x) \|_2^2
          + (1 / (2 * rho)) * \sum_i ( max(0, mu_i + rho * h_i(x))^2 - mu_i^2 ),
with multiplier updates in between. The inequality term is Rockafellar's; it is
continuously differentiable, so any of the unconstrained solvers works on it.

"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import matplotlib.pyplot as plt
import numpy as np
import numpy.typing as npt
from matplotlib.axes import Axes

from ..exceptions import EvaluationError, SolverFailedError
from ..newton import LBFGS
from ..optimization import OptimizationResult, OptimizationSettings, Solver, SolverStatus
from ..problem import GradProblem


class ConstrainedProblem(GradProblem):
    """A problem with equality constraints c(x) = 0 and inequalities h(x) <= 0.

    Subclasses override whichever constraint methods apply; by default there are no
    constraints of either kind.

    """

    def equality_constraints(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate c(x)."""
        return np.zeros(0)

    def equality_jacobian(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate the Jacobian of c at x, one row per constraint."""
        return np.zeros((0, x.shape[0]))

    def inequality_constraints(
        self, x: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Calculate h(x)."""
        return np.zeros(0)

    def inequality_jacobian(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate the Jacobian of h at x, one row per constraint."""
        return np.zeros((0, x.shape[0]))


class AugmentedLagrangianProblem(GradProblem):
    """The augmented Lagrangian of a ConstrainedProblem, for fixed multipliers.

    Parameters
    ----------
     problem : ConstrainedProblem
        The original problem.
     equality_multipliers : vector
        lambda.
     inequality_multipliers : vector
        mu, nonnegative.
     penalty : float
        rho, positive.

    """

    def __init__(
        self,
        problem: ConstrainedProblem,
        equality_multipliers: npt.NDArray[np.float64],
        inequality_multipliers: npt.NDArray[np.float64],
        penalty: float,
    ) -> None:
        if penalty <= 0:
            raise ValueError("penalty must be positive.")
        self.problem = problem
        self.equality_multipliers = equality_multipliers
        self.inequality_multipliers = inequality_multipliers
        self.penalty = penalty

    def value(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate L at x."""
        lmbda, mu, rho = self.equality_multipliers, self.inequality_multipliers, self.penalty
        c = self.problem.equality_constraints(x)
        h = self.problem.inequality_constraints(x)
        shifted = np.maximum(0.0, mu + rho * h)
        return (
            self.problem.value(x)
            + np.dot(lmbda, c)
            + 0.5 * rho * np.dot(c, c)
            + (np.dot(shifted, shifted) - np.dot(mu, mu)) / (2.0 * rho)
        )

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate gradient of L at x."""
        lmbda, mu, rho = self.equality_multipliers, self.inequality_multipliers, self.penalty
        c = self.problem.equality_constraints(x)
        h = self.problem.inequality_constraints(x)
        g = np.array(self.problem.gradient(x), dtype=np.float64)
        if c.size > 0:
            g += self.problem.equality_jacobian(x).T @ (lmbda + rho * c)
        if h.size > 0:
            g += self.problem.inequality_jacobian(x).T @ np.maximum(0.0, mu + rho * h)
        return g


@dataclass
class AugmentedLagrangianSettings:
    """Augmented Lagrangian settings.

    Parameters
    ----------
    initial_penalty : float, default=10.0
        Starting value of rho.
    penalty_growth : float, default=10.0
        Factor by which rho grows when the constraint violation did not decrease
        enough.
    sufficient_decrease : float, default=0.25
        The violation must drop below this fraction of the previous violation, or rho
        grows.
    constraint_tolerance : float, default=1e-6
        Threshold on the constraint violation.
    gradient_tolerance : float, default=1e-6
        Threshold on the norm of the gradient of the Lagrangian.
    initial_inner_tolerance : float, default=1e-2
        Gradient tolerance of the first subproblem. Early subproblems need not be
        solved accurately.
    inner_tolerance_decay : float, default=0.1
        Factor by which the subproblem tolerance shrinks each outer iteration, down to
        `gradient_tolerance`.
    max_outer_iterations : int, default=20
        Maximum number of subproblems.
    max_inner_iterations : int, default=500
        Iteration cap for each subproblem.
    max_penalty : float, default=1e12
        Upper bound on rho.
    verbose : bool, default=False
        If True, print status along with how long it took to execute each step.

    """

    initial_penalty: float = 10.0
    penalty_growth: float = 10.0
    sufficient_decrease: float = 0.25
    constraint_tolerance: float = 1e-6
    gradient_tolerance: float = 1e-6
    initial_inner_tolerance: float = 1e-2
    inner_tolerance_decay: float = 0.1
    max_outer_iterations: int = 20
    max_inner_iterations: int = 500
    max_penalty: float = 1e12
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.initial_penalty <= 0:
            raise ValueError("initial_penalty must be positive.")
        if self.penalty_growth <= 1:
            raise ValueError("penalty_growth must be greater than 1.")
        if not 0 < self.sufficient_decrease < 1:
            raise ValueError("sufficient_decrease must be in (0, 1).")
        if not 0 < self.inner_tolerance_decay <= 1:
            raise ValueError("inner_tolerance_decay must be in (0, 1].")
        if self.max_penalty < self.initial_penalty:
            raise ValueError("max_penalty must be at least initial_penalty.")


@dataclass
class AugmentedLagrangianResult(OptimizationResult):
    """Wrapper for the results of the augmented Lagrangian method.

    Parameters
    ----------
     solution : vector
        The last iterate.
     objective_value : float
        f at the solution.
     equality_multipliers, inequality_multipliers : vectors
        Lagrange multipliers for constraints.
     constraint_violation : float
        Constraint violation at the solution.
     stationarity : float
        Norm of the gradient of the Lagrangian at the solution.
     penalty : float
        Final penalty parameter.
     nits : int
        Number of outer iterations.
     inner_nits : List[int]
        Number of inner iterations in each outer iteration.
     inner_statuses : List[SolverStatus]
        Terminal status of each subproblem.
     violations : List[float]
        Constraint violation after each outer iteration.
     status : SolverStatus
        CONVERGED, MAX_ITERATIONS_REACHED or NUMERICAL_FAILURE.
     message : str
        Summary of result.

    """

    objective_value: float
    equality_multipliers: npt.NDArray[np.float64]
    inequality_multipliers: npt.NDArray[np.float64]
    constraint_violation: float
    stationarity: float
    penalty: float
    nits: int
    inner_nits: List[int]
    inner_statuses: List[SolverStatus]
    status: SolverStatus
    message: str
    violations: List[float] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether the method converged."""
        return self.status == SolverStatus.CONVERGED

    def raise_for_status(self) -> None:
        """Raise SolverFailedError unless the method converged."""
        if not self.success:
            raise SolverFailedError(message=self.message, result=self)

    def plot_convergence(self, ax: Optional[Axes] = None) -> Axes:
        """Plot constraint violation by outer iteration."""
        if ax is None:
            _, ax = plt.subplots()

        ax.plot([ii + 1 for ii in range(len(self.violations))], self.violations, marker="o")
        ax.set_yscale("log")
        ax.set_xlabel("Outer Iteration")
        ax.set_ylabel("Constraint Violation")
        return ax


InnerSolverFactory = Callable[[Any, OptimizationSettings], Solver]


def default_inner_solver(problem: Any, settings: OptimizationSettings) -> Solver:
    """Use L-BFGS on each subproblem."""
    return LBFGS(problem, settings=settings)


class AugmentedLagrangianMethod:
    """Augmented Lagrangian method.

    Each outer iteration minimizes the augmented Lagrangian from the previous
    solution, then updates
       lambda <- lambda + rho * c(x),
       mu <- max(0, mu + rho * h(x)),
    and grows rho when the constraint violation,
       sqrt( |c(x)|^2 + |max(h(x), -mu / rho)|^2 ),
    did not drop below `sufficient_decrease` times its previous value. We stop once
    the violation and the gradient of the Lagrangian are both within tolerance.

    A subproblem ending in NUMERICAL_FAILURE stops the method with that status. Other
    unsuccessful subproblems (iteration cap, line search failure) are recorded in
    `inner_statuses` and the method carries on from the subproblem's last iterate.

    Parameters
    ----------
     problem : ConstrainedProblem
        The problem.
     inner_solver : Callable, optional
        Factory building a Solver from (problem, settings). Defaults to L-BFGS.
     settings : AugmentedLagrangianSettings, optional
        Settings.

    """

    def __init__(
        self,
        problem: ConstrainedProblem,
        inner_solver: Optional[InnerSolverFactory] = None,
        settings: Optional[AugmentedLagrangianSettings] = None,
    ) -> None:
        """Initialize optimizer."""
        self.problem = problem
        self.inner_solver = inner_solver if inner_solver is not None else default_inner_solver
        if settings is None:
            self.settings: AugmentedLagrangianSettings = AugmentedLagrangianSettings()
        else:
            self.settings = settings
        self.status = SolverStatus.INITIALIZED

    def constraint_violation(
        self,
        c: npt.NDArray[np.float64],
        h: npt.NDArray[np.float64],
        mu: npt.NDArray[np.float64],
        rho: float,
    ) -> float:
        """Measure infeasibility, counting only inequalities that could be active."""
        h_active = np.maximum(h, -mu / rho)
        return float(np.sqrt(np.dot(c, c) + np.dot(h_active, h_active)))

    def lagrangian_gradient(
        self,
        x: npt.NDArray[np.float64],
        lmbda: npt.NDArray[np.float64],
        mu: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """Calculate gradient of f + lambda^T * c + mu^T * h."""
        g = np.array(self.problem.gradient(x), dtype=np.float64)
        if lmbda.size > 0:
            g += self.problem.equality_jacobian(x).T @ lmbda
        if mu.size > 0:
            g += self.problem.inequality_jacobian(x).T @ mu
        return g

    def solve(self, x0: npt.NDArray[np.float64]) -> AugmentedLagrangianResult:
        """Solve constrained problem.

        Parameters
        ----------
         x0 : vector
            Initial guess. Need not be feasible.

        Returns
        -------
         res : AugmentedLagrangianResult
            The solution, multipliers and history.

        """
        x = np.array(x0, dtype=np.float64)
        self.status = SolverStatus.RUNNING
        try:
            lmbda = np.zeros_like(self.problem.equality_constraints(x), dtype=np.float64)
            mu = np.zeros_like(self.problem.inequality_constraints(x), dtype=np.float64)
        except EvaluationError as e:
            self.status = SolverStatus.EVALUATION_FAILED
            e.iteration = 0
            e.last_iterate = x
            raise

        rho = self.settings.initial_penalty
        inner_tolerance = max(
            self.settings.initial_inner_tolerance, self.settings.gradient_tolerance
        )
        previous_violation = np.inf
        violation = stationarity = np.inf
        inner_nits: List[int] = []
        inner_statuses: List[SolverStatus] = []
        violations: List[float] = []
        message = ""

        if self.settings.verbose:
            overall_start_time = time.time()
            print("  Starting augmented Lagrangian method")

        for nit in range(self.settings.max_outer_iterations):
            if self.settings.verbose:
                start_time = time.time()

            subproblem = AugmentedLagrangianProblem(self.problem, lmbda, mu, rho)
            solver = self.inner_solver(
                subproblem,
                OptimizationSettings(
                    gradient_tolerance=inner_tolerance,
                    max_iterations=self.settings.max_inner_iterations,
                ),
            )
            try:
                inner = solver.solve(x)
                x = inner.solution
                inner_nits.append(inner.nits)
                inner_statuses.append(inner.status)
                if inner.status == SolverStatus.NUMERICAL_FAILURE:
                    self.status = SolverStatus.NUMERICAL_FAILURE
                    message = f"Subproblem failed: {inner.message}"
                    break

                c = self.problem.equality_constraints(x)
                h = self.problem.inequality_constraints(x)
                violation = self.constraint_violation(c, h, mu, rho)
                lmbda = lmbda + rho * c
                mu = np.maximum(0.0, mu + rho * h)
                stationarity = float(
                    np.linalg.norm(self.lagrangian_gradient(x, lmbda, mu))
                )
            except EvaluationError as e:
                self.status = SolverStatus.EVALUATION_FAILED
                e.iteration = nit
                e.last_iterate = x
                raise

            violations.append(violation)
            if self.settings.verbose:
                end_time = time.time()
                print(
                    f"  {nit + 1:02d} Subproblem solved in "
                    f"{1000 * (end_time - start_time):.03f} ms "
                    f"({inner.nits} iterations, {inner.status.name}); "
                    f"violation={violation:.03g}, stationarity={stationarity:.03g}, "
                    f"{rho=:.03g}"
                )

            if (
                violation <= self.settings.constraint_tolerance
                and stationarity <= self.settings.gradient_tolerance
            ):
                self.status = SolverStatus.CONVERGED
                message = (
                    "Augmented Lagrangian method converged to the desired tolerance."
                )
                break

            if violation > self.settings.sufficient_decrease * previous_violation:
                rho = min(rho * self.settings.penalty_growth, self.settings.max_penalty)
            previous_violation = violation
            inner_tolerance = max(
                inner_tolerance * self.settings.inner_tolerance_decay,
                self.settings.gradient_tolerance,
            )
        else:
            self.status = SolverStatus.MAX_ITERATIONS_REACHED
            message = "Maximum number of outer iterations reached."

        if self.settings.verbose:
            overall_end_time = time.time()
            print(
                f"  Augmented Lagrangian method completed in "
                f"{1000 * (overall_end_time - overall_start_time):.03f} ms: {message}"
            )

        return AugmentedLagrangianResult(
            solution=x,
            objective_value=self.problem.value(x),
            equality_multipliers=lmbda,
            inequality_multipliers=mu,
            constraint_violation=violation,
            stationarity=stationarity,
            penalty=rho,
            nits=len(inner_nits),
            inner_nits=inner_nits,
            inner_statuses=inner_statuses,
            status=self.status,
            message=message,
            violations=violations,
        )

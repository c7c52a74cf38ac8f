"""Test the augmented Lagrangian method."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
from matplotlib.axes import Axes

from pyoptim import (
    BFGS,
    AugmentedLagrangianMethod,
    AugmentedLagrangianProblem,
    AugmentedLagrangianSettings,
    ConstrainedProblem,
    EvaluationError,
    SolverFailedError,
    SolverStatus,
)


class SimplexNormProblem(ConstrainedProblem):
    """Minimize |x|^2 subject to sum(x) = 1."""

    def value(self, x):
        return np.dot(x, x)

    def gradient(self, x):
        return 2 * x

    def equality_constraints(self, x):
        return np.array([np.sum(x) - 1.0])

    def equality_jacobian(self, x):
        return np.ones((1, x.shape[0]))


class BoundedProblem(ConstrainedProblem):
    """Minimize (x - 2)^2 subject to x <= upper."""

    def __init__(self, upper):
        self.upper = upper

    def value(self, x):
        return (x[0] - 2.0) ** 2

    def gradient(self, x):
        return np.array([2.0 * (x[0] - 2.0)])

    def inequality_constraints(self, x):
        return np.array([x[0] - self.upper])

    def inequality_jacobian(self, x):
        return np.array([[1.0]])


class MixedProblem(ConstrainedProblem):
    """Minimize |x|^2 subject to x1 + x2 = 1 and x1 <= 0.2."""

    def value(self, x):
        return np.dot(x, x)

    def gradient(self, x):
        return 2 * x

    def equality_constraints(self, x):
        return np.array([x[0] + x[1] - 1.0])

    def equality_jacobian(self, x):
        return np.array([[1.0, 1.0]])

    def inequality_constraints(self, x):
        return np.array([x[0] - 0.2])

    def inequality_jacobian(self, x):
        return np.array([[1.0, 0.0]])


class NonlinearProblem(ConstrainedProblem):
    """Minimize sum(exp(x)) subject to |x|^2 = 1, x1 <= 0.5 and x2 >= 0."""

    def value(self, x):
        return np.sum(np.exp(x))

    def gradient(self, x):
        return np.exp(x)

    def equality_constraints(self, x):
        return np.array([np.dot(x, x) - 1.0])

    def equality_jacobian(self, x):
        return 2 * x[np.newaxis, :]

    def inequality_constraints(self, x):
        return np.array([x[0] - 0.5, -x[1]])

    def inequality_jacobian(self, x):
        J = np.zeros((2, x.shape[0]))
        J[0, 0] = 1.0
        J[1, 1] = -1.0
        return J


@pytest.mark.parametrize(
    "n",
    [2, 5, 10],
)
def test_equality_constrained(n: int) -> None:
    """The minimum norm point on the simplex hyperplane, with its multiplier."""
    res = AugmentedLagrangianMethod(SimplexNormProblem()).solve(np.zeros(n))

    assert res.status == SolverStatus.CONVERGED
    assert res.success
    res.raise_for_status()
    np.testing.assert_allclose(res.solution, np.full(n, 1.0 / n), atol=1e-5)
    np.testing.assert_allclose(res.equality_multipliers, [-2.0 / n], atol=1e-5)
    assert res.inequality_multipliers.shape == (0,)
    assert res.constraint_violation <= 1e-6
    assert res.stationarity <= 1e-6
    assert len(res.inner_nits) == res.nits
    assert len(res.inner_statuses) == res.nits
    assert len(res.violations) == res.nits


def test_active_inequality() -> None:
    """An active bound gets a positive multiplier."""
    res = AugmentedLagrangianMethod(BoundedProblem(1.0)).solve(np.zeros(1))
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, [1.0], atol=1e-5)
    np.testing.assert_allclose(res.inequality_multipliers, [2.0], atol=1e-5)
    assert res.objective_value == pytest.approx(1.0, abs=1e-5)


def test_inactive_inequality() -> None:
    """An inactive bound gets a zero multiplier and does not move the solution."""
    res = AugmentedLagrangianMethod(BoundedProblem(3.0)).solve(np.zeros(1))
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, [2.0], atol=1e-5)
    np.testing.assert_array_equal(res.inequality_multipliers, [0.0])
    assert res.constraint_violation == 0.0


def test_mixed_constraints() -> None:
    """Equality and active inequality together."""
    res = AugmentedLagrangianMethod(MixedProblem()).solve(np.zeros(2))
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, [0.2, 0.8], atol=1e-5)
    np.testing.assert_allclose(res.equality_multipliers, [-1.6], atol=1e-5)
    np.testing.assert_allclose(res.inequality_multipliers, [1.2], atol=1e-5)


def test_bfgs_inner_solver() -> None:
    """Any unconstrained solver can handle the subproblems."""
    solvers = []

    def factory(problem, settings):
        solver = BFGS(problem, settings=settings)
        solvers.append(solver)
        return solver

    res = AugmentedLagrangianMethod(SimplexNormProblem(), inner_solver=factory).solve(
        np.zeros(4)
    )
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, np.full(4, 0.25), atol=1e-5)
    assert len(solvers) == res.nits
    assert all(s == SolverStatus.CONVERGED for s in res.inner_statuses)


def test_max_outer_iterations() -> None:
    """Running out of outer iterations is reported, and raise_for_status raises."""
    settings = AugmentedLagrangianSettings(max_outer_iterations=1)
    res = AugmentedLagrangianMethod(SimplexNormProblem(), settings=settings).solve(
        np.zeros(3)
    )
    assert res.status == SolverStatus.MAX_ITERATIONS_REACHED
    assert res.nits == 1
    with pytest.raises(SolverFailedError) as e:
        res.raise_for_status()
    assert "MAX_ITERATIONS_REACHED" in str(e.value)


def test_penalty_grows_when_violation_stalls() -> None:
    """A slowly shrinking violation makes rho grow."""
    settings = AugmentedLagrangianSettings(initial_penalty=0.01, max_outer_iterations=3)
    res = AugmentedLagrangianMethod(SimplexNormProblem(), settings=settings).solve(
        np.zeros(2)
    )
    # With rho = 0.01 the violation only shrinks by 2 / 2.02 per outer iteration.
    assert res.penalty > 0.01


@pytest.mark.parametrize(
    "seed",
    [101, 201, 301],
)
def test_augmented_lagrangian_gradient(seed: int) -> None:
    """The subproblem gradient agrees with finite differences."""
    np.random.seed(seed)
    n = 4
    subproblem = AugmentedLagrangianProblem(
        NonlinearProblem(),
        equality_multipliers=np.random.randn(1),
        inequality_multipliers=np.abs(np.random.randn(2)),
        penalty=2.0,
    )
    x = np.random.randn(n)
    h = 1e-6
    g_fd = np.zeros(n)
    for ii in range(n):
        e = np.zeros(n)
        e[ii] = h
        g_fd[ii] = (subproblem.value(x + e) - subproblem.value(x - e)) / (2 * h)
    np.testing.assert_allclose(subproblem.gradient(x), g_fd, rtol=1e-5, atol=1e-5)

    with pytest.raises(ValueError):
        AugmentedLagrangianProblem(NonlinearProblem(), np.zeros(1), np.zeros(2), 0.0)


def test_augmented_lagrangian_value_at_feasible_point() -> None:
    """At a feasible point with inactive inequalities, L = f."""
    problem = NonlinearProblem()
    subproblem = AugmentedLagrangianProblem(
        problem,
        equality_multipliers=np.array([0.7]),
        inequality_multipliers=np.zeros(2),
        penalty=5.0,
    )
    x = np.array([0.0, 1.0])
    assert subproblem.value(x) == pytest.approx(problem.value(x))


def test_evaluation_error_propagates() -> None:
    """Evaluation errors abort the method."""

    class FailingProblem(SimplexNormProblem):
        calls = 0

        def gradient(self, x):
            self.calls += 1
            if self.calls > 1:
                raise EvaluationError("Gradient undefined.")
            return 2 * x

    alm = AugmentedLagrangianMethod(FailingProblem())
    x0 = np.zeros(3)
    with pytest.raises(EvaluationError) as e:
        alm.solve(x0)
    assert e.value.iteration == 0
    np.testing.assert_array_equal(e.value.last_iterate, x0)
    assert alm.status == SolverStatus.EVALUATION_FAILED


def test_verbose_and_plot(capsys) -> None:
    """Verbose output and the convergence plot."""
    settings = AugmentedLagrangianSettings(verbose=True)
    res = AugmentedLagrangianMethod(SimplexNormProblem(), settings=settings).solve(
        np.zeros(2)
    )
    out = capsys.readouterr().out
    assert "Starting augmented Lagrangian method" in out
    assert "01 Subproblem solved" in out
    assert "Augmented Lagrangian method completed" in out
    assert isinstance(res.plot_convergence(), Axes)


def test_invalid_settings() -> None:
    """Out-of-range settings are rejected."""
    with pytest.raises(ValueError):
        AugmentedLagrangianSettings(initial_penalty=0.0)
    with pytest.raises(ValueError):
        AugmentedLagrangianSettings(penalty_growth=1.0)
    with pytest.raises(ValueError):
        AugmentedLagrangianSettings(sufficient_decrease=1.0)
    with pytest.raises(ValueError):
        AugmentedLagrangianSettings(initial_penalty=10.0, max_penalty=1.0)

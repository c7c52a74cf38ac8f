"""Test Newton-CG and Newton-LDLT."""

import numpy as np
import pytest

from pyoptim import (
    Capability,
    FunctionProblem,
    HistoryLogger,
    IterateState,
    NewtonCG,
    NewtonLDLT,
    ProblemCapabilityError,
    QuadraticProblem,
    RosenbrockProblem,
    SolverStatus,
)


def random_quadratic(seed: int, n: int) -> QuadraticProblem:
    np.random.seed(seed)
    Q, _ = np.linalg.qr(np.random.randn(n, n))
    A = Q @ np.diag(np.linspace(1.0, 10.0, n)) @ Q.T
    return QuadraticProblem(0.5 * (A + A.T), np.random.randn(n))


def double_well() -> FunctionProblem:
    """x1^4 / 4 - x1^2 / 2 + x2^2 / 2, with minima at (+-1, 0) and a saddle at 0."""
    return FunctionProblem(
        lambda x: 0.25 * x[0] ** 4 - 0.5 * x[0] ** 2 + 0.5 * x[1] ** 2,
        gradient=lambda x: np.array([x[0] ** 3 - x[0], x[1]]),
        hessp=lambda x, v: np.array([(3 * x[0] ** 2 - 1) * v[0], v[1]]),
    )


def state_at(problem, x):
    return IterateState(x=x, f=problem.value(x), g=problem.gradient(x))


@pytest.mark.parametrize(
    "seed,n",
    [
        (101, 5),
        (201, 20),
    ],
)
@pytest.mark.parametrize(
    "solver,kwargs",
    [
        (NewtonCG, {"cg_rtol": 1e-12}),
        (NewtonLDLT, {}),
    ],
)
def test_quadratic_in_one_step(seed: int, n: int, solver, kwargs) -> None:
    """An exact Newton step solves a convex quadratic in one iteration."""
    problem = random_quadratic(seed, n)
    res = solver(problem, **kwargs).solve(np.random.randn(n))
    assert res.status == SolverStatus.CONVERGED
    assert res.nits == 1
    np.testing.assert_allclose(res.solution, problem.minimizer(), rtol=1e-6, atol=1e-6)


def test_newton_cg_inexact_steps() -> None:
    """The default forcing term still converges, using few CG iterations per step."""
    problem = random_quadratic(102, 50)
    solver = NewtonCG(problem)
    res = solver.solve(np.random.randn(50))
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, problem.minimizer(), rtol=1e-5, atol=1e-5)
    assert solver.last_cg_result.nits <= 50
    assert solver.forcing_term(np.array([1e-4, 0.0, 0.0])) == pytest.approx(1e-2)
    assert solver.forcing_term(np.full(4, 10.0)) == 0.5


def test_newton_cg_negative_curvature_gives_descent() -> None:
    """Near a saddle, CG stops early and still returns a descent direction."""
    problem = double_well()
    solver = NewtonCG(problem, cg_rtol=1e-10)
    state = state_at(problem, np.array([0.1, 1.0]))
    d = solver.search_direction(state, state.g)
    assert solver.last_cg_result.status == "negative_curvature"
    assert np.dot(d, state.g) < 0

    # With x2 = 0 the gradient points along x1, where the curvature is -0.97.
    state = state_at(problem, np.array([0.1, 0.0]))
    d = solver.search_direction(state, state.g)
    assert solver.last_cg_result.nits == 0
    np.testing.assert_allclose(d, -state.g)


def test_newton_ldlt_regularizes() -> None:
    """An indefinite Hessian is shifted, giving a descent direction."""
    problem = double_well()
    solver = NewtonLDLT(problem)
    state = state_at(problem, np.array([0.1, 1.0]))
    d = solver.search_direction(state, state.g)
    assert solver.last_shift > 0
    assert np.dot(d, state.g) < 0

    state = state_at(problem, np.array([1.2, 1.0]))
    solver.search_direction(state, state.g)
    assert solver.last_shift == 0.0


@pytest.mark.parametrize(
    "solver",
    [NewtonCG, NewtonLDLT],
)
def test_escapes_saddle_region(solver) -> None:
    """Starting near the saddle, both methods reach a minimum."""
    problem = double_well()
    res = solver(problem).solve(np.array([0.1, 1.0]))
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(np.abs(res.solution[0]), 1.0, atol=1e-5)
    np.testing.assert_allclose(res.solution[1], 0.0, atol=1e-5)
    assert res.objective_value == pytest.approx(-0.25)


@pytest.mark.parametrize(
    "solver",
    [NewtonCG, NewtonLDLT],
)
def test_rosenbrock(solver) -> None:
    """Newton methods solve the Rosenbrock problem from the standard start."""
    problem = RosenbrockProblem()
    x0 = np.array([-1.2, 1.0])
    logger = HistoryLogger()
    res = solver(problem, logger=logger).solve(x0)
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, np.ones(2), atol=1e-4)
    assert len(logger.records) == res.nits + 1


def test_requires_hessian_vector_products() -> None:
    """Newton methods refuse problems without Hessian-vector products."""
    problem = FunctionProblem(lambda x: np.dot(x, x), gradient=lambda x: 2 * x)
    for solver in (NewtonCG, NewtonLDLT):
        with pytest.raises(ProblemCapabilityError) as e:
            solver(problem)
        assert Capability.HESSIAN_VECTOR_PRODUCT.value in e.value.missing


def test_invalid_parameters() -> None:
    """Out-of-range parameters are rejected."""
    problem = random_quadratic(103, 2)
    with pytest.raises(ValueError):
        NewtonCG(problem, cg_rtol=1.0)
    with pytest.raises(ValueError):
        NewtonCG(problem, cg_max_iterations=0)
    with pytest.raises(ValueError):
        NewtonLDLT(problem, regularization=0.0)
    with pytest.raises(ValueError):
        NewtonLDLT(problem, regularization_growth=1.0)

"""Test gradient descent solvers."""

import numpy as np
import pytest

from pyoptim import (
    AdaDelta,
    AdaGrad,
    Adam,
    ArmijoLineSearch,
    BarzilaiBorwein,
    BBStepScheduler,
    ExpStepScheduler,
    GradientDescent,
    HistoryLogger,
    MoreThuenteLineSearch,
    Nesterov,
    OptimizationSettings,
    ProxProblem,
    QuadraticProblem,
    RMSProp,
    SolverStatus,
    ZhangHagerLineSearch,
)


class L1Problem(ProxProblem):
    """0.5 * |x - a|^2 + lam * |x|_1."""

    def __init__(self, a, lam):
        self.a = a
        self.lam = lam

    def smooth_value(self, x):
        return 0.5 * np.dot(x - self.a, x - self.a)

    def nonsmooth_value(self, x):
        return self.lam * np.sum(np.abs(x))

    def gradient(self, x):
        return x - self.a

    def prox(self, x, t):
        return np.sign(x) * np.maximum(np.abs(x) - t * self.lam, 0.0)

    def minimizer(self):
        return self.prox(self.a, 1.0)


class BoxQuadratic(ProxProblem):
    """0.5 * x^T * A * x - b^T * x restricted to the box [-r, r]^n."""

    def __init__(self, A, b, r):
        self.A = A
        self.b = b
        self.r = r

    def smooth_value(self, x):
        return 0.5 * np.dot(x, self.A @ x) - np.dot(self.b, x)

    def nonsmooth_value(self, x):
        return 0.0 if np.all(np.abs(x) <= self.r) else np.inf

    def gradient(self, x):
        return self.A @ x - self.b

    def prox(self, x, t):
        return np.clip(x, -self.r, self.r)

    def minimizer(self, step, iterations=2000):
        """Iterate the projected gradient map to its fixed point."""
        x = np.zeros(self.b.shape[0])
        for _ in range(iterations):
            x = self.prox(x - step * self.gradient(x), step)
        return x


def random_box_quadratic(seed: int, n: int) -> BoxQuadratic:
    np.random.seed(seed)
    Q, _ = np.linalg.qr(np.random.randn(n, n))
    A = Q @ np.diag(np.linspace(1.0, 4.0, n)) @ Q.T
    A = 0.5 * (A + A.T)
    # Unconstrained minimizer with N(0, 4) entries, mostly outside the box.
    return BoxQuadratic(A, A @ (2.0 * np.random.randn(n)), 0.5)


def random_quadratic(seed: int, n: int, max_eig: float = 4.0) -> QuadraticProblem:
    np.random.seed(seed)
    Q, _ = np.linalg.qr(np.random.randn(n, n))
    A = Q @ np.diag(np.linspace(1.0, max_eig, n)) @ Q.T
    return QuadraticProblem(0.5 * (A + A.T), np.random.randn(n))


@pytest.mark.parametrize(
    "seed,n",
    [
        (101, 2),
        (201, 10),
        (301, 40),
    ],
)
def test_fixed_step(seed: int, n: int) -> None:
    """A fixed step of 1 / L converges monotonically."""
    problem = random_quadratic(seed, n)
    logger = HistoryLogger()
    res = GradientDescent(
        problem, settings=OptimizationSettings(initial_step=0.25), logger=logger
    ).solve(np.random.randn(n))

    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, problem.minimizer(), rtol=1e-5, atol=1e-5)
    assert np.all(np.diff(res.objective_values) <= 0)
    assert all(step == 0.25 for step in logger.step_lengths[1:])


@pytest.mark.parametrize(
    "seed,n",
    [
        (102, 10),
        (202, 40),
    ],
)
def test_nesterov(seed: int, n: int) -> None:
    """Momentum tuned to the condition number beats plain gradient descent."""
    problem = random_quadratic(seed, n)
    x0 = np.random.randn(n)
    settings = OptimizationSettings(initial_step=0.25)

    plain = GradientDescent(problem, settings=settings).solve(x0)
    # (sqrt(kappa) - 1) / (sqrt(kappa) + 1) with kappa = 4.
    accelerated = GradientDescent(
        problem, accelerator=Nesterov(momentum=1.0 / 3.0), settings=settings
    ).solve(x0)

    assert accelerated.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(
        accelerated.solution, problem.minimizer(), rtol=1e-5, atol=1e-5
    )
    assert accelerated.nits < plain.nits

    res = GradientDescent(
        problem,
        accelerator=Nesterov(),
        settings=OptimizationSettings(initial_step=0.25, max_iterations=50),
    ).solve(x0)
    assert res.objective_value < problem.value(x0)


@pytest.mark.parametrize(
    "accelerator",
    [AdaGrad, RMSProp, AdaDelta, Adam],
)
def test_adaptive_accelerators_make_progress(accelerator) -> None:
    """Per-coordinate methods decrease a quadratic from a distant start."""
    problem = random_quadratic(103, 10)
    x0 = problem.minimizer() + 5.0
    res = GradientDescent(
        problem,
        accelerator=accelerator(),
        settings=OptimizationSettings(initial_step=0.1, max_iterations=100),
    ).solve(x0)

    assert res.status in (SolverStatus.CONVERGED, SolverStatus.MAX_ITERATIONS_REACHED)
    assert res.objective_value < problem.value(x0)


@pytest.mark.parametrize(
    "accelerator",
    [AdaGrad, RMSProp, AdaDelta],
)
def test_adaptive_accelerators_with_armijo(accelerator) -> None:
    """Diagonally scaled directions are descent directions, so Armijo never fails."""
    problem = random_quadratic(104, 10)
    x0 = problem.minimizer() + 1.0
    res = GradientDescent(
        problem,
        line_search=ArmijoLineSearch(),
        accelerator=accelerator(),
        settings=OptimizationSettings(max_iterations=30),
    ).solve(x0)

    assert res.status in (SolverStatus.CONVERGED, SolverStatus.MAX_ITERATIONS_REACHED)
    assert np.all(np.diff(res.objective_values) <= 0)
    assert res.objective_value < problem.value(x0)


@pytest.mark.parametrize(
    "seed,n,variant",
    [
        (105, 10, "alternate"),
        (205, 10, "long"),
        (305, 10, "short"),
        (405, 50, "alternate"),
        (505, 50, "long"),
        (605, 50, "short"),
    ],
)
def test_barzilai_borwein(seed: int, n: int, variant: str) -> None:
    """BB steps with a nonmonotone line search solve an ill-conditioned quadratic."""
    problem = random_quadratic(seed, n, max_eig=100.0)
    solver = BarzilaiBorwein(problem, scheduler=BBStepScheduler(variant))
    assert isinstance(solver.line_search, ZhangHagerLineSearch)

    res = solver.solve(np.random.randn(n))
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, problem.minimizer(), rtol=1e-5, atol=1e-5)


def test_barzilai_borwein_beats_fixed_step() -> None:
    """On an ill-conditioned quadratic, BB needs far fewer iterations."""
    problem = random_quadratic(106, 30, max_eig=100.0)
    x0 = np.random.randn(30)
    bb = BarzilaiBorwein(problem).solve(x0)
    fixed = GradientDescent(
        problem, settings=OptimizationSettings(initial_step=0.01, max_iterations=2000)
    ).solve(x0)
    assert bb.status == SolverStatus.CONVERGED
    assert bb.nits < fixed.nits


def test_zhang_hager_without_averaging_matches_armijo() -> None:
    """eta = 0 makes the nonmonotone search identical to Armijo."""
    problem = random_quadratic(107, 10)
    x0 = np.random.randn(10)
    armijo = GradientDescent(problem, line_search=ArmijoLineSearch()).solve(x0)
    zhang_hager = GradientDescent(
        problem, line_search=ZhangHagerLineSearch(eta=0.0)
    ).solve(x0)
    assert armijo.nits == zhang_hager.nits
    np.testing.assert_array_equal(armijo.solution, zhang_hager.solution)


@pytest.mark.parametrize(
    "seed,n,lam",
    [
        (108, 5, 0.5),
        (208, 20, 1.0),
        (308, 50, 0.1),
    ],
)
def test_proximal_gradient_one_step(seed: int, n: int, lam: float) -> None:
    """With step 1 / L, one proximal step solves the separable lasso."""
    np.random.seed(seed)
    problem = L1Problem(np.random.randn(n), lam)
    res = GradientDescent(problem, proximal=True).solve(np.random.randn(n))

    assert res.status == SolverStatus.CONVERGED
    assert res.nits == 1
    np.testing.assert_allclose(res.solution, problem.minimizer())
    assert res.gradient_norm <= 1e-12


@pytest.mark.parametrize("seed", [109, 209, 309])
def test_proximal_gradient_armijo(seed: int) -> None:
    """Proximal backtracking from too long a step still converges."""
    np.random.seed(seed)
    n = 10
    problem = L1Problem(np.random.randn(n), 0.5)
    res = GradientDescent(
        problem,
        line_search=ArmijoLineSearch(),
        settings=OptimizationSettings(initial_step=3.0),
        proximal=True,
    ).solve(np.random.randn(n))

    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, problem.minimizer(), atol=1e-5)
    assert np.all(np.diff(res.objective_values) <= 0)


def test_proximal_mode_without_prox() -> None:
    """A smooth problem gets the identity prox."""
    problem = random_quadratic(110, 5)
    x0 = np.random.randn(5)
    settings = OptimizationSettings(initial_step=0.25)
    smooth = GradientDescent(problem, settings=settings).solve(x0)
    proximal = GradientDescent(problem, settings=settings, proximal=True).solve(x0)
    assert smooth.nits == proximal.nits
    np.testing.assert_allclose(smooth.solution, proximal.solution)


def test_proximal_mode_rejects_more_thuente() -> None:
    """Line searches without a proximal mode are refused up front."""
    problem = L1Problem(np.ones(3), 1.0)
    with pytest.raises(ValueError):
        GradientDescent(problem, line_search=MoreThuenteLineSearch(), proximal=True)


def test_exp_step_schedule() -> None:
    """Accepted steps follow the schedule."""
    problem = random_quadratic(111, 5)
    logger = HistoryLogger()
    GradientDescent(
        problem,
        scheduler=ExpStepScheduler(initial_step=0.1, decay=0.5),
        settings=OptimizationSettings(max_iterations=4),
        logger=logger,
    ).solve(np.random.randn(5))
    assert logger.step_lengths == pytest.approx([0.0, 0.1, 0.05, 0.025, 0.0125])


@pytest.mark.parametrize(
    "seed,n",
    [
        (112, 5),
        (212, 20),
        (312, 50),
    ],
)
def test_proximal_nesterov_box(seed: int, n: int) -> None:
    """Extrapolated points may leave the box; projected steps still converge."""
    problem = random_box_quadratic(seed, n)
    x0 = np.zeros(n)
    x_star = problem.minimizer(step=0.25)
    assert np.any(np.abs(x_star) == problem.r)

    res = GradientDescent(
        problem,
        accelerator=Nesterov(momentum=1.0 / 3.0),
        settings=OptimizationSettings(initial_step=0.25),
        proximal=True,
    ).solve(x0)
    assert res.status == SolverStatus.CONVERGED
    np.testing.assert_allclose(res.solution, x_star, atol=1e-4)

    # FISTA momentum: every iterate stays feasible and F decreases overall.
    res = GradientDescent(
        problem,
        accelerator=Nesterov(),
        settings=OptimizationSettings(initial_step=0.25, max_iterations=50),
        proximal=True,
    ).solve(x0)
    assert res.status in (SolverStatus.CONVERGED, SolverStatus.MAX_ITERATIONS_REACHED)
    assert np.all(np.abs(res.solution) <= problem.r)
    assert np.all(np.isfinite(res.objective_values))
    assert res.objective_value < problem.value(x0)


@pytest.mark.parametrize("seed", [113, 213])
def test_proximal_nesterov_box_backtracking(seed: int) -> None:
    """Backtracking from an extrapolated point uses the smooth part alone."""
    n = 20
    problem = random_box_quadratic(seed, n)
    x0 = np.zeros(n)
    res = GradientDescent(
        problem,
        line_search=ArmijoLineSearch(),
        accelerator=Nesterov(momentum=1.0 / 3.0),
        settings=OptimizationSettings(initial_step=1.0, max_iterations=200),
        proximal=True,
    ).solve(x0)

    assert res.status in (SolverStatus.CONVERGED, SolverStatus.MAX_ITERATIONS_REACHED)
    assert np.all(np.abs(res.solution) <= problem.r)
    assert np.all(np.isfinite(res.objective_values))
    assert res.objective_value < problem.value(x0)


def test_exp_step_schedule_below_sqrt_eps() -> None:
    """The default line search follows the schedule past sqrt(machine epsilon)."""
    problem = random_quadratic(114, 5)
    logger = HistoryLogger()
    GradientDescent(
        problem,
        scheduler=ExpStepScheduler(initial_step=0.1, decay=0.5),
        settings=OptimizationSettings(max_iterations=30),
        logger=logger,
    ).solve(np.random.randn(5))
    assert len(logger.step_lengths) == 31
    assert logger.step_lengths[-1] == pytest.approx(0.1 * 0.5**29)
    assert logger.step_lengths[-1] < np.sqrt(np.finfo(np.float64).eps)

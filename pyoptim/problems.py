"""Ready-made problems."""

from typing import Callable, Optional

import numpy as np
import numpy.typing as npt
from scipy import linalg

from .exceptions import EvaluationError
from .problem import HessProblem


class FunctionProblem:
    """Adapt plain callables to the problem interface.

    Only the capabilities that were supplied are exposed, so a solver that needs a
    gradient will refuse a FunctionProblem constructed without one.

    Parameters
    ----------
     value : Callable
        f(x).
     gradient : Callable, optional
        Gradient of f.
     hessp : Callable, optional
        hessp(x, v) = H(x) * v.
     prox : Callable, optional
        prox(x, t), proximal operator of the nonsmooth part of the objective.
     domain : Callable, optional
        Predicate on x. Every callback raises EvaluationError when it is False.

    """

    def __init__(
        self,
        value: Callable[[npt.NDArray[np.float64]], float],
        gradient: Optional[
            Callable[[npt.NDArray[np.float64]], npt.NDArray[np.float64]]
        ] = None,
        hessp: Optional[
            Callable[
                [npt.NDArray[np.float64], npt.NDArray[np.float64]],
                npt.NDArray[np.float64],
            ]
        ] = None,
        prox: Optional[
            Callable[[npt.NDArray[np.float64], float], npt.NDArray[np.float64]]
        ] = None,
        domain: Optional[Callable[[npt.NDArray[np.float64]], bool]] = None,
    ) -> None:
        self._value = value
        self._domain = domain
        if gradient is not None:
            self.gradient = self._guard(gradient)
        if hessp is not None:
            self.hessian_vector_product = self._guard(hessp)
        if prox is not None:
            self.prox = prox

    def _check_domain(self, x: npt.NDArray[np.float64]) -> None:
        if self._domain is not None and not self._domain(x):
            raise EvaluationError("Point is outside the problem domain.")

    def _guard(self, fn: Callable) -> Callable:
        def guarded(x, *args):
            self._check_domain(x)
            return fn(x, *args)

        return guarded

    def value(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate f at x."""
        self._check_domain(x)
        return self._value(x)


class QuadraticProblem(HessProblem):
    r"""f(x) = (1/2) * x^T * A * x - b^T * x + c.

    With A symmetric positive definite, the minimizer is A^{-1} * b.

    """

    def __init__(
        self,
        A: npt.NDArray[np.float64],
        b: npt.NDArray[np.float64],
        c: float = 0.0,
    ) -> None:
        n, m = A.shape
        if n != m:
            raise ValueError("A must be square.")
        if b.shape != (n,):
            raise ValueError("b must be a vector with one entry per row of A.")
        self.A = A
        self.b = b
        self.c = c

    def value(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate f at x."""
        return 0.5 * np.dot(x, self.A @ x) - np.dot(self.b, x) + self.c

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate A * x - b."""
        return self.A @ x - self.b

    def hessian_vector_product(
        self, x: npt.NDArray[np.float64], v: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Multiply A * v."""
        return self.A @ v

    def hessian(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Return A."""
        return self.A

    def minimizer(self) -> npt.NDArray[np.float64]:
        """Solve A * x = b."""
        return linalg.solve(self.A, self.b, assume_a="pos")


class RosenbrockProblem(HessProblem):
    r"""Chained Rosenbrock function.

    f(x) = \sum_{i=1}^{n-1} a * (x_{i+1} - x_i^2)^2 + (1 - x_i)^2,
    minimized at x = (1, ..., 1).

    """

    def __init__(self, a: float = 100.0) -> None:
        self.a = a

    def value(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate f at x."""
        return np.sum(self.a * (x[1:] - x[:-1] ** 2) ** 2 + (1.0 - x[:-1]) ** 2)

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate gradient of f at x."""
        r = x[1:] - x[:-1] ** 2
        g = np.zeros_like(x)
        g[:-1] = -4.0 * self.a * x[:-1] * r - 2.0 * (1.0 - x[:-1])
        g[1:] += 2.0 * self.a * r
        return g

    def hessian(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Form the (tridiagonal) Hessian at x."""
        n = x.shape[0]
        H = np.zeros((n, n))
        diag = np.zeros(n)
        diag[:-1] = 12.0 * self.a * x[:-1] ** 2 - 4.0 * self.a * x[1:] + 2.0
        diag[1:] += 2.0 * self.a
        off = -4.0 * self.a * x[:-1]
        H[np.arange(n), np.arange(n)] = diag
        H[np.arange(n - 1), np.arange(1, n)] = off
        H[np.arange(1, n), np.arange(n - 1)] = off
        return H

    def hessian_vector_product(
        self, x: npt.NDArray[np.float64], v: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Multiply H(x) * v."""
        return self.hessian(x) @ v

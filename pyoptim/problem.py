r"""Problem capability set.

A problem is a bundle of optional capabilities over a decision vector x of fixed
dimension n:
- value(x): the objective, f(x)
- gradient(x): \nabla f(x)
- hessian_vector_product(x, v): \nabla^2 f(x) * v
- prox(x, t): proximal step of step size t for a nonsmooth term

Solvers declare the capabilities they need and check them when they are constructed,
so a mismatch fails fast rather than at the first evaluation. The check is
duck-typed: a problem need not inherit from any of the classes below, it just has to
expose the right methods. The abstract base classes are provided for convenience.

"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterable, List, Tuple

import numpy as np
import numpy.typing as npt

from .exceptions import ProblemCapabilityError


class Capability(Enum):
    """A problem capability, valued by the method that provides it."""

    VALUE = "value"
    GRADIENT = "gradient"
    HESSIAN_VECTOR_PRODUCT = "hessian_vector_product"
    PROX = "prox"


def supports(problem: Any, capability: Capability) -> bool:
    """Determine whether `problem` offers `capability`."""
    return callable(getattr(problem, capability.value, None))


def missing_capabilities(
    problem: Any, capabilities: Iterable[Capability]
) -> List[Capability]:
    """List the capabilities `problem` does not offer."""
    return [c for c in capabilities if not supports(problem, c)]


def require_capabilities(
    problem: Any, capabilities: Iterable[Capability], owner: str
) -> None:
    """Fail fast if `problem` lacks anything `owner` needs.

    Raises
    ------
     ProblemCapabilityError
        If any capability is missing.

    """
    missing = missing_capabilities(problem, capabilities)
    if missing:
        raise ProblemCapabilityError(
            f"{owner} cannot be used with {type(problem).__name__}",
            missing=[c.value for c in missing],
        )


class BaseProblem(ABC):
    """A problem exposing only the objective."""

    @abstractmethod
    def value(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate f at x."""


class GradProblem(BaseProblem):
    """A problem exposing the objective and its gradient."""

    @abstractmethod
    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate gradient of f at x."""


class HessProblem(GradProblem):
    """A problem exposing the objective, gradient and Hessian-vector products."""

    @abstractmethod
    def hessian_vector_product(
        self, x: npt.NDArray[np.float64], v: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Multiply H(x) * v."""

    def hessian(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Form the Hessian at x.

        The base implementation applies `hessian_vector_product` to each column of the
        identity, which takes n products. Override it when the Hessian is available
        directly.

        """
        return hessian_from_products(self, x)


def hessian_from_products(
    problem: Any, x: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """Form the (symmetrized) Hessian at x from n Hessian-vector products."""
    n = x.shape[0]
    H = np.empty((n, n))
    e = np.zeros(n)
    for ii in range(n):
        e[ii] = 1.0
        H[:, ii] = problem.hessian_vector_product(x, e)
        e[ii] = 0.0
    return 0.5 * (H + H.T)


def dense_hessian(problem: Any, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Use the problem's own `hessian` when it has one, else build it from products."""
    hessian = getattr(problem, "hessian", None)
    if callable(hessian):
        return hessian(x)
    return hessian_from_products(problem, x)


class ProxProblem(GradProblem):
    r"""A composite problem, F(x) = f(x) + r(x), with f smooth and r nonsmooth.

    `gradient` refers to the smooth part only. `prox(x, t)` must return
        argmin_z { r(z) + (1 / (2 * t)) * \| z - x \|_2^2 }.

    """

    @abstractmethod
    def smooth_value(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate f at x."""

    @abstractmethod
    def nonsmooth_value(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate r at x."""

    def value(self, x: npt.NDArray[np.float64]) -> float:
        """Calculate F = f + r at x."""
        return self.smooth_value(x) + self.nonsmooth_value(x)

    @abstractmethod
    def prox(self, x: npt.NDArray[np.float64], t: float) -> npt.NDArray[np.float64]:
        """Evaluate the proximal operator of t * r at x."""


class ProxWrapper:
    """Give a problem without a nonsmooth term an (identity) proximal operator.

    All other attribute lookups are forwarded to the wrapped problem, so the wrapper
    offers exactly the wrapped problem's capabilities plus `prox`. Use `with_prox`
    rather than instantiating this directly: it skips the wrapper when the problem
    already has a proximal operator.

    """

    def __init__(self, problem: Any) -> None:
        self.problem = problem

    def __getattr__(self, name: str) -> Any:
        return getattr(self.problem, name)

    def prox(self, x: npt.NDArray[np.float64], t: float) -> npt.NDArray[np.float64]:
        """Identity proximal operator."""
        return x


def split_value(problem: Any, x: npt.NDArray[np.float64]) -> Tuple[float, float]:
    """Evaluate the smooth part f and the full objective F at x.

    Problems without `smooth_value` have no nonsmooth term, so both are `value(x)`.

    """
    smooth_value = getattr(problem, "smooth_value", None)
    if not callable(smooth_value):
        f = problem.value(x)
        return f, f
    f = smooth_value(x)
    return f, f + problem.nonsmooth_value(x)


def with_prox(problem: Any) -> Any:
    """Return a prox-capable view of `problem`."""
    if supports(problem, Capability.PROX):
        return problem
    return ProxWrapper(problem)

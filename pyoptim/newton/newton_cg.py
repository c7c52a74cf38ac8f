"""Truncated Newton method."""

from typing import Any, Callable, Optional

import numpy as np
import numpy.typing as npt

from ..exceptions import NewtonStepError, NumericalFailure
from ..line_search import LineSearch
from ..logger import IterationLogger
from ..numerical_helpers import CGResult, conjugate_gradient
from ..optimization import IterateState, LineSearchSolver, OptimizationSettings
from ..problem import Capability


class NewtonCG(LineSearchSolver):
    r"""Newton-CG (truncated Newton) method.

    Approximately solves H * d = -g by conjugate gradient, using only Hessian-vector
    products. CG stops once |H * d + g| <= eta_k * |g|, with forcing term
       eta_k = min(0.5, sqrt(|g|))
    unless `cg_rtol` fixes it, which gives superlinear convergence near a solution
    (Nocedal and Wright, Algorithm 7.1). If CG meets a direction of non-positive
    curvature, it stops and returns the iterate so far, or -g if that happens on the
    first CG iteration, so the result is always a descent direction.

    Parameters
    ----------
     problem : problem
        Needs value, gradient and Hessian-vector products.
     line_search : LineSearch, optional
        Defaults to Moré-Thuente.
     cg_max_iterations : int, optional
        Cap on CG iterations per Newton step. Defaults to n.
     cg_rtol : float, optional
        Fixed relative residual tolerance for CG.
     preconditioner : Callable, optional
        Function computing M^{-1} * r.
     settings, logger
        See Solver.

    """

    required_capabilities = (
        Capability.VALUE,
        Capability.GRADIENT,
        Capability.HESSIAN_VECTOR_PRODUCT,
    )

    def __init__(
        self,
        problem: Any,
        line_search: Optional[LineSearch] = None,
        cg_max_iterations: Optional[int] = None,
        cg_rtol: Optional[float] = None,
        preconditioner: Optional[
            Callable[[npt.NDArray[np.float64]], npt.NDArray[np.float64]]
        ] = None,
        settings: Optional[OptimizationSettings] = None,
        logger: Optional[IterationLogger] = None,
    ) -> None:
        """Initialize solver."""
        if cg_max_iterations is not None and cg_max_iterations < 1:
            raise ValueError("cg_max_iterations must be at least 1.")
        if cg_rtol is not None and not 0 < cg_rtol < 1:
            raise ValueError("cg_rtol must be in (0, 1).")
        super().__init__(problem, line_search=line_search, settings=settings, logger=logger)
        self.cg_max_iterations = cg_max_iterations
        self.cg_rtol = cg_rtol
        self.preconditioner = preconditioner
        self.last_cg_result: Optional[CGResult] = None

    def forcing_term(self, g: npt.NDArray[np.float64]) -> float:
        """Calculate the CG tolerance."""
        if self.cg_rtol is not None:
            return self.cg_rtol
        return min(0.5, np.sqrt(np.linalg.norm(g)))

    def search_direction(
        self, state: IterateState, g: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Solve the Newton system inexactly."""
        x = state.x
        try:
            res = conjugate_gradient(
                lambda v: self.problem.hessian_vector_product(x, v),
                -g,
                rtol=self.forcing_term(g),
                max_iter=self.cg_max_iterations,
                preconditioner=self.preconditioner,
                stop_on_negative_curvature=True,
            )
        except NewtonStepError as e:
            raise NumericalFailure(
                message="Failed to calculate Newton step.", quantity="direction"
            ) from e

        self.last_cg_result = res
        return res.x

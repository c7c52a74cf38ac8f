"""Newton's method with a regularized LDL^T factorization."""

from typing import Any, Optional

import numpy as np
import numpy.typing as npt

from ..exceptions import NewtonStepError, NumericalFailure
from ..line_search import LineSearch
from ..logger import IterationLogger
from ..numerical_helpers import regularized_ldlt_solve
from ..optimization import IterateState, LineSearchSolver, OptimizationSettings
from ..problem import Capability, dense_hessian


class NewtonLDLT(LineSearchSolver):
    r"""Newton's method for small to medium dense problems.

    Forms the Hessian (from the problem's `hessian` if it has one, else from n
    Hessian-vector products) and factors it with scipy.linalg.ldl. When the inertia of
    D shows H is not positive definite, we solve with H + tau * I instead, increasing
    tau geometrically until the shifted matrix is positive definite. Large tau blends
    the step toward steepest descent.

    Parameters
    ----------
     problem : problem
        Needs value, gradient and Hessian-vector products.
     line_search : LineSearch, optional
        Defaults to Moré-Thuente.
     regularization : float, default=1e-3
        Smallest nonzero shift.
     regularization_growth : float, default=10.0
        Factor by which the shift grows.
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
        regularization: float = 1e-3,
        regularization_growth: float = 10.0,
        settings: Optional[OptimizationSettings] = None,
        logger: Optional[IterationLogger] = None,
    ) -> None:
        """Initialize solver."""
        if regularization <= 0:
            raise ValueError("regularization must be positive.")
        if regularization_growth <= 1:
            raise ValueError("regularization_growth must be greater than 1.")
        super().__init__(problem, line_search=line_search, settings=settings, logger=logger)
        self.regularization = regularization
        self.regularization_growth = regularization_growth
        self.last_shift = 0.0

    def search_direction(
        self, state: IterateState, g: npt.NDArray[np.float64]
    ) -> npt.NDArray[np.float64]:
        """Solve (H + tau * I) * d = -g."""
        H = dense_hessian(self.problem, state.x)
        try:
            d, self.last_shift = regularized_ldlt_solve(
                H,
                -g,
                initial_shift=self.regularization,
                growth=self.regularization_growth,
            )
        except NewtonStepError as e:
            raise NumericalFailure(
                message="Failed to calculate Newton step.", quantity="hessian"
            ) from e
        return d

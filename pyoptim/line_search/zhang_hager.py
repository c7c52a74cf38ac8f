r"""Nonmonotone line search of Zhang and Hager.

Reference: Zhang, H. and Hager, W. W., A Nonmonotone Line Search Technique and Its
Application to Unconstrained Optimization, SIAM J. Optim. 14(4), 2004.

"""

from typing import Any, Optional

from .armijo import ArmijoLineSearch
from .base import SQRT_EPS, FailurePolicy, LineSearchArgs


class ZhangHagerLineSearch(ArmijoLineSearch):
    r"""Backtracking against a weighted average of past objective values.

    The Armijo reference value f(x_k) is replaced by C_k, where
       Q_0 = 1,   C_0 = f(x_0),
       Q_{k+1} = eta * Q_k + 1,
       C_{k+1} = (eta * Q_k * C_k + f(x_{k+1})) / Q_{k+1}.
    eta = 0 recovers the monotone Armijo search; eta -> 1 averages over the whole
    history. Trials start from the largest step and shrink, so when several steps
    are acceptable the largest one wins.

    C_k and Q_k persist across calls and are reset by the solver at the start of each
    run. If `reset` was never called, the first search starts from C_0 = f(x).

    Parameters
    ----------
     eta : float, default=0.85
        Averaging weight, in [0, 1).
     c1, shrink, max_trials, min_step, max_step, failure_policy
        See ArmijoLineSearch.

    """

    def __init__(
        self,
        eta: float = 0.85,
        c1: float = 1e-4,
        shrink: float = 0.5,
        max_trials: int = 30,
        min_step: float = SQRT_EPS,
        max_step: float = 1e2,
        failure_policy: FailurePolicy = "raise",
    ) -> None:
        super().__init__(
            c1=c1,
            shrink=shrink,
            max_trials=max_trials,
            min_step=min_step,
            max_step=max_step,
            failure_policy=failure_policy,
        )
        if not 0 <= eta < 1:
            raise ValueError("eta must be in [0, 1).")
        self.eta = eta
        self.C: Optional[float] = None
        self.Q = 1.0

    def reset(self, problem: Any, f0: float) -> None:
        """Restart the average at f0."""
        self.C = f0
        self.Q = 1.0

    def _reference_value(self, args: LineSearchArgs) -> float:
        if self.C is None:
            self.reset(None, args.f)
        return self.C

    def _accept(self, f_new: float) -> None:
        Q_new = self.eta * self.Q + 1.0
        self.C = (self.eta * self.Q * self.C + f_new) / Q_new
        self.Q = Q_new

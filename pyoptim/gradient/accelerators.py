r"""First-order accelerators.

An accelerator turns the raw gradient into a search direction. Each one exposes:
- reset(x0): forget all state; called by the solver at the start of every run,
- lookahead(state): the point at which the raw gradient is evaluated and from which
  the step is taken (the current iterate, except for Nesterov),
- apply(raw_gradient, state): the search direction, updating internal moving
  averages as a side effect.
Given the same sequence of inputs after `reset`, every accelerator produces the same
sequence of directions.

Per-coordinate methods add `epsilon` to every denominator.

"""

from typing import Optional

import numpy as np
import numpy.typing as npt

from ..optimization import IterateState


class Accelerator:
    """Plain steepest descent, d = -g.

    Parameters
    ----------
     epsilon : float, default=1e-8
        Added to per-coordinate denominators.

    """

    preferred_step: Optional[float] = None

    def __init__(self, epsilon: float = 1e-8) -> None:
        if epsilon <= 0:
            raise ValueError("epsilon must be positive.")
        self.epsilon = epsilon

    def reset(self, x0: npt.NDArray[np.float64]) -> None:
        """Forget all state."""

    def lookahead(self, state: IterateState) -> npt.NDArray[np.float64]:
        """Point at which to evaluate the gradient."""
        return state.x

    def apply(
        self, raw_gradient: npt.NDArray[np.float64], state: IterateState
    ) -> npt.NDArray[np.float64]:
        """Calculate search direction."""
        return -raw_gradient


class Nesterov(Accelerator):
    r"""Nesterov's accelerated gradient.

    The gradient is evaluated at the extrapolated point
       y_k = x_k + mu_k * (x_k - x_{k-1}),
    and the step is taken from there.

    Parameters
    ----------
     momentum : float, optional
        Constant mu_k, in [0, 1). With the default, None, mu_k = (k - 1) / (k + 2),
        the FISTA schedule. For a strongly convex problem with condition number
        kappa, (sqrt(kappa) - 1) / (sqrt(kappa) + 1) gives linear convergence.
     epsilon : float, default=1e-8
        See Accelerator. Unused by this method.

    """

    def __init__(
        self, momentum: Optional[float] = None, epsilon: float = 1e-8
    ) -> None:
        super().__init__(epsilon=epsilon)
        if momentum is not None and not 0 <= momentum < 1:
            raise ValueError("momentum must be in [0, 1).")
        self.momentum = momentum

    def coefficient(self, k: int) -> float:
        """Calculate mu_k."""
        if self.momentum is not None:
            return self.momentum
        return max(0.0, (k - 1.0) / (k + 2.0))

    def lookahead(self, state: IterateState) -> npt.NDArray[np.float64]:
        """Extrapolate along the last step."""
        if state.x_prev is None:
            return state.x
        return state.x + self.coefficient(state.iteration) * (state.x - state.x_prev)


class AdaGrad(Accelerator):
    """AdaGrad: scale each coordinate by its accumulated squared gradient.

    G_k = G_{k-1} + g^2 and d = -g / sqrt(G_k + epsilon).

    """

    def reset(self, x0: npt.NDArray[np.float64]) -> None:
        """Zero the accumulator."""
        self.G = np.zeros_like(x0, dtype=np.float64)

    def apply(
        self, raw_gradient: npt.NDArray[np.float64], state: IterateState
    ) -> npt.NDArray[np.float64]:
        """Calculate search direction."""
        self.G += raw_gradient**2
        return -raw_gradient / np.sqrt(self.G + self.epsilon)


class RMSProp(Accelerator):
    """RMSProp: like AdaGrad, but with an exponential moving average.

    Parameters
    ----------
     decay : float, default=0.9
        Weight on the previous average, in [0, 1).
     epsilon : float, default=1e-8
        See Accelerator.

    """

    def __init__(self, decay: float = 0.9, epsilon: float = 1e-8) -> None:
        super().__init__(epsilon=epsilon)
        if not 0 <= decay < 1:
            raise ValueError("decay must be in [0, 1).")
        self.decay = decay

    def reset(self, x0: npt.NDArray[np.float64]) -> None:
        """Zero the moving average."""
        self.M = np.zeros_like(x0, dtype=np.float64)

    def apply(
        self, raw_gradient: npt.NDArray[np.float64], state: IterateState
    ) -> npt.NDArray[np.float64]:
        """Calculate search direction."""
        self.M = self.decay * self.M + (1.0 - self.decay) * raw_gradient**2
        return -raw_gradient / np.sqrt(self.M + self.epsilon)


class AdaDelta(RMSProp):
    r"""AdaDelta.

    Keeps moving averages of squared gradients, M, and of squared realized updates
    x_k - x_{k-1}, D, and uses
       d = -sqrt(D + epsilon) / sqrt(M + epsilon) * g.
    The ratio has units of x, so the method is meant to be run with step 1.

    """

    preferred_step = 1.0

    def reset(self, x0: npt.NDArray[np.float64]) -> None:
        """Zero both moving averages."""
        super().reset(x0)
        self.D = np.zeros_like(x0, dtype=np.float64)

    def apply(
        self, raw_gradient: npt.NDArray[np.float64], state: IterateState
    ) -> npt.NDArray[np.float64]:
        """Calculate search direction."""
        s = state.s
        if s is not None:
            self.D = self.decay * self.D + (1.0 - self.decay) * s**2
        self.M = self.decay * self.M + (1.0 - self.decay) * raw_gradient**2
        return -np.sqrt(self.D + self.epsilon) / np.sqrt(self.M + self.epsilon) * (
            raw_gradient
        )


class Adam(Accelerator):
    r"""Adam: bias-corrected moving averages of the gradient and its square.

       m_k = beta1 * m_{k-1} + (1 - beta1) * g
       v_k = beta2 * v_{k-1} + (1 - beta2) * g^2
       d = -m_k / (1 - beta1^k) / (sqrt(v_k / (1 - beta2^k)) + epsilon)

    Parameters
    ----------
     beta1 : float, default=0.9
        Decay of the first moment, in [0, 1).
     beta2 : float, default=0.999
        Decay of the second moment, in [0, 1).
     epsilon : float, default=1e-8
        See Accelerator.

    """

    def __init__(
        self, beta1: float = 0.9, beta2: float = 0.999, epsilon: float = 1e-8
    ) -> None:
        super().__init__(epsilon=epsilon)
        if not 0 <= beta1 < 1 or not 0 <= beta2 < 1:
            raise ValueError("beta1 and beta2 must be in [0, 1).")
        self.beta1 = beta1
        self.beta2 = beta2

    def reset(self, x0: npt.NDArray[np.float64]) -> None:
        """Zero both moments."""
        self.m = np.zeros_like(x0, dtype=np.float64)
        self.v = np.zeros_like(x0, dtype=np.float64)
        self.k = 0

    def apply(
        self, raw_gradient: npt.NDArray[np.float64], state: IterateState
    ) -> npt.NDArray[np.float64]:
        """Calculate search direction."""
        self.k += 1
        self.m = self.beta1 * self.m + (1.0 - self.beta1) * raw_gradient
        self.v = self.beta2 * self.v + (1.0 - self.beta2) * raw_gradient**2
        m_hat = self.m / (1.0 - self.beta1**self.k)
        v_hat = self.v / (1.0 - self.beta2**self.k)
        return -m_hat / (np.sqrt(v_hat) + self.epsilon)

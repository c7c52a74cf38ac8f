"""Step length schedules for gradient methods."""

from dataclasses import dataclass
from typing import Literal, Optional

import numpy as np
import numpy.typing as npt


@dataclass
class StepHistory:
    """What a scheduler sees at each iteration.

    Parameters
    ----------
     iteration : int
        Number of completed iterations.
     step : float
        Step proposed at the previous iteration.
     s : vector, optional
        x_k - x_{k-1}; None on the first iteration.
     y : vector, optional
        g_k - g_{k-1}; None on the first iteration.

    """

    iteration: int
    step: float
    s: Optional[npt.NDArray[np.float64]] = None
    y: Optional[npt.NDArray[np.float64]] = None


class StepScheduler:
    """Constant step."""

    def reset(self, initial_step: float) -> None:
        """Restart the schedule."""
        self.initial_step = initial_step

    def next_step(self, history: StepHistory) -> float:
        """Propose the step for the next iteration."""
        return history.step


class BBStepScheduler(StepScheduler):
    r"""Barzilai-Borwein steps.

    The long step, s^T * s / s^T * y, and the short step, s^T * y / y^T * y, are both
    inverses of scalar secant approximations to the Hessian. "alternate" uses the long
    step on even iterations and the short step on odd ones.

    When the curvature estimate is unusable (s^T * y <= eps * |s| * |y|, or anything
    non-finite) the scheduler returns `fallback_step`. Steps are clipped to
    [min_step, max_step].

    Parameters
    ----------
     variant : {"alternate", "long", "short"}, default="alternate"
        Which BB step to use.
     fallback_step : float, default=1e-2
        Step used when the curvature estimate is unusable.
     min_step, max_step : float
        Bounds on the returned step.

    """

    def __init__(
        self,
        variant: Literal["alternate", "long", "short"] = "alternate",
        fallback_step: float = 1e-2,
        min_step: float = 1e-10,
        max_step: float = 1e10,
    ) -> None:
        if variant not in ("alternate", "long", "short"):
            raise ValueError(f"Unknown variant: {variant}")
        if not 0 < min_step <= max_step:
            raise ValueError("Need 0 < min_step <= max_step.")
        if fallback_step <= 0:
            raise ValueError("fallback_step must be positive.")
        self.variant = variant
        self.fallback_step = fallback_step
        self.min_step = min_step
        self.max_step = max_step

    def next_step(self, history: StepHistory) -> float:
        """Calculate the BB step."""
        if history.s is None or history.y is None:
            return history.step

        s, y = history.s, history.y
        sy = np.dot(s, y)
        eps = np.finfo(np.float64).eps
        if not np.isfinite(sy) or sy <= eps * np.linalg.norm(s) * np.linalg.norm(y):
            return self.fallback_step

        use_long = self.variant == "long" or (
            self.variant == "alternate" and history.iteration % 2 == 0
        )
        if use_long:
            step = np.dot(s, s) / sy
        else:
            step = sy / np.dot(y, y)

        if not np.isfinite(step):
            return self.fallback_step
        return float(min(max(step, self.min_step), self.max_step))


class ExpStepScheduler(StepScheduler):
    """Exponentially decaying step, initial_step * decay^k.

    The schedule ignores the initial step passed to `reset` and uses its own. Line
    searches clip every proposed step to their [min_step, max_step]; the default
    line search of GradientDescent has min_step equal to the smallest normal
    float, so the schedule is followed all the way down.

    Parameters
    ----------
     initial_step : float, default=1.0
        Step at k = 0.
     decay : float, default=0.9
        Ratio between consecutive steps, in (0, 1].

    """

    def __init__(self, initial_step: float = 1.0, decay: float = 0.9) -> None:
        if initial_step <= 0:
            raise ValueError("initial_step must be positive.")
        if not 0 < decay <= 1:
            raise ValueError("decay must be in (0, 1].")
        self.initial_step = initial_step
        self.decay = decay

    def reset(self, initial_step: float) -> None:
        """Nothing to reset."""

    def next_step(self, history: StepHistory) -> float:
        """Calculate initial_step * decay^k."""
        return self.initial_step * self.decay**history.iteration

"""First-order methods."""

from .accelerators import AdaDelta, AdaGrad, Adam, Accelerator, Nesterov, RMSProp
from .barzilai_borwein import BarzilaiBorwein
from .gradient_descent import GradientDescent
from .schedulers import BBStepScheduler, ExpStepScheduler, StepHistory, StepScheduler

__all__ = [
    "Accelerator",
    "AdaDelta",
    "AdaGrad",
    "Adam",
    "BBStepScheduler",
    "BarzilaiBorwein",
    "ExpStepScheduler",
    "GradientDescent",
    "Nesterov",
    "RMSProp",
    "StepHistory",
    "StepScheduler",
]

"""Barzilai-Borwein gradient method."""

from typing import Any, Optional

from ..line_search import LineSearch, ZhangHagerLineSearch
from ..logger import IterationLogger
from ..optimization import OptimizationSettings
from .accelerators import Accelerator
from .gradient_descent import GradientDescent
from .schedulers import BBStepScheduler, StepScheduler


class BarzilaiBorwein(GradientDescent):
    """Gradient descent with BB steps safeguarded by a nonmonotone line search.

    BB steps do not decrease the objective monotonically, so the default line search
    is Zhang-Hager rather than Armijo. The first iteration uses
    settings.initial_step.

    """

    def __init__(
        self,
        problem: Any,
        line_search: Optional[LineSearch] = None,
        accelerator: Optional[Accelerator] = None,
        scheduler: Optional[StepScheduler] = None,
        settings: Optional[OptimizationSettings] = None,
        logger: Optional[IterationLogger] = None,
        proximal: bool = False,
    ) -> None:
        """Initialize solver."""
        super().__init__(
            problem,
            line_search=line_search,
            accelerator=accelerator,
            scheduler=scheduler if scheduler is not None else BBStepScheduler(),
            settings=settings,
            logger=logger,
            proximal=proximal,
        )

    def default_line_search(self) -> LineSearch:
        """Nonmonotone line search."""
        return ZhangHagerLineSearch()

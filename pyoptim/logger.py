"""Iteration logging.

Solvers send one IterationRecord per outer iteration to an IterationLogger. Loggers
are write-only sinks: nothing a logger does feeds back into the solver.

"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import matplotlib.pyplot as plt
import numpy as np
import numpy.typing as npt
from matplotlib.axes import Axes


@dataclass(frozen=True)
class IterationRecord:
    """Snapshot of one outer iteration.

    Parameters
    ----------
     iteration : int
        Iteration number; 0 is the starting point.
     x : vector
        Current iterate.
     f : float
        Objective value at x.
     gradient_norm : float
        Norm of the gradient (or gradient mapping) at x.
     step_length : float
        Step length accepted in this iteration; 0 at the starting point.

    """

    iteration: int
    x: npt.NDArray[np.float64]
    f: float
    gradient_norm: float
    step_length: float


class IterationLogger(ABC):
    """Base class for a logger."""

    @abstractmethod
    def log(self, record: IterationRecord) -> None:
        """Receive a record."""


class HistoryLogger(IterationLogger):
    """Keep every record in memory.

    Parameters
    ----------
     keep_iterates : bool, default=True
        If False, drop x from stored records to save memory.

    """

    def __init__(self, keep_iterates: bool = True) -> None:
        self.keep_iterates = keep_iterates
        self.records: List[IterationRecord] = []

    def log(self, record: IterationRecord) -> None:
        """Store a record."""
        if self.keep_iterates:
            record = IterationRecord(
                iteration=record.iteration,
                x=record.x.copy(),
                f=record.f,
                gradient_norm=record.gradient_norm,
                step_length=record.step_length,
            )
        else:
            record = IterationRecord(
                iteration=record.iteration,
                x=np.empty(0),
                f=record.f,
                gradient_norm=record.gradient_norm,
                step_length=record.step_length,
            )
        self.records.append(record)

    @property
    def objective_values(self) -> List[float]:
        """Objective value at each iteration."""
        return [r.f for r in self.records]

    @property
    def gradient_norms(self) -> List[float]:
        """Gradient norm at each iteration."""
        return [r.gradient_norm for r in self.records]

    @property
    def step_lengths(self) -> List[float]:
        """Accepted step length at each iteration."""
        return [r.step_length for r in self.records]

    def plot_convergence(self, ax: Optional[Axes] = None) -> Axes:
        """Plot gradient norm by iteration."""
        if ax is None:
            _, ax = plt.subplots()

        ax.plot(
            [r.iteration for r in self.records], self.gradient_norms, marker="o"
        )
        ax.set_yscale("log")
        ax.set_xlabel("Iteration")
        ax.set_ylabel("Gradient Norm")
        return ax


class PrintLogger(IterationLogger):
    """Print a line every `every` iterations.

    Parameters
    ----------
     every : int, default=1
        Print frequency. The starting point is always printed.
     prefix : str, default="  "
        Indentation for each line, for nesting inside outer solvers.

    """

    def __init__(self, every: int = 1, prefix: str = "  ") -> None:
        if every < 1:
            raise ValueError("every must be at least 1.")
        self.every = every
        self.prefix = prefix

    def log(self, record: IterationRecord) -> None:
        """Print a record."""
        if record.iteration % self.every != 0:
            return
        print(
            f"{self.prefix}{record.iteration:04d} f={record.f:<16.8g} "
            f"|g|={record.gradient_norm:<12.4g} step={record.step_length:.4g}"
        )

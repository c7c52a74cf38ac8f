r"""Numerical optimization.

Introduction
------------
This package provides solvers for smooth (and composite smooth + nonsmooth) problems:
    minimize    f(x),
and, through the augmented Lagrangian method, constrained problems:
    minimize    f(x)
    subject to  c(x) = 0
                h(x) <= 0.

Solvers are assembled from interchangeable pieces:
- a problem, offering some subset of value, gradient, Hessian-vector products and a
  proximal operator,
- a line search (Armijo, Moré-Thuente, Zhang-Hager, or a fixed step),
- for gradient methods, an accelerator (Nesterov, AdaGrad, RMSProp, AdaDelta, Adam)
  and a step scheduler (Barzilai-Borwein, exponential decay).
Solvers check that the problem offers what they need when they are constructed.

Usage
-----
Inherit from GradProblem (or HessProblem, or ProxProblem), or wrap plain functions in a
FunctionProblem, then hand it to a solver:

    problem = QuadraticProblem(A, b)
    res = LBFGS(problem).solve(x0)
    res.raise_for_status()

Every solve ends in one of the statuses in SolverStatus. Running out of iterations or
failing to find a step is reported in the result; an EvaluationError raised by the
problem propagates to the caller.

References
----------
- Nocedal, Jorge and Wright, Stephen J., Numerical Optimization, 2nd ed., Springer,
  2006.

"""

from .constrained import (
    AugmentedLagrangianMethod,
    AugmentedLagrangianProblem,
    AugmentedLagrangianResult,
    AugmentedLagrangianSettings,
    ConstrainedProblem,
)
from .exceptions import (
    EvaluationError,
    IntervalCollapseError,
    InvalidDescentDirectionError,
    LineSearchFailure,
    NewtonStepError,
    NumericalFailure,
    OptimizationError,
    ProblemCapabilityError,
    SolverFailedError,
    SufficientDecreaseError,
)
from .gradient import (
    Accelerator,
    AdaDelta,
    AdaGrad,
    Adam,
    BarzilaiBorwein,
    BBStepScheduler,
    ExpStepScheduler,
    GradientDescent,
    Nesterov,
    RMSProp,
    StepHistory,
    StepScheduler,
)
from .history import HistoryBuffer, two_loop_recursion
from .line_search import (
    ArmijoLineSearch,
    FixedStepLineSearch,
    LineSearch,
    LineSearchArgs,
    LineSearchResult,
    MoreThuenteLineSearch,
    MTLineSearch,
    ZhangHagerLineSearch,
    ZHLineSearch,
)
from .logger import HistoryLogger, IterationLogger, IterationRecord, PrintLogger
from .newton import BFGS, LBFGS, NewtonCG, NewtonLDLT
from .optimization import (
    IterateState,
    LineSearchSolver,
    OptimizationResult,
    OptimizationSettings,
    Solver,
    SolverResult,
    SolverStatus,
)
from .problem import (
    BaseProblem,
    Capability,
    GradProblem,
    HessProblem,
    ProxProblem,
    ProxWrapper,
    require_capabilities,
    split_value,
    supports,
    with_prox,
)
from .problems import FunctionProblem, QuadraticProblem, RosenbrockProblem

__all__ = [
    "Accelerator",
    "AdaDelta",
    "AdaGrad",
    "Adam",
    "ArmijoLineSearch",
    "AugmentedLagrangianMethod",
    "AugmentedLagrangianProblem",
    "AugmentedLagrangianResult",
    "AugmentedLagrangianSettings",
    "BarzilaiBorwein",
    "BaseProblem",
    "BBStepScheduler",
    "BFGS",
    "Capability",
    "ConstrainedProblem",
    "EvaluationError",
    "ExpStepScheduler",
    "FixedStepLineSearch",
    "FunctionProblem",
    "GradientDescent",
    "GradProblem",
    "HessProblem",
    "HistoryBuffer",
    "HistoryLogger",
    "IntervalCollapseError",
    "InvalidDescentDirectionError",
    "IterateState",
    "IterationLogger",
    "IterationRecord",
    "LBFGS",
    "LineSearch",
    "LineSearchArgs",
    "LineSearchFailure",
    "LineSearchResult",
    "LineSearchSolver",
    "MoreThuenteLineSearch",
    "MTLineSearch",
    "Nesterov",
    "NewtonCG",
    "NewtonLDLT",
    "NewtonStepError",
    "NumericalFailure",
    "OptimizationError",
    "OptimizationResult",
    "OptimizationSettings",
    "PrintLogger",
    "ProblemCapabilityError",
    "ProxProblem",
    "ProxWrapper",
    "QuadraticProblem",
    "RMSProp",
    "RosenbrockProblem",
    "Solver",
    "SolverFailedError",
    "SolverResult",
    "SolverStatus",
    "StepHistory",
    "StepScheduler",
    "SufficientDecreaseError",
    "ZhangHagerLineSearch",
    "ZHLineSearch",
    "require_capabilities",
    "split_value",
    "supports",
    "two_loop_recursion",
    "with_prox",
]

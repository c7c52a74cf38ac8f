"""Newton and quasi-Newton methods."""

from .bfgs import BFGS
from .lbfgs import LBFGS
from .newton_cg import NewtonCG
from .newton_ldlt import NewtonLDLT

__all__ = ["BFGS", "LBFGS", "NewtonCG", "NewtonLDLT"]

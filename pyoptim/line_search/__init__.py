"""Line searches."""

from .armijo import ArmijoLineSearch
from .base import (
    FixedStepLineSearch,
    LineSearch,
    LineSearchArgs,
    LineSearchResult,
)
from .more_thuente import MoreThuenteLineSearch
from .zhang_hager import ZhangHagerLineSearch

MTLineSearch = MoreThuenteLineSearch
ZHLineSearch = ZhangHagerLineSearch

__all__ = [
    "ArmijoLineSearch",
    "FixedStepLineSearch",
    "LineSearch",
    "LineSearchArgs",
    "LineSearchResult",
    "MoreThuenteLineSearch",
    "MTLineSearch",
    "ZhangHagerLineSearch",
    "ZHLineSearch",
]

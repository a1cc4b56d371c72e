"""Termination predicates and progress callbacks for the iteration loop."""

from anysim.diagnostics.callbacks import (
    PrintIterationCallback,
    ResidualHistoryCallback,
    make_callback,
)
from anysim.diagnostics.termination import (
    FixedIterationCount,
    RelativeResidual,
    TimeLimit,
    make_termination_condition,
)

__all__ = [
    "FixedIterationCount",
    "PrintIterationCallback",
    "RelativeResidual",
    "ResidualHistoryCallback",
    "TimeLimit",
    "make_callback",
    "make_termination_condition",
]

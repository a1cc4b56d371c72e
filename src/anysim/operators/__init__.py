"""Medium, propagator and transform operators used by the iteration."""

from anysim.operators.medium import Medium, center_scale
from anysim.operators.propagator import MatrixPropagator
from anysim.operators.transform import FourierTransform

__all__ = [
    "FourierTransform",
    "MatrixPropagator",
    "Medium",
    "center_scale",
]

"""Verification problems with analytical solutions."""

from anysim.verification.green_function import (
    GreenFunctionResult,
    green_function_1d,
    run_green_function_check,
)

__all__ = [
    "GreenFunctionResult",
    "green_function_1d",
    "run_green_function_check",
]

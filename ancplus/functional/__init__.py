"""
Functional Utilities Module

Result monad used for composable error handling across the core.
"""

from .result_monad import (
    Result,
    Success,
    Failure,
    success,
    failure
)

__all__ = [
    "Result",
    "Success",
    "Failure",
    "success",
    "failure"
]

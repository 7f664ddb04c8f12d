"""
Validation Framework for the Nell-Hammer Projection.

This module provides runtime consistency checks of a configured projection.
"""

from validation.projection_checks import (
    ProjectionConsistencyChecker,
    ValidationResult,
)

__all__ = [
    "ProjectionConsistencyChecker",
    "ValidationResult",
]

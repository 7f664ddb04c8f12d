"""
Common utilities and infrastructure for the Nell-Hammer projection system.

This package provides foundational components used across all modules:
- Numerical constants with provenance
- Unit registry for boundary conversions
- Value types for points and projection parameters
- Logging and audit trail infrastructure
"""

from common.constants import ProjectionConstants
from common.units import angle_to_radians, length_to_meters
from common.types import (
    GeographicPoint,
    PlanarPoint,
    InverseOutcome,
    InverseSolution,
    ProjectionParameters,
)
from common.logging_config import get_logger, AuditLogger

__all__ = [
    "ProjectionConstants",
    "angle_to_radians",
    "length_to_meters",
    "GeographicPoint",
    "PlanarPoint",
    "InverseOutcome",
    "InverseSolution",
    "ProjectionParameters",
    "get_logger",
    "AuditLogger",
]

"""
Numerical and Geometric Constants for the Nell-Hammer Projection.

This module provides the constants used by the projection core and its
host layer. Every constant carries its unit, provenance and a short
description so that the iteration budget and tolerances are traceable.

References
----------
- PROJ, src/projections/nell_h.cpp (iteration budget and tolerance)
- Snyder, J.P. (1993). Flattening the Earth. University of Chicago Press.
- IUGG mean Earth radius: Moritz, H. (2000). Geodetic Reference System 1980.
"""

from dataclasses import dataclass
from typing import Final
import numpy as np


@dataclass(frozen=True)
class Constant:
    """A constant with uncertainty and provenance.

    Attributes
    ----------
    value : float
        The nominal value of the constant.
    uncertainty : float
        The standard uncertainty (1-sigma) of the constant.
    unit : str
        The unit of the constant.
    source : str
        Reference for the constant value.
    description : str
        Human-readable description of the constant.
    """
    value: float
    uncertainty: float
    unit: str
    source: str
    description: str


class ProjectionConstants:
    """Registry of constants used by the projection system.

    Inverse Iteration
    -----------------
    The Nell-Hammer inverse is solved with a Newton-Raphson iteration
    that is hard-capped, so every call finishes in a bounded number of
    steps.

    Sphere
    ------
    The projection family is defined on the unit sphere. Metric output
    is obtained by scaling with a radius supplied by the caller.
    """

    # =========================================================================
    # Nell-Hammer inverse iteration
    # =========================================================================

    NELL_H_MAX_ITERATIONS: Final[int] = 9

    NELL_H_CONVERGENCE_TOLERANCE: Final[Constant] = Constant(
        value=1e-7,
        uncertainty=0.0,
        unit="radian",
        source="PROJ nell_h",
        description="Newton step size below which the latitude is considered converged"
    )

    # =========================================================================
    # Angular limits
    # =========================================================================

    HALF_PI: Final[float] = np.pi / 2

    LATITUDE_TOLERANCE: Final[Constant] = Constant(
        value=1e-12,
        uncertainty=0.0,
        unit="radian",
        source="PROJ generic forward latitude check",
        description="Slack accepted beyond +/- pi/2 before a latitude is rejected"
    )

    # =========================================================================
    # Sphere radius
    # =========================================================================

    UNIT_SPHERE_RADIUS: Final[Constant] = Constant(
        value=1.0,
        uncertainty=0.0,
        unit="dimensionless",
        source="Projection family convention",
        description="Default radius; planar output is in sphere radii"
    )

    EARTH_MEAN_RADIUS: Final[Constant] = Constant(
        value=6_371_008.8,
        uncertainty=0.1,
        unit="m",
        source="IUGG mean radius",
        description="Mean radius of Earth, conventional radius for metric output"
    )

    @staticmethod
    def nearest_pole(value: float) -> float:
        """Return the latitude of the pole on the side of ``value``.

        Zero maps to the north pole.

        Parameters
        ----------
        value : float
            Any signed quantity (e.g. a northing).

        Returns
        -------
        float
            -pi/2 for negative input, +pi/2 otherwise.
        """
        return -ProjectionConstants.HALF_PI if value < 0.0 else ProjectionConstants.HALF_PI

"""
Type Definitions for the Projection System.

This module defines the value types exchanged between the projection
core and its host: geographic and planar points, the tagged result of
the inverse iteration, and the immutable projection parameter record.

Design Rationale
----------------
Using typed dataclasses instead of raw tuples provides:
1. Self-documenting code - field names describe the data
2. Immutability - points and parameters are frozen snapshots
3. Clear unit expectations in docstrings
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple
import numpy as np


@dataclass(frozen=True)
class GeographicPoint:
    """A geographic coordinate on the sphere.

    Attributes
    ----------
    lam : float
        Longitude in RADIANS, positive east. Conceptually in (-π, π].
    phi : float
        Latitude in RADIANS, positive north. Range: [-π/2, π/2].

    Notes
    -----
    No range checks are made here. The projection core accepts whatever
    it is given; range checks belong to the host layer.

    Examples
    --------
    >>> p = GeographicPoint.from_degrees(lon_deg=10.0, lat_deg=45.0)
    >>> round(p.to_degrees()[1], 6)
    45.0
    """
    lam: float  # radians
    phi: float  # radians

    def to_degrees(self) -> Tuple[float, float]:
        """Convert to degrees for display.

        Returns
        -------
        Tuple[float, float]
            (longitude_degrees, latitude_degrees)
        """
        return float(np.degrees(self.lam)), float(np.degrees(self.phi))

    @classmethod
    def from_degrees(cls, lon_deg: float, lat_deg: float) -> 'GeographicPoint':
        """Create a point from degrees (convenience constructor)."""
        return cls(lam=float(np.radians(lon_deg)), phi=float(np.radians(lat_deg)))


@dataclass(frozen=True)
class PlanarPoint:
    """A projected coordinate.

    Attributes
    ----------
    x : float
        Easting, in the linear unit of the sphere radius.
    y : float
        Northing, in the linear unit of the sphere radius.
    """
    x: float
    y: float


class InverseOutcome(Enum):
    """How the inverse iteration terminated."""
    CONVERGED = "converged"
    POLE_APPROXIMATION = "pole_approximation"


@dataclass(frozen=True)
class InverseSolution:
    """Tagged result of the inverse transform.

    Attributes
    ----------
    point : GeographicPoint
        The recovered geographic coordinate. Always present.
    outcome : InverseOutcome
        CONVERGED when the Newton step fell below tolerance,
        POLE_APPROXIMATION when the iteration budget ran out and the
        latitude was clamped to a pole.
    iterations : int
        Number of Newton steps taken.
    """
    point: GeographicPoint
    outcome: InverseOutcome
    iterations: int

    @property
    def converged(self) -> bool:
        return self.outcome is InverseOutcome.CONVERGED


ForwardFunction = Callable[[GeographicPoint, 'ProjectionParameters'], PlanarPoint]
InverseFunction = Callable[[PlanarPoint, 'ProjectionParameters'], InverseSolution]


@dataclass(frozen=True)
class ProjectionParameters:
    """Immutable description of a configured projection.

    A snapshot is created once, completed by the projection's setup
    function, and then shared read-only by every transform call.

    Attributes
    ----------
    name : str
        Short registered key (e.g. "nell_h").
    description : str
        Descriptive tag of the projection.
    a : float
        Sphere radius. Planar output is in the same unit.
    es : float
        Eccentricity squared. Sphere-only projections force this to 0.
    lam0 : float
        Central meridian in RADIANS.
    x0, y0 : float
        False easting and northing, in the unit of ``a``.
    over : bool
        If True, longitudes are not wrapped into [-π, π].
    fwd, inv : callable, optional
        Forward and inverse transforms, installed by setup. ``inv``
        returns an `InverseSolution` so that the outcome tag reaches
        the host; the host still hands its caller a coordinate.
    """
    name: str
    description: str = ""
    a: float = 1.0
    es: float = 0.0
    lam0: float = 0.0
    x0: float = 0.0
    y0: float = 0.0
    over: bool = False
    fwd: Optional[ForwardFunction] = None
    inv: Optional[InverseFunction] = None

    @property
    def is_sphere(self) -> bool:
        return self.es == 0.0

    @property
    def is_configured(self) -> bool:
        """True once both transforms are installed."""
        return self.fwd is not None and self.inv is not None

    def as_config(self) -> dict:
        """Serializable view of the numeric parameters (used for hashing)."""
        return {
            "name": self.name,
            "a": self.a,
            "es": self.es,
            "lam0": self.lam0,
            "x0": self.x0,
            "y0": self.y0,
            "over": self.over,
        }

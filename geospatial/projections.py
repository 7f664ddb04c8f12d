"""
Map Projection Host with Distortion Tracking.

This module hosts projection cores behind a common adapter interface.
The host does everything a core leaves to its caller:

- latitude/longitude range checks on the forward path
- central meridian shift and longitude wrapping
- scaling by the sphere radius and the false origin
- unit conversion for the degree-based convenience API
- logging and auditing of degraded inverse results

It also quantifies local distortion with Tissot's indicatrix so that
downstream computations can account for it.

Scientific Context
------------------
Domain: Cartography, mathematical geodesy
Model: Spherical pseudocylindrical projections

References
----------
- Snyder, J.P. (1987). Map Projections - A Working Manual. USGS Prof. Paper 1395.
- Tissot, A. (1859). Mémoire sur la représentation des surfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple, Union
import numpy as np
from numpy.typing import NDArray
import pint

from common.constants import ProjectionConstants
from common.logging_config import AuditLogger, get_logger
from common.types import (
    GeographicPoint,
    PlanarPoint,
    InverseSolution,
    ProjectionParameters,
)
from common.units import angle_to_radians
from geospatial.nell_hammer import (
    PROJECTION_NAME as NELL_H_NAME,
    forward_array,
    inverse_array,
)
from geospatial.registry import (
    ProjectionRegistry,
    default_registry,
    format_proj_string,
    parameters_from_proj_string,
)

logger = get_logger(__name__)

HALF_PI = ProjectionConstants.HALF_PI
LATITUDE_TOLERANCE = ProjectionConstants.LATITUDE_TOLERANCE.value
LONGITUDE_LIMIT = 10.0  # radians; larger inputs are rejected as garbage

Angle = Union[float, pint.Quantity]


@dataclass
class TissotIndicatrix:
    """Tissot's indicatrix describing local distortion at a point.

    The Tissot indicatrix shows how an infinitesimally small circle
    on the Earth's surface is distorted into an ellipse on the map.

    Attributes
    ----------
    h : float
        Scale factor along the meridian.
    k : float
        Scale factor along the parallel.
    semi_major : float
        Semi-major axis of the distortion ellipse (maximum scale).
    semi_minor : float
        Semi-minor axis of the distortion ellipse (minimum scale).
    area_scale : float
        Area distortion factor (semi_major * semi_minor).
    angular_distortion_rad : float
        Maximum angular distortion in radians.

    Notes
    -----
    - For a conformal projection: semi_major = semi_minor
    - For an equal-area projection: area_scale = 1.0 (but shapes are distorted)
    """
    h: float
    k: float
    semi_major: float
    semi_minor: float
    area_scale: float
    angular_distortion_rad: float

    @property
    def is_conformal(self) -> bool:
        """Check if projection is locally conformal (circle, no angular distortion)."""
        return np.abs(self.semi_major - self.semi_minor) < 1e-6

    @property
    def is_equal_area(self) -> bool:
        """Check if projection is locally equal-area."""
        return np.abs(self.area_scale - 1.0) < 1e-6


class ProjectionAdapter(ABC):
    """Abstract base class for map projection adapters.

    All projections in this system must implement this interface to
    ensure consistent handling of coordinates and distortions.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of the projection."""
        pass

    @property
    @abstractmethod
    def proj4_string(self) -> str:
        """PROJ.4 definition string."""
        pass

    @property
    @abstractmethod
    def preserves_angles(self) -> bool:
        """Whether this is a conformal projection."""
        pass

    @property
    @abstractmethod
    def preserves_area(self) -> bool:
        """Whether this is an equal-area projection."""
        pass

    @abstractmethod
    def to_projected(
        self,
        lat_rad: float,
        lon_rad: float
    ) -> Tuple[float, float]:
        """Transform geographic coordinates to projected coordinates.

        Parameters
        ----------
        lat_rad, lon_rad : float
            Geographic coordinates in radians.

        Returns
        -------
        Tuple[float, float]
            (x, y) projected coordinates in the unit of the radius.
        """
        pass

    @abstractmethod
    def to_geodetic(
        self,
        x: float,
        y: float
    ) -> Tuple[float, float]:
        """Transform projected coordinates to geographic.

        Parameters
        ----------
        x, y : float
            Projected coordinates in the unit of the radius.

        Returns
        -------
        Tuple[float, float]
            (lat_rad, lon_rad) geographic coordinates in radians.
        """
        pass

    @abstractmethod
    def compute_distortion(
        self,
        lat_rad: float,
        lon_rad: float
    ) -> TissotIndicatrix:
        """Compute local distortion at a point.

        Parameters
        ----------
        lat_rad, lon_rad : float
            Location in geographic coordinates (radians).

        Returns
        -------
        TissotIndicatrix
            Local distortion characteristics.
        """
        pass


def wrap_longitude(lam: float) -> float:
    """Wrap a longitude into [-π, π], leaving in-range values untouched."""
    if np.abs(lam) <= np.pi + LATITUDE_TOLERANCE:
        return lam
    return float((lam + np.pi) % (2.0 * np.pi) - np.pi)


def _wrap_longitude_array(lam: NDArray[np.float64]) -> NDArray[np.float64]:
    with np.errstate(invalid='ignore'):
        return np.where(
            np.abs(lam) <= np.pi + LATITUDE_TOLERANCE,
            lam,
            (lam + np.pi) % (2.0 * np.pi) - np.pi
        )


def host_forward(
    params: ProjectionParameters,
    lp: GeographicPoint,
    strict: bool = False
) -> PlanarPoint:
    """Forward transform through a configured parameter record.

    Parameters
    ----------
    params : ProjectionParameters
        Configured snapshot (transforms installed).
    lp : GeographicPoint
        Longitude/latitude in radians.
    strict : bool
        Reject non-finite input instead of passing it through.

    Returns
    -------
    PlanarPoint
        Projected coordinate in the unit of ``params.a``.

    Raises
    ------
    ValueError
        If the record is not configured, the latitude lies beyond the
        poles, or the longitude is far outside any sensible range.
    """
    if params.fwd is None:
        raise ValueError(f"Projection {params.name} has no forward transform")

    lam, phi = lp.lam, lp.phi
    if not (np.isfinite(lam) and np.isfinite(phi)):
        if strict:
            raise ValueError(f"Non-finite geographic input ({lam}, {phi})")
    else:
        excess = np.abs(phi) - HALF_PI
        if excess > LATITUDE_TOLERANCE:
            raise ValueError(
                f"Latitude {phi} rad out of range [-π/2, π/2]. "
                f"Did you pass degrees instead of radians?"
            )
        if np.abs(lam) > LONGITUDE_LIMIT:
            raise ValueError(f"Longitude {lam} rad exceeds the accepted limit")
        if excess > 0.0:
            phi = ProjectionConstants.nearest_pole(phi)

    lam = lam - params.lam0
    if not params.over:
        lam = wrap_longitude(lam)

    xy = params.fwd(GeographicPoint(lam=lam, phi=phi), params)
    return PlanarPoint(
        x=params.a * xy.x + params.x0,
        y=params.a * xy.y + params.y0
    )


def host_inverse(
    params: ProjectionParameters,
    xy: PlanarPoint,
    strict: bool = False
) -> InverseSolution:
    """Inverse transform through a configured parameter record.

    Never fails on numeric grounds; the installed inverse always
    returns a coordinate, tagged with how its iteration ended.

    Returns
    -------
    InverseSolution
        Geographic point with the central meridian re-applied, plus the
        outcome tag and step count reported by the installed inverse.

    Raises
    ------
    ValueError
        If the record is not configured, or in strict mode when the
        input is not finite.
    """
    if params.inv is None:
        raise ValueError(f"Projection {params.name} has no inverse transform")
    if strict and not (np.isfinite(xy.x) and np.isfinite(xy.y)):
        raise ValueError(f"Non-finite planar input ({xy.x}, {xy.y})")

    normalized = PlanarPoint(
        x=(xy.x - params.x0) / params.a,
        y=(xy.y - params.y0) / params.a
    )
    solution = params.inv(normalized, params)

    lam = solution.point.lam + params.lam0
    if not params.over and np.isfinite(lam):
        lam = wrap_longitude(lam)

    return InverseSolution(
        point=GeographicPoint(lam=float(lam), phi=solution.point.phi),
        outcome=solution.outcome,
        iterations=solution.iterations
    )


class NellHammerProjection(ProjectionAdapter):
    """Nell-Hammer projection on a sphere.

    An equal-area pseudocylindrical projection. Free of distortion at
    the centre of the map; the poles are lines half as long as the
    equator.

    Parameters
    ----------
    params : ProjectionParameters, optional
        Configured snapshot. Defaults to the unit sphere centred on
        Greenwich.
    strict : bool
        Reject non-finite inputs with ValueError instead of letting them
        propagate.
    audit : AuditLogger, optional
        Where to record call counts and pole fallbacks. Defaults to the
        process-wide audit logger.

    Examples
    --------
    >>> proj = NellHammerProjection.from_proj_string("+proj=nell_h +R=1")
    >>> proj.forward(GeographicPoint(lam=0.0, phi=0.0))
    PlanarPoint(x=0.0, y=0.0)
    """

    def __init__(
        self,
        params: Optional[ProjectionParameters] = None,
        strict: bool = False,
        audit: Optional[AuditLogger] = None
    ):
        if params is None:
            params = default_registry.create(NELL_H_NAME)
        if params.name != NELL_H_NAME:
            raise ValueError(f"Parameters describe {params.name!r}, not {NELL_H_NAME!r}")
        if not params.is_configured:
            raise ValueError("Parameters have not been set up; use the projection registry")

        self._params = params
        self._strict = strict
        self._audit = audit if audit is not None else AuditLogger()

    @classmethod
    def from_proj_string(
        cls,
        definition: str,
        strict: bool = False,
        registry: Optional[ProjectionRegistry] = None
    ) -> 'NellHammerProjection':
        """Build the projection from a PROJ-style definition string."""
        return cls(parameters_from_proj_string(definition, registry), strict=strict)

    @property
    def params(self) -> ProjectionParameters:
        return self._params

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def name(self) -> str:
        return self._params.description.split("\n")[0]

    @property
    def proj4_string(self) -> str:
        return format_proj_string(self._params)

    @property
    def preserves_angles(self) -> bool:
        return False

    @property
    def preserves_area(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Radian API
    # ------------------------------------------------------------------

    def forward(self, lp: GeographicPoint) -> PlanarPoint:
        """Project a geographic point (radians)."""
        xy = host_forward(self._params, lp, strict=self._strict)
        self._audit.record_calls("forward")
        return xy

    def inverse_with_outcome(self, xy: PlanarPoint) -> InverseSolution:
        """Invert a planar point, keeping the convergence outcome."""
        solution = host_inverse(self._params, xy, strict=self._strict)

        self._audit.record_calls("inverse")
        if not solution.converged:
            logger.debug(
                f"Inverse of ({xy.x}, {xy.y}) did not converge in "
                f"{solution.iterations} steps; using pole approximation"
            )
            self._audit.log_pole_fallback(
                self._params.name,
                x=xy.x,
                y=xy.y,
                lam=solution.point.lam,
                phi=solution.point.phi,
                iterations=solution.iterations
            )

        return solution

    def inverse(self, xy: PlanarPoint) -> GeographicPoint:
        """Invert a planar point. Always returns a coordinate."""
        return self.inverse_with_outcome(xy).point

    # ------------------------------------------------------------------
    # Degree API
    # ------------------------------------------------------------------

    def forward_degrees(self, lon: Angle, lat: Angle) -> Tuple[float, float]:
        """Project a longitude/latitude given in degrees or as pint angles."""
        lp = GeographicPoint(lam=angle_to_radians(lon), phi=angle_to_radians(lat))
        xy = self.forward(lp)
        return xy.x, xy.y

    def inverse_degrees(self, x: float, y: float) -> Tuple[float, float]:
        """Invert a planar point to (longitude, latitude) in degrees."""
        return self.inverse(PlanarPoint(x=x, y=y)).to_degrees()

    # ------------------------------------------------------------------
    # ProjectionAdapter interface
    # ------------------------------------------------------------------

    def to_projected(self, lat_rad: float, lon_rad: float) -> Tuple[float, float]:
        xy = self.forward(GeographicPoint(lam=lon_rad, phi=lat_rad))
        return xy.x, xy.y

    def to_geodetic(self, x: float, y: float) -> Tuple[float, float]:
        lp = self.inverse(PlanarPoint(x=x, y=y))
        return lp.phi, lp.lam

    def compute_distortion(self, lat_rad: float, lon_rad: float) -> TissotIndicatrix:
        return compute_tissot_indicatrix(self, lat_rad, lon_rad, radius=self._params.a)


def compute_tissot_indicatrix(
    projection: ProjectionAdapter,
    lat_rad: float,
    lon_rad: float,
    radius: float = 1.0,
    delta: float = 1e-6
) -> TissotIndicatrix:
    """Compute Tissot's indicatrix numerically on a sphere.

    The partial derivatives of the projection are taken by central
    differences, then converted to the scale factors h and k and the
    axes of the distortion ellipse (Snyder 1987, eqs. 4-9 to 4-12).

    Parameters
    ----------
    projection : ProjectionAdapter
        The projection to analyze.
    lat_rad, lon_rad : float
        Location in geographic coordinates (radians).
    radius : float
        Radius of the sphere the projection was scaled with.
    delta : float
        Small angular offset for numerical differentiation.

    Returns
    -------
    TissotIndicatrix
        Local distortion characteristics.

    Raises
    ------
    ValueError
        At (or within ``delta`` of) a pole, where the parallel scale is
        undefined.
    """
    if np.abs(lat_rad) >= HALF_PI - delta:
        raise ValueError("Tissot indicatrix is undefined at the poles")

    # ∂x/∂λ, ∂y/∂λ (east-west)
    x_e, y_e = projection.to_projected(lat_rad, lon_rad + delta)
    x_w, y_w = projection.to_projected(lat_rad, lon_rad - delta)
    dxdl = (x_e - x_w) / (2 * delta)
    dydl = (y_e - y_w) / (2 * delta)

    # ∂x/∂φ, ∂y/∂φ (north-south)
    x_n, y_n = projection.to_projected(lat_rad + delta, lon_rad)
    x_s, y_s = projection.to_projected(lat_rad - delta, lon_rad)
    dxdp = (x_n - x_s) / (2 * delta)
    dydp = (y_n - y_s) / (2 * delta)

    cos_lat = np.cos(lat_rad)
    h = np.hypot(dxdp, dydp) / radius
    k = np.hypot(dxdl, dydl) / (radius * cos_lat)
    area_scale = np.abs(dxdp * dydl - dydp * dxdl) / (radius**2 * cos_lat)

    # a' + b' and a' - b'
    a_plus_b = np.sqrt(h**2 + k**2 + 2 * area_scale)
    a_minus_b = np.sqrt(max(h**2 + k**2 - 2 * area_scale, 0.0))

    return TissotIndicatrix(
        h=float(h),
        k=float(k),
        semi_major=float((a_plus_b + a_minus_b) / 2),
        semi_minor=float((a_plus_b - a_minus_b) / 2),
        area_scale=float(area_scale),
        angular_distortion_rad=float(2 * np.arcsin(a_minus_b / a_plus_b))
    )


def create_projection(
    definition: str,
    strict: bool = False,
    registry: Optional[ProjectionRegistry] = None
) -> ProjectionAdapter:
    """Create a projection adapter from a PROJ-style definition.

    Raises
    ------
    KeyError
        If the projection is not registered.
    ValueError
        If the definition is malformed.
    """
    params = parameters_from_proj_string(definition, registry)
    if params.name == NELL_H_NAME:
        return NellHammerProjection(params, strict=strict)
    raise KeyError(f"No adapter available for projection {params.name!r}")


def batch_project(
    projection: NellHammerProjection,
    lats_rad: NDArray[np.float64],
    lons_rad: NDArray[np.float64]
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Project arrays of coordinates.

    Applies the same input checks as `NellHammerProjection.forward`,
    element by element.

    Parameters
    ----------
    projection : NellHammerProjection
        Projection to use.
    lats_rad, lons_rad : ndarray
        Coordinates in radians (broadcastable).

    Returns
    -------
    Tuple[ndarray, ndarray]
        (x, y) projected coordinates in the unit of the radius.

    Raises
    ------
    ValueError
        If any finite latitude lies beyond the poles, any finite
        longitude exceeds the accepted limit, or, for a strict
        projection, any input is not finite.
    """
    params = projection.params
    lats, lons = np.broadcast_arrays(
        np.asarray(lats_rad, dtype=np.float64),
        np.asarray(lons_rad, dtype=np.float64)
    )

    finite = np.isfinite(lats) & np.isfinite(lons)
    if projection.strict and not np.all(finite):
        raise ValueError(f"{int(np.sum(~finite))} non-finite geographic inputs")

    excess = np.abs(lats[finite]) - HALF_PI
    if np.any(excess > LATITUDE_TOLERANCE):
        raise ValueError(
            f"{int(np.sum(excess > LATITUDE_TOLERANCE))} latitudes out of range [-π/2, π/2]"
        )
    too_far = np.abs(lons[finite]) > LONGITUDE_LIMIT
    if np.any(too_far):
        raise ValueError(f"{int(np.sum(too_far))} longitudes exceed the accepted limit")
    lats = np.where(finite, np.clip(lats, -HALF_PI, HALF_PI), lats)

    lam = lons - params.lam0
    if not params.over:
        lam = _wrap_longitude_array(lam)

    x, y = forward_array(lam, lats)
    projection.audit.record_calls("forward", int(x.size))
    return params.a * x + params.x0, params.a * y + params.y0


def batch_unproject(
    projection: NellHammerProjection,
    x: NDArray[np.float64],
    y: NDArray[np.float64]
) -> Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.bool_]]:
    """Invert arrays of projected coordinates.

    Returns
    -------
    Tuple[ndarray, ndarray, ndarray]
        (lats_rad, lons_rad, converged). Elements where ``converged`` is
        False hold the pole approximation.

    Raises
    ------
    ValueError
        For a strict projection, if any input is not finite.
    """
    params = projection.params
    x, y = np.broadcast_arrays(
        np.asarray(x, dtype=np.float64),
        np.asarray(y, dtype=np.float64)
    )
    if projection.strict:
        finite = np.isfinite(x) & np.isfinite(y)
        if not np.all(finite):
            raise ValueError(f"{int(np.sum(~finite))} non-finite planar inputs")

    lam, phi, converged, iterations = inverse_array(
        (x - params.x0) / params.a,
        (y - params.y0) / params.a,
        return_iterations=True
    )
    lam = lam + params.lam0
    if not params.over:
        lam = _wrap_longitude_array(lam)

    projection.audit.record_calls("inverse", int(lam.size))
    n_fallback = int(np.sum(~converged))
    if n_fallback:
        logger.debug(f"{n_fallback} of {lam.size} points used the pole approximation")
        for i in np.flatnonzero(~converged):
            projection.audit.log_pole_fallback(
                params.name,
                x=float(x.flat[i]),
                y=float(y.flat[i]),
                lam=float(lam.flat[i]),
                phi=float(phi.flat[i]),
                iterations=int(iterations.flat[i])
            )

    return phi, lam, converged

"""
Nell-Hammer Pseudocylindrical Projection (sphere only).

Scientific Context
------------------
Domain: Cartography
Model: Equal-area pseudocylindrical projection on the unit sphere

Parallels are straight horizontal lines; meridians are curves that
converge toward the poles, where the pole maps to a line half the
length of the equator.

Formulas
--------
Forward:
    x = 0.5 λ (1 + cos φ)
    y = 2 (φ - tan(φ/2))

Inverse: with p = y/2, solve φ - tan(φ/2) = p by Newton-Raphson
starting from φ = 0, at most 9 steps, stopping when the step is
below 1e-7. Then λ = 2x / (1 + cos φ). If the budget runs out, or the
iteration settles on a root outside [-π/2, π/2] (possible only for
|y| beyond the pole line), φ is clamped to the pole on the side of p
and λ = 2x.

The transforms here are pure functions of their input. Unit handling,
central meridian, false origin and scaling belong to the host layer in
`geospatial.projections`.

References
----------
- Snyder, J.P. (1993). Flattening the Earth, p. 206.
- PROJ, src/projections/nell_h.cpp
"""

from dataclasses import replace
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray

from common.constants import ProjectionConstants
from common.types import (
    GeographicPoint,
    PlanarPoint,
    InverseOutcome,
    InverseSolution,
    ProjectionParameters,
)

PROJECTION_NAME = "nell_h"
PROJECTION_DESCRIPTION = "Nell-Hammer\n\tPCyl, Sph"

MAX_ITERATIONS = ProjectionConstants.NELL_H_MAX_ITERATIONS
TOLERANCE = ProjectionConstants.NELL_H_CONVERGENCE_TOLERANCE.value


def nell_h_forward(
    lp: GeographicPoint,
    params: Optional[ProjectionParameters] = None
) -> PlanarPoint:
    """Project a geographic point onto the unit-sphere plane.

    Parameters
    ----------
    lp : GeographicPoint
        Longitude and latitude in radians. The latitude must lie in
        [-π/2, π/2]; it is not checked.
    params : ProjectionParameters, optional
        Unused. Accepted so the function fits the transform slot of
        the parameter record.

    Returns
    -------
    PlanarPoint
        Planar coordinate in sphere radii.
    """
    x = 0.5 * lp.lam * (1.0 + np.cos(lp.phi))
    y = 2.0 * (lp.phi - np.tan(0.5 * lp.phi))
    return PlanarPoint(x=float(x), y=float(y))


def solve_inverse(
    xy: PlanarPoint,
    params: Optional[ProjectionParameters] = None
) -> InverseSolution:
    """Invert a planar point, reporting how the iteration ended.

    This is the inverse installed in the parameter record by
    `setup_nell_h`.

    Parameters
    ----------
    xy : PlanarPoint
        Planar coordinate in sphere radii.
    params : ProjectionParameters, optional
        Unused; see `nell_h_forward`.

    Returns
    -------
    InverseSolution
        Recovered point tagged CONVERGED or POLE_APPROXIMATION, with the
        number of Newton steps taken.
    """
    p = 0.5 * xy.y
    phi = 0.0
    iterations = 0
    converged = False

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        while iterations < MAX_ITERATIONS:
            c = np.cos(0.5 * phi)
            step = (phi - np.tan(0.5 * phi) - p) / (1.0 - 0.5 / (c * c))
            phi -= step
            iterations += 1
            if abs(step) < TOLERANCE:
                converged = True
                break

    # roots on other branches of tan(phi/2) are outside the latitude range
    if converged and abs(phi) <= ProjectionConstants.HALF_PI:
        lam = 2.0 * xy.x / (1.0 + np.cos(phi))
        outcome = InverseOutcome.CONVERGED
    else:
        # 1 + cos(phi) vanishes at the pole
        phi = ProjectionConstants.nearest_pole(p)
        lam = 2.0 * xy.x
        outcome = InverseOutcome.POLE_APPROXIMATION

    return InverseSolution(
        point=GeographicPoint(lam=float(lam), phi=float(phi)),
        outcome=outcome,
        iterations=iterations
    )


def nell_h_inverse(
    xy: PlanarPoint,
    params: Optional[ProjectionParameters] = None
) -> GeographicPoint:
    """Inverse transform: planar unit-sphere point to geographic point.

    Always returns a point; see `solve_inverse` for the outcome tag.
    """
    return solve_inverse(xy).point


def setup_nell_h(params: ProjectionParameters) -> ProjectionParameters:
    """Configure a parameter record for the Nell-Hammer projection.

    Returns a new snapshot with a spherical model (es = 0) and both
    transforms installed. The inverse slot holds the tagged
    `solve_inverse`, so the host can tell converged results from pole
    approximations. The input record is left untouched.
    """
    return replace(
        params,
        name=PROJECTION_NAME,
        description=PROJECTION_DESCRIPTION,
        es=0.0,
        fwd=nell_h_forward,
        inv=solve_inverse
    )


def forward_array(
    lam: NDArray[np.float64],
    phi: NDArray[np.float64]
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Vectorized forward transform.

    Parameters
    ----------
    lam, phi : ndarray
        Longitudes and latitudes in radians (broadcastable).

    Returns
    -------
    Tuple[ndarray, ndarray]
        (x, y) in sphere radii.
    """
    lam = np.asarray(lam, dtype=np.float64)
    phi = np.asarray(phi, dtype=np.float64)

    x = 0.5 * lam * (1.0 + np.cos(phi))
    y = 2.0 * (phi - np.tan(0.5 * phi))
    return x, y


def inverse_array(
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    return_iterations: bool = False
):
    """Vectorized inverse transform.

    Each element follows exactly the scalar iteration: an element stops
    updating on the step where it converges, and elements that never
    converge, or converge outside the latitude range, are clamped to a
    pole.

    Parameters
    ----------
    x, y : ndarray
        Planar coordinates in sphere radii (broadcastable).
    return_iterations : bool
        Also return the number of Newton steps taken per element.

    Returns
    -------
    Tuple[ndarray, ndarray, ndarray]
        (lam, phi, converged) where ``converged`` is a boolean mask,
        followed by an integer array of step counts if requested.
    """
    x, y = np.broadcast_arrays(
        np.asarray(x, dtype=np.float64),
        np.asarray(y, dtype=np.float64)
    )
    p = 0.5 * y
    phi = np.zeros_like(p)
    active = np.ones(p.shape, dtype=bool)
    iterations = np.zeros(p.shape, dtype=np.int64)

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        for _ in range(MAX_ITERATIONS):
            if not active.any():
                break
            c = np.cos(0.5 * phi)
            step = (phi - np.tan(0.5 * phi) - p) / (1.0 - 0.5 / (c * c))
            phi = np.where(active, phi - step, phi)
            iterations += active
            active &= ~(np.abs(step) < TOLERANCE)

        converged = ~active & (np.abs(phi) <= ProjectionConstants.HALF_PI)
        lam = np.where(converged, 2.0 * x / (1.0 + np.cos(phi)), 2.0 * x)

    pole = np.where(p < 0.0, -ProjectionConstants.HALF_PI, ProjectionConstants.HALF_PI)
    phi = np.where(converged, phi, pole)
    if return_iterations:
        return lam, phi, converged, iterations
    return lam, phi, converged

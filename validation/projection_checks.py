"""
Consistency Checks for the Nell-Hammer Projection.

This module verifies that a configured projection obeys the
mathematical properties it is supposed to have.

Check Categories
----------------
1. Round trip (forward then inverse recovers the input away from the poles)
2. Symmetry (x is odd in longitude, y is odd in latitude)
3. Pole mapping (poles become lines half the equator's length)
4. Equal area (Tissot area scale is 1 everywhere)
5. Determinism (repeated inverse calls are bit-identical)
6. Agreement with PROJ's own nell_h through pyproj
"""

from dataclasses import dataclass
from typing import Any, Dict, List
import numpy as np

from pyproj import CRS, Transformer

from common.constants import ProjectionConstants
from common.logging_config import get_logger
from common.types import PlanarPoint
from geospatial.nell_hammer import forward_array, solve_inverse
from geospatial.projections import (
    NellHammerProjection,
    batch_project,
    batch_unproject,
    compute_tissot_indicatrix,
)

logger = get_logger(__name__)

HALF_PI = ProjectionConstants.HALF_PI


@dataclass
class ValidationResult:
    """Result of a validation check.

    Attributes
    ----------
    test_name : str
        Name of the check.
    passed : bool
        Whether the check passed.
    message : str
        Description of result.
    details : dict
        Additional details.
    """
    test_name: str
    passed: bool
    message: str
    details: Dict[str, Any]


def _angle_difference(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return (a - b + np.pi) % (2 * np.pi) - np.pi


class ProjectionConsistencyChecker:
    """Checker for mathematical consistency of a Nell-Hammer projection."""

    def __init__(
        self,
        projection: NellHammerProjection,
        strict_mode: bool = False,
        log_violations: bool = True
    ):
        """Initialize the checker.

        Parameters
        ----------
        projection : NellHammerProjection
            The configured projection to check.
        strict_mode : bool
            If True, raise RuntimeError on the first failed check.
        log_violations : bool
            Whether to log failed checks.
        """
        self.projection = projection
        self.strict_mode = strict_mode
        self.log_violations = log_violations
        self._logger = get_logger("ProjectionConsistencyChecker")

    def _report(self, result: ValidationResult) -> ValidationResult:
        if result.passed:
            self._logger.debug(f"{result.test_name}: {result.message}")
        elif self.log_violations:
            self._logger.warning(f"{result.test_name} FAILED: {result.message}")

        if self.strict_mode and not result.passed:
            raise RuntimeError(f"Check {result.test_name} failed: {result.message}")
        return result

    def check_all(self) -> List[ValidationResult]:
        """Run all checks.

        Returns
        -------
        List[ValidationResult]
            Results of all checks.
        """
        results = []

        # 1. Round trip
        results.append(self.check_round_trip())

        # 2. Symmetry
        results.append(self.check_symmetry())

        # 3. Pole mapping
        results.append(self.check_pole_mapping())

        # 4. Equal area
        results.append(self.check_equal_area())

        # 5. Determinism
        results.append(self.check_inverse_determinism())

        # 6. PROJ agreement
        results.append(self.check_against_proj())

        return results

    def check_round_trip(
        self,
        max_lat_rad: float = 1.3,
        n_lat: int = 53,
        n_lon: int = 73,
        tolerance: float = 1e-6
    ) -> ValidationResult:
        """Check forward then inverse on a grid away from the poles."""
        lats, lons = np.meshgrid(
            np.linspace(-max_lat_rad, max_lat_rad, n_lat),
            np.linspace(-np.pi, np.pi, n_lon),
            indexing="ij"
        )
        lons = lons + self.projection.params.lam0

        x, y = batch_project(self.projection, lats, lons)
        lats2, lons2, converged = batch_unproject(self.projection, x, y)

        lat_err = np.abs(lats2 - lats)
        lon_err = np.abs(_angle_difference(lons2, lons))
        max_err = float(max(np.max(lat_err), np.max(lon_err)))
        n_unconverged = int(np.sum(~converged))

        return self._report(ValidationResult(
            test_name="round_trip",
            passed=n_unconverged == 0 and max_err < tolerance,
            message=f"Round trip: max error {max_err:.3e} rad, {n_unconverged} unconverged",
            details={
                'max_error_rad': max_err,
                'num_points': int(lats.size),
                'num_unconverged': n_unconverged,
                'tolerance': tolerance,
            }
        ))

    def check_symmetry(self, n: int = 41, tolerance: float = 1e-12) -> ValidationResult:
        """Check x(-λ, φ) = -x(λ, φ) and y(λ, -φ) = -y(λ, φ)."""
        lats, lons = np.meshgrid(
            np.linspace(-HALF_PI, HALF_PI, n),
            np.linspace(-np.pi, np.pi, n),
            indexing="ij"
        )

        x, y = forward_array(lons, lats)
        x_mirror, y_mirror = forward_array(-lons, lats)
        x_flip, y_flip = forward_array(lons, -lats)

        lon_err = float(max(np.max(np.abs(x_mirror + x)), np.max(np.abs(y_mirror - y))))
        lat_err = float(max(np.max(np.abs(x_flip - x)), np.max(np.abs(y_flip + y))))

        return self._report(ValidationResult(
            test_name="symmetry",
            passed=lon_err < tolerance and lat_err < tolerance,
            message=f"Symmetry: longitude {lon_err:.3e}, latitude {lat_err:.3e}",
            details={
                'longitude_mirror_error': lon_err,
                'latitude_mirror_error': lat_err,
            }
        ))

    def check_pole_mapping(self, tolerance: float = 1e-12) -> ValidationResult:
        """Check that each pole maps to a line of half the equator's length."""
        lons = np.linspace(-np.pi, np.pi, 37)
        x_n, y_n = forward_array(lons, np.full_like(lons, HALF_PI))
        x_s, y_s = forward_array(lons, np.full_like(lons, -HALF_PI))
        pole_y = 2.0 * (HALF_PI - 1.0)

        x_err = float(max(np.max(np.abs(x_n - 0.5 * lons)), np.max(np.abs(x_s - 0.5 * lons))))
        y_err = float(max(np.max(np.abs(y_n - pole_y)), np.max(np.abs(y_s + pole_y))))

        return self._report(ValidationResult(
            test_name="pole_mapping",
            passed=x_err < tolerance and y_err < tolerance,
            message=f"Pole mapping: x error {x_err:.3e}, y error {y_err:.3e}",
            details={
                'pole_line_half_length': float(0.5 * np.pi),
                'pole_y': pole_y,
            }
        ))

    def check_equal_area(self, tolerance: float = 1e-6) -> ValidationResult:
        """Check that the Tissot area scale is 1 at sample points."""
        radius = self.projection.params.a
        lam0 = self.projection.params.lam0
        area_scales = []
        for lat in np.linspace(-1.4, 1.4, 15):
            for dlon in np.linspace(-2.5, 2.5, 11):
                indicatrix = compute_tissot_indicatrix(
                    self.projection, float(lat), float(lam0 + dlon), radius=radius
                )
                area_scales.append(indicatrix.area_scale)

        area_scales = np.asarray(area_scales)
        max_dev = float(np.max(np.abs(area_scales - 1.0)))

        return self._report(ValidationResult(
            test_name="equal_area",
            passed=max_dev < tolerance,
            message=f"Equal area: max deviation {max_dev:.3e}",
            details={
                'min_area_scale': float(np.min(area_scales)),
                'max_area_scale': float(np.max(area_scales)),
            }
        ))

    def check_inverse_determinism(self, repeats: int = 5) -> ValidationResult:
        """Check that repeated inverse calls return identical results."""
        samples = [
            PlanarPoint(0.0, 0.0),
            PlanarPoint(1.0, 1.0),
            PlanarPoint(-2.0, -0.7),
            PlanarPoint(3.0, 10.0),
        ]
        mismatches = 0
        for xy in samples:
            first = solve_inverse(xy)
            for _ in range(repeats):
                if solve_inverse(xy) != first:
                    mismatches += 1

        return self._report(ValidationResult(
            test_name="inverse_determinism",
            passed=mismatches == 0,
            message=f"Inverse determinism: {mismatches} mismatches",
            details={'samples': len(samples), 'repeats': repeats}
        ))

    def check_against_proj(self, tolerance: float = 1e-9) -> ValidationResult:
        """Compare against PROJ's nell_h through pyproj.

        The tolerance is relative to the sphere radius.
        """
        params = self.projection.params
        crs_geo = CRS.from_proj4(f"+proj=longlat +R={params.a:.12g} +no_defs")
        crs_proj = CRS.from_proj4(self.projection.proj4_string)
        to_proj = Transformer.from_crs(crs_geo, crs_proj, always_xy=True)
        to_geo = Transformer.from_crs(crs_proj, crs_geo, always_xy=True)

        lats, lons = np.meshgrid(
            np.linspace(-1.3, 1.3, 27),
            np.linspace(-3.0, 3.0, 25) + params.lam0,
            indexing="ij"
        )
        lats = lats.ravel()
        lons = lons.ravel()

        x, y = batch_project(self.projection, lats, lons)
        x_ref, y_ref = to_proj.transform(np.degrees(lons), np.degrees(lats))
        fwd_err = float(max(
            np.max(np.abs(x - np.asarray(x_ref))),
            np.max(np.abs(y - np.asarray(y_ref)))
        )) / params.a

        lats2, lons2, converged = batch_unproject(self.projection, x, y)
        lon_ref, lat_ref = to_geo.transform(x, y)
        inv_err = float(max(
            np.max(np.abs(lats2[converged] - np.radians(np.asarray(lat_ref)[converged]))),
            np.max(np.abs(_angle_difference(lons2[converged], np.radians(np.asarray(lon_ref)[converged]))))
        ))

        return self._report(ValidationResult(
            test_name="proj_agreement",
            passed=fwd_err < tolerance and inv_err < tolerance,
            message=f"PROJ agreement: forward {fwd_err:.3e}, inverse {inv_err:.3e}",
            details={
                'proj_definition': self.projection.proj4_string,
                'forward_error': fwd_err,
                'inverse_error': inv_err,
            }
        ))

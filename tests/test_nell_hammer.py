"""Tests for the Nell-Hammer forward and inverse transforms."""

from __future__ import annotations

import dataclasses
import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from common.types import (
    GeographicPoint,
    InverseOutcome,
    PlanarPoint,
    ProjectionParameters,
)
from geospatial.nell_hammer import (
    MAX_ITERATIONS,
    PROJECTION_DESCRIPTION,
    PROJECTION_NAME,
    forward_array,
    inverse_array,
    nell_h_forward,
    nell_h_inverse,
    setup_nell_h,
    solve_inverse,
)

HALF_PI = math.pi / 2


class TestForward:

    def test_origin(self):
        xy = nell_h_forward(GeographicPoint(0.0, 0.0))
        assert xy == PlanarPoint(0.0, 0.0)

    @pytest.mark.parametrize("lam,phi", [
        (0.5, 0.3),
        (-2.0, -1.1),
        (math.pi, 0.7),
        (1.0, -HALF_PI),
    ])
    def test_closed_form(self, lam, phi):
        xy = nell_h_forward(GeographicPoint(lam, phi))
        assert xy.x == pytest.approx(0.5 * lam * (1 + math.cos(phi)), abs=1e-15)
        assert xy.y == pytest.approx(2 * (phi - math.tan(phi / 2)), abs=1e-15)

    def test_north_pole(self):
        xy = nell_h_forward(GeographicPoint(1.0, HALF_PI))
        assert xy.x == pytest.approx(0.5, abs=1e-15)
        assert xy.y == pytest.approx(1.1415926535897931, abs=1e-12)

    def test_pole_line_is_half_the_equator(self):
        pole = nell_h_forward(GeographicPoint(math.pi, HALF_PI))
        equator = nell_h_forward(GeographicPoint(math.pi, 0.0))
        assert pole.x == pytest.approx(0.5 * equator.x, abs=1e-15)

    @pytest.mark.parametrize("lam,phi", [(0.4, 0.2), (2.9, 1.4), (1.0, HALF_PI)])
    def test_odd_in_longitude(self, lam, phi):
        east = nell_h_forward(GeographicPoint(lam, phi))
        west = nell_h_forward(GeographicPoint(-lam, phi))
        assert west.x == -east.x
        assert west.y == east.y

    @pytest.mark.parametrize("lam,phi", [(0.4, 0.2), (2.9, 1.4), (1.0, HALF_PI)])
    def test_x_even_y_odd_in_latitude(self, lam, phi):
        north = nell_h_forward(GeographicPoint(lam, phi))
        south = nell_h_forward(GeographicPoint(lam, -phi))
        assert south.x == pytest.approx(north.x, abs=1e-15)
        assert south.y == pytest.approx(-north.y, abs=1e-15)

    def test_y_increases_with_latitude(self):
        phis = np.linspace(-HALF_PI, HALF_PI, 181)
        ys = [nell_h_forward(GeographicPoint(0.0, float(p))).y for p in phis]
        assert np.all(np.diff(ys) > 0)

    def test_accepts_params_slot(self):
        params = setup_nell_h(ProjectionParameters(name="nell_h"))
        assert nell_h_forward(GeographicPoint(0.3, 0.4), params) == nell_h_forward(GeographicPoint(0.3, 0.4))


class TestInverse:

    def test_origin(self):
        solution = solve_inverse(PlanarPoint(0.0, 0.0))
        assert solution.outcome is InverseOutcome.CONVERGED
        assert solution.iterations == 1
        assert solution.point.lam == pytest.approx(0.0, abs=1e-12)
        assert solution.point.phi == pytest.approx(0.0, abs=1e-12)

    def test_round_trip_dense_grid(self):
        worst = 0.0
        for phi in np.linspace(-1.3, 1.3, 131):
            for lam in np.linspace(-math.pi, math.pi, 61):
                xy = nell_h_forward(GeographicPoint(float(lam), float(phi)))
                solution = solve_inverse(xy)
                assert solution.converged
                worst = max(worst, abs(solution.point.lam - lam), abs(solution.point.phi - phi))
        assert worst < 1e-6

    def test_non_convergence_clamps_to_north_pole(self):
        solution = solve_inverse(PlanarPoint(3.0, 10.0))
        assert solution.outcome is InverseOutcome.POLE_APPROXIMATION
        assert solution.iterations == MAX_ITERATIONS
        assert solution.point.phi == HALF_PI
        assert solution.point.lam == 6.0

    def test_non_convergence_clamps_to_south_pole(self):
        lp = nell_h_inverse(PlanarPoint(3.0, -10.0))
        assert lp.phi == -HALF_PI
        assert lp.lam == 6.0

    def test_exact_pole_uses_fallback(self):
        # Newton converges too slowly at the pole, where the derivative vanishes
        xy = nell_h_forward(GeographicPoint(1.0, HALF_PI))
        solution = solve_inverse(xy)
        assert solution.outcome is InverseOutcome.POLE_APPROXIMATION
        assert solution.point.phi == HALF_PI
        assert solution.point.lam == pytest.approx(1.0, abs=1e-15)

    @pytest.mark.parametrize("y", [1.2, 5.0, 20.0])
    def test_beyond_pole_line(self, y):
        lp = nell_h_inverse(PlanarPoint(1.0, y))
        assert lp.phi == HALF_PI
        assert lp.lam == 2.0

    def test_output_latitude_is_within_range(self):
        for y in np.linspace(-30.0, 30.0, 121):
            lp = nell_h_inverse(PlanarPoint(0.5, float(y)))
            assert -HALF_PI <= lp.phi <= HALF_PI

    def test_deterministic(self):
        for xy in [PlanarPoint(1.0, 1.0), PlanarPoint(-0.3, -0.9), PlanarPoint(3.0, 10.0)]:
            first = nell_h_inverse(xy)
            for _ in range(10):
                again = nell_h_inverse(xy)
                assert again.lam == first.lam
                assert again.phi == first.phi

    def test_concurrent_calls_agree(self):
        xy = PlanarPoint(1.0, 1.0)
        expected = nell_h_inverse(xy)
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: nell_h_inverse(xy), range(200)))
        assert all(r == expected for r in results)

    def test_non_finite_x_propagates(self):
        lp = nell_h_inverse(PlanarPoint(float("nan"), 0.5))
        assert math.isnan(lp.lam)
        assert math.isfinite(lp.phi)

    def test_non_finite_y_never_converges(self):
        solution = solve_inverse(PlanarPoint(1.0, float("nan")))
        assert solution.outcome is InverseOutcome.POLE_APPROXIMATION
        assert solution.point.phi == HALF_PI
        assert solution.point.lam == 2.0


class TestSetup:

    def test_installs_transforms_and_sphere(self):
        raw = ProjectionParameters(name="nell_h", a=2.0, es=0.006694)
        params = setup_nell_h(raw)

        assert params.es == 0.0
        assert params.is_sphere
        assert params.fwd is nell_h_forward
        assert params.inv is solve_inverse
        assert params.name == PROJECTION_NAME
        assert params.description == PROJECTION_DESCRIPTION
        assert params.a == 2.0

    def test_does_not_mutate_input(self):
        raw = ProjectionParameters(name="nell_h", es=0.1)
        setup_nell_h(raw)
        assert raw.es == 0.1
        assert not raw.is_configured

    def test_snapshot_is_frozen(self):
        params = setup_nell_h(ProjectionParameters(name="nell_h"))
        with pytest.raises(dataclasses.FrozenInstanceError):
            params.es = 0.5


class TestArrays:

    def test_forward_matches_scalar(self):
        lam = np.linspace(-3.0, 3.0, 25)
        phi = np.linspace(-1.5, 1.5, 25)
        x, y = forward_array(lam, phi)
        for i in range(lam.size):
            xy = nell_h_forward(GeographicPoint(float(lam[i]), float(phi[i])))
            assert x[i] == pytest.approx(xy.x, abs=1e-14)
            assert y[i] == pytest.approx(xy.y, abs=1e-14)

    def test_inverse_matches_scalar(self):
        x = np.array([0.0, 1.0, -0.7, 3.0, 3.0, 0.5])
        y = np.array([0.0, 1.0, -0.4, 10.0, -10.0, 1.1415926535897933])
        lam, phi, converged = inverse_array(x, y)

        for i in range(x.size):
            solution = solve_inverse(PlanarPoint(float(x[i]), float(y[i])))
            assert converged[i] == solution.converged
            assert lam[i] == pytest.approx(solution.point.lam, abs=1e-12)
            assert phi[i] == pytest.approx(solution.point.phi, abs=1e-12)

        assert list(converged) == [True, True, True, False, False, False]
        assert phi[3] == HALF_PI
        assert phi[4] == -HALF_PI
        assert lam[3] == 6.0

    def test_inverse_round_trip(self):
        lam_in, phi_in = np.meshgrid(np.linspace(-math.pi, math.pi, 37), np.linspace(-1.3, 1.3, 27))
        x, y = forward_array(lam_in, phi_in)
        lam, phi, converged = inverse_array(x, y)

        assert converged.all()
        np.testing.assert_allclose(lam, lam_in, atol=1e-6)
        np.testing.assert_allclose(phi, phi_in, atol=1e-6)

    def test_inverse_broadcasts(self):
        lam, phi, converged = inverse_array(0.5, np.array([0.0, 0.5, 1.0]))
        assert lam.shape == (3,)
        assert converged.all()

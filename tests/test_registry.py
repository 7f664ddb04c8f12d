"""Tests for the projection registry and PROJ-style definitions."""

from __future__ import annotations

import logging
import math

import pytest

from common.types import ProjectionParameters
from geospatial.nell_hammer import nell_h_forward, setup_nell_h, solve_inverse
from geospatial.registry import (
    ProjectionRegistry,
    default_registry,
    format_proj_string,
    parameters_from_proj_string,
    parse_proj_string,
)


class TestParse:

    def test_full_definition(self):
        parsed = parse_proj_string(
            "+proj=nell_h +R=6371000 +lon_0=10 +x_0=5 +y_0=-3 +over +no_defs +type=crs"
        )
        assert parsed == {
            "proj": "nell_h",
            "R": 6371000.0,
            "lon_0": 10.0,
            "x_0": 5.0,
            "y_0": -3.0,
            "over": True,
            "no_defs": True,
        }

    @pytest.mark.parametrize("definition", [
        "nell_h",
        "+R=1",
        "+proj=",
        "+proj=nell_h +ellps=WGS84",
        "+proj=nell_h +R=abc",
        "+proj=nell_h +over=1",
        "+proj=nell_h +=3",
    ])
    def test_malformed(self, definition):
        with pytest.raises(ValueError):
            parse_proj_string(definition)


class TestCreate:

    def test_default_registry_has_nell_h(self):
        assert "nell_h" in default_registry
        entry = default_registry.get("nell_h")
        assert entry.description.startswith("Nell-Hammer")
        assert entry.setup is setup_nell_h

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            default_registry.get("not_a_projection")

    def test_create_installs_transforms(self):
        params = default_registry.create("nell_h", radius=3.0, lon_0_deg=90.0, x_0=1.0, y_0=2.0)
        assert params.is_configured
        assert params.fwd is nell_h_forward
        assert params.inv is solve_inverse
        assert params.a == 3.0
        assert params.lam0 == pytest.approx(math.pi / 2)
        assert (params.x0, params.y0) == (1.0, 2.0)

    def test_r_wins_over_a(self):
        params = parameters_from_proj_string("+proj=nell_h +a=2 +R=3")
        assert params.a == 3.0

    def test_ellipsoid_forced_to_sphere(self, caplog):
        with caplog.at_level(logging.WARNING):
            params = parameters_from_proj_string("+proj=nell_h +a=6378137 +es=0.00669438")
        assert params.es == 0.0
        assert params.a == 6378137.0
        assert "sphere-only" in caplog.text

    @pytest.mark.parametrize("kwargs", [
        {"radius": 0.0},
        {"radius": -1.0},
        {"radius": float("inf")},
        {"es": 1.0},
        {"es": -0.1},
        {"es": float("nan")},
        {"es": float("inf")},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            default_registry.create("nell_h", **kwargs)

    def test_format_round_trip(self):
        params = parameters_from_proj_string("+proj=nell_h +R=6371008.8 +lon_0=-72.5 +x_0=100 +over")
        again = parameters_from_proj_string(format_proj_string(params))
        assert again.a == params.a
        assert again.lam0 == pytest.approx(params.lam0, abs=1e-12)
        assert again.x0 == params.x0
        assert again.over is True


class TestRegistry:

    def test_register_and_create(self):
        calls = []

        def setup(params: ProjectionParameters) -> ProjectionParameters:
            calls.append(params)
            return setup_nell_h(params)

        registry = ProjectionRegistry()
        registry.register("nell_h", "Nell-Hammer", setup)
        params = registry.create("nell_h", radius=5.0)

        assert registry.names() == ["nell_h"]
        assert len(calls) == 1
        assert calls[0].fwd is None
        assert params.a == 5.0

    def test_duplicate_registration(self):
        registry = ProjectionRegistry()
        registry.register("nell_h", "Nell-Hammer", setup_nell_h)
        with pytest.raises(ValueError, match="already registered"):
            registry.register("nell_h", "Nell-Hammer", setup_nell_h)

    def test_custom_registry_in_definition(self):
        registry = ProjectionRegistry()
        with pytest.raises(KeyError):
            parameters_from_proj_string("+proj=nell_h", registry)

    def test_quantities_accepted(self):
        from common.units import Q_

        params = default_registry.create("nell_h", radius=Q_(6371.0088, "km"), lon_0_deg=Q_(0.5, "radian"))
        assert params.a == pytest.approx(6_371_008.8)
        assert params.lam0 == pytest.approx(0.5)

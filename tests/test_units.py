"""Tests for unit conversion at the projection boundary."""

import math

import pint
import pytest

from common.units import Q_, angle_to_radians, length_to_meters


class TestConversions:

    def test_bare_numbers_are_degrees(self):
        assert angle_to_radians(90.0) == pytest.approx(math.pi / 2)

    def test_default_unit_override(self):
        assert angle_to_radians(1.25, default_unit="radian") == pytest.approx(1.25)

    def test_quantities(self):
        assert angle_to_radians(Q_(180.0, "degree")) == pytest.approx(math.pi)
        assert angle_to_radians(Q_(0.5, "radian")) == pytest.approx(0.5)

    def test_lengths(self):
        assert length_to_meters(Q_(6371.0088, "km")) == pytest.approx(6_371_008.8)
        assert length_to_meters(12.0) == 12.0
        assert length_to_meters(2.0, default_unit="km") == pytest.approx(2000.0)

    def test_wrong_dimension(self):
        with pytest.raises(pint.DimensionalityError):
            angle_to_radians(Q_(1.0, "meter"))
        with pytest.raises(pint.DimensionalityError):
            length_to_meters(Q_(1.0, "degree"))

    def test_radius_with_wrong_dimension_rejected(self):
        from geospatial.registry import default_registry

        with pytest.raises(pint.DimensionalityError):
            default_registry.create("nell_h", radius=Q_(1.0, "degree"))

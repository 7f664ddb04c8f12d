"""
Unit Handling at the Projection Boundary.

The projection core works in radians and sphere radii only. Callers
often hold degrees, kilometres or pint quantities; this module turns
those into plain floats before they reach the core, and rejects
quantities of the wrong kind (e.g. a length passed as a longitude)
with ``pint.DimensionalityError``.

Example Usage
-------------
>>> from common.units import Q_, angle_to_radians
>>> angle_to_radians(Q_(90, 'degree'))
1.5707963267948966
"""

from typing import Union

import pint

# One registry per process; quantities from different registries cannot mix
ureg = pint.UnitRegistry()
Q_ = ureg.Quantity

Scalar = Union[float, pint.Quantity]


def angle_to_radians(value: Scalar, default_unit: str = "degree") -> float:
    """Convert an angle to radians.

    Bare numbers are taken to be in ``default_unit``; quantities are
    converted, and a non-angular quantity raises
    ``pint.DimensionalityError``.
    """
    if not isinstance(value, pint.Quantity):
        value = ureg.Quantity(value, default_unit)
    return float(value.to("radian").magnitude)


def length_to_meters(value: Scalar, default_unit: str = "meter") -> float:
    """Convert a length to meters. Bare numbers use ``default_unit``."""
    if not isinstance(value, pint.Quantity):
        value = ureg.Quantity(value, default_unit)
    return float(value.to("meter").magnitude)

"""
Projection Registry and PROJ-style Definition Parsing.

The registry maps a short projection key (e.g. "nell_h") to its
descriptive tag and its setup function. A projection is instantiated by
building a `ProjectionParameters` snapshot from keyword arguments or a
PROJ-style definition string and passing it through the setup function.

Supported definition keys
-------------------------
+proj    projection key (required)
+R, +a   sphere radius (+R wins over +a), default 1
+es      eccentricity squared (sphere-only projections force it to 0)
+lon_0   central meridian in degrees
+x_0     false easting
+y_0     false northing
+over    do not wrap longitudes
+no_defs, +type=crs   accepted and ignored
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import numpy as np

from common.constants import ProjectionConstants
from common.logging_config import get_logger
from common.types import ProjectionParameters
from common.units import angle_to_radians, length_to_meters
from geospatial.nell_hammer import (
    PROJECTION_NAME as NELL_H_NAME,
    PROJECTION_DESCRIPTION as NELL_H_DESCRIPTION,
    setup_nell_h,
)

logger = get_logger(__name__)

SetupFunction = Callable[[ProjectionParameters], ProjectionParameters]

_NUMERIC_KEYS = ("R", "a", "es", "lon_0", "x_0", "y_0")
_FLAG_KEYS = ("over", "no_defs")
_IGNORED_KEYS = ("type",)


@dataclass(frozen=True)
class ProjectionEntry:
    """A registered projection."""
    name: str
    description: str
    setup: SetupFunction


class ProjectionRegistry:
    """Registry of available projections, keyed by short name."""

    def __init__(self):
        self._entries: Dict[str, ProjectionEntry] = {}

    def register(self, name: str, description: str, setup: SetupFunction) -> None:
        """Register a projection.

        Raises
        ------
        ValueError
            If ``name`` is already registered.
        """
        if name in self._entries:
            raise ValueError(f"Projection {name!r} is already registered")
        self._entries[name] = ProjectionEntry(name=name, description=description, setup=setup)
        logger.debug(f"Registered projection {name}")

    def get(self, name: str) -> ProjectionEntry:
        if name not in self._entries:
            raise KeyError(f"Unknown projection {name!r}. Available: {self.names()}")
        return self._entries[name]

    def names(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def create(
        self,
        name: str,
        radius=ProjectionConstants.UNIT_SPHERE_RADIUS.value,
        es: float = 0.0,
        lon_0_deg=0.0,
        x_0: float = 0.0,
        y_0: float = 0.0,
        over: bool = False
    ) -> ProjectionParameters:
        """Build and set up a parameter snapshot for a registered projection.

        Parameters
        ----------
        name : str
            Registered projection key.
        radius : float or pint.Quantity
            Sphere radius. Quantities are converted to meters; bare
            numbers are used as given and planar output takes their unit.
        es : float
            Requested eccentricity squared. Sphere-only projections
            replace it with 0.
        lon_0_deg : float or pint.Quantity
            Central meridian, in degrees unless given as a quantity.
        x_0, y_0 : float
            False easting and northing.
        over : bool
            Disable longitude wrapping.

        Returns
        -------
        ProjectionParameters
            Configured snapshot with transforms installed.
        """
        entry = self.get(name)
        radius = length_to_meters(radius)

        if not np.isfinite(radius) or radius <= 0.0:
            raise ValueError(f"Radius must be positive and finite, got {radius}")
        if not np.isfinite(es) or es < 0.0 or es >= 1.0:
            raise ValueError(f"Eccentricity squared must lie in [0, 1), got {es}")

        params = ProjectionParameters(
            name=entry.name,
            description=entry.description,
            a=float(radius),
            es=float(es),
            lam0=angle_to_radians(lon_0_deg),
            x0=float(x_0),
            y0=float(y_0),
            over=over
        )
        configured = entry.setup(params)

        if es != 0.0 and configured.es == 0.0:
            logger.warning(
                f"Projection {name} is sphere-only; ignoring es={es} "
                f"and using a sphere of radius {radius}"
            )
        return configured


def parse_proj_string(definition: str) -> Dict[str, object]:
    """Parse a PROJ-style definition into a keyword dictionary.

    Parameters
    ----------
    definition : str
        e.g. "+proj=nell_h +R=6371000 +lon_0=10"

    Returns
    -------
    dict
        Keys 'proj' (str), numeric keys as floats, flags as True.

    Raises
    ------
    ValueError
        If the string is malformed, has unknown keys or lacks +proj.
    """
    parsed: Dict[str, object] = {}

    for token in definition.split():
        if not token.startswith("+"):
            raise ValueError(f"Malformed token {token!r} in {definition!r}")
        key, sep, value = token[1:].partition("=")
        if not key:
            raise ValueError(f"Empty key in {definition!r}")

        if key == "proj":
            if not value:
                raise ValueError("+proj requires a projection name")
            parsed["proj"] = value
        elif key in _NUMERIC_KEYS:
            try:
                parsed[key] = float(value)
            except ValueError:
                raise ValueError(f"Non-numeric value for +{key}: {value!r}") from None
        elif key in _FLAG_KEYS:
            if sep:
                raise ValueError(f"+{key} takes no value")
            parsed[key] = True
        elif key in _IGNORED_KEYS:
            continue
        else:
            raise ValueError(f"Unsupported parameter +{key}")

    if "proj" not in parsed:
        raise ValueError(f"Definition {definition!r} has no +proj")
    return parsed


def parameters_from_proj_string(
    definition: str,
    registry: Optional[ProjectionRegistry] = None
) -> ProjectionParameters:
    """Build a configured parameter snapshot from a PROJ-style definition."""
    registry = registry or default_registry
    parsed = parse_proj_string(definition)

    radius = parsed.get("R", parsed.get("a", ProjectionConstants.UNIT_SPHERE_RADIUS.value))
    return registry.create(
        name=parsed["proj"],
        radius=radius,
        es=parsed.get("es", 0.0),
        lon_0_deg=parsed.get("lon_0", 0.0),
        x_0=parsed.get("x_0", 0.0),
        y_0=parsed.get("y_0", 0.0),
        over=bool(parsed.get("over", False))
    )


def format_proj_string(params: ProjectionParameters) -> str:
    """Render a parameter snapshot back to a PROJ-style definition."""
    parts = [
        f"+proj={params.name}",
        f"+R={params.a:.12g}",
        f"+lon_0={np.degrees(params.lam0):.12g}",
        f"+x_0={params.x0:.12g}",
        f"+y_0={params.y0:.12g}",
    ]
    if params.over:
        parts.append("+over")
    parts.append("+no_defs")
    return " ".join(parts)


default_registry = ProjectionRegistry()
default_registry.register(NELL_H_NAME, NELL_H_DESCRIPTION, setup_nell_h)

"""
Geospatial Module for the Nell-Hammer Projection System.

This module provides:
- The Nell-Hammer forward and inverse transforms (sphere only)
- A registry of projections and PROJ-style definition parsing
- A projection host with range checks, false origin and distortion tracking
"""

from geospatial.nell_hammer import (
    PROJECTION_NAME,
    PROJECTION_DESCRIPTION,
    nell_h_forward,
    nell_h_inverse,
    solve_inverse,
    setup_nell_h,
    forward_array,
    inverse_array,
)

from geospatial.registry import (
    ProjectionRegistry,
    default_registry,
    parse_proj_string,
    parameters_from_proj_string,
    format_proj_string,
)

from geospatial.projections import (
    ProjectionAdapter,
    NellHammerProjection,
    TissotIndicatrix,
    compute_tissot_indicatrix,
    create_projection,
    batch_project,
    batch_unproject,
)

__all__ = [
    # Nell-Hammer core
    "PROJECTION_NAME",
    "PROJECTION_DESCRIPTION",
    "nell_h_forward",
    "nell_h_inverse",
    "solve_inverse",
    "setup_nell_h",
    "forward_array",
    "inverse_array",
    # Registry
    "ProjectionRegistry",
    "default_registry",
    "parse_proj_string",
    "parameters_from_proj_string",
    "format_proj_string",
    # Projection host
    "ProjectionAdapter",
    "NellHammerProjection",
    "TissotIndicatrix",
    "compute_tissot_indicatrix",
    "create_projection",
    "batch_project",
    "batch_unproject",
]

"""Shared fixtures for the projection tests."""

import uuid

import pytest

from common.constants import ProjectionConstants
from common.logging_config import AuditLogger
from geospatial.projections import NellHammerProjection
from geospatial.registry import default_registry


@pytest.fixture
def unit_projection():
    """Nell-Hammer on the unit sphere, centred on Greenwich."""
    return NellHammerProjection()


@pytest.fixture
def metric_projection():
    """Nell-Hammer on the mean Earth sphere with a shifted origin."""
    params = default_registry.create(
        "nell_h",
        radius=ProjectionConstants.EARTH_MEAN_RADIUS.value,
        lon_0_deg=10.0,
        x_0=500_000.0,
        y_0=1_000_000.0,
    )
    return NellHammerProjection(params)


@pytest.fixture
def audit_run():
    """An active audit run with a unique id; yields (audit, run_id)."""
    audit = AuditLogger()
    run_id = f"test-{uuid.uuid4().hex[:8]}"
    with audit.run_context(run_id):
        yield audit, run_id

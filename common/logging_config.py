"""
Logging Setup and Audit Trail for Projection Runs.

This module provides structured logging and an audit trail for projection
runs. The inverse transform never fails; when its iteration runs out of
budget it clamps the latitude to a pole. Those degraded results are not
errors, but they are recorded here so that a batch can be inspected
afterwards.

Audit Contents
--------------
Every run records:
- Configuration hash of the projection parameters
- Number of forward and inverse calls
- Every pole fallback of the inverse iteration
"""

import hashlib
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from contextlib import contextmanager
import threading


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return the named logger with a single stdout handler attached.

    Calling this again for the same name only updates the level.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            '%(asctime)s | %(name)s | %(levelname)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


@dataclass
class FallbackEvent:
    """Record of an inverse call that ended in the pole approximation.

    Attributes
    ----------
    timestamp : datetime
        When the fallback occurred.
    projection : str
        Registered name of the projection.
    x, y : float
        Planar input of the inverse call, in the projection's units.
    lam, phi : float
        Returned geographic coordinate in radians.
    iterations : int
        Newton steps spent before giving up.
    """
    timestamp: datetime
    projection: str
    x: float
    y: float
    lam: float
    phi: float
    iterations: int


@dataclass
class RunMetadata:
    """Metadata for a projection run."""
    run_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    config_hash: str = ""
    forward_calls: int = 0
    inverse_calls: int = 0
    fallbacks: List[FallbackEvent] = field(default_factory=list)
    total_fallbacks: int = 0
    fallbacks_by_projection: Dict[str, int] = field(default_factory=dict)

    def compute_config_hash(self, config: Dict[str, Any]) -> str:
        """Hash the projection parameters (key order does not matter).

        Stores and returns the first 16 hex characters of the SHA-256 of
        the sorted JSON form.
        """
        config_str = json.dumps(config, sort_keys=True, default=str)
        self.config_hash = hashlib.sha256(config_str.encode()).hexdigest()[:16]
        return self.config_hash


class AuditLogger:
    """Central logging facility for projection audit trails.

    Thread Safety
    -------------
    Recording is guarded by a lock, so transforms running on several
    threads can share one run.

    Examples
    --------
    >>> audit = AuditLogger()
    >>> with audit.run_context("batch_001") as run:
    ...     audit.log_pole_fallback("nell_h", x=3.0, y=10.0,
    ...                             lam=6.0, phi=1.5707963, iterations=9)
    >>> audit.get_run_summary("batch_001")["total_fallbacks"]
    1
    """

    # Per-run cap on stored fallback events; counts stay exact beyond it
    MAX_STORED_FALLBACKS = 1000
    # Finished runs beyond this many are dropped, oldest first
    MAX_RETAINED_RUNS = 64

    _instance: Optional['AuditLogger'] = None
    _lock = threading.Lock()

    def __new__(cls) -> 'AuditLogger':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._runs: Dict[str, RunMetadata] = {}
        self._current_run_id: Optional[str] = None
        self._record_lock = threading.Lock()
        self._logger = get_logger("audit")
        self._initialized = True

    def _evict_finished_runs(self) -> None:
        # caller holds _record_lock
        finished = [rid for rid, run in self._runs.items() if run.end_time is not None]
        excess = len(self._runs) + 1 - self.MAX_RETAINED_RUNS
        for rid in finished[:max(excess, 0)]:
            del self._runs[rid]

    @property
    def current_run_id(self) -> Optional[str]:
        return self._current_run_id

    @contextmanager
    def run_context(self, run_id: str, config: Optional[Dict[str, Any]] = None):
        """Make ``run_id`` the active run for the duration of the block.

        Calls and fallbacks recorded inside the block are attached to
        this run. ``config`` (typically ``ProjectionParameters.as_config()``)
        is hashed so that runs with identical parameters can be matched.
        """
        metadata = RunMetadata(
            run_id=run_id,
            start_time=datetime.now()
        )

        if config:
            metadata.compute_config_hash(config)

        with self._record_lock:
            self._evict_finished_runs()
            self._runs[run_id] = metadata
            self._current_run_id = run_id

        self._logger.info(f"Run {run_id} started (config {metadata.config_hash or '-'})")

        try:
            yield metadata
        finally:
            metadata.end_time = datetime.now()
            with self._record_lock:
                self._current_run_id = None
            self._logger.info(
                f"Completed run {run_id}. "
                f"Forward: {metadata.forward_calls}, "
                f"Inverse: {metadata.inverse_calls}, "
                f"Pole fallbacks: {metadata.total_fallbacks}"
            )

    def record_calls(self, direction: str, count: int = 1) -> None:
        """Count transform calls against the active run.

        Parameters
        ----------
        direction : str
            'forward' or 'inverse'.
        count : int
            Number of points transformed.
        """
        if direction not in ("forward", "inverse"):
            raise ValueError(f"Unknown direction {direction!r}")

        with self._record_lock:
            run = self._runs.get(self._current_run_id) if self._current_run_id else None
            if run is None:
                return
            if direction == "forward":
                run.forward_calls += count
            else:
                run.inverse_calls += count

    def log_pole_fallback(
        self,
        projection: str,
        x: float,
        y: float,
        lam: float,
        phi: float,
        iterations: int
    ) -> None:
        """Record an inverse call that fell back to the pole approximation."""
        event = FallbackEvent(
            timestamp=datetime.now(),
            projection=projection,
            x=x,
            y=y,
            lam=lam,
            phi=phi,
            iterations=iterations
        )

        with self._record_lock:
            if self._current_run_id and self._current_run_id in self._runs:
                run = self._runs[self._current_run_id]
                run.total_fallbacks += 1
                run.fallbacks_by_projection[projection] = run.fallbacks_by_projection.get(projection, 0) + 1
                if len(run.fallbacks) < self.MAX_STORED_FALLBACKS:
                    run.fallbacks.append(event)

        self._logger.debug(
            f"POLE FALLBACK | {projection} | "
            f"x={x:.6f} y={y:.6f} -> lam={lam:.6f} phi={phi:.6f} "
            f"after {iterations} iterations"
        )

    def get_run_summary(self, run_id: str) -> Dict[str, Any]:
        """Get a summary of a projection run.

        Raises
        ------
        KeyError
            If no run with this ID was recorded.
        """
        if run_id not in self._runs:
            raise KeyError(f"Unknown audit run {run_id!r}")

        metadata = self._runs[run_id]

        return {
            "run_id": run_id,
            "config_hash": metadata.config_hash,
            "start_time": metadata.start_time.isoformat(),
            "end_time": metadata.end_time.isoformat() if metadata.end_time else None,
            "forward_calls": metadata.forward_calls,
            "inverse_calls": metadata.inverse_calls,
            "total_fallbacks": metadata.total_fallbacks,
            "stored_fallbacks": len(metadata.fallbacks),
            "fallbacks_by_projection": dict(metadata.fallbacks_by_projection),
        }

    def export_run_artifacts(self, run_id: str, output_path: Path) -> None:
        """Write the run summary and every fallback event to ``output_path`` as JSON."""
        summary = self.get_run_summary(run_id)
        metadata = self._runs[run_id]

        artifacts = dict(summary)
        artifacts["fallbacks"] = [
            {
                "timestamp": e.timestamp.isoformat(),
                "projection": e.projection,
                "x": e.x,
                "y": e.y,
                "lam": e.lam,
                "phi": e.phi,
                "iterations": e.iterations,
            }
            for e in metadata.fallbacks
        ]

        Path(output_path).write_text(json.dumps(artifacts, indent=2))

        self._logger.info(f"Audit trail for {run_id} written to {output_path}")

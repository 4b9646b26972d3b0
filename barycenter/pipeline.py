from __future__ import annotations

import time
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel

from barycenter.masspoint import WeightedPoint
from barycenter.stages.ingest import (
    IngestResult,
    InsufficientInputError,
    ingest_file,
    make_ingestor,
)
from barycenter.stages.reduce import reduce_points, round_count
from barycenter.utils import DEFAULT_CONFIG, get_logger, merge_config

logger = get_logger(__name__)


class BarycenterReport(BaseModel):
    """Outcome of one run: what was loaded, the combined point and phase timings."""

    points_loaded: int
    lines_skipped: int
    rounds: int
    load_seconds: float
    reduce_seconds: float
    x: float
    y: float
    z: float
    mass: float

    @property
    def point(self) -> WeightedPoint:
        return WeightedPoint(self.x, self.y, self.z, self.mass)


def _reduce(ingested: IngestResult, load_seconds: float, cfg: Dict[str, Any]) -> BarycenterReport:
    if not ingested.points:
        raise InsufficientInputError(
            f"Insufficient values: no valid point in {ingested.lines_read} line(s)"
        )

    red = cfg["reduce"]
    t1 = time.monotonic()
    result = reduce_points(
        ingested.points,
        strategy=red["strategy"],
        workers=red["workers"],
        zero_mass=red["zero_mass"],
    )
    reduce_seconds = time.monotonic() - t1
    logger.info("reduced points=%d took_ms=%d", len(ingested.points), int(reduce_seconds * 1000))

    if not result.is_finite():
        logger.warning(
            "barycenter is not finite (%s, %s, %s) mass=%s; input holds a zero total mass",
            result.x, result.y, result.z, result.mass,
        )

    return BarycenterReport(
        points_loaded=len(ingested.points),
        lines_skipped=ingested.lines_skipped,
        rounds=round_count(len(ingested.points)),
        load_seconds=load_seconds,
        reduce_seconds=reduce_seconds,
        x=result.x,
        y=result.y,
        z=result.z,
        mass=result.mass,
    )


def compute_barycenter(lines: Iterable[str], cfg: Optional[Dict[str, Any]] = None) -> BarycenterReport:
    """Ingest ``lines`` and reduce them to a single point."""
    cfg = merge_config(DEFAULT_CONFIG, cfg)
    ingestor = make_ingestor(cfg["ingest"])

    t0 = time.monotonic()
    ingested = ingestor.ingest(lines)
    load_seconds = time.monotonic() - t0
    logger.info("loaded points=%d took_ms=%d", len(ingested.points), int(load_seconds * 1000))

    return _reduce(ingested, load_seconds, cfg)


def compute_barycenter_file(path: str, cfg: Optional[Dict[str, Any]] = None) -> BarycenterReport:
    """Like :func:`compute_barycenter`, reading the lines from ``path``."""
    cfg = merge_config(DEFAULT_CONFIG, cfg)
    ingestor = make_ingestor(cfg["ingest"])

    t0 = time.monotonic()
    ingested = ingest_file(path, ingestor)
    load_seconds = time.monotonic() - t0
    logger.info("loaded path=%s points=%d took_ms=%d", path, len(ingested.points), int(load_seconds * 1000))

    return _reduce(ingested, load_seconds, cfg)

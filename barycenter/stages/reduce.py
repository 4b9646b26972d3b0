from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, List, Optional, Sequence

import numpy as np

from barycenter.masspoint import ZERO_MASS_POLICIES, DegenerateMassError, WeightedPoint, combine
from barycenter.utils import get_logger

logger = get_logger(__name__)

REDUCE_STRATEGIES = ("sequential", "threads", "vectorized")

CombineFn = Callable[[WeightedPoint, WeightedPoint], WeightedPoint]


def round_count(n: int) -> int:
    """Number of fold rounds needed to reduce ``n`` points to one."""
    if n <= 1:
        return 0
    return math.ceil(math.log2(n))


def fold_round(points: Sequence[WeightedPoint], combine_fn: CombineFn = combine) -> List[WeightedPoint]:
    """Combine (0,1), (2,3), ...; an odd last point is carried over unchanged."""
    out = [combine_fn(points[i], points[i + 1]) for i in range(0, len(points) - 1, 2)]
    if len(points) % 2:
        out.append(points[-1])
    return out


def _fold_round_threads(
    points: Sequence[WeightedPoint],
    pool: ThreadPoolExecutor,
    combine_fn: CombineFn,
) -> List[WeightedPoint]:
    # map() yields results in submission order, so pairing order is kept
    out = list(pool.map(combine_fn, points[0:len(points) - 1:2], points[1::2]))
    if len(points) % 2:
        out.append(points[-1])
    return out


def _fold_round_arrays(xs: np.ndarray, ys: np.ndarray, zs: np.ndarray, ms: np.ndarray, zero_mass: str):
    n = ms.shape[0]
    even = n - (n % 2)
    am, bm = ms[0:even:2], ms[1:even:2]
    mass = am + bm
    if zero_mass == "raise" and np.any(mass == 0):
        raise DegenerateMassError("combined mass is zero in a fold round")

    def fold(vs: np.ndarray) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore"):
            merged = (vs[0:even:2] * am + vs[1:even:2] * bm) / mass
        merged[mass == 0] = np.nan
        return np.concatenate([merged, vs[even:]])

    return fold(xs), fold(ys), fold(zs), np.concatenate([mass, ms[even:]])


def _reduce_vectorized(points: Sequence[WeightedPoint], zero_mass: str) -> WeightedPoint:
    arr = np.array([(p.x, p.y, p.z, p.mass) for p in points], dtype=np.float64)
    xs, ys, zs, ms = arr[:, 0], arr[:, 1], arr[:, 2], arr[:, 3]
    while ms.shape[0] > 1:
        xs, ys, zs, ms = _fold_round_arrays(xs, ys, zs, ms, zero_mass)
    return WeightedPoint(float(xs[0]), float(ys[0]), float(zs[0]), float(ms[0]))


def reduce_points(
    points: Sequence[WeightedPoint],
    *,
    strategy: str = "sequential",
    workers: Optional[int] = None,
    zero_mass: str = "raise",
) -> WeightedPoint:
    """Fold ``points`` pairwise, round after round, until one point remains.

    Rounds run one after another. Inside a round the combines are independent,
    so ``threads`` spreads them over a pool and ``vectorized`` evaluates the
    whole round as numpy array expressions; all strategies perform the same
    floating-point operations per pair and return the same point.
    """
    if not points:
        raise ValueError("cannot reduce an empty collection of points")
    if zero_mass not in ZERO_MASS_POLICIES:
        raise ValueError(f"Unknown zero-mass policy: {zero_mass}")

    n = len(points)
    rounds = round_count(n)
    combine_fn = partial(combine, zero_mass=zero_mass)

    if strategy == "sequential":
        current = list(points)
        while len(current) > 1:
            current = fold_round(current, combine_fn)
        result = current[0]
    elif strategy == "threads":
        current = list(points)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reduce") as pool:
            while len(current) > 1:
                current = _fold_round_threads(current, pool, combine_fn)
        result = current[0]
    elif strategy == "vectorized":
        result = points[0] if n == 1 else _reduce_vectorized(points, zero_mass)
    else:
        raise ValueError(f"Unknown reduce strategy: {strategy}")

    logger.info("reduce.%s: points=%d rounds=%d mass=%g", strategy, n, rounds, result.mass)
    return result

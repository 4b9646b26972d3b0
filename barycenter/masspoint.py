"""Mass-point algebra shared by every reduction strategy.

A :class:`WeightedPoint` is an immutable ``(x, y, z, mass)`` value. Two points
are combined by mapping both into the weighted subspace (coordinates scaled
by mass), summing them and mapping the sum back by dividing by the total
mass, which yields the mass-weighted average position.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import reduce
from typing import Iterable, Tuple

__all__ = [
    "BarycenterError",
    "DegenerateMassError",
    "ZERO_MASS_POLICIES",
    "WeightedPoint",
    "add",
    "to_weighted_subspace",
    "from_weighted_subspace",
    "combine",
    "combine_all",
]

ZERO_MASS_POLICIES = ("raise", "nan")


class BarycenterError(Exception):
    """Base class for errors raised while computing a barycenter."""


class DegenerateMassError(BarycenterError, ZeroDivisionError):
    """A combine step produced a total mass of zero."""


@dataclass(frozen=True)
class WeightedPoint:
    x: float
    y: float
    z: float
    mass: float

    @property
    def position(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.z, self.mass))


def add(a: WeightedPoint, b: WeightedPoint) -> WeightedPoint:
    return WeightedPoint(a.x + b.x, a.y + b.y, a.z + b.z, a.mass + b.mass)


def to_weighted_subspace(p: WeightedPoint) -> WeightedPoint:
    return WeightedPoint(p.x * p.mass, p.y * p.mass, p.z * p.mass, p.mass)


def from_weighted_subspace(p: WeightedPoint, zero_mass: str = "raise") -> WeightedPoint:
    """Divide the coordinates back by the mass.

    With ``zero_mass="raise"`` a zero mass raises :class:`DegenerateMassError`;
    with ``zero_mass="nan"`` the coordinates become NaN and the mass is kept.
    """
    if p.mass == 0:
        if zero_mass == "nan":
            return WeightedPoint(math.nan, math.nan, math.nan, p.mass)
        if zero_mass == "raise":
            raise DegenerateMassError(f"cannot map back a point with zero mass: {p!r}")
        raise ValueError(f"Unknown zero-mass policy: {zero_mass}")
    return WeightedPoint(p.x / p.mass, p.y / p.mass, p.z / p.mass, p.mass)


def combine(a: WeightedPoint, b: WeightedPoint, zero_mass: str = "raise") -> WeightedPoint:
    """Mass-weighted average of two points; masses are summed.

    ``C.x = (A.x * A.mass + B.x * B.mass) / (A.mass + B.mass)``, likewise y and z.
    """
    return from_weighted_subspace(add(to_weighted_subspace(a), to_weighted_subspace(b)), zero_mass)


def combine_all(points: Iterable[WeightedPoint], zero_mass: str = "raise") -> WeightedPoint:
    """Left fold over ``points``; raises ``ValueError`` when there are none."""
    it = iter(points)
    first = next(it, None)
    if first is None:
        raise ValueError("cannot combine an empty collection of points")
    return reduce(lambda acc, p: combine(acc, p, zero_mass), it, first)

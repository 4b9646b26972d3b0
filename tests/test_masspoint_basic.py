import dataclasses
import math

import pytest

from barycenter.masspoint import (
    DegenerateMassError,
    WeightedPoint,
    combine,
    combine_all,
    from_weighted_subspace,
    to_weighted_subspace,
)


def test_combine_is_mass_weighted_average():
    a = WeightedPoint(0.0, 0.0, 0.0, 1.0)
    b = WeightedPoint(2.0, 4.0, -6.0, 3.0)
    c = combine(a, b)
    assert c.mass == 4.0
    assert c.x == pytest.approx(1.5)
    assert c.y == pytest.approx(3.0)
    assert c.z == pytest.approx(-4.5)


def test_combine_matches_direct_formula_exactly():
    a = WeightedPoint(0.1, -7.3, 2.25, 0.7)
    b = WeightedPoint(3.3, 1.9, -0.125, 2.9)
    c = combine(a, b)
    m = a.mass + b.mass
    assert c.mass == m
    assert c.x == (a.x * a.mass + b.x * b.mass) / m
    assert c.y == (a.y * a.mass + b.y * b.mass) / m
    assert c.z == (a.z * a.mass + b.z * b.mass) / m


def test_weighted_subspace_round_trip():
    p = WeightedPoint(1.5, -2.0, 4.0, 2.0)
    w = to_weighted_subspace(p)
    assert w == WeightedPoint(3.0, -4.0, 8.0, 2.0)
    assert from_weighted_subspace(w) == p


def test_points_are_immutable():
    p = WeightedPoint(1.0, 2.0, 3.0, 4.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        p.x = 5.0  # type: ignore[misc]
    combine(p, WeightedPoint(0.0, 0.0, 0.0, 1.0))
    assert p == WeightedPoint(1.0, 2.0, 3.0, 4.0)


def test_zero_mass_raises_by_default():
    a = WeightedPoint(1.0, 0.0, 0.0, 1.0)
    b = WeightedPoint(3.0, 0.0, 0.0, -1.0)
    with pytest.raises(DegenerateMassError):
        combine(a, b)
    # still a ZeroDivisionError for callers that catch the builtin
    with pytest.raises(ZeroDivisionError):
        combine(a, b)


def test_zero_mass_nan_policy_propagates_nan():
    a = WeightedPoint(1.0, 0.0, 0.0, 1.0)
    b = WeightedPoint(3.0, 0.0, 0.0, -1.0)
    c = combine(a, b, zero_mass="nan")
    assert c.mass == 0.0
    assert all(math.isnan(v) for v in c.position)
    assert not c.is_finite()
    d = combine(c, WeightedPoint(0.0, 0.0, 0.0, 2.0), zero_mass="nan")
    assert d.mass == 2.0
    assert math.isnan(d.x)


def test_unknown_zero_mass_policy():
    with pytest.raises(ValueError):
        from_weighted_subspace(WeightedPoint(0.0, 0.0, 0.0, 0.0), zero_mass="ignore")


def test_combine_all():
    pts = [WeightedPoint(0.0, 0.0, 0.0, 1.0), WeightedPoint(0.0, 0.0, 0.0, 1.0), WeightedPoint(0.0, 0.0, 0.0, 2.0)]
    assert combine_all(pts) == WeightedPoint(0.0, 0.0, 0.0, 4.0)
    assert combine_all(pts[:1]) is pts[0]
    with pytest.raises(ValueError):
        combine_all([])

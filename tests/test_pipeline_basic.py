import math

import pytest

from barycenter.masspoint import DegenerateMassError
from barycenter.pipeline import compute_barycenter, compute_barycenter_file
from barycenter.stages.ingest import InsufficientInputError


@pytest.mark.parametrize("mode", ["sequential", "concurrent"])
@pytest.mark.parametrize("strategy", ["sequential", "threads", "vectorized"])
def test_end_to_end_examples(mode, strategy):
    cfg = {"ingest": {"mode": mode}, "reduce": {"strategy": strategy}}

    rep = compute_barycenter(["0:0:0:1\n", "2:0:0:1\n"], cfg)
    assert (rep.x, rep.y, rep.z, rep.mass) == (1.0, 0.0, 0.0, 2.0)
    assert rep.points_loaded == 2
    assert rep.rounds == 1

    rep = compute_barycenter(["0:0:0:1\n", "0:0:0:1\n", "0:0:0:2\n"], cfg)
    assert (rep.x, rep.y, rep.z, rep.mass) == (0.0, 0.0, 0.0, 4.0)
    assert rep.rounds == 2


@pytest.mark.parametrize("mode", ["sequential", "concurrent"])
def test_empty_input_is_fatal(mode):
    with pytest.raises(InsufficientInputError):
        compute_barycenter(["garbage\n", "\n"], {"ingest": {"mode": mode}})
    with pytest.raises(InsufficientInputError):
        compute_barycenter([], {"ingest": {"mode": mode}})


def test_file_pipeline_counts_skips(tmp_path):
    path = tmp_path / "points.txt"
    path.write_text("1:2:3:4\ngarbage\n5:6:7:8\n", encoding="utf-8")
    rep = compute_barycenter_file(str(path))
    assert rep.points_loaded == 2
    assert rep.lines_skipped == 1
    assert rep.mass == 12.0
    assert rep.x == pytest.approx((1 * 4 + 5 * 8) / 12)
    assert rep.load_seconds >= 0 and rep.reduce_seconds >= 0


def test_missing_file_propagates(tmp_path):
    with pytest.raises(FileNotFoundError):
        compute_barycenter_file(str(tmp_path / "missing.txt"))


def test_zero_total_mass(caplog):
    lines = ["1:0:0:1\n", "3:0:0:-1\n"]
    with pytest.raises(DegenerateMassError):
        compute_barycenter(lines)
    rep = compute_barycenter(lines, {"reduce": {"zero_mass": "nan"}})
    assert rep.mass == 0.0
    assert math.isnan(rep.x)
    assert any("not finite" in r.getMessage() for r in caplog.records)


def test_report_json_dump():
    rep = compute_barycenter(["0:0:0:1\n", "2:0:0:1\n"])
    js = rep.model_dump(mode="json")
    assert js["x"] == 1.0 and js["mass"] == 2.0
    assert rep.point.position == (1.0, 0.0, 0.0)

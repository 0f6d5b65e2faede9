"""Tests for PVT gaps, cross-validation and time jumps."""

import sys
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
from demo_data import snapshot_series
from pvt_gap import (
    calculate_discrepancy, compare_stations, compare_totals,
    cross_validation_alert, detect_jumps, format_gap_alert, gap_severity,
)


def test_compare_totals():
    r = compare_totals(200, 180)
    assert r["gap"] == 20
    assert r["gap_percent"] == pytest.approx(0.111, abs=1e-3)
    assert r["gap_percentage"] == pytest.approx(11.11, abs=1e-2)
    assert r["severity"] == "critical"
    assert r["is_suspicious"]


def test_compare_totals_zero_official():
    r = compare_totals(50, 0)
    assert r["gap"] == 50
    assert r["gap_percent"] == 0.0
    assert not r["is_suspicious"]


@pytest.mark.parametrize("pct,sev", [
    (0.0, "medium"), (0.05, "medium"), (0.06, "high"),
    (0.10, "high"), (0.11, "critical"),
])
def test_gap_severity(pct, sev):
    assert gap_severity(pct) == sev


def test_compare_stations_vote_threshold():
    pairs = [{"code": "A", "our_sum": 200, "their_sum": 180},
             {"code": "B", "our_sum": 200, "their_sum": 195},
             {"code": "C", "our_sum": 10, "their_sum": 0}]
    r = compare_stations(pairs)
    st = {s["code"]: s for s in r["stations"]}
    assert st["A"]["gap"] == 20 and st["A"]["has_gap"]
    assert st["B"]["gap"] == 5 and not st["B"]["has_gap"]
    assert st["C"]["gap_percent"] == 0.0
    assert r["flagged"] == ["A"]
    assert r["total"]["our_total"] == 410
    assert r["total"]["their_total"] == 375


def test_compare_stations_missing_column():
    with pytest.raises(ValueError, match="their_sum"):
        compare_stations(pd.DataFrame({"code": ["A"], "our_sum": [1]}))


def test_format_gap_alert():
    msg = format_gap_alert("YST-001", 250, 200)
    assert msg == ("Gap Alert: YST-001 - Our: 250, Their: 200, "
                   "Gap: 50 (25.00%)")


def test_discrepancy_identical():
    a = {1: 100, 2: 80, 3: 60}
    assert calculate_discrepancy(a, dict(a)) == 0.0


def test_discrepancy_average():
    d = calculate_discrepancy({1: 100, 2: 80}, {1: 105, 2: 75})
    assert d == pytest.approx(5.625)


def test_discrepancy_missing_and_empty():
    assert calculate_discrepancy({1: 100, 2: 80, 3: 60},
                                 {1: 100, 2: 80}) > 30
    assert calculate_discrepancy({1: 100}, {1: 100, 2: 5}) == 50.0
    assert calculate_discrepancy({}, {1: 100}) == 100.0
    assert calculate_discrepancy({1: 0, 2: 100}, {1: 0, 2: 100}) == 0.0


def test_cross_validation_alert():
    a = {"Cand 1": 100, "Cand 2": 80}
    b = {"Cand 1": 110, "Cand 2": 70}
    alert = cross_validation_alert("YST-001", 10, a, b)
    assert alert["severity"] == "high"
    assert "10.0%" in alert["summary"]
    assert "Cand 1: 100 vs 110" in alert["summary"]
    assert cross_validation_alert("YST-001", 20, a, b)["severity"] == "critical"
    assert cross_validation_alert("YST-001", 5, a, b) is None


def test_detect_jumps_series():
    r = detect_jumps(snapshot_series())
    assert r["has_anomaly"]
    assert len(r["jumps"]) == 1
    j = r["jumps"][0]
    assert j["jump_size"] == j["new_total"] - j["previous_total"]
    assert j["jump_size"] > 0.1 * j["previous_total"]
    assert r["total_snapshots"] == 30


def test_detect_jumps_records():
    snaps = [{"time": "2026-03-01 18:00", "cumulative_total": 1000},
             {"time": "2026-03-01 18:02", "cumulative_total": 1050},
             {"time": "2026-03-01 18:04", "cumulative_total": 1300}]
    r = detect_jumps(snaps)
    assert [j["new_total"] for j in r["jumps"]] == [1300]


def test_detect_jumps_unsorted_input():
    snaps = [{"time": "2026-03-01 18:04", "cumulative_total": 1300},
             {"time": "2026-03-01 18:00", "cumulative_total": 1000},
             {"time": "2026-03-01 18:02", "cumulative_total": 1250}]
    r = detect_jumps(snaps)
    assert [j["previous_total"] for j in r["jumps"]] == [1000]


def test_detect_jumps_window():
    snaps = [{"time": "2026-03-01 18:00", "cumulative_total": 1000},
             {"time": "2026-03-01 19:00", "cumulative_total": 2000}]
    assert detect_jumps(snaps)["has_anomaly"]
    assert not detect_jumps(snaps, window=5)["has_anomaly"]
    snaps[1]["time"] = "2026-03-01 18:05"
    assert not detect_jumps(snaps, window=5)["has_anomaly"]
    snaps[1]["time"] = "2026-03-01 18:04"
    assert detect_jumps(snaps, window=5)["has_anomaly"]


def test_detect_jumps_from_zero_and_short():
    snaps = [{"time": "2026-03-01 18:00", "cumulative_total": 0},
             {"time": "2026-03-01 18:01", "cumulative_total": 0}]
    assert not detect_jumps(snaps)["has_anomaly"]
    snaps[1]["cumulative_total"] = 1
    assert detect_jumps(snaps)["has_anomaly"]
    assert detect_jumps(snaps[:1]) == {
        "jumps": [], "has_anomaly": False, "total_snapshots": 1}

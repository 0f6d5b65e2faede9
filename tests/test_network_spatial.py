"""Tests for network centrality and the spatial z-score."""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
from demo_data import hub_network
from sna_centrality import calculate_network_centrality, node_centrality
from spatial_zscore import calculate_spatial_zscore, neighbors_from_coords


def test_star_network():
    tx = [{"source": "H", "target": t} for t in "ABCD"]
    r = calculate_network_centrality(tx)
    assert r["total_nodes"] == 5
    assert r["total_edges"] == 4
    top = r["centrality"][0]
    assert top["node"] == "H"
    assert top["out_degree"] == 4 and top["in_degree"] == 0
    assert top["centrality_score"] == pytest.approx(4 / 8)
    assert [h["node"] for h in r["hubs"]] == ["H"]
    assert node_centrality(r, "A") == pytest.approx(1 / 8)
    assert node_centrality(r, "nobody") == 0.0


def test_hub_network_finds_hub():
    r = calculate_network_centrality(hub_network())
    assert r["hubs"][0]["node"] == "HUB"


def test_empty_network():
    r = calculate_network_centrality([])
    assert r["total_nodes"] == 0
    assert r["hubs"] == []


def test_zscore_outlier():
    values = {i: 100 for i in range(6)}
    values[1] = 110
    values[0] = 200
    nb = {0: [1, 2, 3, 4, 5], 1: [0, 2], 2: [3]}
    r = {x["id"]: x for x in calculate_spatial_zscore(values, nb)}
    assert r[0]["neighbor_mean"] == pytest.approx(102)
    assert r[0]["neighbor_std"] == pytest.approx(4)
    assert r[0]["z_score"] == pytest.approx(24.5)
    assert r[0]["is_suspicious"]
    assert r[0]["severity"] == "critical"
    assert not r[1]["is_suspicious"]
    # single neighbour: zero spread
    assert r[2]["z_score"] == 0.0
    # no neighbours listed
    assert r[3]["z_score"] == 0.0 and r[3]["neighbor_mean"] is None


def test_zscore_ignores_non_positive_neighbours():
    values = {"a": 50, "b": 0, "c": -3}
    r = calculate_spatial_zscore(values, {"a": ["b", "c", "zz"]})
    assert r[0]["z_score"] == 0.0
    assert r[0]["neighbor_mean"] is None


def test_neighbors_from_coords():
    ids = ["a", "b", "c", "far"]
    coords = np.array([[0, 0], [0, 1], [1, 0], [50, 50]])
    nb = neighbors_from_coords(ids, coords, k=2)
    assert sorted(nb["a"]) == ["b", "c"]
    assert "far" not in nb["b"]
    assert all(i not in nb[i] for i in ids)
    assert neighbors_from_coords(["x"], [[0, 0]]) == {"x": []}

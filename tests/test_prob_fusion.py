"""Tests for the independent-probability combiner."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
from prob_fusion import calculate_fraud_probability


def test_empty():
    assert calculate_fraud_probability([]) == 0


@pytest.mark.parametrize("p", [0.0, 0.2, 0.5, 0.99])
def test_single(p):
    assert calculate_fraud_probability([p]) == pytest.approx(p)


def test_two_halves():
    assert calculate_fraud_probability([0.5, 0.5]) == pytest.approx(0.75)


def test_certainty_propagates():
    assert calculate_fraud_probability([0.1, 1.0, 0.3]) == 1.0


def test_order_independent():
    ps = [0.1, 0.25, 0.4]
    assert calculate_fraud_probability(ps) == pytest.approx(
        calculate_fraud_probability(ps[::-1]))
    assert calculate_fraud_probability(ps) == pytest.approx(
        1 - 0.9 * 0.75 * 0.6)


def test_out_of_range_ignored():
    with pytest.warns(UserWarning, match="ignored"):
        p = calculate_fraud_probability([0.5, 1.5, -0.2, float("nan")])
    assert p == pytest.approx(0.5)

"""Klimek-style turnout / winner-share fingerprint.

alpha: share of units in the high-turnout, high-share corner
(ballot stuffing). beta: turnout–share correlation in excess of an
organic baseline (vote stealing / switching).
"""

import numpy as np
import pandas as pd

from forensic_errors import EmptyDatasetError

FRAUD_ZONE = 0.85
BETA_BASELINE = 0.3
ALPHA_SUSPICIOUS = 0.05
BETA_SUSPICIOUS = 0.3
HEATMAP_BINS = 20


def observations_from_counts(registered, cast, valid, leader):
    """Turnout and leader share per unit from raw tallies."""
    wa = np.asarray(registered, dtype=float)
    wb = np.asarray(cast, dtype=float)
    g = np.asarray(valid, dtype=float)
    v = np.asarray(leader, dtype=float)
    to = np.where(wa > 0, wb / np.where(wa > 0, wa, 1), 0)
    s = np.where(g > 0, v / np.where(g > 0, g, 1), 0)
    return to, s


def _split(data):
    """Accept records or a frame with turnout/vote_share, or an (N, 2) array."""
    if isinstance(data, pd.DataFrame):
        missing = {"turnout", "vote_share"} - set(data.columns)
        if missing:
            raise ValueError(f"missing columns: {sorted(missing)}")
        return (data["turnout"].to_numpy(dtype=float),
                data["vote_share"].to_numpy(dtype=float))
    if len(data) and isinstance(data[0], dict):
        to = np.array([d["turnout"] for d in data], dtype=float)
        s = np.array([d["vote_share"] for d in data], dtype=float)
        return to, s
    arr = np.asarray(data, dtype=float).reshape(-1, 2)
    return arr[:, 0], arr[:, 1]


def pearson(x, y):
    """Sum-of-products Pearson r; NaN when either series is flat."""
    n = len(x)
    if n == 0 or np.ptp(x) == 0 or np.ptp(y) == 0:
        return float("nan")
    sx, sy = x.sum(), y.sum()
    num = n * (x*y).sum() - sx*sy
    den = (n * (x*x).sum() - sx**2) * (n * (y*y).sum() - sy**2)
    if not den > 0:
        return float("nan")
    return float(num / np.sqrt(den))


def heatmap(to, s, bins=HEATMAP_BINS):
    """Non-empty cells of a bins×bins grid over the unit square."""
    ix = np.clip(np.floor(to * bins).astype(int), 0, bins - 1)
    iy = np.clip(np.floor(s * bins).astype(int), 0, bins - 1)
    grid = np.zeros((bins, bins), dtype=int)
    np.add.at(grid, (ix, iy), 1)
    cells = []
    for x, y in zip(*np.nonzero(grid)):
        cells.append({"x": (x + 0.5) / bins, "y": (y + 0.5) / bins,
                      "value": int(grid[x, y])})
    return cells


def calculate_klimek_analysis(data, bins=HEATMAP_BINS):
    """Fit alpha/beta and build the density map.

    ``data`` is a list of {"turnout", "vote_share"} records or an
    (N, 2) array. Raises EmptyDatasetError for N = 0.
    """
    to, s = _split(data)
    n = len(to)
    if n == 0:
        raise EmptyDatasetError("no turnout/vote-share observations")
    zone = (to > FRAUD_ZONE) & (s > FRAUD_ZONE)
    alpha = zone.sum() / n
    r = pearson(to, s)
    beta = max(0.0, r - BETA_BASELINE) if np.isfinite(r) else float("nan")
    suspicious = alpha > ALPHA_SUSPICIOUS or beta > BETA_SUSPICIOUS
    return {
        "alpha": float(alpha),
        "beta": beta,
        "correlation": r,
        "fraud_zone_count": int(zone.sum()),
        "total_units": n,
        "heatmap": heatmap(to, s, bins),
        "suspicious": bool(suspicious),
    }

"""Spatial z-score: each station against its neighbours."""

import numpy as np
from sklearn.neighbors import NearestNeighbors

Z_SUSPICIOUS = 2.5
Z_CRITICAL = 3.5
K_NEIGHBORS = 5


def neighbors_from_coords(ids, coords, k=K_NEIGHBORS):
    """k nearest neighbours of each station by coordinate."""
    X = np.asarray(coords, dtype=float)
    k = min(k, len(X) - 1)
    if k < 1:
        return {i: [] for i in ids}
    nn = NearestNeighbors(n_neighbors=k + 1).fit(X)
    _, idx = nn.kneighbors(X)
    ids = list(ids)
    out = {}
    for row, i in zip(idx, ids):
        out[i] = [ids[j] for j in row if ids[j] != i][:k]
    return out


def calculate_spatial_zscore(values, neighbors):
    """z of each station's value against its neighbours' values.

    ``values`` maps id -> value, ``neighbors`` id -> list of ids.
    Neighbour values that are missing or <= 0 are ignored. z is 0
    with no usable neighbours or zero spread (population std).
    """
    out = []
    for sid, v in values.items():
        nv = np.array([values.get(n, 0) for n in neighbors.get(sid, [])],
                      dtype=float)
        nv = nv[nv > 0]
        if len(nv) == 0:
            out.append({"id": sid, "value": v, "neighbor_mean": None,
                        "neighbor_std": None, "z_score": 0.0,
                        "is_suspicious": False, "severity": None})
            continue
        mu, sd = float(nv.mean()), float(nv.std())
        z = (v - mu) / sd if sd > 0 else 0.0
        if abs(z) > Z_CRITICAL:
            sev = "critical"
        elif abs(z) > Z_SUSPICIOUS:
            sev = "high"
        else:
            sev = None
        out.append({"id": sid, "value": v, "neighbor_mean": mu,
                    "neighbor_std": sd, "z_score": float(z),
                    "is_suspicious": bool(abs(z) > Z_SUSPICIOUS),
                    "severity": sev})
    return out

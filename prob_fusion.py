"""Combine fraud probabilities from independent detectors."""

import warnings

import numpy as np


def calculate_fraud_probability(probabilities):
    """P = 1 - Π(1 - pᵢ), the chance at least one detector is right.

    Treats the detectors as independent. Values outside [0, 1] (or
    NaN) are ignored with a warning; no valid value gives 0.
    """
    p = np.asarray(list(probabilities), dtype=float)
    ok = (p >= 0) & (p <= 1)
    if (~ok).any():
        warnings.warn(f"{int((~ok).sum())} probability value(s) outside "
                      f"[0, 1] ignored", stacklevel=2)
    p = p[ok]
    if len(p) == 0:
        return 0.0
    if (p == 1).any():
        return 1.0
    return float(1 - np.prod(1 - p))

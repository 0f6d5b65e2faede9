"""Second-digit Benford test on raw vote counts."""

import warnings

import numpy as np
from scipy import stats

from forensic_errors import InsufficientDataError

MIN_SAMPLES = 50
BENFORD_CRITICAL = 16.92  # chi² critical value, df=9, α=0.05
CRISIS_CHI2 = 30.0
DOF = 9


def expected_2nd():
    """Benford 2nd-digit probabilities for d = 0..9."""
    exp_p = np.zeros(10)
    for d in range(10):
        for k in range(1, 10):
            exp_p[d] += np.log10(1 + 1 / (10*k + d))
    return exp_p


BENFORD_2ND = expected_2nd()


def second_digits(votes):
    """Second digit of each |v| >= 10."""
    v = np.abs(np.asarray(votes, dtype=np.int64))
    v = v[v >= 10]
    # integer digit count; float log10 is off by one near 10**k - 1
    n_dig = np.array([len(str(x)) for x in v], dtype=np.int64)
    return (v // 10 ** (n_dig - 2)) % 10


def calculate_benford_analysis(votes, min_samples=MIN_SAMPLES,
                               critical=BENFORD_CRITICAL):
    """Chi-square test of observed 2nd digits against Benford.

    Values below 10 have no second digit and are dropped. Raises
    InsufficientDataError when fewer than ``min_samples`` remain.
    """
    raw = np.asarray(votes)
    digits = second_digits(raw)
    n = len(digits)
    if n < len(raw):
        warnings.warn(f"{len(raw) - n} value(s) < 10 dropped "
                      f"from 2nd-digit test", stacklevel=2)
    if n < min_samples:
        raise InsufficientDataError(n, min_samples)
    obs = np.bincount(digits, minlength=10)
    obs_f = obs / n
    exp_f = BENFORD_2ND
    chi2 = float(((obs_f - exp_f)**2 / exp_f).sum() * n)
    p = float(stats.chi2.sf(chi2, df=DOF))
    suspicious = chi2 > critical
    if chi2 > CRISIS_CHI2:
        severity = "critical"
    elif suspicious:
        severity = "high"
    else:
        severity = "none"
    return {
        "n": n,
        "expected_freq": exp_f.tolist(),
        "observed_freq": obs_f.tolist(),
        "observed_count": obs.tolist(),
        "chi_square": chi2,
        "p_value": p,
        "deviations": [
            {"digit": d, "expected": float(exp_f[d]),
             "observed": float(obs_f[d]),
             "deviation": float(obs_f[d] - exp_f[d])}
            for d in range(10)
        ],
        "is_suspicious": bool(suspicious),
        "severity": severity,
    }

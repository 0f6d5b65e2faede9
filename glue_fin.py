"""GLUE-FIN: weighted logistic fusion of the detector signals.

S = 100 × σ(β₀ + Σ wₖ zₖ), each zₖ a detector output mapped onto
[0, 1] with 1 the most suspicious. Absent signals contribute 0.
"""

import math

import numpy as np
import pandas as pd
from scipy.special import expit

from benford_2nd import BENFORD_CRITICAL

BIAS = -2.0  # β₀; all-zero input scores 11.9
OCR_CAP = 100.0
PVT_CAP = 10.0  # gap in percent points that saturates
BENFORD_CAP = BENFORD_CRITICAL
FRAUD_ZONE_CAP = 20.0  # fraud-zone share in percent that saturates

DEFAULT_WEIGHTS = {
    "ocr": 0.15,
    "klimek": 0.30,
    "benford": 0.20,
    "pvt": 0.25,
    "sna": 0.10,
}

COMPONENT_NAMES = {
    "ocr": "OCR Confidence",
    "klimek": "Klimek Model",
    "benford": "Benford's Law",
    "pvt": "PVT Gap",
    "sna": "SNA Centrality",
}

# (upper bound, level, emoji, description, recommendation)
LEVELS = [
    (20, "normal", "🟢", "No anomalous signal",
     "No further action"),
    (40, "review", "🟡", "Weak signal present",
     "Check the underlying data"),
    (60, "suspicious", "🟠", "Several signals present",
     "Investigate in depth"),
    (80, "critical", "🔴", "Clear signals present",
     "Report immediately"),
    (100, "crisis", "⚫", "Strong evidence of manipulation",
     "Escalate for legal action"),
]
LEVEL_NAMES = [lv[1] for lv in LEVELS]
HIGH_RISK = ("critical", "crisis")


def _present(x):
    if x is None:
        return False
    try:
        return not math.isnan(x)
    except TypeError:
        return False


def _clip01(x):
    return float(min(1.0, max(0.0, x)))


def get_level(score):
    for upper, level, emoji, desc, rec in LEVELS:
        if score <= upper:
            return level
    return LEVELS[-1][1]


def _level_info(level):
    for _, name, emoji, desc, rec in LEVELS:
        if name == level:
            return emoji, desc, rec
    raise KeyError(level)


def check_weights(weights, tol=1e-9):
    """Human-readable problems with a weight set; empty when valid."""
    problems = []
    unknown = set(weights) - set(DEFAULT_WEIGHTS)
    missing = set(DEFAULT_WEIGHTS) - set(weights)
    if unknown:
        problems.append(f"unknown weights: {sorted(unknown)}")
    if missing:
        problems.append(f"missing weights: {sorted(missing)}")
    neg = sorted(k for k, w in weights.items() if w < 0)
    if neg:
        problems.append(f"negative weights: {neg}")
    total = sum(weights.values())
    if abs(total - 1.0) > tol:
        problems.append(f"weights sum to {total:.6g}, not 1")
    return problems


def normalize_signals(inp):
    """Map a GLUE-FIN input record onto z-values in [0, 1].

    Returns {key: (raw, z)} for the five signals. NaN counts as
    absent. The Klimek signal is alpha + beta when either is given,
    otherwise the fraud-zone percentage.
    """
    get = inp.get
    ocr = get("ocr_confidence")
    z_ocr = _clip01(1 - ocr / OCR_CAP) if _present(ocr) else 0.0

    alpha, beta = get("klimek_alpha"), get("klimek_beta")
    zone = get("fraud_zone_percentage")
    if _present(alpha) or _present(beta):
        a = alpha if _present(alpha) else 0.0
        b = beta if _present(beta) else 0.0
        raw_k = alpha if _present(alpha) else beta
        z_k = _clip01(a + b)
    elif _present(zone):
        raw_k = zone
        z_k = _clip01(zone / FRAUD_ZONE_CAP)
    else:
        raw_k, z_k = None, 0.0

    chi2 = get("benford_chi_square")
    z_b = _clip01(chi2 / BENFORD_CAP) if _present(chi2) else 0.0
    gap = get("pvt_gap_percentage")
    z_p = _clip01(gap / PVT_CAP) if _present(gap) else 0.0
    sna = get("sna_centrality")
    z_s = _clip01(sna) if _present(sna) else 0.0

    def raw(x):
        return float(x) if _present(x) else None

    return {
        "ocr": (raw(ocr), z_ocr),
        "klimek": (raw(raw_k), z_k),
        "benford": (raw(chi2), z_b),
        "pvt": (raw(gap), z_p),
        "sna": (raw(sna), z_s),
    }


def calculate_glue_fin(inp, weights=None):
    """Composite 0-100 suspicion score for one reporting unit.

    ``weights`` defaults to DEFAULT_WEIGHTS and is used as given;
    see :func:`check_weights`.
    """
    w = DEFAULT_WEIGHTS if weights is None else weights
    components = []
    for key, (raw, z) in normalize_signals(inp).items():
        components.append({
            "name": COMPONENT_NAMES[key],
            "key": key,
            "weight": w[key],
            "raw_value": raw,
            "normalized_value": z,
            "contribution": w[key] * z,
        })
    z_sum = BIAS + sum(c["contribution"] for c in components)
    score = round(100 * float(expit(z_sum)), 1)
    score = min(100.0, max(0.0, score))
    level = get_level(score)
    emoji, desc, rec = _level_info(level)
    terms = " + ".join(f"{c['weight']}×{c['normalized_value']:.2f}"
                       for c in components)
    return {
        "score": score,
        "level": level,
        "level_emoji": emoji,
        "level_description": desc,
        "recommendation": rec,
        "components": components,
        "formula": f"S = 100 × σ({BIAS} + {terms}) = {score}",
    }


def analyze_polling_stations(stations, weights=None):
    """Score many units.

    ``stations`` holds records {station_id, station_name?, input}.
    An empty batch yields a zeroed summary.
    """
    results = []
    for st in stations:
        r = dict(st)
        r["result"] = calculate_glue_fin(st["input"], weights)
        results.append(r)
    by_level = {lv: 0 for lv in LEVEL_NAMES}
    for r in results:
        by_level[r["result"]["level"]] += 1
    scores = [r["result"]["score"] for r in results]
    avg = round(float(np.mean(scores)), 1) if scores else 0.0
    return {
        "stations": results,
        "summary": {
            "total": len(results),
            "by_level": by_level,
            "average_score": avg,
            "high_risk_stations": [
                r["station_id"] for r in results
                if r["result"]["level"] in HIGH_RISK],
        },
    }


def rank_stations(batch):
    """Table of scored stations, highest score first."""
    rows = []
    for r in batch["stations"]:
        row = {"station_id": r["station_id"],
               "station_name": r.get("station_name"),
               "score": r["result"]["score"],
               "level": r["result"]["level"]}
        for c in r["result"]["components"]:
            row[f"z_{c['key']}"] = c["normalized_value"]
        rows.append(row)
    cols = ["station_id", "station_name", "score", "level"]
    cols += [f"z_{k}" for k in DEFAULT_WEIGHTS]
    df = pd.DataFrame(rows, columns=cols)
    return df.sort_values("score", ascending=False,
                          kind="stable").reset_index(drop=True)

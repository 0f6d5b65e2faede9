"""Parallel vote tabulation: gaps between two independent tallies
and abrupt jumps in a cumulative reporting series."""

import numpy as np
import pandas as pd

GAP_SUSPICIOUS = 0.05
GAP_CRITICAL = 0.10
GAP_VOTE_THRESHOLD = 10
JUMP_RATIO = 0.1
XVAL_ALERT = 5.0
XVAL_CRITICAL = 15.0


def gap_severity(gap_percent):
    """Severity of a gap given as a fraction of the official total."""
    if gap_percent > GAP_CRITICAL:
        return "critical"
    if gap_percent > GAP_SUSPICIOUS:
        return "high"
    return "medium"


def compare_totals(our_total, their_total):
    """Aggregate gap between our count and the official one.

    ``gap_percent`` is a fraction of ``their_total`` and 0 when the
    official total is 0. ``gap_percentage`` is the same value in
    percent, the unit the GLUE-FIN ``pvt_gap_percentage`` expects.
    """
    gap = abs(int(our_total) - int(their_total))
    gap_percent = gap / their_total if their_total > 0 else 0.0
    return {
        "our_total": int(our_total),
        "their_total": int(their_total),
        "gap": gap,
        "gap_percent": gap_percent,
        "gap_percentage": gap_percent * 100,
        "severity": gap_severity(gap_percent),
        "is_suspicious": gap_percent > GAP_SUSPICIOUS,
    }


def _pairs_frame(pairs):
    if isinstance(pairs, pd.DataFrame):
        df = pairs.copy()
    else:
        df = pd.DataFrame(list(pairs))
    need = {"code", "our_sum", "their_sum"}
    missing = need - set(df.columns)
    if missing:
        raise ValueError(f"missing columns: {sorted(missing)}")
    for c in ["our_sum", "their_sum"]:
        df[c] = pd.to_numeric(df[c], errors="coerce").fillna(0)
        df[c] = df[c].astype(np.int64)
    return df


def compare_stations(pairs, vote_threshold=GAP_VOTE_THRESHOLD):
    """Per-unit gaps for records of {code, our_sum, their_sum}.

    ``has_gap`` uses the flat vote threshold; ``severity`` uses the
    percentage bands of :func:`gap_severity`.
    """
    df = _pairs_frame(pairs)
    ours = df["our_sum"].values
    theirs = df["their_sum"].values
    gap = np.abs(ours - theirs)
    safe = np.where(theirs > 0, theirs, 1)
    pct = np.where(theirs > 0, gap / safe, 0.0)
    stations = []
    for code, o, t, g, p in zip(df["code"], ours, theirs, gap, pct):
        stations.append({
            "code": str(code),
            "our_sum": int(o),
            "their_sum": int(t),
            "gap": int(g),
            "gap_percent": float(p),
            "has_gap": bool(g > vote_threshold),
            "severity": gap_severity(p),
        })
    total = compare_totals(int(ours.sum()), int(theirs.sum()))
    return {
        "stations": stations,
        "flagged": [s["code"] for s in stations if s["has_gap"]],
        "total": total,
    }


def format_gap_alert(code, our_sum, their_sum):
    gap = abs(our_sum - their_sum)
    pct = gap / their_sum * 100 if their_sum > 0 else 0.0
    return (f"Gap Alert: {code} - Our: {our_sum}, Their: {their_sum}, "
            f"Gap: {gap} ({pct:.2f}%)")


def calculate_discrepancy(sheet_a, sheet_b):
    """Mean per-candidate percent difference between two count sheets.

    Sheets map candidate -> votes. A candidate missing from either
    sheet counts as 100; an empty sheet makes the whole comparison 100.
    """
    if not sheet_a or not sheet_b:
        return 100.0
    diffs = []
    for cand, va in sheet_a.items():
        if cand in sheet_b:
            diffs.append(abs(sheet_b[cand] - va) / (va or 1) * 100)
        else:
            diffs.append(100.0)
    diffs += [100.0 for cand in sheet_b if cand not in sheet_a]
    return float(np.mean(diffs))


def cross_validation_alert(code, discrepancy, sheet_a, sheet_b):
    """Alert record for a discrepancy above 5 percent, else None."""
    if discrepancy <= XVAL_ALERT:
        return None
    severity = "critical" if discrepancy > XVAL_CRITICAL else "high"
    summary = (f"Cross-validation discrepancy {discrepancy:.1f}% "
               f"detected for {code}.")
    for cand, va in sheet_a.items():
        vb = sheet_b.get(cand)
        if vb is not None and vb != va:
            summary += f" {cand}: {va} vs {vb}."
    return {"code": code, "severity": severity, "summary": summary}


def _snapshot_frame(snapshots):
    if isinstance(snapshots, pd.DataFrame):
        df = snapshots.copy()
    else:
        df = pd.DataFrame(list(snapshots),
                          columns=["time", "cumulative_total"])
    df["time"] = pd.to_datetime(df["time"])
    df["cumulative_total"] = pd.to_numeric(
        df["cumulative_total"], errors="coerce").fillna(0)
    return df.sort_values("time", kind="stable").reset_index(drop=True)


def detect_jumps(snapshots, ratio=JUMP_RATIO, window=None):
    """Flag steps whose increase exceeds ``ratio`` of the prior total.

    ``snapshots`` holds {time, cumulative_total} records (or a frame
    with those columns). ``window`` optionally bounds the time between
    the two snapshots, as a timedelta or minutes; steps that long or
    longer are never flagged. A prior total of 0 is treated as 1.
    """
    df = _snapshot_frame(snapshots)
    if window is not None and not isinstance(window, pd.Timedelta):
        window = (pd.Timedelta(minutes=window)
                  if isinstance(window, (int, float))
                  else pd.Timedelta(window))
    jumps = []
    times = df["time"].tolist()
    totals = df["cumulative_total"].astype(np.int64).tolist()
    for i in range(1, len(df)):
        prev, curr = totals[i - 1], totals[i]
        step = curr - prev
        if window is not None and times[i] - times[i - 1] >= window:
            continue
        if step > (prev or 1) * ratio:
            jumps.append({
                "time": times[i].isoformat(),
                "previous_total": int(prev),
                "new_total": int(curr),
                "jump_size": int(step),
            })
    return {
        "jumps": jumps,
        "has_anomaly": len(jumps) > 0,
        "total_snapshots": len(df),
    }

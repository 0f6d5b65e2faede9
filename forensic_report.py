#!/usr/bin/env python3
"""Run every detector over one election and fuse the signals.

Reads station tallies (and optionally snapshots and transactions),
prints per-detector sections, and writes a JSON and/or HTML report.
"""

import argparse
import json
import math
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd
from jinja2 import Template

import demo_data
from benford_2nd import calculate_benford_analysis
from forensic_errors import ForensicsError
from glue_fin import (
    DEFAULT_WEIGHTS, analyze_polling_stations, calculate_glue_fin,
    check_weights, rank_stations,
)
from klimek import (
    HEATMAP_BINS, calculate_klimek_analysis, observations_from_counts,
)
from prob_fusion import calculate_fraud_probability
from pvt_gap import compare_stations, detect_jumps
from sna_centrality import calculate_network_centrality, node_centrality
from spatial_zscore import (
    Z_SUSPICIOUS, calculate_spatial_zscore, neighbors_from_coords,
)

SEP = "=" * 60
STATION_COLS = ["code", "registered", "cast", "valid", "leader"]
TOP_N = 10


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Election forensics: Benford 2nd digit, Klimek fingerprint, "
            "PVT gaps, time jumps, network centrality and GLUE-FIN score."
        )
    )
    parser.add_argument(
        "--stations",
        help="CSV with code, registered, cast, valid, leader "
             "(optional: area, our_sum, their_sum, ocr_confidence, lat, lon).",
    )
    parser.add_argument(
        "--snapshots",
        help="CSV with time, cumulative_total.",
    )
    parser.add_argument(
        "--transactions",
        help="CSV with source, target.",
    )
    parser.add_argument(
        "--weights",
        help="JSON file with GLUE-FIN weights (ocr, klimek, benford, pvt, sna).",
    )
    parser.add_argument(
        "--bins",
        type=int,
        default=HEATMAP_BINS,
        help="Heatmap grid size per axis.",
    )
    parser.add_argument(
        "--jump-window",
        type=float,
        default=None,
        help="Ignore steps whose snapshots are this many minutes apart or more.",
    )
    parser.add_argument(
        "--out",
        help="Write the JSON report here.",
    )
    parser.add_argument(
        "--html",
        help="Write an HTML summary here.",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run on synthetic data with a fixed seed.",
    )
    args = parser.parse_args(argv)
    if not args.demo and not args.stations:
        parser.error("--stations is required unless --demo is given")
    return args


def load_weights(path):
    with open(path) as f:
        w = {k: float(v) for k, v in json.load(f).items()}
    problems = check_weights(w)
    if problems:
        raise ValueError(f"{path}: " + "; ".join(problems))
    return w


def load_stations(path):
    df = pd.read_csv(path)
    missing = [c for c in STATION_COLS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing columns {missing}")
    df["code"] = df["code"].astype(str)
    for c in STATION_COLS[1:]:
        df[c] = pd.to_numeric(df[c], errors="coerce").fillna(0)
    return df


def load_inputs(args):
    """(stations, snapshots, transactions) from files or the demo."""
    if args.demo:
        el = demo_data.synth_election()
        el["area"] = [f"A{i // 100:02d}" for i in range(len(el))]
        pairs = demo_data.pvt_pairs(el)
        el["our_sum"] = pairs["our_sum"].values
        el["their_sum"] = pairs["their_sum"].values
        rng = np.random.default_rng(demo_data.SEED)
        el["ocr_confidence"] = rng.uniform(70, 100, len(el)).round(1)
        el["lat"] = rng.uniform(15.5, 16.0, len(el))
        el["lon"] = rng.uniform(104.0, 104.5, len(el))
        tx = demo_data.hub_network()
        # hub pays the first canvassers' stations
        tx += [{"source": "HUB", "target": c} for c in el["code"][:5]]
        return el, demo_data.snapshot_series(), tx
    st = load_stations(args.stations)
    snaps = pd.read_csv(args.snapshots) if args.snapshots else None
    tx = None
    if args.transactions:
        tx = pd.read_csv(args.transactions, dtype=str)
    return st, snaps, tx


def step_benford(st):
    print(f"\n{SEP}\nBenford 2nd digit (leader votes)\n{SEP}")
    try:
        r = calculate_benford_analysis(st["leader"].to_numpy())
    except ForensicsError as e:
        print(f"  skipped: {e}")
        return None
    print(f"{'Digit':>5s}  {'Exp':>6s}  {'Obs':>6s}  {'Dev':>7s}")
    for d in r["deviations"]:
        print(f"{d['digit']:5d}  {d['expected']:6.3f}  "
              f"{d['observed']:6.3f}  {d['deviation']:+7.3f}")
    print(f"  N={r['n']}  chi²={r['chi_square']:.2f}  "
          f"p={r['p_value']:.4f}  suspicious={r['is_suspicious']}")
    return r


def step_klimek(st, bins):
    print(f"\n{SEP}\nKlimek turnout / vote share\n{SEP}")
    to, s = observations_from_counts(
        st["registered"], st["cast"], st["valid"], st["leader"])
    try:
        r = calculate_klimek_analysis(np.c_[to, s], bins=bins)
    except ForensicsError as e:
        print(f"  skipped: {e}")
        return None
    print(f"  units={r['total_units']}  fraud zone={r['fraud_zone_count']}")
    print(f"  alpha={r['alpha']:.4f}  beta={r['beta']:.4f}  "
          f"r={r['correlation']:+.4f}  suspicious={r['suspicious']}")
    print(f"  heatmap: {len(r['heatmap'])} non-empty cells")
    return r


def step_pvt(st):
    print(f"\n{SEP}\nPVT gap (ours vs official)\n{SEP}")
    if not {"our_sum", "their_sum"} <= set(st.columns):
        print("  skipped: no our_sum/their_sum columns")
        return None
    r = compare_stations(st[["code", "our_sum", "their_sum"]])
    t = r["total"]
    print(f"  ours={t['our_total']}  theirs={t['their_total']}  "
          f"gap={t['gap']} ({t['gap_percentage']:.2f}%)  "
          f"severity={t['severity']}")
    print(f"  units over vote threshold: {len(r['flagged'])}")
    return r


def step_jumps(snaps, window):
    print(f"\n{SEP}\nTime jumps in cumulative total\n{SEP}")
    if snaps is None:
        print("  skipped: no snapshots")
        return None
    r = detect_jumps(snaps, window=window)
    for j in r["jumps"]:
        print(f"  {j['time']}  {j['previous_total']:>8d} -> "
              f"{j['new_total']:>8d}  (+{j['jump_size']})")
    print(f"  {r['total_snapshots']} snapshots, "
          f"{len(r['jumps'])} jump(s)")
    return r


def step_network(tx):
    print(f"\n{SEP}\nNetwork centrality\n{SEP}")
    if tx is None or len(tx) == 0:
        print("  skipped: no transactions")
        return None
    r = calculate_network_centrality(tx)
    print(f"  nodes={r['total_nodes']}  edges={r['total_edges']}")
    for h in r["hubs"]:
        print(f"  hub {h['node']:>10s}  degree={h['total_degree']:4d}  "
              f"score={h['centrality_score']:.3f}")
    return r


def step_spatial(st):
    """Turnout of each station against its k nearest neighbours."""
    print(f"\n{SEP}\nSpatial z-score (turnout)\n{SEP}")
    if not {"lat", "lon"} <= set(st.columns):
        print("  skipped: no lat/lon columns")
        return None
    to, _ = observations_from_counts(
        st["registered"], st["cast"], st["valid"], st["leader"])
    codes = st["code"].tolist()
    nb = neighbors_from_coords(codes, st[["lat", "lon"]].to_numpy())
    r = calculate_spatial_zscore(dict(zip(codes, to.tolist())), nb)
    flagged = [x for x in r if x["is_suspicious"]]
    flagged.sort(key=lambda x: -abs(x["z_score"]))
    print(f"{'Code':>10s}  {'Turnout':>7s}  {'Nbr mean':>8s}  {'z':>7s}")
    for x in flagged[:TOP_N]:
        print(f"{x['id']:>10s}  {x['value']:7.3f}  "
              f"{x['neighbor_mean']:8.3f}  {x['z_score']:+7.2f}")
    print(f"  {len(flagged)} of {len(r)} stations with |z| > {Z_SUSPICIOUS}")
    return r


def area_signals(st):
    """Klimek alpha/beta and Benford chi² per area (all units if none)."""
    if "area" in st.columns:
        area = st["area"].fillna("UNKNOWN").astype(str)
    else:
        area = pd.Series("ALL", index=st.index)
    out = {}
    for a, g in st.groupby(area.values):
        sig = {}
        to, s = observations_from_counts(
            g["registered"], g["cast"], g["valid"], g["leader"])
        try:
            k = calculate_klimek_analysis(np.c_[to, s])
            sig["klimek_alpha"] = k["alpha"]
            sig["klimek_beta"] = k["beta"]
        except ForensicsError:
            pass
        try:
            b = calculate_benford_analysis(g["leader"].to_numpy())
            sig["benford_chi_square"] = b["chi_square"]
        except ForensicsError:
            pass
        out[a] = sig
    return out, area


def step_glue_fin(st, pvt, net, weights):
    print(f"\n{SEP}\nGLUE-FIN per station\n{SEP}")
    signals, area = area_signals(st)
    gaps = {}
    if pvt is not None:
        gaps = {s["code"]: s["gap_percent"] * 100 for s in pvt["stations"]}
    stations = []
    for code, a, (_, row) in zip(st["code"], area, st.iterrows()):
        inp = dict(signals[a])
        if "ocr_confidence" in st.columns:
            inp["ocr_confidence"] = row["ocr_confidence"]
        if code in gaps:
            inp["pvt_gap_percentage"] = gaps[code]
        if net is not None:
            inp["sna_centrality"] = node_centrality(net, code)
        stations.append({"station_id": code, "station_name": str(a),
                         "input": inp})
    batch = analyze_polling_stations(stations, weights)
    sm = batch["summary"]
    print(f"  stations={sm['total']}  average={sm['average_score']:.1f}")
    for lv, n in sm["by_level"].items():
        print(f"  {lv:>10s}: {n}")
    ranked = rank_stations(batch)
    print(f"\nTop {TOP_N} by score:")
    print(ranked.head(TOP_N).to_string(index=False))
    return batch, ranked


def step_combined(benford, klimek, pvt):
    """Overall GLUE-FIN and combined probability for the election.

    Benford contributes 1 - p; Klimek and PVT their normalized
    GLUE-FIN signal.
    """
    print(f"\n{SEP}\nOverall assessment\n{SEP}")
    inp = {}
    if klimek is not None:
        inp["klimek_alpha"] = klimek["alpha"]
        inp["klimek_beta"] = klimek["beta"]
    if benford is not None:
        inp["benford_chi_square"] = benford["chi_square"]
    if pvt is not None:
        inp["pvt_gap_percentage"] = pvt["total"]["gap_percentage"]
    g = calculate_glue_fin(inp)
    probs = [c["normalized_value"] for c in g["components"]
             if c["key"] in ("klimek", "pvt") and c["raw_value"] is not None]
    if benford is not None:
        probs.append(1 - benford["p_value"])
    p = calculate_fraud_probability(probs)
    print(f"  {g['level_emoji']} {g['level']} ({g['score']:.1f}): "
          f"{g['level_description']}")
    print(f"  {g['formula']}")
    print(f"  combined probability: {p:.3f}")
    return {"glue_fin": g, "probabilities": probs, "combined": p}


def _clean(obj):
    """JSON-safe copy: NaN -> None, numpy scalars -> Python."""
    if isinstance(obj, dict):
        return {str(k): _clean(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_clean(v) for v in obj]
    if isinstance(obj, np.generic):
        obj = obj.item()
    if isinstance(obj, float) and math.isnan(obj):
        return None
    if isinstance(obj, (pd.Timestamp, datetime)):
        return obj.isoformat()
    return obj


HTML = Template(
    '<!DOCTYPE html><html><head><meta charset="UTF-8">'
    '<title>Election Forensic Report</title></head><body>'
    '<h1>Election Forensic Report</h1><p><i>{{date}}</i></p>'
    '<h2>Overall: {{o.glue_fin.level_emoji}} {{o.glue_fin.level}} '
    '({{o.glue_fin.score}})</h2>'
    '<p>{{o.glue_fin.level_description}}. {{o.glue_fin.recommendation}}.</p>'
    '<p><code>{{o.glue_fin.formula}}</code></p>'
    '<p>Combined probability: {{"%.3f"|format(o.combined)}}</p>'
    '<h2>Highest risk stations</h2>{{table}}'
    '<footer>Statistical signals only; not proof of fraud.</footer>'
    '</body></html>')


def render_html(overall, ranked):
    return HTML.render(
        date=datetime.now().strftime("%Y-%m-%d %H:%M"), o=overall,
        table=ranked.head(TOP_N).to_html(index=False, float_format="%.2f"))


def main(argv=None):
    args = parse_args(argv)
    weights = load_weights(args.weights) if args.weights else DEFAULT_WEIGHTS
    st, snaps, tx = load_inputs(args)
    print(f"{len(st)} stations loaded")
    benford = step_benford(st)
    klimek = step_klimek(st, args.bins)
    pvt = step_pvt(st)
    jumps = step_jumps(snaps, args.jump_window)
    net = step_network(tx)
    spatial = step_spatial(st)
    batch, ranked = step_glue_fin(st, pvt, net, weights)
    overall = step_combined(benford, klimek, pvt)
    report = {
        "benford": benford, "klimek": klimek, "pvt": pvt,
        "jumps": jumps, "network": net, "spatial": spatial,
        "glue_fin": batch, "overall": overall,
    }
    if args.out:
        Path(args.out).parent.mkdir(parents=True, exist_ok=True)
        with open(args.out, "w") as f:
            json.dump(_clean(report), f, ensure_ascii=False, indent=2)
        print(f"\nWrote {args.out}")
    if args.html:
        Path(args.html).parent.mkdir(parents=True, exist_ok=True)
        with open(args.html, "w") as f:
            f.write(render_html(overall, ranked))
        print(f"Wrote {args.html}")
    print(f"\n{SEP}\nDone\n{SEP}")
    return report


if __name__ == "__main__":
    main()

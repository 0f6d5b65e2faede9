"""Synthetic election data for demos and tests."""

import numpy as np
import pandas as pd

SEED = 42
N_HONEST = 900
N_FRAUD = 100


def synth_election(n_honest=N_HONEST, n_fraud=N_FRAUD, seed=SEED):
    """Per-unit tallies: honest units plus ballot-stuffed ones.

    Stuffed units sit in the high-turnout, high-share corner.
    """
    rng = np.random.default_rng(seed)
    n = n_honest + n_fraud
    registered = rng.integers(300, 1500, n)
    to = np.r_[rng.normal(0.62, 0.07, n_honest),
               rng.uniform(0.88, 0.99, n_fraud)]
    share = np.r_[rng.normal(0.45, 0.07, n_honest),
                  rng.uniform(0.88, 0.99, n_fraud)]
    to = np.clip(to, 0.05, 1.0)
    share = np.clip(share, 0.05, 1.0)
    cast = np.round(registered * to).astype(int)
    valid = np.round(cast * rng.uniform(0.96, 1.0, n)).astype(int)
    leader = np.round(valid * share).astype(int)
    return pd.DataFrame({
        "code": [f"ST-{i:04d}" for i in range(n)],
        "registered": registered,
        "cast": cast,
        "valid": valid,
        "leader": leader,
        "stuffed": np.r_[np.zeros(n_honest, bool), np.ones(n_fraud, bool)],
    })


def benford_counts(n=2000, seed=SEED, lo=1.5, hi=4.5):
    """Log-uniform vote counts, which follow Benford's law."""
    rng = np.random.default_rng(seed)
    return np.floor(10 ** rng.uniform(lo, hi, n)).astype(np.int64)


def fabricated_counts(n=500, seed=SEED):
    """Counts with a human-picked second digit (mostly 0 or 5)."""
    rng = np.random.default_rng(seed)
    first = rng.integers(1, 10, n)
    second = rng.choice([0, 5], n)
    return first * 10 + second


def pvt_pairs(election, seed=SEED, n_tampered=20, shift=0.15):
    """Our (volunteer) vs their (official) sums per unit.

    A few units get an inflated official count.
    """
    rng = np.random.default_rng(seed)
    ours = election["leader"].to_numpy()
    theirs = ours.copy()
    idx = rng.choice(len(ours), n_tampered, replace=False)
    theirs[idx] = np.round(ours[idx] * (1 + shift)).astype(int)
    return pd.DataFrame({"code": election["code"],
                         "our_sum": ours, "their_sum": theirs})


def snapshot_series(n=30, seed=SEED, jump_at=20, jump=0.4,
                    start="2026-03-01 17:00", freq="2min"):
    """Cumulative totals reported every ``freq`` with one jump."""
    rng = np.random.default_rng(seed)
    steps = rng.integers(50, 150, n)
    steps[0] = 5000
    totals = np.cumsum(steps)
    totals[jump_at:] += int(totals[jump_at - 1] * jump)
    times = pd.date_range(start, periods=n, freq=freq)
    return pd.DataFrame({"time": times, "cumulative_total": totals})


def hub_network(n_spokes=40, n_noise=60, seed=SEED):
    """Transactions: one hub paying many canvassers plus noise."""
    rng = np.random.default_rng(seed)
    people = [f"P{i:03d}" for i in range(n_spokes)]
    tx = [{"source": "HUB", "target": p} for p in people]
    for _ in range(n_noise):
        a, b = rng.choice(people, 2, replace=False)
        tx.append({"source": str(a), "target": str(b)})
    return tx

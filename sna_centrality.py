"""Degree centrality over a transaction network (vote buying hubs)."""

import numpy as np
import pandas as pd

HUB_QUANTILE = 0.05
HUB_MIN_SCORE = 0.1


def calculate_network_centrality(transactions):
    """Degree centrality from {source, target} edge records.

    score = (in + out degree) / (2 × (nodes − 1)). Hubs are nodes at
    or above the score of the top 5 % and above 0.1.
    """
    if isinstance(transactions, pd.DataFrame):
        tx = transactions[["source", "target"]].astype(str)
    else:
        tx = pd.DataFrame([(t["source"], t["target"]) for t in transactions],
                          columns=["source", "target"], dtype=str)
    nodes = list(dict.fromkeys(tx["source"].tolist()
                               + tx["target"].tolist()))
    out_deg = tx["source"].value_counts()
    in_deg = tx["target"].value_counts()
    max_deg = len(nodes) - 1
    cent = pd.DataFrame({"node": nodes})
    cent["out_degree"] = cent["node"].map(out_deg).fillna(0).astype(int)
    cent["in_degree"] = cent["node"].map(in_deg).fillna(0).astype(int)
    cent["total_degree"] = cent["out_degree"] + cent["in_degree"]
    if max_deg > 0:
        cent["centrality_score"] = cent["total_degree"] / (2 * max_deg)
    else:
        cent["centrality_score"] = 0.0
    cent = cent.sort_values("centrality_score", ascending=False,
                            kind="stable").reset_index(drop=True)
    if len(cent):
        thr = cent["centrality_score"].iloc[
            int(np.floor(len(cent) * HUB_QUANTILE))]
    else:
        thr = 0.0
    hubs = cent[(cent["centrality_score"] >= thr)
                & (cent["centrality_score"] > HUB_MIN_SCORE)]
    return {
        "nodes": nodes,
        "centrality": cent.to_dict("records"),
        "hubs": hubs.to_dict("records"),
        "total_nodes": len(nodes),
        "total_edges": len(tx),
    }


def node_centrality(result, node):
    """Centrality score of one node, 0 when it is not in the network."""
    for row in result["centrality"]:
        if row["node"] == str(node):
            return float(row["centrality_score"])
    return 0.0

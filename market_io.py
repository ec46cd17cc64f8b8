from __future__ import annotations

import math
import os
from typing import Dict, List, Optional, Sequence

import networkx as nx

from market_clearing import ValuationModel


ValKeyCandidates: Sequence[str] = ("valuation", "value", "weight")

# Fixed demo markets; column 4 of the 5x5 sample is all zero.
SAMPLE_MATRICES: Dict[str, List[List[int]]] = {
    "3x3": [
        [6, 5, 2],
        [7, 6, 3],
        [6, 7, 6],
    ],
    "5x5": [
        [5, 4, 2, 0, 0],
        [3, 5, 4, 3, 0],
        [6, 1, 2, 3, 0],
        [1, 7, 8, 3, 0],
        [1, 2, 0, 3, 0],
    ],
}


# ------------------------------
# Loading and validation helpers
# ------------------------------

def sample_market(name: str) -> ValuationModel:
    try:
        rows = SAMPLE_MATRICES[name]
    except KeyError:
        raise ValueError(f"Unknown sample market {name!r}; choose from {sorted(SAMPLE_MATRICES)}.")
    return ValuationModel(rows)


def load_market(path: str) -> ValuationModel:
    """Read a bipartite market from GML.

    Product nodes are 0..n-1 and buyer nodes n..2n-1. Edges carry the buyer's
    valuation; a missing edge is a valuation of 0. Product nodes may carry an
    initial `price`; supplied prices are shifted so the lowest is 0.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input file not found: {path}")
    try:
        G = nx.read_gml(path, label='id')
    except Exception as e:
        raise ValueError(f"Failed to read GML: {e}")

    if isinstance(G, nx.DiGraph):
        G = nx.Graph(G.to_undirected())

    # Node ids should be integers 0..2n-1
    try:
        node_ids = sorted(int(u) for u in G.nodes())
    except (TypeError, ValueError):
        raise ValueError("Node identifiers must be integers 0..2n-1 in the GML file.")
    if not node_ids:
        raise ValueError("Graph has no nodes.")
    m = len(node_ids)
    if m % 2 != 0:
        raise ValueError("Number of nodes must be even (2n).")
    n = m // 2
    if node_ids != list(range(0, 2 * n)):
        raise ValueError("Node ids must be exactly 0..(2n-1) with no gaps.")

    products = range(0, n)
    buyers = range(n, 2 * n)

    found_key: Optional[str] = None
    for (u, v, data) in G.edges(data=True):
        for k in ValKeyCandidates:
            if k in data:
                found_key = k
                break
        if found_key:
            break
    if found_key is None and G.number_of_edges() > 0:
        raise ValueError(
            f"Edges must carry a valuation attribute (one of {list(ValKeyCandidates)})."
        )

    valuations: List[List[int]] = []
    for i in buyers:
        row: List[int] = []
        for j in products:
            data = G.get_edge_data(i, j, default=None)
            if data is None or found_key is None or found_key not in data:
                row.append(0)
                continue
            try:
                val = float(data[found_key])
            except (TypeError, ValueError):
                raise ValueError(f"Non-numeric valuation on edge ({i}, {j}).")
            if not val.is_integer():
                raise ValueError(f"Valuation on edge ({i}, {j}) must be an integer, got {val}.")
            row.append(int(val))
        valuations.append(row)

    prices: List[int] = []
    for j in products:
        try:
            p = float(G.nodes[j].get("price", 0))
        except (TypeError, ValueError):
            raise ValueError(f"Non-numeric price on product node {j}.")
        if math.isnan(p) or math.isinf(p) or p < 0 or not p.is_integer():
            raise ValueError(f"Invalid price on product node {j}: {p}")
        prices.append(int(p))

    # Shift supplied prices so the cheapest product starts at 0
    lowest = min(prices)
    prices = [p - lowest for p in prices]

    return ValuationModel(valuations, prices=prices)


# ------------------------------
# Text rendering
# ------------------------------

def format_matrix(title: str, matrix: Sequence[Sequence[int]]) -> str:
    width = max((len(str(v)) for row in matrix for v in row), default=1)
    lines = [f"{title}:"]
    lines.extend(" ".join(str(v).rjust(width) for v in row) for row in matrix)
    return "\n".join(lines)


def format_price_vector(prices: Sequence[int]) -> str:
    return "Price Vector:\n" + " ".join(str(p) for p in prices)

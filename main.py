from __future__ import annotations

import argparse
import logging
import random
import sys
import traceback
from typing import Dict, List, Optional, Sequence

import networkx as nx

from market_clearing import ClearingSolver, ValuationModel
from market_io import SAMPLE_MATRICES, format_matrix, format_price_vector, load_market, sample_market

# Matplotlib is optional unless --plot is passed
try:
    import matplotlib.pyplot as plt  # type: ignore
except ImportError:  # pragma: no cover
    plt = None


# ------------------------------
# Plotting utilities
# ------------------------------

def maybe_draw(H: nx.Graph, n: int, match: Dict[int, int], prices: List[int], title: str) -> bool:
    if plt is None:
        return False
    buyers = list(range(n, 2 * n))
    products = list(range(n))
    pos = {}
    # bipartite layout: buyers on left (x=0), products on right (x=1)
    for k, i in enumerate(buyers):
        pos[i] = (0, -k)
    for k, j in enumerate(products):
        pos[j] = (1, -k)

    plt.figure()
    nx.draw_networkx_nodes(H, pos, nodelist=buyers, node_shape='s', node_color="lightgreen")
    nx.draw_networkx_nodes(H, pos, nodelist=products, node_shape='o', node_color="skyblue")
    nx.draw_networkx_edges(H, pos, alpha=0.5)

    # Highlight matching edges
    match_edges = [(n + i, j) for i, j in match.items()]
    nx.draw_networkx_edges(H, pos, edgelist=match_edges, width=2.5)

    labels = {b: f"B{b - n}" for b in buyers}
    labels.update({j: f"P{j}\n$p$={prices[j]}" for j in products})
    nx.draw_networkx_labels(H, pos, labels=labels, font_size=8)

    plt.axis('off')
    plt.title(title)
    plt.tight_layout()
    plt.show()
    return True


# ------------------------------
# CLI
# ------------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Market-clearing prices for an n x n assignment market")
    src = p.add_mutually_exclusive_group()
    src.add_argument("gml", nargs="?", help="Path to market.gml (Graph Modelling Language)")
    src.add_argument("--random", nargs=2, type=int, metavar=("BUYERS", "MAX_VALUATION"),
                     help="Random valuation matrix with entries in [0, MAX_VALUATION]")
    src.add_argument("--sample", choices=sorted(SAMPLE_MATRICES), help="Use a built-in sample matrix")
    p.add_argument("--seed", type=int, default=None, help="Seed for --random")
    p.add_argument("--max-rounds", type=int, default=None, help="Iteration cap (default: none)")
    p.add_argument("--plot", action="store_true", help="Plot the final demand graph")
    p.add_argument("--interactive", action="store_true", help="Verbose round-by-round output")
    p.add_argument("--debug", action="store_true", help="Show full traceback on errors")
    args = p.parse_args(argv)
    if args.gml is None and args.random is None and args.sample is None:
        p.error("one of gml, --random or --sample is required")
    return args


def build_model(args: argparse.Namespace) -> ValuationModel:
    if args.random is not None:
        buyers, max_valuation = args.random
        return ValuationModel.random(buyers, max_valuation, rng=random.Random(args.seed))
    if args.sample is not None:
        return sample_market(args.sample)
    return load_market(args.gml)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.interactive else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        model = build_model(args)
    except Exception as e:
        if args.debug:
            traceback.print_exc()
        print(f"Error: {e}", file=sys.stderr)
        return 2

    solver = ClearingSolver(model, max_rounds=args.max_rounds)
    try:
        prices = solver.solve()
        match = solver.assignment()
    except Exception as e:
        if args.debug:
            traceback.print_exc()
        print(f"Error during solving: {e}", file=sys.stderr)
        return 3

    # Final report
    print("=== Market cleared ===")
    print(f"Rounds: {solver.rounds}")
    print(format_matrix("Original Valuation Matrix", model.original))
    print()
    print(format_matrix("Adjusted Valuation Matrix", model.adjusted))
    print()
    print(format_price_vector(prices))
    print()
    print("Assignment (buyer->product):", dict(sorted(match.items())))
    print("Is the calculated price vector valid?", solver.check_clears(prices))

    if args.plot:
        maybe_draw(solver.demand_graph(), model.n, match, prices, title=f"Demand graph after {solver.rounds} rounds")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import itertools
import logging
import numbers
import random
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import networkx as nx


logger = logging.getLogger(__name__)

Matrix = List[List[int]]
Preferences = Dict[int, Set[int]]


# ------------------------------
# Errors
# ------------------------------

class MarketClearingError(Exception):
    """Base class for every error raised by the market-clearing core."""


class InvalidShapeError(MarketClearingError, ValueError):
    pass


class InvalidValuationError(MarketClearingError, ValueError):
    pass


class OutOfRangeError(MarketClearingError, IndexError):
    pass


class ConvergenceError(MarketClearingError, RuntimeError):
    pass


# ------------------------------
# Pure helpers
# ------------------------------

def _check_valuations(valuations: Sequence[Sequence[int]]) -> Matrix:
    rows = [list(row) for row in valuations]
    n = len(rows)
    if n == 0:
        raise InvalidShapeError("Valuation matrix must have at least one buyer.")
    for i, row in enumerate(rows):
        if len(row) != n:
            raise InvalidShapeError(
                f"Valuation matrix must be square: row {i} has {len(row)} entries, expected {n}."
            )
        for j, v in enumerate(row):
            if isinstance(v, bool) or not isinstance(v, numbers.Integral):
                raise InvalidValuationError(f"Valuation ({i}, {j}) must be an integer, got {v!r}.")
            if v < 0:
                raise InvalidValuationError(f"Valuation ({i}, {j}) must be non-negative, got {v}.")
            row[j] = int(v)
    return rows


def adjusted_matrix(valuations: Sequence[Sequence[int]], prices: Sequence[int]) -> Matrix:
    """adjusted[i][j] = valuations[i][j] - prices[j]."""
    return [[v - prices[j] for j, v in enumerate(row)] for row in valuations]


def preferred_products(adjusted: Sequence[Sequence[int]]) -> Preferences:
    """Map each buyer to the products tied for the maximum of its adjusted row.

    A first pass finds the row maximum, a second pass collects every product
    reaching it, so a buyer may prefer several products.
    """
    prefs: Preferences = {}
    for i, row in enumerate(adjusted):
        best = max(row)
        prefs[i] = {j for j, s in enumerate(row) if s == best}
    return prefs


def iter_buyer_subsets(n: int) -> Iterator[Tuple[int, ...]]:
    """Yield every non-empty subset of range(n) exactly once, smallest first."""
    buyers = range(n)
    for size in range(1, n + 1):
        yield from itertools.combinations(buyers, size)


def hall_violation(preferences: Preferences) -> Set[int]:
    """Return N(S) for the first buyer set S with |N(S)| < |S|, else an empty set.

    Exhaustive over all 2^n - 1 buyer subsets.
    """
    for subset in iter_buyer_subsets(len(preferences)):
        neighbors: Set[int] = set()
        for i in subset:
            neighbors |= preferences[i]
        if len(neighbors) < len(subset):
            return neighbors
    return set()


def demand_graph(preferences: Preferences) -> nx.Graph:
    """Bipartite graph with products 0..n-1 and buyers n..2n-1."""
    n = len(preferences)
    H = nx.Graph()
    H.add_nodes_from(range(n, 2 * n), bipartite=0)
    H.add_nodes_from(range(n), bipartite=1)
    for i, products in preferences.items():
        for j in products:
            H.add_edge(n + i, j)
    return H


def perfect_assignment(preferences: Preferences) -> Optional[Dict[int, int]]:
    """Return a buyer->product perfect matching of the preference graph, or None."""
    n = len(preferences)
    H = demand_graph(preferences)
    buyer_nodes = set(range(n, 2 * n))
    M = nx.algorithms.bipartite.maximum_matching(H, top_nodes=buyer_nodes)
    # networkx returns both directions; keep buyer->product only
    match = {u - n: v for u, v in M.items() if u in buyer_nodes}
    if len(match) != n:
        return None
    return match


# ------------------------------
# Valuation model
# ------------------------------

class ValuationModel:
    """Original valuations, current prices and the adjusted matrix derived from them."""

    def __init__(self, valuations: Sequence[Sequence[int]], prices: Optional[Sequence[int]] = None):
        self._original = _check_valuations(valuations)
        self._n = len(self._original)
        self._prices: List[int] = [0] * self._n
        if prices is not None:
            self.set_prices(prices)
        self._adjusted: Matrix = adjusted_matrix(self._original, self._prices)

    @classmethod
    def random(cls, number_of_buyers: int, max_valuation: int, rng: Optional[random.Random] = None) -> "ValuationModel":
        """Fill an n x n matrix with uniform integers in [0, max_valuation]."""
        if number_of_buyers < 1:
            raise InvalidShapeError("number_of_buyers must be at least 1.")
        if max_valuation < 0:
            raise InvalidValuationError("max_valuation must be non-negative.")
        rng = rng if rng is not None else random.Random()
        valuations = [
            [rng.randint(0, max_valuation) for _ in range(number_of_buyers)]
            for _ in range(number_of_buyers)
        ]
        return cls(valuations)

    @property
    def n(self) -> int:
        return self._n

    @property
    def original(self) -> Matrix:
        return [row[:] for row in self._original]

    @property
    def adjusted(self) -> Matrix:
        return [row[:] for row in self._adjusted]

    @property
    def prices(self) -> List[int]:
        return self._prices[:]

    def _check_index(self, k: int, what: str) -> None:
        if not 0 <= k < self._n:
            raise OutOfRangeError(f"{what} index {k} outside [0, {self._n}).")

    def adjusted_value(self, i: int, j: int) -> int:
        self._check_index(i, "Buyer")
        self._check_index(j, "Product")
        return self._original[i][j] - self._prices[j]

    def recompute_adjusted_matrix(self) -> None:
        for i, row in enumerate(self._original):
            target = self._adjusted[i]
            for j, v in enumerate(row):
                target[j] = v - self._prices[j]

    def increment_price(self, j: int) -> None:
        self._check_index(j, "Product")
        self._prices[j] += 1

    def normalize_prices(self) -> None:
        """Shift all prices down by the minimum so the cheapest product costs 0.

        Relative differences are unchanged, so every buyer keeps the same
        preferred products.
        """
        lowest = min(self._prices)
        self._prices = [p - lowest for p in self._prices]

    def set_prices(self, candidate: Sequence[int]) -> None:
        if len(candidate) != self._n:
            raise InvalidShapeError(f"Price vector must have {self._n} entries, got {len(candidate)}.")
        self._prices = list(candidate)


# ------------------------------
# Clearing solver
# ------------------------------

class ClearingSolver:
    """Raise prices on over-demanded products until Hall's condition holds.

    Each round rebuilds the adjusted matrix and the preference graph from
    scratch, looks for a buyer set whose preferred products are fewer than its
    buyers, raises the price of those products by one and renormalizes.
    """

    def __init__(self, model: ValuationModel, max_rounds: Optional[int] = None):
        self.model = model
        self.max_rounds = max_rounds
        self.rounds = 0
        self.converged = False
        self.preferences: Preferences = {}

    @property
    def n(self) -> int:
        return self.model.n

    def build_preference_graph(self) -> Preferences:
        self.preferences = preferred_products(self.model.adjusted)
        return self.preferences

    def find_hall_violation(self) -> Set[int]:
        return hall_violation(self.preferences)

    def resolve_violation(self, neighbors: Set[int]) -> None:
        for j in sorted(neighbors):
            self.model.increment_price(j)
        self.model.normalize_prices()

    def _refresh(self) -> Set[int]:
        self.model.recompute_adjusted_matrix()
        self.build_preference_graph()
        return self.find_hall_violation()

    def solve(self) -> List[int]:
        """Run the adjustment loop to convergence and return the clearing prices."""
        self.rounds = 0
        self.converged = False
        while True:
            violated = self._refresh()
            if not violated:
                break
            if self.max_rounds is not None and self.rounds >= self.max_rounds:
                raise ConvergenceError(f"Did not converge within {self.max_rounds} rounds.")
            self.rounds += 1
            logger.debug("Round %d: prices=%s over-demanded products=%s",
                         self.rounds, self.model.prices, sorted(violated))
            self.resolve_violation(violated)
        self.converged = True
        logger.info("Market cleared after %d rounds: prices=%s", self.rounds, self.model.prices)
        return self.model.prices

    def get_price_vector(self) -> List[int]:
        return self.model.prices

    def check_clears(self, candidate: Sequence[int]) -> bool:
        """True iff `candidate` clears the market. Never touches solver state."""
        if len(candidate) != self.n:
            return False
        prefs = preferred_products(adjusted_matrix(self.model.original, candidate))
        return not hall_violation(prefs)

    def adopt_price_vector(self, candidate: Sequence[int]) -> None:
        self.model.set_prices(candidate)
        self.model.recompute_adjusted_matrix()
        self.build_preference_graph()
        self.converged = False

    def is_valid_price_vector(self, candidate: Sequence[int]) -> bool:
        """Install `candidate` as the live price vector and report whether it clears.

        A wrong-length candidate returns False and leaves the state alone.
        """
        if len(candidate) != self.n:
            return False
        self.adopt_price_vector(candidate)
        return not self.find_hall_violation()

    def _rebuild_at_current_prices(self) -> None:
        self.model.recompute_adjusted_matrix()
        self.build_preference_graph()

    def demand_graph(self) -> nx.Graph:
        self._rebuild_at_current_prices()
        return demand_graph(self.preferences)

    def assignment(self) -> Dict[int, int]:
        """Buyer->product perfect matching at the current prices."""
        self._rebuild_at_current_prices()
        match = perfect_assignment(self.preferences)
        if match is None:
            raise MarketClearingError("Current prices do not clear the market; no perfect matching exists.")
        return match

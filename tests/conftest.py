from pathlib import Path
import random
import sys
from typing import Dict, Sequence, Set

import pytest

# Put the project root on the import path so tests run from any directory
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from market_io import SAMPLE_MATRICES


def kuhn_perfect_matching(preferences: Dict[int, Set[int]]) -> bool:
    """Augmenting-path check, independent of the solver and of networkx."""
    owner: Dict[int, int] = {}

    def augment(i: int, seen: Set[int]) -> bool:
        for j in sorted(preferences[i]):
            if j in seen:
                continue
            seen.add(j)
            if j not in owner or augment(owner[j], seen):
                owner[j] = i
                return True
        return False

    return all(augment(i, set()) for i in preferences)


def row_maxima(valuations: Sequence[Sequence[int]], prices: Sequence[int]) -> Dict[int, Set[int]]:
    prefs = {}
    for i, row in enumerate(valuations):
        adjusted = [v - prices[j] for j, v in enumerate(row)]
        best = max(adjusted)
        prefs[i] = {j for j, s in enumerate(adjusted) if s == best}
    return prefs


@pytest.fixture
def clears():
    """Independent oracle: do `prices` clear the market for `valuations`?"""
    def _clears(valuations, prices) -> bool:
        return kuhn_perfect_matching(row_maxima(valuations, prices))
    return _clears


@pytest.fixture
def sample_3x3():
    return [row[:] for row in SAMPLE_MATRICES["3x3"]]


@pytest.fixture
def sample_5x5():
    return [row[:] for row in SAMPLE_MATRICES["5x5"]]


@pytest.fixture
def rng():
    return random.Random(20161017)

import networkx as nx
import pytest

from market_clearing import ClearingSolver
from market_io import format_matrix, format_price_vector, load_market, sample_market


def write_market(path, n, edges, prices=None, key="valuation"):
    G = nx.Graph()
    # write_gml numbers nodes in insertion order, so insert 0..2n-1 in order
    G.add_nodes_from(range(2 * n))
    for j, p in (prices or {}).items():
        G.nodes[j]["price"] = p
    for buyer, product, value in edges:
        G.add_edge(buyer, product, **{key: value})
    nx.write_gml(G, str(path))
    return str(path)


class TestLoadMarket:
    def test_reads_valuations_and_prices(self, tmp_path):
        path = write_market(tmp_path / "market.gml", 2, [(2, 0, 3), (2, 1, 1), (3, 0, 2)], prices={0: 1})
        model = load_market(path)
        assert model.original == [[3, 1], [2, 0]]
        assert model.prices == [1, 0]

    def test_alternate_valuation_key(self, tmp_path):
        path = write_market(tmp_path / "market.gml", 2, [(2, 0, 4), (3, 1, 2)], key="weight")
        assert load_market(path).original == [[4, 0], [0, 2]]

    def test_loaded_market_solves(self, tmp_path, clears):
        edges = [(3 + i, j, v) for i, row in enumerate([[6, 5, 2], [7, 6, 3], [6, 7, 6]]) for j, v in enumerate(row)]
        model = load_market(write_market(tmp_path / "m.gml", 3, edges))
        prices = ClearingSolver(model).solve()
        assert clears(model.original, prices)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_market(str(tmp_path / "nope.gml"))

    def test_odd_node_count(self, tmp_path):
        G = nx.Graph()
        G.add_nodes_from(range(3))
        path = tmp_path / "odd.gml"
        nx.write_gml(G, str(path))
        with pytest.raises(ValueError):
            load_market(str(path))

    def test_fractional_valuation(self, tmp_path):
        path = write_market(tmp_path / "frac.gml", 1, [(1, 0, 2.5)])
        with pytest.raises(ValueError):
            load_market(path)

    def test_edges_without_valuation_attribute(self, tmp_path):
        path = write_market(tmp_path / "cost.gml", 2, [(2, 0, 9), (3, 1, 4)], key="cost")
        with pytest.raises(ValueError, match="valuation attribute"):
            load_market(path)

    def test_no_edges_is_an_all_zero_market(self, tmp_path):
        path = write_market(tmp_path / "empty.gml", 2, [])
        assert load_market(path).original == [[0, 0], [0, 0]]

    def test_non_numeric_valuation(self, tmp_path):
        path = write_market(tmp_path / "text.gml", 1, [(1, 0, "lots")])
        with pytest.raises(ValueError, match="Non-numeric valuation"):
            load_market(path)

    @pytest.mark.parametrize("price", [-1, 1.5, "cheap"])
    def test_bad_product_price(self, tmp_path, price):
        path = write_market(tmp_path / "price.gml", 1, [(1, 0, 2)], prices={0: price})
        with pytest.raises(ValueError, match="price on product node 0"):
            load_market(path)

    def test_supplied_prices_start_at_zero(self, tmp_path):
        path = write_market(tmp_path / "shift.gml", 2, [(2, 0, 5), (3, 1, 5)], prices={0: 3, 1: 5})
        model = load_market(path)
        assert model.prices == [0, 2]

    def test_cleared_market_with_supplied_price_solves_to_zero(self, tmp_path):
        path = write_market(tmp_path / "one.gml", 1, [(1, 0, 4)], prices={0: 3})
        prices = ClearingSolver(load_market(path)).solve()
        assert prices == [0]

    def test_garbage_file(self, tmp_path):
        path = tmp_path / "bad.gml"
        path.write_text("this is not gml")
        with pytest.raises(ValueError):
            load_market(str(path))


def test_sample_markets():
    assert sample_market("3x3").n == 3
    five = sample_market("5x5")
    assert [row[4] for row in five.original] == [0] * 5
    with pytest.raises(ValueError):
        sample_market("9x9")


def test_formatting():
    text = format_matrix("Original Valuation Matrix", [[6, 10], [7, 0]])
    assert text.splitlines() == ["Original Valuation Matrix:", " 6 10", " 7  0"]
    assert format_price_vector([2, 1, 0]) == "Price Vector:\n2 1 0"

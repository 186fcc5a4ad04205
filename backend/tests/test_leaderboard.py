# Overview: Pytest coverage for the top products leaderboard.

from conftest import make_product, sale_payload
from storeops.schemas import SoldLine, parse_commit_sale
from storeops.services.event_service import dispatch_pending_events
from storeops.services.leaderboard import apply_sold_lines, rank
from storeops.services.sales_service import commit_sale
from storeops.services.summary_service import get_summary


def line(product_id, units, revenue):
    return SoldLine(product_id=product_id, name=product_id.upper(), units=units, revenue=revenue)


SALE_1 = [line("a", 2, 60.0), line("b", 1, 60.0)]
SALE_2 = [
    line("a", 1, 40.0),
    line("c", 4, 40.0),
    line("d", 5, 25.0),
    line("e", 2, 40.0),
    line("f", 3, 45.0),
    line("g", 6, 18.0),
]


class TestApplySoldLines:
    def test_two_sale_scenario(self):
        stats, order = apply_sold_lines({}, [], SALE_1)
        stats, order = apply_sold_lines(stats, order, SALE_2)

        assert order == ["g", "d", "c", "a", "f"]
        assert set(stats) == {"a", "c", "d", "f", "g"}
        assert stats["a"] == {"name": "A", "units_sold": 3, "revenue": 100.0}

    def test_evicted_product_reenters_from_zero(self):
        stats, order = apply_sold_lines({}, [], SALE_1)
        stats, order = apply_sold_lines(stats, order, SALE_2)
        stats, order = apply_sold_lines(stats, order, [line("b", 4, 10.0)])

        assert stats["b"]["units_sold"] == 4
        assert "f" not in order

    def test_revenue_breaks_unit_ties(self):
        stats, order = apply_sold_lines({}, [], [line("x", 2, 5.0), line("y", 2, 9.0)])
        assert order == ["y", "x"]

    def test_inputs_not_mutated(self):
        stats = {"a": {"name": "A", "units_sold": 1, "revenue": 1.0}}
        order = ["a"]
        apply_sold_lines(stats, order, [line("a", 1, 1.0)])
        assert stats["a"]["units_sold"] == 1
        assert order == ["a"]

    def test_custom_limit(self):
        _, order = apply_sold_lines({}, [], SALE_2, limit=2)
        assert order == ["g", "d"]

    def test_rank_is_deterministic_on_full_ties(self):
        stats = {
            "b": {"units_sold": 1, "revenue": 1.0},
            "a": {"units_sold": 1, "revenue": 1.0},
        }
        assert rank(stats) == ["a", "b"]


class TestLeaderboardThroughAggregator:
    def test_committed_sales_build_top_five(self, db_session, accra):
        prices = {"a": 30.0, "b": 60.0, "c": 10.0, "d": 5.0, "e": 20.0, "f": 15.0, "g": 3.0}
        for product_id, price in prices.items():
            make_product(product_id, accra.id, name=product_id.upper(), price=price)

        commit_sale(parse_commit_sale(sale_payload("s-1", accra.id, [("a", 2, 30.0), ("b", 1, 60.0)])))
        commit_sale(parse_commit_sale(sale_payload("s-2", accra.id, [
            ("a", 1, 40.0), ("c", 4, 10.0), ("d", 5, 5.0),
            ("e", 2, 20.0), ("f", 3, 15.0), ("g", 6, 3.0),
        ])))

        assert dispatch_pending_events() == {"delivered": 2, "failed": 0}

        summary = get_summary(accra.id, "2024-03-02")
        assert summary.product_stats_order == ["g", "d", "c", "a", "f"]
        assert "b" not in summary.product_stats
        assert "e" not in summary.product_stats
        assert summary.product_stats["g"] == {"name": "G", "units_sold": 6, "revenue": 18.0}

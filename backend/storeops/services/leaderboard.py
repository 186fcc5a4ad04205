"""
Top products leaderboard for a daily summary.

The summary keeps only the best `limit` products of the day, ranked by
units sold, then revenue (product id breaks exact ties so the order is
deterministic). Each sold line is applied in turn: update or create the
product's entry, re-rank everything known, keep the top `limit`, and drop
the rest. An evicted product that sells again later re-enters from zero;
full per-product history lives in sale items and the ledger.
"""

from __future__ import annotations

from typing import Iterable

from ..money import round_money
from ..schemas import SoldLine

DEFAULT_LIMIT = 5


def rank_key(product_id: str, entry: dict) -> tuple:
    return (-int(entry.get("units_sold") or 0), -float(entry.get("revenue") or 0), product_id)


def rank(stats: dict[str, dict]) -> list[str]:
    return sorted(stats, key=lambda pid: rank_key(pid, stats[pid]))


def apply_sold_lines(
    stats: dict[str, dict] | None,
    order: list[str] | None,
    lines: Iterable[SoldLine],
    *,
    limit: int = DEFAULT_LIMIT,
) -> tuple[dict[str, dict], list[str]]:
    """
    Fold sold lines into (product_stats, product_stats_order).

    Returns new objects; the inputs are not mutated.
    """
    working = {pid: dict(entry) for pid, entry in (stats or {}).items()}
    ranked = [pid for pid in (order or []) if pid in working]

    for line in lines:
        entry = working.get(line.product_id)
        if entry is None:
            working[line.product_id] = {
                "name": line.name or line.product_id,
                "units_sold": line.units,
                "revenue": round_money(line.revenue),
            }
        else:
            entry["units_sold"] = int(entry.get("units_sold") or 0) + line.units
            entry["revenue"] = round_money(float(entry.get("revenue") or 0) + line.revenue)
            if line.name and not entry.get("name"):
                entry["name"] = line.name

        ranked = rank(working)[:limit]
        working = {pid: working[pid] for pid in ranked}

    return working, ranked

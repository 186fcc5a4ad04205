# Overview: Pytest coverage for the nightly reconciliation job and activity feed repair.

"""
Nightly Reconciliation Tests

The job must converge: counters are recomputed from source rows and a
second run over unchanged data leaves every summary exactly as it was.
"""

from datetime import datetime

import pytest

from conftest import make_product, sale_payload
from storeops.models import ActivityEntry, DailySummary, OutboxEvent, ProcessedEvent
from storeops.models.events import EVENT_PENDING, EVENT_RETIRED
from storeops.schemas import (
    parse_commit_sale,
    parse_create_customer,
    parse_receive_stock,
    parse_record_closeout,
)
from storeops.services import event_service, reconciliation_service
from storeops.services.customer_service import create_customer, record_closeout
from storeops.services.event_service import dispatch_pending_events
from storeops.services.receive_service import receive_stock
from storeops.services.reconciliation_service import run_nightly_reconciliation
from storeops.services.sales_service import commit_sale
from storeops.services.summary_service import get_summary


NIGHTLY_RUN_AT = "2024-03-03T01:00:00Z"


@pytest.fixture
def accra_day(db_session, clock, accra):
    """A full trading day in Accra: sale, receipt, new customer, closeout."""
    make_product("rice", accra.id, name="Rice 5kg", price=50.0, stock=20)

    clock.set("2024-03-02T09:15:00Z")
    commit_sale(parse_commit_sale(sale_payload("s-1", accra.id, [("rice", 2, 50.0)], method="cash")))
    clock.set("2024-03-02T11:00:00Z")
    receive_stock(parse_receive_stock({
        "productId": "rice", "qty": 5, "supplier": "Mill", "reference": "INV-1", "unitCost": 2.0
    }))
    clock.set("2024-03-02T12:30:00Z")
    create_customer(parse_create_customer({"storeId": accra.id, "name": "Ama"}))
    clock.set("2024-03-02T21:00:00Z")
    record_closeout(parse_record_closeout({
        "storeId": accra.id, "countedCash": 500, "expectedCash": 480
    }))
    return accra


class TestRecompute:
    def test_counters_recomputed_from_sources(self, db_session, clock, accra_day):
        dispatch_pending_events()
        clock.set(NIGHTLY_RUN_AT)

        report = run_nightly_reconciliation()

        assert report["stores"] == 1
        assert report["failed_stores"] == []
        assert report["summaries_written"] == 1

        summary = get_summary(accra_day.id, "2024-03-02")
        assert summary.counters() == {
            "sales_count": 1,
            "sales_total": 100.0,
            "cash_total": 100.0,
            "card_total": 0.0,
            "receipts_count": 1,
            "units_received": 5,
            "receipt_cost_total": 10.0,
            "new_customers_count": 1,
            "closeouts_count": 1,
            "closeout_counted_total": 500.0,
            "closeout_expected_total": 480.0,
            "closeout_variance_total": 20.0,
        }
        # The closeout is the latest record of the day
        assert summary.last_activity_at == datetime(2024, 3, 2, 21, 0)
        # Leaderboard is left as the aggregator built it
        assert summary.product_stats_order == ["rice"]

    def test_pending_events_delivered_before_recompute(self, db_session, clock, accra_day):
        """Events the dispatcher never reached still feed the leaderboard and feed."""
        clock.set(NIGHTLY_RUN_AT)

        report = run_nightly_reconciliation()

        assert report["events_delivered"] == 3
        assert report["summaries_written"] == 1
        assert db_session.query(OutboxEvent).filter_by(status=EVENT_PENDING).count() == 0

        summary = get_summary(accra_day.id, "2024-03-02")
        assert summary.sales_count == 1
        assert summary.closeouts_count == 1
        assert summary.product_stats_order == ["rice"]
        assert db_session.query(ActivityEntry).filter_by(store_id=accra_day.id).count() == 3

    def test_creates_summary_when_aggregator_never_ran(self, db_session, clock, accra):
        """Closeouts publish no event; the job alone builds their day."""
        clock.set("2024-03-02T21:00:00Z")
        record_closeout(parse_record_closeout({
            "storeId": accra.id, "countedCash": 300, "expectedCash": 310
        }))
        clock.set(NIGHTLY_RUN_AT)

        report = run_nightly_reconciliation()

        assert report["summaries_written"] == 1
        summary = get_summary(accra.id, "2024-03-02")
        assert summary.closeout_variance_total == -10.0
        assert summary.product_stats == {}
        assert summary.product_stats_order == []

    def test_heals_drift(self, db_session, clock, accra_day):
        dispatch_pending_events()
        summary = get_summary(accra_day.id, "2024-03-02")
        summary.sales_count = 7
        summary.cash_total = 999.0
        db_session.commit()

        clock.set(NIGHTLY_RUN_AT)
        run_nightly_reconciliation()

        summary = get_summary(accra_day.id, "2024-03-02")
        assert summary.sales_count == 1
        assert summary.cash_total == 100.0

    def test_quiet_day_writes_nothing(self, db_session, clock, accra):
        clock.set(NIGHTLY_RUN_AT)

        report = run_nightly_reconciliation()

        assert report["summaries_written"] == 0
        assert db_session.query(DailySummary).count() == 0

    def test_uses_previous_local_day(self, db_session, clock, new_york):
        """01:00Z on 03-03 is still 03-02 in New York, so the job closes 03-01."""
        make_product("bagel", new_york.id)
        clock.set("2024-03-02T02:30:00Z")
        receive_stock(parse_receive_stock({
            "productId": "bagel", "qty": 12, "supplier": "Bakery", "reference": "DN-1"
        }))

        clock.set(NIGHTLY_RUN_AT)
        run_nightly_reconciliation()

        summary = get_summary(new_york.id, "2024-03-01")
        assert summary.receipts_count == 1
        assert summary.units_received == 12


class TestConvergence:
    def test_second_run_is_identical(self, db_session, clock, accra_day):
        dispatch_pending_events()
        clock.set(NIGHTLY_RUN_AT)

        run_nightly_reconciliation()
        first = get_summary(accra_day.id, "2024-03-02").to_dict()

        clock.advance(hours=1)
        report = run_nightly_reconciliation()
        second = get_summary(accra_day.id, "2024-03-02").to_dict()

        assert report["summaries_written"] == 0
        assert second == first


class TestFailureIsolation:
    def test_one_store_failing_does_not_stop_others(self, db_session, clock, accra_day, new_york, monkeypatch):
        make_product("bagel", new_york.id)
        clock.set("2024-03-02T02:30:00Z")
        receive_stock(parse_receive_stock({
            "productId": "bagel", "qty": 3, "supplier": "Bakery", "reference": "DN-2"
        }))
        record_closeout(parse_record_closeout({
            "storeId": new_york.id, "countedCash": 40, "expectedCash": 40
        }))

        real_recompute = reconciliation_service.recompute_counters

        def flaky(repos, store_id, window):
            if store_id == accra_day.id:
                raise RuntimeError("source scan failed")
            return real_recompute(repos, store_id, window)

        monkeypatch.setattr(reconciliation_service, "recompute_counters", flaky)
        clock.set(NIGHTLY_RUN_AT)

        report = run_nightly_reconciliation()

        assert report["stores"] == 2
        assert report["failed_stores"] == [accra_day.id]
        assert report["summaries_written"] == 1
        assert get_summary(new_york.id, "2024-03-01").units_received == 3
        assert get_summary(new_york.id, "2024-03-01").closeouts_count == 1


class TestLateDelivery:
    """A day rebuilt from source rows must not grow when its events arrive late."""

    def test_dispatch_after_nightly_does_not_double_count(self, db_session, clock, accra):
        make_product("rice", accra.id)
        commit_sale(parse_commit_sale(sale_payload("s-1", accra.id, [("rice", 2, 10.0)])))

        clock.set(NIGHTLY_RUN_AT)
        run_nightly_reconciliation()
        assert get_summary(accra.id, "2024-03-02").sales_count == 1

        assert dispatch_pending_events() == {"delivered": 0, "failed": 0}

        clock.set("2024-03-04T01:00:00Z")
        run_nightly_reconciliation()

        summary = get_summary(accra.id, "2024-03-02")
        assert summary.sales_count == 1
        assert summary.sales_total == 20.0

    def test_undeliverable_event_is_retired(self, db_session, clock, accra, monkeypatch):
        make_product("rice", accra.id)
        commit_sale(parse_commit_sale(sale_payload("s-1", accra.id, [("rice", 2, 10.0)])))

        def broken_merge(event, *, repos, clock):
            raise RuntimeError("aggregator down")

        monkeypatch.setattr(event_service, "apply_event", broken_merge)
        clock.set(NIGHTLY_RUN_AT)

        report = run_nightly_reconciliation()

        assert report["events_delivered"] == 0
        assert report["failed_stores"] == []
        outbox = db_session.get(OutboxEvent, "sale.created:s-1")
        assert outbox.status == EVENT_RETIRED
        assert "aggregator down" in outbox.last_error
        assert db_session.get(ProcessedEvent, "sale.created:s-1") is not None
        assert get_summary(accra.id, "2024-03-02").sales_count == 1

        monkeypatch.undo()
        dispatch_pending_events()

        assert get_summary(accra.id, "2024-03-02").sales_count == 1


class TestActivityRepair:
    def _entry(self, entry_id, store_id, date_key, at):
        return ActivityEntry(
            id=entry_id, store_id=store_id, date_key=date_key,
            type="sale", refs={}, summary="legacy", at=at,
        )

    def test_orphans_deleted_and_missing_date_keys_backfilled(self, db_session, clock, accra, new_york):
        db_session.add_all([
            self._entry("orphan-empty", "", "2024-03-02", datetime(2024, 3, 2, 8, 0)),
            self._entry("orphan-null", None, "2024-03-02", datetime(2024, 3, 2, 8, 0)),
            self._entry("orphan-blank", "   ", None, datetime(2024, 3, 2, 8, 0)),
            self._entry("accra-missing", accra.id, None, datetime(2024, 3, 2, 23, 30)),
            self._entry("nyc-empty", new_york.id, "", datetime(2024, 3, 2, 2, 30)),
            self._entry("ok", accra.id, "2024-03-01", datetime(2024, 3, 1, 12, 0)),
        ])
        db_session.commit()
        clock.set(NIGHTLY_RUN_AT)

        report = run_nightly_reconciliation()

        assert report["activities_deleted"] == 3
        assert report["activities_backfilled"] == 2

        remaining = {e.id: e.date_key for e in db_session.query(ActivityEntry).all()}
        assert remaining == {
            "accra-missing": "2024-03-02",
            "nyc-empty": "2024-03-01",
            "ok": "2024-03-01",
        }

    def test_second_pass_is_a_no_op(self, db_session, clock, accra):
        db_session.add(self._entry("orphan", "", None, datetime(2024, 3, 2, 8, 0)))
        db_session.commit()
        clock.set(NIGHTLY_RUN_AT)

        run_nightly_reconciliation()
        report = run_nightly_reconciliation()

        assert report["activities_deleted"] == 0
        assert report["activities_backfilled"] == 0

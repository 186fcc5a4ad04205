# Overview: Pytest coverage for the Flask CLI command groups.

from conftest import make_product, sale_payload
from storeops.models import OutboxEvent, Product, Store
from storeops.models.events import EVENT_DELIVERED
from storeops.schemas import parse_commit_sale
from storeops.services.sales_service import commit_sale
from storeops.services.summary_service import get_summary


class TestStoresAndProducts:
    def test_create_store_and_product(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "stores", "create", "--id", "kumasi-1", "--name", "Kumasi", "--timezone", "Africa/Accra",
        ])
        assert result.exit_code == 0, result.output
        assert "PASS Created store: kumasi-1" in result.output

        result = runner.invoke(args=[
            "products", "create", "--id", "yam", "--store-id", "kumasi-1",
            "--name", "Yam", "--price", "12.5", "--stock", "30",
        ])
        assert result.exit_code == 0, result.output

        assert db_session.get(Store, "kumasi-1").timezone == "Africa/Accra"
        assert db_session.get(Product, "yam").stock_count == 30

    def test_duplicate_store_fails(self, app, accra):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["stores", "create", "--id", accra.id, "--name", "Again"])

        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_list_stores(self, app, accra, new_york):
        result = app.test_cli_runner().invoke(args=["stores", "list"])
        assert "accra-1" in result.output
        assert "America/New_York" in result.output


class TestEventsAndNightly:
    def test_dispatch(self, app, db_session, accra):
        make_product("rice", accra.id)
        commit_sale(parse_commit_sale(sale_payload("s-1", accra.id, [("rice", 1, 10.0)])))

        result = app.test_cli_runner().invoke(args=["events", "dispatch"])

        assert result.exit_code == 0, result.output
        assert "Delivered 1 events (0 failed)" in result.output
        assert db_session.get(OutboxEvent, "sale.created:s-1").status == EVENT_DELIVERED

    def test_nightly_run_as_of(self, app, db_session, accra):
        make_product("rice", accra.id)
        commit_sale(parse_commit_sale(sale_payload("s-1", accra.id, [("rice", 1, 10.0)])))

        result = app.test_cli_runner().invoke(args=["nightly", "run", "--as-of", "2024-03-03T01:00:00Z"])

        assert result.exit_code == 0, result.output
        assert "Reconciled 1 stores" in result.output
        assert "Events delivered: 1" in result.output
        assert get_summary(accra.id, "2024-03-02").sales_total == 10.0

    def test_nightly_run_rejects_bad_as_of(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["nightly", "run", "--as-of", "yesterday"])

        assert result.exit_code == 1
        assert "Invalid --as-of" in result.output

# Overview: Pytest coverage for the data store primitives and partial-failure handling.

"""
Data Store & Compensation Tests

Each data store call commits on its own, so a multi-step write that fails
half-way must either undo what it did or say what is still applied. These
tests inject failures into single calls and check which of the two happened.
"""

import pytest
from sqlalchemy.exc import OperationalError

from sellytics.errors import PartialFailure, PersistenceError, ValidationError
from sellytics.extensions import datastore
from sellytics.services import debt_service, inventory_service, sales_service
from sellytics.services.concurrency import run_with_retry
from sellytics.services.sales_service import LineRequest


def _available(ctx, product_id):
    return inventory_service.get_inventory_record(ctx, product_id).available_qty


def _fail_on(monkeypatch, method, table):
    """Make datastore.<method> raise PersistenceError for one table."""
    original = getattr(datastore, method)

    def failing(tbl, *args, **kwargs):
        if tbl == table:
            raise PersistenceError(f"{method} on {tbl} failed")
        return original(tbl, *args, **kwargs)

    monkeypatch.setattr(datastore, method, failing)


class TestPrimitives:
    def test_select_in_filter_and_descending_order(self, ctx, product, second_product):
        rows = datastore.select("products", {"id": [product.id, second_product.id]}, order_by=["-id"])
        assert [r.id for r in rows] == [second_product.id, product.id]

    def test_select_limit(self, ctx, product, second_product):
        assert len(datastore.select("products", {"store_id": ctx.store_id}, limit=1)) == 1

    def test_update_and_delete_report_affected_rows(self, ctx, product, second_product):
        assert datastore.update("products", {"supplier_name": "Acme"}, {"store_id": ctx.store_id}) == 2
        assert datastore.delete("inventory", {"product_id": product.id}) == 1
        assert datastore.delete("inventory", {"product_id": product.id}) == 0

    def test_adjust_refuses_to_cross_floor(self, ctx, product):
        filters = {"store_id": ctx.store_id, "product_id": product.id}
        floors = {"available_qty": 0}
        assert datastore.adjust("inventory", {"available_qty": -6}, filters, floors=floors) == 0
        assert _available(ctx, product.id) == 5

        assert datastore.adjust("inventory", {"available_qty": -5}, filters, floors=floors) == 1
        assert _available(ctx, product.id) == 0

    def test_constraint_violation_surfaces_as_persistence_error(self, ctx, product):
        with pytest.raises(PersistenceError) as exc:
            datastore.insert("inventory", [{
                "store_id": ctx.store_id,
                "product_id": product.id,
                "available_qty": 1,
                "quantity_sold": 0,
            }])
        assert exc.value.transient is False
        assert exc.value.details["table"] == "inventory"
        # Session is usable again after the failure
        assert _available(ctx, product.id) == 5

    def test_unknown_table(self, db_session):
        with pytest.raises(ValueError):
            datastore.select("no_such_table")


class TestCreateSaleCompensation:
    def test_failed_line_insert_is_fully_undone(self, ctx, product, monkeypatch):
        _fail_on(monkeypatch, "insert", "sale_lines")

        with pytest.raises(PersistenceError) as exc:
            sales_service.create_sale(ctx, [LineRequest(product_id=product.id, quantity=2)], "cash")
        assert not isinstance(exc.value, PartialFailure)

        assert _available(ctx, product.id) == 5
        assert inventory_service.get_inventory_record(ctx, product.id).quantity_sold == 0
        assert datastore.select("sale_groups") == []

    def test_failed_undo_flags_group_for_reconciliation(self, ctx, product, monkeypatch):
        _fail_on(monkeypatch, "insert", "sale_lines")
        _fail_on(monkeypatch, "delete", "sale_groups")

        with pytest.raises(PartialFailure) as exc:
            sales_service.create_sale(ctx, [LineRequest(product_id=product.id, quantity=2)], "cash")

        assert exc.value.operation == "create_sale"
        assert [step["step"] for step in exc.value.applied] == ["sale_group_written"]
        assert exc.value.status_code == 500

        # Stock reservation was undone; the orphan header is flagged
        assert _available(ctx, product.id) == 5
        groups = datastore.select("sale_groups")
        assert len(groups) == 1
        assert groups[0].needs_reconciliation is True


class TestDeleteCompensation:
    def test_stock_return_failure_is_partial(self, ctx, product, monkeypatch):
        group = sales_service.create_sale(ctx, [LineRequest(product_id=product.id, quantity=2)], "cash")
        line_id = group.lines[0].id

        def broken(*args, **kwargs):
            raise PersistenceError("adjust on inventory failed", transient=True)

        monkeypatch.setattr(sales_service, "apply_sale_delta", broken)

        with pytest.raises(PartialFailure) as exc:
            sales_service.delete_sale_line(ctx, line_id)
        assert exc.value.applied[0]["step"] == "sale_line_deleted"
        assert exc.value.applied[0]["quantity"] == 2

        assert datastore.select("sale_lines") == []
        assert _available(ctx, product.id) == 3
        assert sales_service.get_sale_group(ctx, group.id).needs_reconciliation is True

    def test_edit_line_update_failure_returns_stock(self, ctx, product, monkeypatch):
        from sellytics.services.sales_service import LinePatch

        line = sales_service.create_sale(ctx, [LineRequest(product_id=product.id, quantity=1)], "cash").lines[0]
        _fail_on(monkeypatch, "update", "sale_lines")

        with pytest.raises(PersistenceError):
            sales_service.edit_sale_line(ctx, line.id, LinePatch(quantity=3))
        assert _available(ctx, product.id) == 4
        assert sales_service.get_sale_line(ctx, line.id).quantity == 1


class TestDebtPartialFailure:
    def test_deposit_payment_failure(self, ctx, customer, monkeypatch):
        _fail_on(monkeypatch, "insert", "debt_payments")

        with pytest.raises(PartialFailure) as exc:
            debt_service.record_debt(ctx, customer.id, 1000, deposit_cents=200)
        assert exc.value.applied[0]["step"] == "debt_written"
        assert len(datastore.select("debts")) == 1


class TestRunWithRetry:
    def test_retries_transient_failures(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise PersistenceError("locked", transient=True)
            return "ok"

        assert run_with_retry(flaky, attempts=3, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_retries_operational_errors(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("UPDATE", {}, Exception("database is locked"))
            return "ok"

        assert run_with_retry(flaky, backoff_base=0) == "ok"

    def test_gives_up_after_attempts(self):
        def always():
            raise PersistenceError("locked", transient=True)

        with pytest.raises(PersistenceError):
            run_with_retry(always, attempts=2, backoff_base=0)

    @pytest.mark.parametrize("error", [
        ValidationError("bad"),
        PersistenceError("constraint", transient=False),
        PartialFailure("restock", [], Exception("boom")),
    ])
    def test_does_not_retry_non_transient(self, error):
        calls = []

        def failing():
            calls.append(1)
            raise error

        with pytest.raises(type(error)):
            run_with_retry(failing, attempts=3, backoff_base=0)
        assert len(calls) == 1

from datetime import datetime

import pytest

from sellytics.errors import NotFound, OverPayment, ValidationError
from sellytics.extensions import datastore
from sellytics.services import debt_service
from sellytics.services.debt_service import DEBT_STATUS_OWING, DEBT_STATUS_PAID, DEBT_STATUS_PARTIAL


class TestRecordDebt:
    def test_without_deposit_is_owing(self, ctx, customer, product):
        balance = debt_service.record_debt(ctx, customer.id, 10000, product_id=product.id, quantity=2)
        assert balance.remaining_cents == 10000
        assert balance.amount_paid_cents == 0
        assert balance.status == DEBT_STATUS_OWING
        assert balance.last_payment_date is None
        assert debt_service.list_payments(ctx, balance.debt.id) == []

    def test_deposit_becomes_first_payment(self, ctx, customer):
        balance = debt_service.record_debt(ctx, customer.id, 10000, deposit_cents=2500)
        assert balance.debt.amount_deposited_cents == 2500
        assert balance.remaining_cents == 7500
        assert balance.status == DEBT_STATUS_PARTIAL
        assert balance.last_payment_date is not None

        payments = debt_service.list_payments(ctx, balance.debt.id)
        assert [p.amount_paid_cents for p in payments] == [2500]
        assert payments[0].customer_id == customer.id
        assert payments[0].recorded_by_user_id == 7

    def test_deposit_covering_everything_is_paid(self, ctx, customer):
        balance = debt_service.record_debt(ctx, customer.id, 4000, deposit_cents=4000)
        assert balance.status == DEBT_STATUS_PAID
        assert balance.remaining_cents == 0

    def test_deposit_above_owed_rejected(self, ctx, customer):
        with pytest.raises(OverPayment):
            debt_service.record_debt(ctx, customer.id, 4000, deposit_cents=4001)
        assert datastore.select("debts") == []

    @pytest.mark.parametrize("owed", [0, -100])
    def test_owed_must_be_positive(self, ctx, customer, owed):
        with pytest.raises(ValidationError):
            debt_service.record_debt(ctx, customer.id, owed)

    def test_unknown_customer(self, ctx):
        with pytest.raises(NotFound):
            debt_service.record_debt(ctx, 9999, 100)

    def test_customer_of_other_store(self, other_ctx, customer):
        with pytest.raises(NotFound):
            debt_service.record_debt(other_ctx, customer.id, 100)

    def test_device_id_is_stripped(self, ctx, customer):
        balance = debt_service.record_debt(ctx, customer.id, 100, device_id="  IMEI-1 ")
        assert balance.debt.device_id == "IMEI-1"


class TestRecordPayment:
    def test_balance_is_derived_from_payments(self, ctx, customer):
        debt = debt_service.record_debt(ctx, customer.id, 10000, deposit_cents=1000).debt
        debt_service.record_payment(ctx, debt.id, 2000)
        debt_service.record_payment(ctx, debt.id, 3000)

        balance = debt_service.get_debt_balance(ctx, debt.id)
        assert balance.amount_paid_cents == 6000
        assert balance.remaining_cents == 4000
        assert balance.status == DEBT_STATUS_PARTIAL

    def test_exact_payment_settles(self, ctx, customer):
        debt = debt_service.record_debt(ctx, customer.id, 5000, deposit_cents=1000).debt
        debt_service.record_payment(ctx, debt.id, 4000)
        balance = debt_service.get_debt_balance(ctx, debt.id)
        assert balance.remaining_cents == 0
        assert balance.status == DEBT_STATUS_PAID

    def test_over_payment_leaves_history_unchanged(self, ctx, customer):
        debt = debt_service.record_debt(ctx, customer.id, 5000, deposit_cents=1000).debt

        with pytest.raises(OverPayment) as exc:
            debt_service.record_payment(ctx, debt.id, 4001)
        assert exc.value.remaining_cents == 4000
        assert exc.value.attempted_cents == 4001

        payments = debt_service.list_payments(ctx, debt.id)
        assert [p.amount_paid_cents for p in payments] == [1000]

    def test_settled_debt_accepts_nothing(self, ctx, customer):
        debt = debt_service.record_debt(ctx, customer.id, 500, deposit_cents=500).debt
        with pytest.raises(OverPayment):
            debt_service.record_payment(ctx, debt.id, 1)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_amount_must_be_positive(self, ctx, customer, amount):
        debt = debt_service.record_debt(ctx, customer.id, 500).debt
        with pytest.raises(ValidationError):
            debt_service.record_payment(ctx, debt.id, amount)

    def test_unknown_debt(self, ctx):
        with pytest.raises(NotFound):
            debt_service.record_payment(ctx, 123, 100)


class TestListOutstanding:
    def test_oldest_first_ties_by_id(self, ctx, customer):
        newest = debt_service.record_debt(ctx, customer.id, 100, debt_date=datetime(2026, 3, 2)).debt
        old_a = debt_service.record_debt(ctx, customer.id, 100, debt_date=datetime(2026, 3, 1)).debt
        old_b = debt_service.record_debt(ctx, customer.id, 100, debt_date=datetime(2026, 3, 1)).debt

        ids = [b.debt.id for b in debt_service.list_outstanding(ctx)]
        assert ids == [old_a.id, old_b.id, newest.id]

    def test_settled_debts_excluded(self, ctx, customer):
        open_debt = debt_service.record_debt(ctx, customer.id, 100).debt
        debt_service.record_debt(ctx, customer.id, 100, deposit_cents=100)

        ids = [b.debt.id for b in debt_service.list_outstanding(ctx)]
        assert ids == [open_debt.id]

    def test_include_settled_lists_them_last(self, ctx, customer):
        settled = debt_service.record_debt(ctx, customer.id, 100, deposit_cents=100,
                                           debt_date=datetime(2026, 1, 1)).debt
        open_debt = debt_service.record_debt(ctx, customer.id, 100, debt_date=datetime(2026, 2, 1)).debt

        balances = debt_service.list_outstanding(ctx, include_settled=True)
        assert [b.debt.id for b in balances] == [open_debt.id, settled.id]
        assert [b.status for b in balances] == [DEBT_STATUS_OWING, DEBT_STATUS_PAID]

    def test_filter_by_customer(self, ctx, customer):
        from sellytics.services import customer_service
        other = customer_service.create_customer(ctx, "Bola Ade")
        debt_service.record_debt(ctx, customer.id, 100)
        mine = debt_service.record_debt(ctx, other.id, 100).debt

        ids = [b.debt.id for b in debt_service.list_outstanding(ctx, customer_id=other.id)]
        assert ids == [mine.id]

    def test_store_scoped(self, ctx, other_ctx, customer):
        debt_service.record_debt(ctx, customer.id, 100)
        assert debt_service.list_outstanding(other_ctx) == []

    def test_to_dict_carries_derived_fields(self, ctx, customer):
        balance = debt_service.record_debt(ctx, customer.id, 900, deposit_cents=300)
        data = balance.to_dict()
        assert data["customer_name"] == "Ada Obi"
        assert data["amount_paid_cents"] == 300
        assert data["remaining_cents"] == 600
        assert data["status"] == DEBT_STATUS_PARTIAL
        assert data["last_payment_date"].endswith("Z")

# Overview: Pytest coverage for the document posting protocol (create/update/delete).

"""
Posting Protocol Tests

Organization A posts at 15% VAT with 100 units of a STOCKED item in its
store, an empty safe and an empty bank (see conftest.tenant_a).

Covers:
- Reference scenarios (create 1150, update to qty 4, credit delete, closed period)
- Reversal symmetry for every kind
- update == delete + create
- Cash/credit mutual exclusivity and method switches
- Stock and funds guards, including re-validation after reversal
- Fiscal guard on update/delete
- Tenant isolation
"""

import pytest

from app.extensions import db
from app.models import (
    Safe, Bank, Customer, Supplier, Item, FinancialDocument, StockMovement, AuditLog,
)
from app.services import posting_service, fiscal_service
from app.services.accounting_service import KINDS
from app.services.document_kinds import get_descriptor
from app.services.errors import (
    FiscalPeriodClosed, InsufficientFunds, InsufficientStock, NoOpenPeriod, NotFound, ValidationFailed,
)
from conftest import DOC_DATE, CLOSED_DATE, balance_of, stock_of


def payload(t, *, qty=10, price=10000, item_id=None, **overrides) -> dict:
    data = {
        "branch_id": t.branch_id,
        "store_id": t.store_id,
        "date": DOC_DATE,
        "payment_method": "cash",
        "payment_target": {"type": "safe"},
        "lines": [{"item_id": item_id or t.item_id, "quantity": qty, "unit_price_cents": price}],
    }
    data.update(overrides)
    return data


def credit_payload(t, party_id, **kwargs) -> dict:
    data = payload(t, **kwargs)
    data.pop("payment_target")
    data["payment_method"] = "credit"
    data["counter_party_id"] = party_id
    return data


def fund_safe(t, amount_cents: int) -> None:
    db.session.query(Safe).filter_by(id=t.safe_id).update({"current_balance_cents": amount_cents})
    db.session.commit()


def snapshot(t) -> dict:
    return {
        "safe": balance_of(Safe, t.safe_id),
        "bank": balance_of(Bank, t.bank_id),
        "customer": balance_of(Customer, t.customer_id),
        "supplier": balance_of(Supplier, t.supplier_id),
        "store_stock": stock_of(t.item_id, t.store_id),
        "item_stock": stock_of(t.item_id),
    }


def party_for(t, kind: str) -> int:
    return t.customer_id if kind.startswith("sales") else t.supplier_id


# =============================================================================
# REFERENCE SCENARIOS
# =============================================================================

class TestReferenceScenarios:
    def test_create_cash_sales_invoice(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a), actor_user_id=7)

        assert doc.code == "INV-00001"
        assert doc.subtotal_cents == 100000
        assert doc.tax_cents == 15000
        assert doc.net_cents == 115000
        assert doc.payment_target_dict() == {"type": "safe", "safe_id": tenant_a.safe_id}
        assert balance_of(Safe, tenant_a.safe_id) == 115000
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 90
        assert stock_of(tenant_a.item_id) == 90

        audit = db_session.query(AuditLog).filter_by(target_id=doc.id, action="CREATE").one()
        assert audit.actor_user_id == 7

    def test_update_quantity_reverses_then_reapplies(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a))

        updated = posting_service.update_document(
            "sales-invoice", tenant_a.org_id, doc.id,
            {"lines": [{"item_id": tenant_a.item_id, "quantity": 4, "unit_price_cents": 10000}]},
        )

        assert updated.net_cents == 46000
        assert updated.code == "INV-00001"
        assert balance_of(Safe, tenant_a.safe_id) == 46000
        # Net decrease from the original 100 is 4, not 14
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 96

    def test_delete_credit_invoice_restores_customer(self, db_session, tenant_a):
        before = balance_of(Customer, tenant_a.customer_id)
        doc = posting_service.create_document(
            "sales-invoice", tenant_a.org_id,
            credit_payload(tenant_a, tenant_a.customer_id, qty=5, price=8696),
        )
        assert balance_of(Customer, tenant_a.customer_id) == before + doc.net_cents

        snapshot_dict = posting_service.delete_document("sales-invoice", tenant_a.org_id, doc.id)

        assert snapshot_dict["code"] == "INV-00001"
        assert balance_of(Customer, tenant_a.customer_id) == before
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 100
        assert db_session.query(FinancialDocument).count() == 0

    def test_closed_period_create_persists_nothing(self, db_session, tenant_a):
        before = snapshot(tenant_a)

        with pytest.raises(FiscalPeriodClosed):
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, date=CLOSED_DATE))

        assert db_session.query(FinancialDocument).count() == 0
        assert snapshot(tenant_a) == before
        # The failed attempt did not consume a code
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a))
        assert doc.code == "INV-00001"

    def test_date_without_period_raises_no_open_period(self, db_session, tenant_a):
        with pytest.raises(NoOpenPeriod):
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, date="2021-03-03"))


# =============================================================================
# SYMMETRY
# =============================================================================

class TestSymmetry:
    @pytest.mark.parametrize("kind", KINDS)
    def test_cash_create_then_delete_restores_everything(self, db_session, tenant_a, kind):
        fund_safe(tenant_a, 1_000_000)
        before = snapshot(tenant_a)

        doc = posting_service.create_document(kind, tenant_a.org_id, payload(tenant_a, qty=3, price=2500))
        assert snapshot(tenant_a) != before

        posting_service.delete_document(kind, tenant_a.org_id, doc.id)
        assert snapshot(tenant_a) == before

    @pytest.mark.parametrize("kind", KINDS)
    def test_credit_create_then_delete_restores_everything(self, db_session, tenant_a, kind):
        before = snapshot(tenant_a)

        doc = posting_service.create_document(
            kind, tenant_a.org_id, credit_payload(tenant_a, party_for(tenant_a, kind), qty=2, price=1999),
        )
        posting_service.delete_document(kind, tenant_a.org_id, doc.id)

        assert snapshot(tenant_a) == before

    @pytest.mark.parametrize("kind,cash_sign,stock_sign", [
        ("sales-invoice", 1, -1),
        ("sales-return", -1, 1),
        ("purchase-invoice", -1, 1),
        ("purchase-return", 1, -1),
    ])
    def test_sign_and_stock_direction_per_kind(self, db_session, tenant_a, kind, cash_sign, stock_sign):
        fund_safe(tenant_a, 1_000_000)
        doc = posting_service.create_document(kind, tenant_a.org_id, payload(tenant_a, qty=2, price=1000))

        assert balance_of(Safe, tenant_a.safe_id) == 1_000_000 + cash_sign * doc.net_cents
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 100 + stock_sign * 2

    @pytest.mark.parametrize("kind", KINDS)
    def test_repeated_updates_do_not_accumulate(self, db_session, tenant_a, kind):
        fund_safe(tenant_a, 1_000_000)
        doc = posting_service.create_document(kind, tenant_a.org_id, payload(tenant_a, qty=5, price=1000))
        expected = snapshot(tenant_a)

        for _ in range(3):
            posting_service.update_document(kind, tenant_a.org_id, doc.id, {"notes": "touched"})

        assert snapshot(tenant_a) == expected

    @pytest.mark.parametrize("path", ["update", "recreate"])
    def test_update_equals_delete_plus_create(self, db_session, tenant_a, path):
        first = payload(tenant_a, qty=10, price=10000)
        second = credit_payload(tenant_a, tenant_a.customer_id, qty=3, price=10000)
        second["lines"].append({"item_id": tenant_a.service_item_id, "quantity": 1, "unit_price_cents": 5000})

        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, first)
        if path == "update":
            patch = {k: v for k, v in second.items() if k not in ("branch_id", "store_id", "date")}
            patch["payment_target"] = None
            final = posting_service.update_document("sales-invoice", tenant_a.org_id, doc.id, patch)
        else:
            posting_service.delete_document("sales-invoice", tenant_a.org_id, doc.id)
            final = posting_service.create_document("sales-invoice", tenant_a.org_id, second)

        assert final.net_cents == 40250
        assert snapshot(tenant_a) == {
            "safe": 0,
            "bank": 0,
            "customer": 40250,
            "supplier": 0,
            "store_stock": 97,
            "item_stock": 97,
        }


# =============================================================================
# PAYMENT TERMS
# =============================================================================

class TestPaymentTerms:
    def test_credit_never_links_cash_account(self, db_session, tenant_a):
        doc = posting_service.create_document(
            "sales-invoice", tenant_a.org_id, credit_payload(tenant_a, tenant_a.customer_id, qty=1, price=1000),
        )
        assert doc.payment_target_dict() is None
        assert doc.safe_id is None and doc.bank_id is None
        assert balance_of(Safe, tenant_a.safe_id) == 0
        assert balance_of(Customer, tenant_a.customer_id) == 1150

    def test_cash_with_counter_party_leaves_partner_untouched(self, db_session, tenant_a):
        doc = posting_service.create_document(
            "sales-invoice", tenant_a.org_id,
            payload(tenant_a, qty=1, price=1000, counter_party_id=tenant_a.customer_id),
        )
        assert doc.counter_party_id == tenant_a.customer_id
        assert balance_of(Customer, tenant_a.customer_id) == 0
        assert balance_of(Safe, tenant_a.safe_id) == 1150

    def test_bank_target(self, db_session, tenant_a):
        posting_service.create_document(
            "sales-invoice", tenant_a.org_id,
            payload(tenant_a, qty=1, price=1000, payment_target={"type": "bank", "bank_id": tenant_a.bank_id}),
        )
        assert balance_of(Bank, tenant_a.bank_id) == 1150
        assert balance_of(Safe, tenant_a.safe_id) == 0

    def test_split_payment_moves_both_accounts(self, db_session, tenant_a):
        target = {"type": "split", "bank_id": tenant_a.bank_id, "cash_amount_cents": 15000, "bank_amount_cents": 100000}
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, payment_target=target))

        assert balance_of(Safe, tenant_a.safe_id) == 15000
        assert balance_of(Bank, tenant_a.bank_id) == 100000
        assert doc.payment_target_dict()["type"] == "split"

        posting_service.delete_document("sales-invoice", tenant_a.org_id, doc.id)
        assert balance_of(Safe, tenant_a.safe_id) == 0
        assert balance_of(Bank, tenant_a.bank_id) == 0

    def test_split_within_tolerance_accepted(self, db_session, tenant_a):
        target = {"type": "split", "bank_id": tenant_a.bank_id, "cash_amount_cents": 15000, "bank_amount_cents": 100001}
        posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, payment_target=target))

    def test_unbalanced_split_rejected(self, db_session, tenant_a):
        target = {"type": "split", "bank_id": tenant_a.bank_id, "cash_amount_cents": 15000, "bank_amount_cents": 90000}
        with pytest.raises(ValidationFailed):
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, payment_target=target))

    @pytest.mark.parametrize("overrides", [
        {"payment_method": "credit"},
        {"payment_method": "credit", "counter_party_id": None},
        {"payment_method": "cash", "payment_target": None},
        {"payment_method": "cheque"},
        {"payment_target": {"type": "wire"}},
        {"payment_target": {"safe_id": 1, "bank_id": 1}},
        {"lines": []},
    ])
    def test_malformed_requests_rejected(self, db_session, tenant_a, overrides):
        with pytest.raises(ValidationFailed):
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, **overrides))
        assert db_session.query(FinancialDocument).count() == 0

    def test_credit_with_target_rejected(self, db_session, tenant_a):
        data = credit_payload(tenant_a, tenant_a.customer_id)
        data["payment_target"] = {"type": "safe"}
        with pytest.raises(ValidationFailed):
            posting_service.create_document("sales-invoice", tenant_a.org_id, data)

    def test_switch_cash_to_credit_requires_counter_party(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1, price=1000))

        with pytest.raises(ValidationFailed):
            posting_service.update_document("sales-invoice", tenant_a.org_id, doc.id, {"payment_method": "credit"})
        assert balance_of(Safe, tenant_a.safe_id) == 1150

        posting_service.update_document(
            "sales-invoice", tenant_a.org_id, doc.id,
            {"payment_method": "credit", "counter_party_id": tenant_a.customer_id},
        )
        assert balance_of(Safe, tenant_a.safe_id) == 0
        assert balance_of(Customer, tenant_a.customer_id) == 1150

    def test_switch_credit_to_cash_requires_target(self, db_session, tenant_a):
        doc = posting_service.create_document(
            "sales-invoice", tenant_a.org_id, credit_payload(tenant_a, tenant_a.customer_id, qty=1, price=1000),
        )

        with pytest.raises(ValidationFailed):
            posting_service.update_document("sales-invoice", tenant_a.org_id, doc.id, {"payment_method": "cash"})

        updated = posting_service.update_document(
            "sales-invoice", tenant_a.org_id, doc.id,
            {"payment_method": "cash", "payment_target": {"type": "bank", "bank_id": tenant_a.bank_id}},
        )
        assert updated.payment_target_dict() == {"type": "bank", "bank_id": tenant_a.bank_id}
        assert balance_of(Customer, tenant_a.customer_id) == 0
        assert balance_of(Bank, tenant_a.bank_id) == 1150

    def test_zero_amount_document_still_moves_stock(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=2, price=0))
        assert doc.net_cents == 0
        assert balance_of(Safe, tenant_a.safe_id) == 0
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 98


# =============================================================================
# STOCK & FUNDS GUARDS
# =============================================================================

class TestGuards:
    def test_insufficient_stock_persists_nothing(self, db_session, tenant_a):
        before = snapshot(tenant_a)
        with pytest.raises(InsufficientStock) as exc:
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=101))

        assert exc.value.details["items"][0]["item_id"] == tenant_a.item_id
        assert snapshot(tenant_a) == before
        assert db_session.query(StockMovement).filter(StockMovement.movement_type != "OPENING").count() == 0

    def test_credit_documents_are_stock_checked_too(self, db_session, tenant_a):
        with pytest.raises(InsufficientStock):
            posting_service.create_document(
                "sales-invoice", tenant_a.org_id, credit_payload(tenant_a, tenant_a.customer_id, qty=101),
            )

    def test_override_allows_negative_stock(self, db_session, tenant_a):
        posting_service.create_document(
            "sales-invoice", tenant_a.org_id, payload(tenant_a, qty=101, allow_insufficient_stock=True),
        )
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == -1

    def test_override_cannot_be_patched(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1))
        with pytest.raises(ValidationFailed):
            posting_service.update_document(
                "sales-invoice", tenant_a.org_id, doc.id, {"allow_insufficient_stock": True},
            )

    def test_purchase_return_is_outgoing(self, db_session, tenant_a):
        with pytest.raises(InsufficientStock):
            posting_service.create_document(
                "purchase-return", tenant_a.org_id, credit_payload(tenant_a, tenant_a.supplier_id, qty=150),
            )

    def test_service_lines_never_move_stock(self, db_session, tenant_a):
        posting_service.create_document(
            "sales-invoice", tenant_a.org_id,
            payload(tenant_a, qty=500, price=100, item_id=tenant_a.service_item_id),
        )
        assert stock_of(tenant_a.service_item_id) == 0
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 100

    def test_update_rechecks_stock_after_reversal(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=90))

        # 10 on hand, but the 90 already taken come back first
        posting_service.update_document(
            "sales-invoice", tenant_a.org_id, doc.id,
            {"lines": [{"item_id": tenant_a.item_id, "quantity": 100, "unit_price_cents": 10000}]},
        )
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 0

        before = snapshot(tenant_a)
        with pytest.raises(InsufficientStock):
            posting_service.update_document(
                "sales-invoice", tenant_a.org_id, doc.id,
                {"lines": [{"item_id": tenant_a.item_id, "quantity": 101, "unit_price_cents": 10000}]},
            )
        assert snapshot(tenant_a) == before

    def test_insufficient_funds_on_cash_purchase(self, db_session, tenant_a):
        before = snapshot(tenant_a)
        with pytest.raises(InsufficientFunds):
            posting_service.create_document("purchase-invoice", tenant_a.org_id, payload(tenant_a, qty=1, price=1000))

        assert snapshot(tenant_a) == before
        assert db_session.query(FinancialDocument).count() == 0

    def test_insufficient_funds_on_cash_refund(self, db_session, tenant_a):
        with pytest.raises(InsufficientFunds):
            posting_service.create_document("sales-return", tenant_a.org_id, payload(tenant_a, qty=1, price=1000))

    def test_bank_purchase_needs_no_funds(self, db_session, tenant_a):
        posting_service.create_document(
            "purchase-invoice", tenant_a.org_id,
            payload(tenant_a, qty=1, price=1000, payment_target={"type": "bank", "bank_id": tenant_a.bank_id}),
        )
        assert balance_of(Bank, tenant_a.bank_id) == -1150

    def test_update_checks_funds_after_reversal(self, db_session, tenant_a):
        fund_safe(tenant_a, 10000)
        doc = posting_service.create_document("purchase-invoice", tenant_a.org_id, payload(tenant_a, qty=1, price=8000))
        assert balance_of(Safe, tenant_a.safe_id) == 800

        posting_service.update_document(
            "purchase-invoice", tenant_a.org_id, doc.id,
            {"lines": [{"item_id": tenant_a.item_id, "quantity": 1, "unit_price_cents": 8500}]},
        )
        assert balance_of(Safe, tenant_a.safe_id) == 10000 - 9775

    def test_purchase_uses_purchase_price_by_default(self, db_session, tenant_a):
        data = credit_payload(tenant_a, tenant_a.supplier_id, qty=2)
        del data["lines"][0]["unit_price_cents"]
        doc = posting_service.create_document("purchase-invoice", tenant_a.org_id, data)
        assert doc.lines[0].unit_price_cents == 6000
        assert doc.code == "PUR-00001"


# =============================================================================
# FISCAL GUARD ON MUTATION
# =============================================================================

class TestFiscalGuard:
    def test_update_and_delete_blocked_once_year_closes(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1))
        fiscal_service.close_fiscal_year(tenant_a.org_id, tenant_a.open_year_id)
        before = snapshot(tenant_a)

        with pytest.raises(FiscalPeriodClosed):
            posting_service.update_document("sales-invoice", tenant_a.org_id, doc.id, {"notes": "late edit"})
        with pytest.raises(FiscalPeriodClosed):
            posting_service.delete_document("sales-invoice", tenant_a.org_id, doc.id)

        assert snapshot(tenant_a) == before

    def test_cannot_move_date_into_closed_period(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1))
        with pytest.raises(FiscalPeriodClosed):
            posting_service.update_document("sales-invoice", tenant_a.org_id, doc.id, {"date": CLOSED_DATE})

    def test_code_is_immutable(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1))
        with pytest.raises(ValidationFailed):
            posting_service.update_document("sales-invoice", tenant_a.org_id, doc.id, {"code": "INV-99999"})


# =============================================================================
# STORE-LESS DOCUMENTS
# =============================================================================

class TestLegacyStock:
    def test_document_without_store_uses_item_aggregate(self, db_session, tenant_a):
        posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=30, store_id=None))

        assert db_session.query(Item.stock).filter_by(id=tenant_a.item_id).scalar() == 70
        # Store ledger is untouched
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 100

    def test_store_less_stock_is_checked(self, db_session, tenant_a):
        with pytest.raises(InsufficientStock):
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=101, store_id=None))


# =============================================================================
# READS & TENANT ISOLATION
# =============================================================================

class TestReadsAndIsolation:
    def test_list_with_filters(self, db_session, tenant_a):
        posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1, notes="walk-in"))
        posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1, date="2024-08-01"))
        posting_service.create_document("sales-return", tenant_a.org_id, credit_payload(tenant_a, tenant_a.customer_id, qty=1))

        docs, total = posting_service.list_documents("sales-invoice", tenant_a.org_id)
        assert total == 2
        assert [d.code for d in docs] == ["INV-00002", "INV-00001"]

        docs, total = posting_service.list_documents("sales-invoice", tenant_a.org_id, search="walk")
        assert [d.code for d in docs] == ["INV-00001"]

        docs, total = posting_service.list_documents("sales-invoice", tenant_a.org_id, date_from="2024-07-01")
        assert [d.code for d in docs] == ["INV-00002"]

        docs, total = posting_service.list_documents("sales-return", tenant_a.org_id, search="RTN-00001")
        assert total == 1

    def test_get_is_kind_scoped(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1))
        assert posting_service.get_document("sales-invoice", tenant_a.org_id, doc.id).id == doc.id
        with pytest.raises(NotFound):
            posting_service.get_document("sales-return", tenant_a.org_id, doc.id)

    def test_other_tenant_cannot_touch_document(self, db_session, tenant_a, tenant_b):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=1))

        with pytest.raises(NotFound):
            posting_service.get_document("sales-invoice", tenant_b.org_id, doc.id)
        with pytest.raises(NotFound):
            posting_service.update_document("sales-invoice", tenant_b.org_id, doc.id, {"notes": "x"})
        with pytest.raises(NotFound):
            posting_service.delete_document("sales-invoice", tenant_b.org_id, doc.id)

        assert balance_of(Safe, tenant_a.safe_id) == 11500

    def test_foreign_references_are_not_found(self, db_session, tenant_a, tenant_b):
        with pytest.raises(NotFound):
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, item_id=tenant_b.item_id))
        with pytest.raises(NotFound):
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, store_id=tenant_b.store_id))
        with pytest.raises(NotFound):
            posting_service.create_document(
                "sales-invoice", tenant_a.org_id, credit_payload(tenant_a, tenant_b.customer_id),
            )
        with pytest.raises(NotFound):
            posting_service.create_document(
                "sales-invoice", tenant_a.org_id,
                payload(tenant_a, payment_target={"type": "bank", "bank_id": tenant_b.bank_id}),
            )

    def test_unknown_kind_rejected(self, db_session, tenant_a):
        with pytest.raises(ValidationFailed):
            posting_service.create_document("credit-note", tenant_a.org_id, payload(tenant_a))


class TestInputCoercion:
    @pytest.mark.parametrize("line_overrides", [
        {"quantity": 2.5},
        {"quantity": 2.0},
        {"quantity": "2.5"},
        {"quantity": "1e1"},
        {"quantity": True},
        {"unit_price_cents": 9999.9},
        {"tax_inclusive": "maybe"},
        {"tax_inclusive": 1},
    ])
    def test_line_values_are_not_coerced(self, db_session, tenant_a, line_overrides):
        data = payload(tenant_a, qty=2)
        data["lines"][0].update(line_overrides)

        with pytest.raises(ValidationFailed):
            posting_service.create_document("sales-invoice", tenant_a.org_id, data)

        assert db_session.query(FinancialDocument).count() == 0
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 100
        assert balance_of(Safe, tenant_a.safe_id) == 0

    def test_fractional_discount_rejected(self, db_session, tenant_a):
        with pytest.raises(ValidationFailed):
            posting_service.create_document(
                "sales-invoice", tenant_a.org_id, payload(tenant_a, discount_cents=10.5),
            )

    def test_fractional_split_amount_rejected(self, db_session, tenant_a):
        target = {"type": "split", "bank_id": tenant_a.bank_id, "cash_amount_cents": 14999.5, "bank_amount_cents": 100000.5}
        with pytest.raises(ValidationFailed):
            posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, payment_target=target))
        assert balance_of(Bank, tenant_a.bank_id) == 0

    def test_numeric_strings_are_accepted(self, db_session, tenant_a):
        data = payload(tenant_a)
        data["lines"][0].update({"quantity": "10", "unit_price_cents": "10000"})
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, data)
        assert doc.net_cents == 115000

    def test_false_string_keeps_tax_exclusive(self, db_session, tenant_a):
        data = payload(tenant_a)
        data["lines"][0]["tax_inclusive"] = "false"
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, data)
        assert doc.net_cents == 115000

    def test_false_string_does_not_override_stock_check(self, db_session, tenant_a):
        with pytest.raises(InsufficientStock):
            posting_service.create_document(
                "sales-invoice", tenant_a.org_id, payload(tenant_a, qty=500, allow_insufficient_stock="false"),
            )
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 100

    def test_non_boolean_override_rejected(self, db_session, tenant_a):
        with pytest.raises(ValidationFailed):
            posting_service.create_document(
                "sales-invoice", tenant_a.org_id, payload(tenant_a, qty=500, allow_insufficient_stock="yes please"),
            )
        assert db_session.query(FinancialDocument).count() == 0


class TestLedgerReversal:
    def test_reversal_follows_ledger_rows_when_item_type_changes(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=7))
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 93

        db.session.query(Item).filter_by(id=tenant_a.item_id).update({"type": "SERVICE"})
        db.session.commit()

        posting_service.delete_document("sales-invoice", tenant_a.org_id, doc.id)
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 100

    def test_update_then_delete_nets_ledger_to_zero(self, db_session, tenant_a):
        doc = posting_service.create_document("sales-invoice", tenant_a.org_id, payload(tenant_a, qty=7))
        posting_service.update_document(
            "sales-invoice", tenant_a.org_id, doc.id,
            {"lines": [{"item_id": tenant_a.item_id, "quantity": 3, "unit_price_cents": 10000}]},
        )
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 97

        posting_service.delete_document("sales-invoice", tenant_a.org_id, doc.id)
        movements = db_session.query(StockMovement).filter_by(document_type="sales-invoice", document_id=doc.id).all()
        assert sum(m.quantity_delta for m in movements) == 0
        assert stock_of(tenant_a.item_id, tenant_a.store_id) == 100


class TestFundsGuardScope:
    @pytest.mark.parametrize("kind,debits", [
        ("sales-invoice", False),
        ("sales-return", True),
        ("purchase-invoice", True),
        ("purchase-return", False),
    ])
    def test_only_cash_debiting_kinds_are_guarded(self, db_session, tenant_a, kind, debits):
        assert get_descriptor(kind).debits_cash is debits

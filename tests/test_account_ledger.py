import re
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from models.doctors import Doctor
from models.ledger_entry import LedgerEntry
from services import account_ledger
from services.errors import BalanceComputationFailed, DuplicateInvoiceNumber, NotFound, ValidationFailed


TODAY = date(2026, 3, 15)


def entry(account, day, debit="0", credit="0", created=None, **extra):
    return {
        "doctor_id": account,
        "entry_date": day,
        "debit": debit,
        "credit": credit,
        "created_at": created,
        **extra,
    }


class TestInvoiceNumbers:
    def test_first_number_of_month(self, db):
        assert account_ledger.generate_invoice_number(db, TODAY) == "INV-2026-03-0001"

    def test_sequential_entries_get_increasing_numbers(self, db, doctor):
        numbers = [
            account_ledger.create_payment_entry(db, doctor.id, 10, TODAY, today=TODAY).invoice_number
            for _ in range(5)
        ]

        assert numbers == [f"INV-2026-03-{n:04d}" for n in range(1, 6)]
        assert numbers == sorted(numbers)

    def test_counter_restarts_each_month(self, db, doctor):
        account_ledger.create_payment_entry(db, doctor.id, 10, TODAY, today=TODAY)
        account_ledger.create_payment_entry(db, doctor.id, 10, TODAY, today=TODAY)

        assert account_ledger.generate_invoice_number(db, date(2026, 4, 1)) == "INV-2026-04-0001"

    def test_fallback_when_lookup_keeps_failing(self, db, monkeypatch):
        calls = []

        def _raise(*args, **kwargs):
            calls.append(1)
            raise OperationalError("SELECT", {}, Exception("timeout"))

        monkeypatch.setattr(db, "query", _raise)

        number = account_ledger.generate_invoice_number(db, TODAY, attempts=3, backoff=0)

        assert len(calls) == 3
        assert re.fullmatch(r"INV-\d{13}-\d{3}", number)

    def test_lookup_recovers_after_one_failure(self, db, doctor, monkeypatch):
        account_ledger.create_payment_entry(db, doctor.id, 10, TODAY, today=TODAY)
        real_query = db.query
        calls = []

        def _flaky(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("SELECT", {}, Exception("connection reset"))
            return real_query(*args, **kwargs)

        monkeypatch.setattr(db, "query", _flaky)

        number = account_ledger.generate_invoice_number(db, TODAY, attempts=3, backoff=0)

        assert number == "INV-2026-03-0002"
        assert len(calls) == 2

    def test_flush_errors_are_not_hidden_behind_fallback(self, db, monkeypatch):
        def _broken_flush(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(db, "flush", _broken_flush)

        with pytest.raises(OperationalError):
            account_ledger.generate_invoice_number(db, TODAY, attempts=3, backoff=0)

    def test_counter_continues_past_four_digits(self, db, doctor):
        db.add(LedgerEntry(
            doctor_id=doctor.id,
            entry_date=TODAY,
            source_type="cash",
            credit=Decimal("1"),
            invoice_number="INV-2026-03-9999"
        ))
        db.flush()

        first = account_ledger.create_payment_entry(db, doctor.id, 10, TODAY, today=TODAY)
        second = account_ledger.create_payment_entry(db, doctor.id, 10, TODAY, today=TODAY)

        assert first.invoice_number == "INV-2026-03-10000"
        assert second.invoice_number == "INV-2026-03-10001"
        assert account_ledger.generate_invoice_number(db, TODAY) == "INV-2026-03-10002"

    def test_conflicting_number_is_reallocated(self, db, doctor, monkeypatch):
        taken = account_ledger.create_payment_entry(db, doctor.id, 10, TODAY, today=TODAY)
        proposals = iter([taken.invoice_number, "INV-2026-03-0002"])
        monkeypatch.setattr(account_ledger, "generate_invoice_number", lambda db, today=None: next(proposals))

        created = account_ledger.create_payment_entry(db, doctor.id, 25, TODAY, today=TODAY)
        db.commit()

        assert created.invoice_number == "INV-2026-03-0002"
        assert db.query(LedgerEntry).count() == 2

    def test_persistent_conflict_raises(self, db, doctor, monkeypatch):
        taken = account_ledger.create_payment_entry(db, doctor.id, 10, TODAY, today=TODAY)
        monkeypatch.setattr(account_ledger, "generate_invoice_number", lambda db, today=None: taken.invoice_number)

        with pytest.raises(DuplicateInvoiceNumber):
            account_ledger.create_payment_entry(db, doctor.id, 25, TODAY, today=TODAY)
        assert db.query(LedgerEntry).count() == 1


class TestEntries:
    def test_payment_is_a_cash_credit(self, db, doctor):
        payment = account_ledger.create_payment_entry(db, doctor.id, "200.00", TODAY, method="upi", today=TODAY)

        assert payment.credit == Decimal("200.00")
        assert payment.debit == Decimal("0.00")
        assert payment.source_type == "cash"
        assert payment.description == "Payment received via upi (Receipt: INV-2026-03-0001)"

    def test_adjustment_direction(self, db, doctor):
        debit = account_ledger.create_adjustment_entry(db, doctor.id, 50, TODAY, "Short billed", today=TODAY)
        credit = account_ledger.create_adjustment_entry(
            db, doctor.id, 30, TODAY, "Damaged goods", is_debit=False, today=TODAY
        )

        assert (debit.debit, debit.credit) == (Decimal("50"), Decimal("0.00"))
        assert (credit.debit, credit.credit) == (Decimal("0.00"), Decimal("30"))
        assert credit.description == "Credit adjustment: Damaged goods (Ref: INV-2026-03-0002)"

    @pytest.mark.parametrize("amount", [0, -10, "abc"])
    def test_invalid_amount_rejected_before_write(self, db, doctor, amount):
        with pytest.raises(ValidationFailed):
            account_ledger.create_payment_entry(db, doctor.id, amount, TODAY)
        assert db.query(LedgerEntry).count() == 0

    def test_unknown_account(self, db):
        with pytest.raises(NotFound):
            account_ledger.create_payment_entry(db, 404, 10, TODAY)

    def test_handle_payment_reports_success_as_bool(self, db, doctor):
        assert account_ledger.handle_payment(db, doctor.id, 75, TODAY, "bank") is True
        assert account_ledger.handle_payment(db, doctor.id, 0, TODAY) is False
        assert db.query(LedgerEntry).count() == 1

    def test_account_balance_and_trial_balance(self, db, doctor):
        chemist = Doctor(name="City Chemist", contact_type="chemist")
        db.add(chemist)
        db.flush()
        account_ledger.create_adjustment_entry(db, doctor.id, 500, TODAY, "Opening dues", today=TODAY)
        account_ledger.create_payment_entry(db, doctor.id, 120, TODAY, today=TODAY)

        assert account_ledger.account_balance(db, doctor.id) == Decimal("380")
        assert account_ledger.account_balance(db, doctor.id, as_of=date(2026, 3, 1)) == Decimal("0")

        rows = {row["doctor_id"]: row for row in account_ledger.trial_balance(db)}
        assert rows[doctor.id]["balance"] == Decimal("380")
        assert rows[chemist.id]["balance"] == Decimal("0")


class TestRunningBalance:
    def test_last_balance_equals_total_debit_minus_credit(self):
        entries = [
            entry(1, "2024-01-05", debit="500"),
            entry(1, "2024-01-07", credit="200"),
            entry(1, "2024-01-06", debit="75.50"),
            entry(1, "2024-01-09", credit="100"),
        ]

        result = account_ledger.calculate_running_balance(entries, 1)

        assert [row["running_balance"] for row in result] == [
            Decimal("500"), Decimal("575.50"), Decimal("375.50"), Decimal("275.50")
        ]

    def test_same_day_entries_ordered_by_creation_time(self):
        entries = [
            entry(1, "2024-01-05", credit="50", created="2024-01-05T10:00:00Z", id="late"),
            entry(1, "2024-01-05", debit="80", created="2024-01-05T09:00:00Z", id="early"),
        ]

        result = account_ledger.calculate_running_balance(entries, 1)

        assert [row["id"] for row in result] == ["early", "late"]
        assert result[-1]["running_balance"] == Decimal("30")

    def test_filters_foreign_and_malformed_entries(self):
        entries = [
            entry(1, "2024-01-05", debit="100"),
            entry(2, "2024-01-05", debit="999"),
            entry(1, "not-a-date", debit="5"),
            entry(1, None, debit="5"),
            entry(1, "2024-01-06", debit="-10"),
            entry(1, "2024-01-06", credit="NaN"),
            entry(1, "2024-01-07", credit="40"),
        ]

        result = account_ledger.calculate_running_balance(entries, 1)

        assert len(result) == 2
        assert result[-1]["running_balance"] == Decimal("60")

    def test_insertion_order_does_not_matter(self):
        entries = [
            entry(7, date(2024, 2, 1), debit="500", created=datetime(2024, 2, 1, 9)),
            entry(7, date(2024, 2, 2), credit="200", created=datetime(2024, 2, 2, 9)),
            entry(7, date(2024, 2, 3), credit="500", created=datetime(2024, 2, 3, 9)),
        ]

        forward = account_ledger.calculate_running_balance(entries, 7)
        backward = account_ledger.calculate_running_balance(list(reversed(entries)), 7)

        assert forward[-1]["running_balance"] == backward[-1]["running_balance"] == Decimal("-200")

    def test_internal_failure_raises_unless_degraded(self, monkeypatch):
        def _explode(*args, **kwargs):
            raise TypeError("cannot compare")

        monkeypatch.setattr(account_ledger, "sort_chronologically", _explode)
        entries = [entry(1, "2024-01-05", debit="100")]

        with pytest.raises(BalanceComputationFailed):
            account_ledger.calculate_running_balance(entries, 1)

        degraded = account_ledger.calculate_running_balance(entries, 1, degrade_on_error=True)
        assert degraded[0]["running_balance"] == Decimal("0.00")

    def test_accepts_orm_rows(self, db, doctor):
        account_ledger.create_adjustment_entry(db, doctor.id, 90, TODAY, "Opening dues", today=TODAY)
        account_ledger.create_payment_entry(db, doctor.id, 40, TODAY, today=TODAY)

        rows = account_ledger.calculate_running_balance(
            account_ledger.fetch_ledger_entries(db, account_id=doctor.id), doctor.id
        )

        assert [row["running_balance"] for row in rows] == [Decimal("90"), Decimal("50")]
        assert rows[0]["invoice_number"] == "INV-2026-03-0001"

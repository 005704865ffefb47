from datetime import date, timedelta
from decimal import Decimal

import pytest

from models.ledger_entry import LedgerEntry
from models.products import Product
from models.stock_ledger import StockTransaction
from models.visits import Visit, VisitSale
from schemas.visits import VisitCreate, VisitUpdate, VisitSaleCreate
from services import account_ledger, visits
from services.errors import NotFound


def sale(product, quantity, price="100.00"):
    return VisitSaleCreate(product_id=product.id, quantity=quantity, unit_price=Decimal(price))


def stock_of(db, product):
    db.expire_all()
    return db.get(Product, product.id).current_stock


class TestCreateVisit:
    def test_posts_sales_to_both_ledgers(self, db, doctor, make_product):
        product = make_product(opening_stock=100)

        visit = visits.create_visit(db, VisitCreate(
            doctor_id=doctor.id, visit_date=date.today(), sales=[sale(product, 3, "50.00")]
        ))
        db.commit()

        assert stock_of(db, product) == 97
        sale_tx = db.query(StockTransaction).filter_by(transaction_type="sale").one()
        assert sale_tx.quantity == -3
        assert sale_tx.reference_type == "visit"
        assert sale_tx.reference_id == visit.id

        debit = db.query(LedgerEntry).one()
        assert debit.debit == Decimal("150.00")
        assert debit.source_type == "visit"
        assert debit.source_id == visit.id

    def test_sale_dated_to_visit_not_today(self, db, doctor, make_product):
        product = make_product(opening_stock=100)
        visit_date = date.today() - timedelta(days=3)

        visits.create_visit(db, VisitCreate(doctor_id=doctor.id, visit_date=visit_date, sales=[sale(product, 2)]))

        sale_tx = db.query(StockTransaction).filter_by(transaction_type="sale").one()
        assert sale_tx.transaction_date == visit_date

    def test_visit_without_sales_touches_no_ledger(self, db, doctor):
        visits.create_visit(db, VisitCreate(doctor_id=doctor.id, visit_date=date.today(), notes="Detailing only"))

        assert db.query(LedgerEntry).count() == 0
        assert db.query(StockTransaction).count() == 0

    def test_unknown_product_rejected_before_any_write(self, db, doctor):
        with pytest.raises(NotFound):
            visits.create_visit(db, VisitCreate(
                doctor_id=doctor.id,
                visit_date=date.today(),
                sales=[VisitSaleCreate(product_id=404, quantity=1, unit_price=Decimal("1"))]
            ))

        assert db.query(Visit).count() == 0

    def test_unknown_doctor(self, db):
        with pytest.raises(NotFound):
            visits.create_visit(db, VisitCreate(doctor_id=404, visit_date=date.today()))


class TestEditVisit:
    def test_edit_nets_out_to_direct_creation(self, db, doctor, make_product):
        product = make_product(opening_stock=100)
        visit = visits.create_visit(db, VisitCreate(
            doctor_id=doctor.id, visit_date=date.today(), sales=[sale(product, 3)]
        ))
        db.commit()
        assert stock_of(db, product) == 97

        visits.edit_visit(db, visit.id, VisitUpdate(sales=[sale(product, 5)]))
        db.commit()

        assert stock_of(db, product) == 95
        kinds = [t.transaction_type for t in db.query(StockTransaction).order_by(StockTransaction.id)]
        assert kinds == ["opening", "sale", "sale_reversal", "sale"]

    def test_edit_credits_old_total_and_debits_new(self, db, doctor, make_product):
        product = make_product(opening_stock=100)
        visit = visits.create_visit(db, VisitCreate(
            doctor_id=doctor.id, visit_date=date.today(), sales=[sale(product, 2, "100.00")]
        ))

        visits.edit_visit(db, visit.id, VisitUpdate(sales=[sale(product, 3, "100.00")]))
        db.commit()

        entries = db.query(LedgerEntry).order_by(LedgerEntry.id).all()
        assert [(e.debit, e.credit) for e in entries] == [
            (Decimal("200.00"), Decimal("0.00")),
            (Decimal("0.00"), Decimal("200.00")),
            (Decimal("300.00"), Decimal("0.00")),
        ]
        assert account_ledger.account_balance(db, doctor.id) == Decimal("300")
        assert len({e.invoice_number for e in entries}) == 3

    def test_edit_moves_stock_between_products(self, db, doctor, make_product):
        first = make_product(name="Amoxicillin", opening_stock=50)
        second = make_product(name="Azithromycin", opening_stock=50)
        visit = visits.create_visit(db, VisitCreate(
            doctor_id=doctor.id, visit_date=date.today(), sales=[sale(first, 10)]
        ))

        visits.edit_visit(db, visit.id, VisitUpdate(sales=[sale(second, 4)]))
        db.commit()

        assert stock_of(db, first) == 50
        assert stock_of(db, second) == 46
        assert db.query(VisitSale).count() == 1

    def test_reversal_dated_to_new_visit_date(self, db, doctor, make_product):
        product = make_product(opening_stock=20)
        visit = visits.create_visit(db, VisitCreate(
            doctor_id=doctor.id, visit_date=date.today() - timedelta(days=5), sales=[sale(product, 1)]
        ))
        new_date = date.today() - timedelta(days=1)

        visits.edit_visit(db, visit.id, VisitUpdate(visit_date=new_date, sales=[sale(product, 1)]))

        reversal = db.query(StockTransaction).filter_by(transaction_type="sale_reversal").one()
        assert reversal.transaction_date == new_date
        assert reversal.reference_type == "visit_edit_reversal"

    def test_notes_only_edit_writes_no_ledger_rows(self, db, doctor, make_product):
        product = make_product(opening_stock=20)
        visit = visits.create_visit(db, VisitCreate(
            doctor_id=doctor.id, visit_date=date.today(), sales=[sale(product, 1)]
        ))

        visits.edit_visit(db, visit.id, VisitUpdate(notes="Follow up next week"))

        assert db.query(LedgerEntry).count() == 1
        assert db.query(StockTransaction).count() == 2


class TestDeleteVisit:
    def test_delete_restores_stock(self, db, doctor, make_product):
        product = make_product(opening_stock=100)
        visit = visits.create_visit(db, VisitCreate(
            doctor_id=doctor.id, visit_date=date.today(), sales=[sale(product, 7)]
        ))
        db.commit()

        visits.delete_visit(db, visit.id)
        db.commit()

        assert stock_of(db, product) == 100
        assert db.query(Visit).count() == 0
        assert db.query(VisitSale).count() == 0
        reversal = db.query(StockTransaction).filter_by(transaction_type="sale_reversal").one()
        assert reversal.reference_type == "visit_delete_reversal"

    def test_payment_then_delete_leaves_account_in_credit(self, db, doctor, make_product):
        product = make_product(opening_stock=100)
        visit = visits.create_visit(db, VisitCreate(
            doctor_id=doctor.id, visit_date=date.today(), sales=[sale(product, 5, "100.00")]
        ))
        db.commit()
        assert account_ledger.account_balance(db, doctor.id) == Decimal("500")

        account_ledger.create_payment_entry(db, doctor.id, 200, date.today())
        db.commit()
        assert account_ledger.account_balance(db, doctor.id) == Decimal("300")

        visits.delete_visit(db, visit.id)
        db.commit()

        assert account_ledger.account_balance(db, doctor.id) == Decimal("-200")
        rows = account_ledger.calculate_running_balance(
            account_ledger.fetch_ledger_entries(db, account_id=doctor.id), doctor.id
        )
        assert rows[-1]["running_balance"] == Decimal("-200")
        assert all(row["source_id"] is None for row in rows)

    def test_delete_unknown_visit(self, db):
        with pytest.raises(NotFound):
            visits.delete_visit(db, 12345)

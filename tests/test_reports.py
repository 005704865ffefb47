from datetime import date
from decimal import Decimal

import pytest

from auth import get_password_hash
from models.doctors import Doctor
from models.user import User, UserRole
from schemas.visits import VisitCreate, VisitSaleCreate
from services import reports
from services import visits as visit_service
from services.errors import ValidationFailed


@pytest.fixture
def sales_book(db, doctor, make_product):
    """Two accounts, three companies, three visits (one without sales)."""
    rao = Doctor(name="Dr. Rao", contact_type="doctor")
    db.add(rao)
    db.flush()

    paracetamol = make_product(name="Paracetamol 500", price="10.00")
    syrup = make_product(name="Cough Syrup", price="50.00")
    syrup.company_name = "Zen Labs"
    generic = make_product(name="Generic ORS", price="5.00")
    generic.company_name = None
    rep = User(username="rep.north", password=get_password_hash("secret123"), full_name="North Rep", role=UserRole.USER)
    db.add(rep)
    db.flush()

    def line(product, quantity, price):
        return VisitSaleCreate(product_id=product.id, quantity=quantity, unit_price=Decimal(price))

    visit_service.create_visit(db, VisitCreate(
        doctor_id=doctor.id, visit_date=date(2026, 3, 1),
        sales=[line(paracetamol, 3, "10.00"), line(syrup, 1, "50.00")]
    ), rep_id=rep.id)
    visit_service.create_visit(db, VisitCreate(
        doctor_id=rao.id, visit_date=date(2026, 3, 5),
        sales=[line(syrup, 2, "50.00"), line(generic, 1, "5.00")]
    ))
    visit_service.create_visit(db, VisitCreate(doctor_id=doctor.id, visit_date=date(2026, 3, 10)))
    db.commit()

    return {"rao": rao, "paracetamol": paracetamol, "syrup": syrup, "generic": generic, "rep": rep}


class TestSalesReport:
    def test_totals_and_breakdowns(self, db, doctor, sales_book):
        report = reports.sales_report(db)

        assert report["total_count"] == 4
        assert report["total_revenue"] == Decimal("185")
        assert report["total_items"] == 7
        assert [(row["company"], row["amount"]) for row in report["by_company"]] == [
            ("Zen Labs", Decimal("150")), ("Acme Pharma", Decimal("30")), ("Other", Decimal("5"))
        ]
        assert [row["doctor_name"] for row in report["top_doctors"]] == ["Dr. Rao", "Dr. Mehta"]

    def test_filters(self, db, doctor, sales_book):
        by_doctor = reports.sales_report(db, doctor_id=doctor.id)
        assert (by_doctor["total_count"], by_doctor["total_revenue"]) == (2, Decimal("80"))

        by_product = reports.sales_report(db, product_id=sales_book["syrup"].id)
        assert (by_product["total_count"], by_product["total_items"]) == (2, 3)
        assert by_product["total_revenue"] == Decimal("150")

        from_fifth = reports.sales_report(db, start=date(2026, 3, 2))
        assert {row["doctor_name"] for row in from_fifth["lines"]} == {"Dr. Rao"}

    def test_page_does_not_shrink_totals(self, db, sales_book):
        report = reports.sales_report(db, skip=0, limit=1)

        assert len(report["lines"]) == 1
        assert report["lines"][0]["visit_date"] == date(2026, 3, 5)
        assert report["total_count"] == 4
        assert report["total_revenue"] == Decimal("185")

    def test_inverted_range_rejected(self, db):
        with pytest.raises(ValidationFailed):
            reports.sales_report(db, start=date(2026, 3, 5), end=date(2026, 3, 1))


class TestDashboard:
    def test_summary(self, db, sales_book):
        summary = reports.dashboard_summary(db)

        assert summary["counts"] == {
            "total_doctors": 2, "total_visits": 3, "total_sales": 4, "total_products": 3
        }
        assert summary["recent_visits"][0]["visit_date"] == date(2026, 3, 10)
        assert summary["recent_visits"][0]["total_amount"] == Decimal("0")
        assert len(summary["recent_sales"]) == 4
        assert summary["recent_sales"][0]["product_name"] == "Generic ORS"
        assert [(row["doctor_name"], row["amount"]) for row in summary["top_doctors"]] == [
            ("Dr. Rao", Decimal("105")), ("Dr. Mehta", Decimal("80"))
        ]

    def test_empty_database(self, db):
        summary = reports.dashboard_summary(db)

        assert summary["counts"]["total_visits"] == 0
        assert summary["recent_visits"] == []
        assert summary["top_doctors"] == []


class TestRepActivity:
    def test_visits_and_sales_per_rep(self, db, admin_user, sales_book):
        rows = {row["username"]: row for row in reports.rep_activity(db)}

        assert rows["rep.north"]["visit_count"] == 1
        assert rows["rep.north"]["sales_total"] == Decimal("80")
        assert rows["admin"]["visit_count"] == 0
        assert rows["admin"]["sales_total"] == Decimal("0")

    def test_date_window(self, db, sales_book):
        rows = {row["username"]: row for row in reports.rep_activity(db, start=date(2026, 3, 2))}

        assert rows["rep.north"]["visit_count"] == 0

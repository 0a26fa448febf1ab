"""
Test suite for reporting module

Tests portfolio totals, due-today/overdue lists, the monthly collection
trend, per-plan breakdown, recent payments and borrower filtering.
"""

import pytest
from decimal import Decimal
from datetime import date, datetime, timezone

from tender_ledger.currency import Currency
from tender_ledger.loans import (
    Loan, LoanTerms, LoanStatus, InstallmentKind, PaymentRecord
)
from tender_ledger.payments import apply_payment, pause
from tender_ledger.reporting import (
    summarize, monthly_collection_trend, plan_breakdown, recent_payments, filter_loans
)
from tender_ledger.schedule import derive_schedule


def make_entry(kind, principal, interest='0', months=1, start=date(2025, 8, 28), disbursed=None):
    terms = LoanTerms(
        principal=Decimal(principal),
        interest=Decimal(interest),
        installment_kind=kind,
        duration_months=months,
        start_date=start,
        disbursed_amount=Decimal(disbursed) if disbursed else None,
    )
    return terms, derive_schedule(terms)


def make_loan(loan_id, name, phone, entry):
    now = datetime.now(timezone.utc)
    terms, state = entry
    return Loan(id=loan_id, created_at=now, updated_at=now, name=name,
                phone=phone, terms=terms, state=state)


def pay(loan_id, amount, payment_date):
    return PaymentRecord.create(loan_id=loan_id, amount=Decimal(amount), payment_date=payment_date)


@pytest.fixture
def portfolio():
    """Daily loan with 400 paid and monthly loan with 11000 paid"""
    daily_terms, daily_state = make_entry(InstallmentKind.DAILY, '10000')
    daily_state = apply_payment(daily_state, pay("D1", '400', date(2025, 8, 29)))

    monthly_terms, monthly_state = make_entry(InstallmentKind.MONTHLY, '45000', '5000', 10,
                                              disbursed='43000')
    monthly_state = apply_payment(monthly_state, pay("M1", '5500', date(2025, 9, 28)))
    monthly_state = apply_payment(monthly_state, pay("M1", '5500', date(2025, 10, 28)))

    return [(daily_terms, daily_state), (monthly_terms, monthly_state)]


class TestSummarize:
    """Test portfolio totals"""

    def test_totals(self, portfolio):
        summary = summarize(portfolio, date(2025, 9, 1))

        assert summary.loan_count == 2
        assert summary.total_given == Decimal('53000')
        assert summary.total_collected == Decimal('11400')
        assert summary.total_outstanding == Decimal('48600')
        # Daily plans carry no interest
        assert summary.total_profit == Decimal('5000')

    def test_empty_portfolio(self):
        summary = summarize([], date(2025, 9, 1))

        assert summary.loan_count == 0
        assert summary.total_given == 0
        assert summary.total_collected == 0
        assert summary.total_outstanding == 0
        assert summary.total_profit == 0
        assert summary.due_today == ()
        assert summary.overdue == ()

    def test_idempotent(self, portfolio):
        assert summarize(portfolio, date(2025, 9, 1)) == summarize(portfolio, date(2025, 9, 1))

    def test_due_today_and_overdue(self, portfolio):
        daily, monthly = portfolio

        summary = summarize(portfolio, date(2025, 9, 2))
        assert summary.due_today == (daily,)
        assert summary.overdue == ()

        summary = summarize(portfolio, date(2025, 9, 3))
        assert summary.due_today == ()
        assert summary.overdue == (daily,)

        summary = summarize(portfolio, date(2025, 12, 1))
        assert summary.overdue == (daily, monthly)

    def test_completed_and_paused_are_never_listed(self):
        terms, state = make_entry(InstallmentKind.DAILY, '1000')
        completed = apply_payment(state, pay("D2", '1000', date(2025, 8, 29)))
        paused = pause(state)

        summary = summarize([(terms, completed), (terms, paused)], date(2026, 1, 1))
        assert summary.due_today == ()
        assert summary.overdue == ()
        assert summary.total_outstanding == Decimal('1000')

    def test_accepts_loan_records(self, portfolio):
        loans = [make_loan("L1", "Ravi", "9876543210", portfolio[0])]
        summary = summarize(loans, date(2025, 9, 2))
        assert summary.due_today == (loans[0],)

    def test_display_dict(self, portfolio):
        display = summarize(portfolio, date(2025, 9, 1)).to_display_dict(Currency.INR)

        assert display["total_given"] == "INR 53,000.00"
        assert display["total_outstanding"] == "INR 48,600.00"
        assert display["as_of"] == "2025-09-01"
        assert display["due_today_count"] == 0


class TestMonthlyTrend:
    """Test collections per month"""

    def test_groups_by_month_newest_first(self):
        payments = [
            pay("A", '100', date(2025, 8, 29)),
            pay("A", '300', date(2025, 8, 30)),
            pay("B", '5500', date(2025, 9, 28)),
            pay("B", '5500', date(2025, 10, 28)),
        ]
        trend = monthly_collection_trend(payments, date(2025, 10, 31))

        assert [m.month for m in trend] == ["2025-10", "2025-09", "2025-08"]
        assert trend[2].total_collected == Decimal('400')
        assert trend[2].payment_count == 2

    def test_window_excludes_old_and_future(self):
        payments = [
            pay("A", '100', date(2025, 1, 10)),
            pay("A", '200', date(2025, 6, 10)),
            pay("A", '300', date(2025, 11, 10)),
        ]
        trend = monthly_collection_trend(payments, date(2025, 10, 31), months=6)
        assert [m.month for m in trend] == ["2025-06"]

    def test_window_is_whole_calendar_months(self):
        """Six months back from mid-August covers March to August"""
        payments = [
            pay("A", '100', date(2025, 2, 20)),
            pay("A", '200', date(2025, 3, 1)),
            pay("A", '300', date(2025, 8, 15)),
        ]
        trend = monthly_collection_trend(payments, date(2025, 8, 15), months=6)

        assert [m.month for m in trend] == ["2025-08", "2025-03"]
        assert monthly_collection_trend(payments[:1], date(2025, 8, 15), months=6) == []

    def test_no_payments(self):
        assert monthly_collection_trend([], date(2025, 10, 31)) == []


class TestPlanBreakdown:
    """Test per-plan figures"""

    def test_breakdown(self, portfolio):
        breakdown = plan_breakdown(portfolio)

        assert breakdown[InstallmentKind.DAILY].loan_count == 1
        assert breakdown[InstallmentKind.DAILY].total_outstanding == Decimal('9600')
        assert breakdown[InstallmentKind.MONTHLY].total_given == Decimal('43000')
        assert breakdown[InstallmentKind.MONTHLY].total_outstanding == Decimal('39000')

    def test_excludes_completed(self):
        terms, state = make_entry(InstallmentKind.DAILY, '1000')
        completed = apply_payment(state, pay("D", '1000', date(2025, 8, 29)))
        assert plan_breakdown([(terms, completed)]) == {}


class TestRecentPayments:
    """Test the recent payments list"""

    def test_newest_first_and_limited(self):
        payments = [pay("A", str(day * 10), date(2025, 9, day)) for day in range(1, 16)]
        recent = recent_payments(payments, limit=10)

        assert len(recent) == 10
        assert recent[0].payment_date == date(2025, 9, 15)
        assert recent[-1].payment_date == date(2025, 9, 6)


class TestFilterLoans:
    """Test borrower filtering"""

    @pytest.fixture
    def loans(self, portfolio):
        return [
            make_loan("L1", "Ravi Kumar", "9876543210", portfolio[0]),
            make_loan("L2", "Lakshmi", "9123456780", portfolio[1]),
        ]

    def test_search_name_phone_id(self, loans):
        assert [l.id for l in filter_loans(loans, search="ravi")] == ["L1"]
        assert [l.id for l in filter_loans(loans, search="91234")] == ["L2"]
        assert [l.id for l in filter_loans(loans, search="l2")] == ["L2"]
        assert filter_loans(loans, search="nobody") == []

    def test_by_plan_and_status(self, loans):
        assert [l.id for l in filter_loans(loans, installment_kind=InstallmentKind.MONTHLY)] == ["L2"]
        assert [l.id for l in filter_loans(loans, status=LoanStatus.ACTIVE)] == ["L1", "L2"]
        assert filter_loans(loans, status=LoanStatus.PAUSED) == []

    def test_by_due_date(self, loans):
        assert [l.id for l in filter_loans(loans, due_date=date(2025, 9, 2))] == ["L1"]

    def test_no_filters_returns_everything(self, loans):
        assert filter_loans(loans) == loans

"""
Test suite for the loan data model

Tests label parsing, term coercion and dict serialisation of terms, ledger
states, payments and loan records.
"""

import pytest
from decimal import Decimal
from datetime import date, datetime, timezone

from tender_ledger.exceptions import InvalidTerms, LedgerError
from tender_ledger.loans import (
    Loan, LoanTerms, LedgerState, PaymentRecord, InstallmentKind, LoanStatus,
    PaymentMethod, parse_date
)
from tender_ledger.payments import apply_payment
from tender_ledger.schedule import derive_schedule


class TestLabels:
    """Test parsing of plan and method labels"""

    @pytest.mark.parametrize("label,expected", [
        ("DAY", InstallmentKind.DAILY),
        ("Daily", InstallmentKind.DAILY),
        ("MONTH", InstallmentKind.MONTHLY),
        (" monthly ", InstallmentKind.MONTHLY),
        (InstallmentKind.DAILY, InstallmentKind.DAILY),
    ])
    def test_installment_kind(self, label, expected):
        assert InstallmentKind.parse(label) == expected

    def test_unknown_installment_kind(self):
        with pytest.raises(InvalidTerms):
            InstallmentKind.parse("weekly")

    @pytest.mark.parametrize("label,expected", [
        ("Cash", PaymentMethod.CASH),
        ("UPI", PaymentMethod.UPI),
        ("Bank Transfer", PaymentMethod.BANK_TRANSFER),
        ("banktransfer", PaymentMethod.BANK_TRANSFER),
    ])
    def test_payment_method(self, label, expected):
        assert PaymentMethod.parse(label) == expected

    def test_unknown_payment_method(self):
        with pytest.raises(LedgerError):
            PaymentMethod.parse("cheque")


class TestParseDate:
    """Test date coercion"""

    def test_accepted_forms(self):
        assert parse_date(date(2025, 8, 28)) == date(2025, 8, 28)
        assert parse_date(datetime(2025, 8, 28, 10, 30)) == date(2025, 8, 28)
        assert parse_date("2025-08-28") == date(2025, 8, 28)
        assert parse_date("2025-08-28T10:30:00") == date(2025, 8, 28)
        assert parse_date(" 2025-08-28 10:30:00 ") == date(2025, 8, 28)

    @pytest.mark.parametrize("value", [
        "28/08/2025", "", None, 20250828, "2025-08-28garbage", "2025-08-28 junk", "2025-02-30"
    ])
    def test_rejected_forms(self, value):
        with pytest.raises(InvalidTerms):
            parse_date(value, "start_date")


class TestLoanTerms:
    """Test term coercion and derived amounts"""

    def test_coercion(self):
        terms = LoanTerms(principal='45000', interest=5000, installment_kind='Month',
                          duration_months='10', start_date='2025-08-28')

        assert terms.principal == Decimal('45000')
        assert terms.interest == Decimal('5000')
        assert terms.installment_kind == InstallmentKind.MONTHLY
        assert terms.duration_months == 10
        assert terms.disbursed_amount == Decimal('45000')
        assert terms.total_payable == Decimal('50000')
        assert terms.recognized_interest == Decimal('5000')

    def test_daily_ignores_interest(self):
        terms = LoanTerms(principal='10000', interest='500', installment_kind='day',
                          start_date='2025-08-28')
        assert terms.total_payable == Decimal('10000')
        assert terms.recognized_interest == 0

    def test_float_principal_rejected(self):
        with pytest.raises(InvalidTerms):
            LoanTerms(principal=100.5, installment_kind='daily', start_date='2025-08-28')

    def test_bad_duration_rejected(self):
        with pytest.raises(InvalidTerms):
            LoanTerms(principal='1000', installment_kind='monthly', duration_months='ten',
                      start_date='2025-08-28')

    def test_dict_round_trip(self):
        terms = LoanTerms(principal='45000', interest='5000', installment_kind='monthly',
                          duration_months=10, start_date=date(2025, 8, 28),
                          disbursed_amount='43000')
        assert LoanTerms.from_dict(terms.to_dict()) == terms


class TestRecords:
    """Test ledger state, payment and loan serialisation"""

    def test_ledger_state_round_trip(self):
        terms = LoanTerms(principal='50000', installment_kind='monthly', duration_months=3,
                          start_date='2025-01-31')
        state = derive_schedule(terms)
        payment = PaymentRecord.create("L1", '20000', '2025-02-28', method='upi', note="first")
        state = apply_payment(state, payment)

        restored = LedgerState.from_dict(state.to_dict())
        assert restored == state
        assert restored.installment_amount == Decimal('50000') / Decimal('3')
        assert restored.last_payment_date == date(2025, 2, 28)

    def test_payment_record(self):
        payment = PaymentRecord.create("L1", '400', '2025-08-29', method='Bank Transfer')

        assert payment.amount == Decimal('400')
        assert payment.payment_date == date(2025, 8, 29)
        assert payment.method == PaymentMethod.BANK_TRANSFER
        assert PaymentRecord.from_dict(payment.to_dict()) == payment

    def test_payment_record_rejects_float(self):
        with pytest.raises(LedgerError):
            PaymentRecord.create("L1", 400.0, '2025-08-29')

    def test_loan_round_trip(self):
        terms = LoanTerms(principal='10000', installment_kind='daily', start_date=date(2025, 8, 28))
        now = datetime.now(timezone.utc)
        loan = Loan(id="L1", created_at=now, updated_at=now, name="Ravi", phone="98765",
                    terms=terms, state=derive_schedule(terms), tender_name="Market")

        data = loan.to_dict()
        assert data["status"] == "active"
        assert data["installment_kind"] == "daily"
        assert data["state"]["installment_amount"] == "100"

        restored = Loan.from_dict(data)
        assert restored == loan
        assert restored.status == LoanStatus.ACTIVE

    def test_with_state(self):
        terms = LoanTerms(principal='10000', installment_kind='daily', start_date=date(2025, 8, 28))
        now = datetime.now(timezone.utc)
        loan = Loan(id="L1", created_at=now, updated_at=now, name="Ravi", phone="98765",
                    terms=terms, state=derive_schedule(terms))

        paid = apply_payment(loan.state, PaymentRecord.create("L1", '400', '2025-08-29'))
        updated = loan.with_state(paid)

        assert updated.state == paid
        assert updated.id == loan.id
        assert updated.created_at == loan.created_at
        assert loan.state.collected_amount == 0

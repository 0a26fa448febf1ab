"""
Portfolio Reporting Module

Read-only views over the loan book: the dashboard summary (money given,
collected, outstanding, profit, due-today and overdue lists), the monthly
collection trend, the per-plan breakdown, recent payments and borrower
filtering. Nothing here mutates a ledger.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .currency import Currency, Money
from .loans import (
    Loan, LoanTerms, LedgerState, LoanStatus, InstallmentKind, PaymentRecord
)
from .payments import is_due_on, is_overdue
from .schedule import add_months


LoanEntry = Union[Tuple[LoanTerms, LedgerState], Loan]


def _unpack(entry: LoanEntry) -> Tuple[LoanTerms, LedgerState]:
    if isinstance(entry, tuple):
        return entry
    return entry.terms, entry.state


@dataclass(frozen=True)
class PortfolioSummary:
    """Dashboard totals and attention lists at a given date"""
    as_of: date
    loan_count: int
    total_given: Decimal
    total_collected: Decimal
    total_outstanding: Decimal
    total_profit: Decimal
    due_today: Tuple[Any, ...]
    overdue: Tuple[Any, ...]

    def to_display_dict(self, currency: Currency = Currency.INR) -> Dict[str, Any]:
        """Totals rounded and formatted for display"""
        return {
            "as_of": self.as_of.isoformat(),
            "loan_count": self.loan_count,
            "total_given": Money(self.total_given, currency).to_string(),
            "total_collected": Money(self.total_collected, currency).to_string(),
            "total_outstanding": Money(self.total_outstanding, currency).to_string(),
            "total_profit": Money(self.total_profit, currency).to_string(),
            "due_today_count": len(self.due_today),
            "overdue_count": len(self.overdue),
        }


def summarize(loans: Sequence[LoanEntry], as_of: date) -> PortfolioSummary:
    """
    Compute the portfolio summary

    Args:
        loans: (terms, state) pairs or Loan records
        as_of: Reference date for the due-today and overdue lists

    Returns:
        PortfolioSummary; due_today and overdue hold the entries as given
    """
    total_given = Decimal('0')
    total_collected = Decimal('0')
    total_outstanding = Decimal('0')
    total_profit = Decimal('0')
    due_today = []
    overdue = []

    for entry in loans:
        terms, state = _unpack(entry)
        total_given += terms.disbursed_amount
        total_collected += state.collected_amount
        total_outstanding += state.remaining_amount
        total_profit += terms.recognized_interest

        if is_due_on(state, as_of):
            due_today.append(entry)
        elif is_overdue(state, as_of):
            overdue.append(entry)

    return PortfolioSummary(
        as_of=as_of,
        loan_count=len(loans),
        total_given=total_given,
        total_collected=total_collected,
        total_outstanding=total_outstanding,
        total_profit=total_profit,
        due_today=tuple(due_today),
        overdue=tuple(overdue),
    )


@dataclass(frozen=True)
class MonthlyCollection:
    """Collections received in one calendar month"""
    month: str  # YYYY-MM
    total_collected: Decimal
    payment_count: int


def monthly_collection_trend(
    payments: Iterable[PaymentRecord],
    as_of: date,
    months: int = 6
) -> List[MonthlyCollection]:
    """
    Collections per month over the trailing window, newest month first

    The window is the calendar month of as_of plus the months - 1 before it.
    Only months with at least one payment are returned.
    """
    window_start = add_months(as_of.replace(day=1), -(months - 1))
    buckets: Dict[str, List[Decimal]] = {}
    for payment in payments:
        if window_start <= payment.payment_date <= as_of:
            key = payment.payment_date.strftime("%Y-%m")
            buckets.setdefault(key, []).append(payment.amount)

    trend = [
        MonthlyCollection(month=key, total_collected=sum(amounts, Decimal('0')), payment_count=len(amounts))
        for key, amounts in buckets.items()
    ]
    trend.sort(key=lambda m: m.month, reverse=True)
    return trend


@dataclass(frozen=True)
class PlanBreakdown:
    """Open-book figures for one installment kind"""
    installment_kind: InstallmentKind
    loan_count: int
    total_given: Decimal
    total_outstanding: Decimal


def plan_breakdown(loans: Iterable[LoanEntry]) -> Dict[InstallmentKind, PlanBreakdown]:
    """Loan count, money given and outstanding per plan, excluding completed loans"""
    counts: Dict[InstallmentKind, int] = {}
    given: Dict[InstallmentKind, Decimal] = {}
    outstanding: Dict[InstallmentKind, Decimal] = {}

    for entry in loans:
        terms, state = _unpack(entry)
        if state.status == LoanStatus.COMPLETED:
            continue
        kind = terms.installment_kind
        counts[kind] = counts.get(kind, 0) + 1
        given[kind] = given.get(kind, Decimal('0')) + terms.disbursed_amount
        outstanding[kind] = outstanding.get(kind, Decimal('0')) + state.remaining_amount

    return {
        kind: PlanBreakdown(
            installment_kind=kind,
            loan_count=counts[kind],
            total_given=given[kind],
            total_outstanding=outstanding[kind],
        )
        for kind in counts
    }


def recent_payments(payments: Iterable[PaymentRecord], limit: int = 10) -> List[PaymentRecord]:
    """Newest payments first"""
    ordered = sorted(payments, key=lambda p: p.payment_date, reverse=True)
    return ordered[:limit]


def filter_loans(
    loans: Iterable[Loan],
    search: Optional[str] = None,
    installment_kind: Optional[InstallmentKind] = None,
    status: Optional[LoanStatus] = None,
    due_date: Optional[date] = None
) -> List[Loan]:
    """
    Filter borrowers the way the dashboard filter bar does

    Args:
        loans: Loans to filter
        search: Case-insensitive match on name, phone or loan id
        installment_kind: Keep only this plan
        status: Keep only this status
        due_date: Keep only loans whose next due date is this day

    Returns:
        Matching loans in their original order
    """
    needle = search.strip().lower() if search else ""
    results = []
    for loan in loans:
        if needle and not (
            needle in loan.name.lower()
            or needle in loan.phone.lower()
            or needle in loan.id.lower()
        ):
            continue
        if installment_kind and loan.terms.installment_kind != installment_kind:
            continue
        if status and loan.state.status != status:
            continue
        if due_date and loan.state.next_due_date != due_date:
            continue
        results.append(loan)
    return results

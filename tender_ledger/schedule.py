"""
Schedule Deriver Module

Turns loan terms into the opening ledger state: how many installments, how
much each one is, and when the first one falls due. This is the only place
installment counts and amounts are computed.
"""

from decimal import Decimal, ROUND_CEILING
from datetime import date, timedelta
import calendar

from .exceptions import InvalidTerms
from .loans import (
    LoanTerms, LedgerState, LoanStatus, InstallmentKind, parse_date
)


def add_months(start_date: date, months: int) -> date:
    """
    Add calendar months to a date, clamping to the end of short months

    Jan 31 + 1 month is Feb 28 (Feb 29 in leap years). The clamped day is
    kept for later additions: Feb 28 + 1 month is Mar 28.
    """
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance_due_date(due_date: date, kind: InstallmentKind, periods: int) -> date:
    """
    Move a due date forward by whole installment periods

    Monthly dates step one calendar month at a time, so a month-end clamp
    is the same whether the periods arrive in one payment or several.

    Args:
        due_date: Current due date
        kind: Daily advances by days, Monthly by calendar months
        periods: Number of periods, must not be negative

    Returns:
        New due date
    """
    if periods < 0:
        raise ValueError(f"Cannot move a due date backwards ({periods} periods)")
    if periods == 0:
        return due_date
    if kind == InstallmentKind.DAILY:
        return due_date + timedelta(days=periods)
    for _ in range(periods):
        due_date = add_months(due_date, 1)
    return due_date


def derive_schedule(terms: LoanTerms) -> LedgerState:
    """
    Compute the opening ledger state for a new loan

    Daily plans pay a fixed amount per day with no interest; Monthly plans
    spread principal plus flat interest evenly over duration_months.

    Args:
        terms: Loan terms

    Returns:
        LedgerState with nothing paid and status ACTIVE

    Raises:
        InvalidTerms: Non-positive principal, bad duration or unparseable start date
    """
    if terms.principal <= 0:
        raise InvalidTerms(f"Principal must be positive, got {terms.principal}")
    if terms.interest < 0:
        raise InvalidTerms(f"Interest cannot be negative, got {terms.interest}")
    if terms.disbursed_amount < 0:
        raise InvalidTerms(f"Disbursed amount cannot be negative, got {terms.disbursed_amount}")
    start_date = parse_date(terms.start_date, "start_date")

    if terms.installment_kind == InstallmentKind.DAILY:
        if terms.fixed_daily_amount <= 0:
            raise InvalidTerms(f"Daily amount must be positive, got {terms.fixed_daily_amount}")
        installment_amount = terms.fixed_daily_amount
        total_installments = int(
            (terms.principal / installment_amount).to_integral_value(rounding=ROUND_CEILING)
        )
    else:
        if terms.duration_months < 1:
            raise InvalidTerms(f"Monthly plans need at least one month, got {terms.duration_months}")
        total_installments = terms.duration_months
        # Exact division; rounding happens only for display
        installment_amount = terms.total_payable / Decimal(total_installments)

    total_payable = terms.total_payable

    return LedgerState(
        installment_kind=terms.installment_kind,
        total_payable=total_payable,
        total_installments=total_installments,
        installment_amount=installment_amount,
        paid_installments=Decimal('0'),
        remaining_installments=Decimal(total_installments),
        collected_amount=Decimal('0'),
        remaining_amount=total_payable,
        next_due_date=advance_due_date(start_date, terms.installment_kind, 1),
        status=LoanStatus.ACTIVE,
    )

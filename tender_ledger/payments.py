"""
Payment Applicator Module

Folds payments into a loan's ledger state. Every place that records, replays
or re-evaluates a payment goes through apply_payment so that installments
covered, due-date advancement and status are computed one way only.

Status rules after a payment (first match wins):
    1. nothing left to pay (amount or installments)  -> COMPLETED
    2. loan is on manual hold                        -> PAUSED
    3. next due date earlier than the as-of date     -> OVERDUE
    4. otherwise                                     -> ACTIVE
"""

from decimal import Decimal, ROUND_FLOOR
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from .exceptions import PaymentExceedsDue, InconsistentState, InvalidTransition
from .loans import LedgerState, LoanStatus, PaymentRecord
from .schedule import advance_due_date

# One currency minor unit
INVARIANT_TOLERANCE = Decimal('0.01')

ZERO = Decimal('0')


def is_overdue(state: LedgerState, as_of: date) -> bool:
    """Open loan whose next installment was due before as_of"""
    return state.is_open and state.next_due_date < as_of


def is_due_on(state: LedgerState, as_of: date) -> bool:
    """Open loan with an installment due exactly on as_of"""
    return state.is_open and state.next_due_date == as_of


def _open_status(next_due_date: date, as_of: date) -> LoanStatus:
    if next_due_date < as_of:
        return LoanStatus.OVERDUE
    return LoanStatus.ACTIVE


def verify_invariants(state: LedgerState, tolerance: Decimal = INVARIANT_TOLERANCE) -> None:
    """
    Check the ledger identities of a state

    remaining_amount must equal total_payable - collected_amount floored at
    zero, and remaining_installments must equal total_installments -
    paid_installments floored at zero.

    Raises:
        InconsistentState: If any identity or sign constraint is violated
    """
    if state.collected_amount < 0 or state.paid_installments < 0:
        raise InconsistentState(
            f"Negative progress: collected={state.collected_amount}, paid={state.paid_installments}"
        )
    if state.remaining_amount < 0 or state.remaining_installments < 0:
        raise InconsistentState(
            f"Negative balance: remaining={state.remaining_amount}, "
            f"installments={state.remaining_installments}"
        )

    expected_amount = max(ZERO, state.total_payable - state.collected_amount)
    if abs(expected_amount - state.remaining_amount) > tolerance:
        raise InconsistentState(
            f"remaining_amount {state.remaining_amount} does not match "
            f"total_payable {state.total_payable} - collected {state.collected_amount}"
        )

    expected_installments = max(ZERO, Decimal(state.total_installments) - state.paid_installments)
    if abs(expected_installments - state.remaining_installments) > tolerance:
        raise InconsistentState(
            f"remaining_installments {state.remaining_installments} does not match "
            f"total {state.total_installments} - paid {state.paid_installments}"
        )


def apply_payment(
    state: LedgerState,
    payment: PaymentRecord,
    as_of: Optional[date] = None
) -> LedgerState:
    """
    Apply one payment to a ledger state

    A payment may cover a fractional number of installments; only whole
    installments move the due date. Overpayment is accepted and floors the
    remaining balance at zero.

    Args:
        state: Current ledger state (not modified)
        payment: Payment to apply
        as_of: Date used for the overdue check, defaults to the payment date

    Returns:
        New LedgerState

    Raises:
        PaymentExceedsDue: If the payment amount is zero or negative
        InconsistentState: If the payment predates the last applied payment
    """
    if payment.amount <= 0:
        raise PaymentExceedsDue(f"Payment amount must be positive, got {payment.amount}")
    if state.last_payment_date and payment.payment_date < state.last_payment_date:
        raise InconsistentState(
            f"Payment dated {payment.payment_date} applied after one dated {state.last_payment_date}"
        )
    if as_of is None:
        as_of = payment.payment_date

    covered = installments_covered(state, payment.amount)
    collected = state.collected_amount + payment.amount
    paid = state.paid_installments + covered

    remaining_amount = max(ZERO, state.total_payable - collected)
    if remaining_amount == 0:
        # Paid off: a short last installment or division residue counts as complete
        paid = max(paid, Decimal(state.total_installments))
    remaining_installments = max(ZERO, Decimal(state.total_installments) - paid)

    whole_periods = int(covered.to_integral_value(rounding=ROUND_FLOOR))
    next_due_date = advance_due_date(state.next_due_date, state.installment_kind, whole_periods)

    if remaining_amount <= 0 or remaining_installments <= 0:
        status = LoanStatus.COMPLETED
    elif state.status == LoanStatus.PAUSED:
        status = LoanStatus.PAUSED
    else:
        status = _open_status(next_due_date, as_of)

    new_state = replace(
        state,
        paid_installments=paid,
        remaining_installments=remaining_installments,
        collected_amount=collected,
        remaining_amount=remaining_amount,
        next_due_date=next_due_date,
        status=status,
        last_payment_date=payment.payment_date,
    )
    verify_invariants(new_state)
    return new_state


def installments_covered(state: LedgerState, amount: Decimal) -> Decimal:
    """Fractional installments a payment of `amount` would cover"""
    return amount / state.installment_amount


def refresh_status(state: LedgerState, as_of: date) -> LedgerState:
    """
    Re-evaluate the time-driven ACTIVE/OVERDUE status

    PAUSED and COMPLETED loans are returned unchanged.
    """
    if not state.is_open:
        return state
    status = _open_status(state.next_due_date, as_of)
    if status == state.status:
        return state
    return replace(state, status=status)


def replay_payments(
    initial: LedgerState,
    payments: Iterable[PaymentRecord],
    as_of: Optional[date] = None
) -> LedgerState:
    """
    Rebuild a ledger state from its opening state and full payment history

    Payments are applied in payment-date order (ties keep their given order).

    Args:
        initial: Opening state from derive_schedule
        payments: Every payment still on record for the loan
        as_of: If given, the overdue status is re-evaluated at this date

    Returns:
        Final LedgerState
    """
    state = initial
    for payment in sorted(payments, key=lambda p: p.payment_date):
        state = apply_payment(state, payment)
    if as_of is not None:
        state = refresh_status(state, as_of)
    return state


def pause(state: LedgerState) -> LedgerState:
    """Put a loan on manual hold"""
    if state.status == LoanStatus.COMPLETED:
        raise InvalidTransition("Cannot pause a completed loan")
    if state.status == LoanStatus.PAUSED:
        return state
    return replace(state, status=LoanStatus.PAUSED)


def resume(state: LedgerState, as_of: date) -> LedgerState:
    """Release a manual hold, landing on ACTIVE or OVERDUE"""
    if state.status != LoanStatus.PAUSED:
        raise InvalidTransition(f"Only paused loans can be resumed, loan is {state.status.value}")
    return replace(state, status=_open_status(state.next_due_date, as_of))

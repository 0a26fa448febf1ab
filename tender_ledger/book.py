"""
Loan Book Module

Application service over the ledger core: creates loans, records and
deletes payments, places and releases holds, and builds the dashboard.
Storage and the logbook are injected; every ledger change is computed by
schedule.derive_schedule and payments.apply_payment/replay_payments and
committed together with its payment row in one storage transaction.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union
import uuid

from .audit import AuditTrail, AuditAction
from .config import TenderLedgerConfig, get_config
from .currency import Currency, Money
from .exceptions import InvalidTerms, LoanNotFound, PaymentNotFound
from .logging_config import get_logger, log_action
from .loans import (
    Loan, LoanTerms, LedgerState, LoanStatus, InstallmentKind, PaymentRecord, PaymentMethod
)
from .payments import (
    apply_payment, replay_payments, refresh_status, pause, resume, installments_covered
)
from .reporting import (
    PortfolioSummary, MonthlyCollection, PlanBreakdown, summarize,
    monthly_collection_trend, plan_breakdown, recent_payments
)
from .schedule import derive_schedule
from .storage import StorageInterface, create_storage


@dataclass(frozen=True)
class PaymentReceipt:
    """What recording a payment did to the loan"""
    payment: PaymentRecord
    installments_covered: Decimal
    next_due_date: date
    state: LedgerState


@dataclass(frozen=True)
class Dashboard:
    """Everything the dashboard screen shows"""
    summary: PortfolioSummary
    monthly_trend: List[MonthlyCollection]
    plan_breakdown: Dict[InstallmentKind, PlanBreakdown]
    recent_payments: List[PaymentRecord]


class LoanBook:
    """
    Manages loans and their payment history
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: Optional[AuditTrail] = None,
        config: Optional[TenderLedgerConfig] = None,
        clock: Optional[Callable[[], date]] = None
    ):
        self.storage = storage
        self.config = config or get_config()
        if audit_trail is None and self.config.enable_audit_logging:
            audit_trail = AuditTrail(storage)
        self.audit_trail = audit_trail
        self.clock = clock or date.today
        self.currency = Currency.from_code(self.config.currency)
        self.logger = get_logger("tender_ledger.book")

        self.loans_table = "loans"
        self.payments_table = "payments"

    @classmethod
    def from_config(
        cls,
        config: Optional[TenderLedgerConfig] = None,
        clock: Optional[Callable[[], date]] = None
    ) -> 'LoanBook':
        """Open the book on the storage named by config.database_url"""
        config = config or get_config()
        return cls(create_storage(config.database_url), config=config, clock=clock)

    # Loans

    def create_loan(
        self,
        name: str,
        phone: str,
        terms: LoanTerms,
        tender_name: str = "",
        notes: str = "",
        actor: Optional[str] = None
    ) -> Loan:
        """
        Register a new loan and its opening ledger state

        Raises:
            InvalidTerms: If the borrower name is empty or the terms are invalid
        """
        if not name or not name.strip():
            raise InvalidTerms("Borrower name is required")

        state = derive_schedule(terms)
        now = datetime.now(timezone.utc)
        loan = Loan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name.strip(),
            phone=phone.strip(),
            terms=terms,
            state=state,
            tender_name=tender_name,
            notes=notes,
        )

        with self.storage.atomic():
            self._save_loan(loan)
            self._log(AuditAction.LOAN_CREATED, loan.id, actor, {
                "name": loan.name,
                "installment_kind": terms.installment_kind,
                "principal": terms.principal,
                "total_payable": state.total_payable,
                "total_installments": state.total_installments,
                "installment_amount": self._display(state.installment_amount),
                "next_due_date": state.next_due_date,
            })

        log_action(self.logger, "info", "Loan created", user_id=self._actor(actor),
                   action="loan_created", resource=loan.id,
                   extra={"installment_kind": terms.installment_kind.value,
                          "total_payable": str(state.total_payable)})
        return loan

    def daily_terms(
        self,
        principal: Union[Decimal, int, str],
        start_date: Union[date, str],
        disbursed_amount: Optional[Union[Decimal, int, str]] = None
    ) -> LoanTerms:
        """Daily-plan terms using the configured daily installment amount"""
        return LoanTerms(
            principal=principal,
            installment_kind="daily",
            start_date=start_date,
            disbursed_amount=disbursed_amount,
            fixed_daily_amount=self.config.daily_installment_amount,
        )

    def get_loan(self, loan_id: str) -> Loan:
        """
        Load a loan by id

        Raises:
            LoanNotFound: If no loan has this id
        """
        data = self.storage.load(self.loans_table, loan_id)
        if not data:
            raise LoanNotFound(f"Loan {loan_id} not found")
        return Loan.from_dict(data)

    def list_loans(self, status: Optional[LoanStatus] = None) -> List[Loan]:
        """All loans in creation order, optionally by status"""
        filters = {"status": status.value} if status else {}
        return [Loan.from_dict(data) for data in self.storage.find(self.loans_table, filters)]

    def pause_loan(self, loan_id: str, actor: Optional[str] = None, reason: str = "") -> Loan:
        """Put a loan on manual hold"""
        loan = self.get_loan(loan_id)
        updated = loan.with_state(pause(loan.state))
        with self.storage.atomic():
            self._save_loan(updated)
            self._log(AuditAction.LOAN_PAUSED, loan_id, actor, {"reason": reason})
        log_action(self.logger, "info", "Loan paused", user_id=self._actor(actor),
                   action="loan_paused", resource=loan_id)
        return updated

    def resume_loan(self, loan_id: str, actor: Optional[str] = None) -> Loan:
        """Release a manual hold"""
        loan = self.get_loan(loan_id)
        updated = loan.with_state(resume(loan.state, self.clock()))
        with self.storage.atomic():
            self._save_loan(updated)
            self._log(AuditAction.LOAN_RESUMED, loan_id, actor, {"status": updated.state.status})
        log_action(self.logger, "info", "Loan resumed", user_id=self._actor(actor),
                   action="loan_resumed", resource=loan_id)
        return updated

    def refresh_overdue(self, as_of: Optional[date] = None) -> List[Loan]:
        """
        Move open loans between ACTIVE and OVERDUE as of a date

        Returns:
            Loans whose status changed
        """
        as_of = as_of or self.clock()
        changed = []
        with self.storage.atomic():
            for loan in self.list_loans():
                refreshed = refresh_status(loan.state, as_of)
                if refreshed.status != loan.state.status:
                    updated = loan.with_state(refreshed)
                    self._save_loan(updated)
                    changed.append(updated)
            if changed:
                self._log(AuditAction.STATUS_REFRESHED, "*", None, {
                    "as_of": as_of,
                    "loans": [loan.id for loan in changed],
                })
        if changed:
            self.logger.info(f"Refreshed status of {len(changed)} loans as of {as_of.isoformat()}")
        return changed

    # Payments

    def record_payment(
        self,
        loan_id: str,
        amount: Union[Decimal, int, str],
        payment_date: Optional[Union[date, str]] = None,
        method: Union[PaymentMethod, str] = PaymentMethod.CASH,
        note: str = "",
        actor: Optional[str] = None
    ) -> PaymentReceipt:
        """
        Record a collection against a loan

        A payment dated before the loan's latest payment is inserted into the
        history and the ledger is replayed from the opening state.

        Raises:
            LoanNotFound: If the loan does not exist
            PaymentExceedsDue: If the amount is zero or negative
        """
        loan = self.get_loan(loan_id)
        payment = PaymentRecord.create(
            loan_id=loan_id,
            amount=amount,
            payment_date=payment_date or self.clock(),
            method=method,
            note=note,
        )
        today = self.clock()
        backdated = (
            loan.state.last_payment_date is not None
            and payment.payment_date < loan.state.last_payment_date
        )

        if backdated:
            new_state = self._replayed_state(loan, self.get_payments(loan_id) + [payment], today)
        else:
            new_state = apply_payment(loan.state, payment, as_of=today)

        covered = installments_covered(loan.state, payment.amount)
        with self.storage.atomic():
            self.storage.save(self.payments_table, payment.id, self._payment_row(payment, covered, new_state))
            self._save_loan(loan.with_state(new_state))
            self._log(AuditAction.PAYMENT_ADDED, loan_id, actor, {
                "payment_id": payment.id,
                "amount": payment.amount,
                "payment_date": payment.payment_date,
                "method": payment.method,
                "installments_covered": covered,
                "next_due_date": new_state.next_due_date,
                "status": new_state.status,
                "replayed": backdated,
            })

        log_action(self.logger, "info", "Payment recorded", user_id=self._actor(actor),
                   action="payment_added", resource=loan_id,
                   extra={"payment_id": payment.id, "amount": str(payment.amount),
                          "status": new_state.status.value})
        if new_state.status == LoanStatus.COMPLETED and loan.state.status != LoanStatus.COMPLETED:
            self.logger.info(f"Loan {loan_id} completed")

        return PaymentReceipt(
            payment=payment,
            installments_covered=covered,
            next_due_date=new_state.next_due_date,
            state=new_state,
        )

    def get_payments(self, loan_id: str) -> List[PaymentRecord]:
        """Payment history of a loan in payment-date order"""
        rows = self.storage.find(self.payments_table, {"loan_id": loan_id})
        payments = [PaymentRecord.from_dict(row) for row in rows]
        payments.sort(key=lambda p: p.payment_date)
        return payments

    def get_payment(self, payment_id: str) -> PaymentRecord:
        data = self.storage.load(self.payments_table, payment_id)
        if not data:
            raise PaymentNotFound(f"Payment {payment_id} not found")
        return PaymentRecord.from_dict(data)

    def all_payments(self) -> List[PaymentRecord]:
        return [PaymentRecord.from_dict(row) for row in self.storage.load_all(self.payments_table)]

    def delete_payment(self, payment_id: str, actor: Optional[str] = None) -> Loan:
        """
        Delete a payment and rebuild its loan's ledger from the remaining history

        Returns:
            The loan with its replayed state
        """
        payment = self.get_payment(payment_id)
        loan = self.get_loan(payment.loan_id)
        remaining = [p for p in self.get_payments(loan.id) if p.id != payment_id]
        new_state = self._replayed_state(loan, remaining, self.clock())
        updated = loan.with_state(new_state)

        with self.storage.atomic():
            self.storage.delete(self.payments_table, payment_id)
            self._save_loan(updated)
            self._log(AuditAction.PAYMENT_DELETED, loan.id, actor, {
                "payment_id": payment_id,
                "amount": payment.amount,
                "payment_date": payment.payment_date,
            })
            self._log(AuditAction.LEDGER_REPLAYED, loan.id, actor, {
                "payments_replayed": len(remaining),
                "collected_amount": new_state.collected_amount,
                "remaining_amount": new_state.remaining_amount,
                "status": new_state.status,
            })

        log_action(self.logger, "warning", "Payment deleted, ledger replayed",
                   user_id=self._actor(actor), action="payment_deleted", resource=loan.id,
                   extra={"payment_id": payment_id, "payments_replayed": len(remaining)})
        return updated

    # Dashboard

    def dashboard(self, as_of: Optional[date] = None) -> Dashboard:
        """Summary, collection trend, plan breakdown and recent payments"""
        as_of = as_of or self.clock()
        loans = self.list_loans()
        payments = self.all_payments()
        return Dashboard(
            summary=summarize(loans, as_of),
            monthly_trend=monthly_collection_trend(payments, as_of, self.config.trend_months),
            plan_breakdown=plan_breakdown(loans),
            recent_payments=recent_payments(payments, self.config.recent_payments_limit),
        )

    # Internals

    def _replayed_state(self, loan: Loan, payments: List[PaymentRecord], as_of: date) -> LedgerState:
        state = replay_payments(derive_schedule(loan.terms), payments, as_of=as_of)
        # A manual hold survives the rebuild unless the history completes the loan
        if loan.state.status == LoanStatus.PAUSED and state.status != LoanStatus.COMPLETED:
            state = pause(state)
        return state

    def _payment_row(self, payment: PaymentRecord, covered: Decimal, state: LedgerState) -> Dict:
        row = payment.to_dict()
        row["installments_covered"] = str(covered)
        row["next_due_date_after"] = state.next_due_date.isoformat()
        return row

    def _save_loan(self, loan: Loan) -> None:
        self.storage.save(self.loans_table, loan.id, loan.to_dict())

    def _actor(self, actor: Optional[str]) -> str:
        return actor or self.config.default_actor

    def _display(self, amount: Decimal) -> str:
        return Money(amount, self.currency).to_string()

    def _log(self, action: AuditAction, entity_id: str, actor: Optional[str], details: Dict) -> None:
        if self.audit_trail:
            self.audit_trail.log(action, entity_id, self._actor(actor), details)

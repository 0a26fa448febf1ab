"""
Loan Data Model Module

Loan terms, derived ledger state, payment records and the persisted Loan
record. Terms and payments are immutable once created; a ledger state is
replaced, never edited, each time a payment is applied.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from enum import Enum
import uuid

from .currency import to_decimal
from .exceptions import InvalidTerms, LedgerError
from .storage import StorageRecord


DEFAULT_DAILY_AMOUNT = Decimal('100')


class InstallmentKind(Enum):
    """Repayment plan variants (the 'tender' types)"""
    DAILY = "daily"      # fixed amount per day, no interest
    MONTHLY = "monthly"  # flat interest spread over duration_months

    @classmethod
    def parse(cls, value: Union['InstallmentKind', str]) -> 'InstallmentKind':
        """Accept enum members and the legacy labels DAY/Daily/MONTH/Monthly"""
        if isinstance(value, cls):
            return value
        aliases = {
            "day": cls.DAILY, "daily": cls.DAILY,
            "month": cls.MONTHLY, "monthly": cls.MONTHLY,
        }
        try:
            return aliases[str(value).strip().lower()]
        except KeyError:
            raise InvalidTerms(f"Unknown installment kind: {value!r}")


class LoanStatus(Enum):
    """Ledger lifecycle states"""
    ACTIVE = "active"
    COMPLETED = "completed"  # balance or installments exhausted (terminal)
    OVERDUE = "overdue"      # next due date has passed
    PAUSED = "paused"        # manual hold, only left by an explicit resume


OPEN_STATUSES = (LoanStatus.ACTIVE, LoanStatus.OVERDUE)


class PaymentMethod(Enum):
    """How a collection was received"""
    CASH = "cash"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"

    @classmethod
    def parse(cls, value: Union['PaymentMethod', str]) -> 'PaymentMethod':
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace(" ", "_")
        if normalized == "banktransfer":
            normalized = "bank_transfer"
        try:
            return cls(normalized)
        except ValueError:
            raise LedgerError(f"Unknown payment method: {value!r}")


def parse_date(value: Union[date, datetime, str], field_name: str = "date") -> date:
    """
    Coerce a date-like value to a calendar date

    Args:
        value: date, datetime, ISO 'YYYY-MM-DD' string, or a full ISO
            timestamp whose time part is dropped
        field_name: Name used in the error message

    Raises:
        InvalidTerms: If the value is not a recognisable date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass
    raise InvalidTerms(f"Unparseable {field_name}: {value!r}")


def _decimal_field(value: Any, field_name: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as e:
        raise InvalidTerms(f"Invalid {field_name}: {e}")


@dataclass(frozen=True)
class LoanTerms:
    """Loan terms fixed at creation"""
    principal: Decimal
    installment_kind: InstallmentKind
    start_date: Union[date, str]
    interest: Decimal = Decimal('0')         # flat amount, Monthly plans only
    duration_months: int = 1                 # Monthly plans only
    disbursed_amount: Optional[Decimal] = None  # cash handed out, defaults to principal
    fixed_daily_amount: Decimal = DEFAULT_DAILY_AMOUNT

    def __post_init__(self):
        object.__setattr__(self, 'principal', _decimal_field(self.principal, "principal"))
        object.__setattr__(self, 'interest', _decimal_field(self.interest, "interest"))
        object.__setattr__(self, 'fixed_daily_amount',
                           _decimal_field(self.fixed_daily_amount, "fixed_daily_amount"))
        object.__setattr__(self, 'installment_kind', InstallmentKind.parse(self.installment_kind))

        if self.disbursed_amount is None:
            object.__setattr__(self, 'disbursed_amount', self.principal)
        else:
            object.__setattr__(self, 'disbursed_amount',
                               _decimal_field(self.disbursed_amount, "disbursed_amount"))

        if isinstance(self.duration_months, bool) or not isinstance(self.duration_months, int):
            try:
                object.__setattr__(self, 'duration_months', int(str(self.duration_months)))
            except ValueError:
                raise InvalidTerms(f"Invalid duration_months: {self.duration_months!r}")

    @property
    def total_payable(self) -> Decimal:
        """Principal plus interest for Monthly plans; principal alone for Daily"""
        if self.installment_kind == InstallmentKind.DAILY:
            return self.principal
        return self.principal + self.interest

    @property
    def recognized_interest(self) -> Decimal:
        """Interest counted as profit (Daily plans charge none)"""
        if self.installment_kind == InstallmentKind.DAILY:
            return Decimal('0')
        return self.interest

    def to_dict(self) -> Dict[str, Any]:
        start = self.start_date.isoformat() if isinstance(self.start_date, date) else self.start_date
        return {
            "principal": str(self.principal),
            "installment_kind": self.installment_kind.value,
            "start_date": start,
            "interest": str(self.interest),
            "duration_months": self.duration_months,
            "disbursed_amount": str(self.disbursed_amount),
            "fixed_daily_amount": str(self.fixed_daily_amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoanTerms':
        return cls(
            principal=Decimal(data["principal"]),
            installment_kind=InstallmentKind(data["installment_kind"]),
            start_date=parse_date(data["start_date"], "start_date"),
            interest=Decimal(data["interest"]),
            duration_months=int(data["duration_months"]),
            disbursed_amount=Decimal(data["disbursed_amount"]),
            fixed_daily_amount=Decimal(data["fixed_daily_amount"]),
        )


@dataclass(frozen=True)
class LedgerState:
    """Derived repayment position of one loan"""
    installment_kind: InstallmentKind
    total_payable: Decimal
    total_installments: int
    installment_amount: Decimal
    paid_installments: Decimal
    remaining_installments: Decimal
    collected_amount: Decimal
    remaining_amount: Decimal
    next_due_date: date
    status: LoanStatus = LoanStatus.ACTIVE
    last_payment_date: Optional[date] = None

    @property
    def is_open(self) -> bool:
        """Still expecting scheduled payments (Active or Overdue)"""
        return self.status in OPEN_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.status == LoanStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "installment_kind": self.installment_kind.value,
            "total_payable": str(self.total_payable),
            "total_installments": self.total_installments,
            "installment_amount": str(self.installment_amount),
            "paid_installments": str(self.paid_installments),
            "remaining_installments": str(self.remaining_installments),
            "collected_amount": str(self.collected_amount),
            "remaining_amount": str(self.remaining_amount),
            "next_due_date": self.next_due_date.isoformat(),
            "status": self.status.value,
            "last_payment_date": self.last_payment_date.isoformat() if self.last_payment_date else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LedgerState':
        last_payment = data.get("last_payment_date")
        return cls(
            installment_kind=InstallmentKind(data["installment_kind"]),
            total_payable=Decimal(data["total_payable"]),
            total_installments=int(data["total_installments"]),
            installment_amount=Decimal(data["installment_amount"]),
            paid_installments=Decimal(data["paid_installments"]),
            remaining_installments=Decimal(data["remaining_installments"]),
            collected_amount=Decimal(data["collected_amount"]),
            remaining_amount=Decimal(data["remaining_amount"]),
            next_due_date=date.fromisoformat(data["next_due_date"]),
            status=LoanStatus(data["status"]),
            last_payment_date=date.fromisoformat(last_payment) if last_payment else None,
        )


@dataclass(frozen=True)
class PaymentRecord:
    """A single collection against one loan (append-only)"""
    id: str
    loan_id: str
    amount: Decimal
    payment_date: date
    method: PaymentMethod = PaymentMethod.CASH
    note: str = ""

    def __post_init__(self):
        try:
            object.__setattr__(self, 'amount', to_decimal(self.amount))
        except ValueError as e:
            raise LedgerError(f"Invalid payment amount: {e}")
        object.__setattr__(self, 'payment_date', parse_date(self.payment_date, "payment_date"))
        object.__setattr__(self, 'method', PaymentMethod.parse(self.method))

    @classmethod
    def create(
        cls,
        loan_id: str,
        amount: Union[Decimal, int, str],
        payment_date: Union[date, str],
        method: Union[PaymentMethod, str] = PaymentMethod.CASH,
        note: str = ""
    ) -> 'PaymentRecord':
        """Build a record with a fresh id"""
        return cls(
            id=str(uuid.uuid4()),
            loan_id=loan_id,
            amount=amount,
            payment_date=payment_date,
            method=method,
            note=note,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "loan_id": self.loan_id,
            "amount": str(self.amount),
            "payment_date": self.payment_date.isoformat(),
            "method": self.method.value,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PaymentRecord':
        return cls(
            id=data["id"],
            loan_id=data["loan_id"],
            amount=Decimal(data["amount"]),
            payment_date=date.fromisoformat(data["payment_date"]),
            method=PaymentMethod(data["method"]),
            note=data.get("note") or "",
        )


@dataclass
class Loan(StorageRecord):
    """Borrower details, terms and the current ledger snapshot"""
    name: str
    phone: str
    terms: LoanTerms
    state: LedgerState
    tender_name: str = ""
    notes: str = ""

    @property
    def status(self) -> LoanStatus:
        return self.state.status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "name": self.name,
            "phone": self.phone,
            "tender_name": self.tender_name,
            "notes": self.notes,
            "terms": self.terms.to_dict(),
            "state": self.state.to_dict(),
            # Flattened for storage.find() filters
            "status": self.state.status.value,
            "installment_kind": self.terms.installment_kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            name=data["name"],
            phone=data.get("phone", ""),
            tender_name=data.get("tender_name", ""),
            notes=data.get("notes", ""),
            terms=LoanTerms.from_dict(data["terms"]),
            state=LedgerState.from_dict(data["state"]),
        )

    def with_state(self, state: LedgerState) -> 'Loan':
        """Copy of this loan carrying a new ledger snapshot"""
        return Loan(
            id=self.id,
            created_at=self.created_at,
            updated_at=datetime.now(timezone.utc),
            name=self.name,
            phone=self.phone,
            tender_name=self.tender_name,
            notes=self.notes,
            terms=self.terms,
            state=state,
        )

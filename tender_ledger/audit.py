"""
Logbook Module

Hash-chained, append-only logbook of every change made to the loan book.
Each entry carries the SHA-256 hash of its predecessor so that editing or
removing an entry breaks the chain and is caught by verify_integrity().
"""

import hashlib
import json
import threading
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
from decimal import Decimal
import uuid

from .storage import StorageInterface, StorageRecord


class AuditAction(Enum):
    """Logbook actions"""
    LOAN_CREATED = "loan_created"
    PAYMENT_ADDED = "payment_added"
    PAYMENT_DELETED = "payment_deleted"
    LOAN_PAUSED = "loan_paused"
    LOAN_RESUMED = "loan_resumed"
    LEDGER_REPLAYED = "ledger_replayed"
    STATUS_REFRESHED = "status_refreshed"


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


@dataclass
class AuditEntry(StorageRecord):
    """
    Immutable logbook entry with hash chaining for tamper detection
    """
    action: AuditAction
    actor: str
    entity_id: str
    details: Dict[str, Any]
    previous_hash: str
    entry_hash: str = ""

    def __post_init__(self):
        self.details = _json_safe(self.details or {})

    def calculate_hash(self) -> str:
        """
        SHA-256 over every field except entry_hash itself
        """
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'action': self.action.value,
            'actor': self.actor,
            'entity_id': self.entity_id,
            'details': self.details,
            'previous_hash': self.previous_hash,
        }
        # Deterministic JSON string
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.entry_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'action': self.action.value,
            'actor': self.actor,
            'entity_id': self.entity_id,
            'details': self.details,
            'previous_hash': self.previous_hash,
            'entry_hash': self.entry_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEntry':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            action=AuditAction(data['action']),
            actor=data['actor'],
            entity_id=data['entity_id'],
            details=data.get('details') or {},
            previous_hash=data['previous_hash'],
            entry_hash=data['entry_hash'],
        )


class AuditTrail:
    """
    Hash-chained logbook stored in a single table
    """

    def __init__(self, storage: StorageInterface, table_name: str = "logbook"):
        self.storage = storage
        self.table_name = table_name
        self._lock = threading.Lock()

    def _load_entries(self) -> List[AuditEntry]:
        # Storage returns insertion order, which is the chain order
        return [AuditEntry.from_dict(data) for data in self.storage.load_all(self.table_name)]

    def get_latest_hash(self) -> str:
        """Hash of the most recent entry, '' for an empty logbook"""
        latest = self.storage.load_last(self.table_name)
        if latest is None:
            return ""
        return latest['entry_hash']

    def log(
        self,
        action: AuditAction,
        entity_id: str,
        actor: str,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditEntry:
        """
        Append an entry to the logbook

        Args:
            action: What happened
            entity_id: Loan or payment id the action applies to
            actor: Who did it
            details: Action-specific data (Decimals and dates are stringified)

        Returns:
            The stored AuditEntry
        """
        with self._lock:
            now = datetime.now(timezone.utc)
            entry = AuditEntry(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                action=action,
                actor=actor,
                entity_id=entity_id,
                details=details or {},
                previous_hash=self.get_latest_hash(),
            )
            entry.entry_hash = entry.calculate_hash()
            self.storage.save(self.table_name, entry.id, entry.to_dict())
            return entry

    def get_entries(
        self,
        entity_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        limit: Optional[int] = None
    ) -> List[AuditEntry]:
        """
        Logbook entries in chain order, optionally filtered

        Args:
            entity_id: Only entries for this loan/payment
            action: Only entries of this action
            limit: Keep the most recent N entries
        """
        entries = self._load_entries()
        if entity_id:
            entries = [e for e in entries if e.entity_id == entity_id]
        if action:
            entries = [e for e in entries if e.action == action]
        if limit:
            entries = entries[-limit:]
        return entries

    def search(self, term: str) -> List[AuditEntry]:
        """Case-insensitive match on action, actor or entity id"""
        needle = term.strip().lower()
        return [
            e for e in self._load_entries()
            if needle in e.action.value or needle in e.actor.lower() or needle in e.entity_id.lower()
        ]

    def count_entries(self) -> int:
        return self.storage.count(self.table_name)

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire chain

        Returns:
            Dictionary with 'valid', 'total_entries', 'hash_errors' and 'chain_breaks'
        """
        result = {
            'valid': True,
            'total_entries': 0,
            'hash_errors': [],
            'chain_breaks': [],
        }

        entries = self._load_entries()
        result['total_entries'] = len(entries)

        previous_hash = ""
        for position, entry in enumerate(entries):
            if not entry.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'entry_id': entry.id,
                    'position': position,
                    'expected_hash': entry.calculate_hash(),
                    'actual_hash': entry.entry_hash,
                })
            if entry.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'entry_id': entry.id,
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': entry.previous_hash,
                })
            previous_hash = entry.entry_hash

        return result

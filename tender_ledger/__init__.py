"""
Tender Ledger

Installment ledger for small daily and monthly loan plans: schedule
derivation, payment application and portfolio summaries using Decimal math,
with pluggable storage and a hash-chained logbook.
"""

__version__ = "1.0.0"

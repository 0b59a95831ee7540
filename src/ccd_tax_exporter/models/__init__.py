"""Data models for accounts, on-chain transactions, and export rows."""

from ccd_tax_exporter.models.account import Account, InvalidAccountError, TrackedAccountSet
from ccd_tax_exporter.models.classification import Category, ClassifiedTransaction
from ccd_tax_exporter.models.export_row import ExportRow
from ccd_tax_exporter.models.transaction import (
    NATIVE_ASSET,
    Entry,
    FeeEntry,
    RawTransaction,
    TransactionKind,
    TransactionStatus,
)

__all__ = [
    "Account",
    "InvalidAccountError",
    "TrackedAccountSet",
    "Category",
    "ClassifiedTransaction",
    "ExportRow",
    "NATIVE_ASSET",
    "Entry",
    "FeeEntry",
    "RawTransaction",
    "TransactionKind",
    "TransactionStatus",
]

"""Shared fixtures: account addresses, transaction builders, in-memory source."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from ccd_tax_exporter.api.base import Page, TransactionSource
from ccd_tax_exporter.models.account import Account, TrackedAccountSet
from ccd_tax_exporter.models.transaction import (
    Entry,
    FeeEntry,
    RawTransaction,
    TransactionKind,
    TransactionStatus,
)

# Syntactically valid (50 base58 characters) but made-up addresses
ADDR_A = "3" + "a" * 49
ADDR_B = "4" + "b" * 49
ADDR_C = "5" + "c" * 49  # never tracked

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """Timestamp `minutes` after BASE_TIME."""
    return BASE_TIME + timedelta(minutes=minutes)


def make_transfer(
    tx_id: str,
    source: str,
    destination: str,
    amount: int,
    fee: Optional[int] = None,
    minutes: int = 0,
    status: TransactionStatus = TransactionStatus.SUCCESS,
    description: str = "Transfer",
) -> RawTransaction:
    """Build a CCD transfer with the fee (if any) paid by the source."""
    return RawTransaction(
        id=tx_id,
        timestamp=at(minutes),
        kind=TransactionKind.TRANSFER,
        status=status,
        entries=(Entry(source, -amount), Entry(destination, amount)),
        fee=FeeEntry(source, fee) if fee is not None else None,
        description=description,
    )


def make_reward(tx_id: str, account: str, amount: int, minutes: int = 0) -> RawTransaction:
    """Build a payday reward credited to `account`."""
    return RawTransaction(
        id=tx_id,
        timestamp=at(minutes),
        kind=TransactionKind.REWARD,
        entries=(Entry(account, amount), Entry("protocol", -amount)),
        description="Reward payout",
    )


class InMemorySource(TransactionSource):
    """Paged source over fixed histories, using list offsets as cursors.

    `failures` maps an address to exceptions raised, in order, by the next
    calls for that address before any page is served.
    """

    def __init__(
        self,
        histories: dict[str, list[RawTransaction]],
        failures: Optional[dict[str, list[Exception]]] = None,
    ):
        self.histories = histories
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: list[tuple[str, Optional[str], int]] = []
        self._lock = threading.Lock()

    def fetch_page(self, account: Account, cursor: Optional[str], limit: int) -> Page:
        with self._lock:
            self.calls.append((account.address, cursor, limit))
            pending = self.failures.get(account.address)
            if pending:
                raise pending.pop(0)

        history = self.histories.get(account.address, [])
        start = int(cursor) if cursor is not None else 0
        chunk = history[start:start + limit]
        end = start + len(chunk)
        next_cursor = str(end) if end < len(history) else None
        return Page(transactions=tuple(chunk), next_cursor=next_cursor)

    def calls_for(self, address: str) -> list[tuple[str, Optional[str], int]]:
        return [c for c in self.calls if c[0] == address]


@pytest.fixture
def account_a() -> Account:
    return Account(ADDR_A)


@pytest.fixture
def account_b() -> Account:
    return Account(ADDR_B)


@pytest.fixture
def tracked_ab() -> TrackedAccountSet:
    """Two tracked accounts, A and B."""
    return TrackedAccountSet([ADDR_A, ADDR_B])


@pytest.fixture
def tracked_a() -> TrackedAccountSet:
    """Only account A tracked."""
    return TrackedAccountSet([ADDR_A])


@pytest.fixture
def no_sleep() -> list[float]:
    """Collects backoff delays instead of sleeping."""
    return []

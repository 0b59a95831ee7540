"""Transaction data models for on-chain records."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

NATIVE_ASSET = "CCD"


class TransactionKind(Enum):
    """Closed set of transaction type tags known to the pipeline.

    Loosely typed API tags are mapped onto these at the adapter boundary.
    """

    TRANSFER = "transfer"
    REWARD = "reward"  # Stake/baking/delegation rewards
    CONTRACT_CALL = "contract_call"
    OTHER = "other"


class TransactionStatus(Enum):
    """Outcome of a transaction on chain."""

    SUCCESS = "success"
    FAILED = "failed"  # Rejected/reverted: fee charged, no transfer effect


@dataclass(frozen=True)
class Entry:
    """One participant's signed balance change in a single asset.

    Attributes:
        participant: Account address (or a non-account label such as
            "contract:<index,subindex>").
        amount: Signed amount in smallest units; None when the API record
            did not carry a usable amount.
        asset: Asset symbol.
    """

    participant: str
    amount: Optional[int]
    asset: str = NATIVE_ASSET


@dataclass(frozen=True)
class FeeEntry:
    """Transaction fee and the account that paid it."""

    payer: Optional[str]
    amount: Optional[int]
    asset: str = NATIVE_ASSET


@dataclass(frozen=True)
class RawTransaction:
    """A transaction as retrieved from the remote API.

    The identifier is globally unique on chain, so two fetches of the same
    transaction through different accounts compare equal by `id`.

    Attributes:
        id: Transaction hash, or "{block_hash}-{row id}" for special outcomes
            (rewards) that have no hash.
        timestamp: Block time (UTC).
        kind: Transaction type tag.
        status: Success or failure.
        entries: Ordered participant balance changes.
        fee: Optional fee entry.
        block_hash: Hash of the containing block.
        description: Human-readable description from the API.
        source_account: Tracked account whose history this copy came from.
    """

    id: str
    timestamp: datetime
    kind: TransactionKind
    status: TransactionStatus = TransactionStatus.SUCCESS
    entries: tuple[Entry, ...] = ()
    fee: Optional[FeeEntry] = None
    block_hash: str = ""
    description: str = ""
    source_account: str = field(default="", compare=False)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Chronological ordering key, ties broken by identifier."""
        return (self.timestamp, self.id)

    @property
    def participants(self) -> frozenset[str]:
        """All participants touched by this transaction (fee payer included)."""
        names = {e.participant for e in self.entries}
        if self.fee is not None and self.fee.payer:
            names.add(self.fee.payer)
        return frozenset(names)

    @property
    def is_failed(self) -> bool:
        return self.status is TransactionStatus.FAILED

    @property
    def completeness(self) -> tuple[int, int]:
        """How much information this copy carries.

        Used to pick between copies of the same transaction fetched through
        different accounts: a copy with a fee beats one without, then more
        entries beat fewer.
        """
        return (1 if self.fee is not None else 0, len(self.entries))

    def __repr__(self) -> str:
        return (
            f"RawTransaction(id={self.id[:16]!r}..., "
            f"timestamp={self.timestamp.isoformat()}, "
            f"kind={self.kind.value}, status={self.status.value})"
        )

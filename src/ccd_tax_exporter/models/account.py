"""Account data models for tracked Concordium accounts."""

import re
from dataclasses import dataclass
from typing import Iterable, Iterator

# Concordium account addresses are 50 base58check characters
# (bitcoin alphabet: no 0, O, I or l).
ACCOUNT_ADDRESS_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{50}$")


class InvalidAccountError(ValueError):
    """Raised when a string is not a valid account address."""

    pass


@dataclass(frozen=True, order=True)
class Account:
    """An opaque on-chain account address.

    Attributes:
        address: The address in its canonical string form.
    """

    address: str

    @classmethod
    def parse(cls, value: str) -> "Account":
        """Parse and validate an account address.

        Args:
            value: Raw address string (surrounding whitespace is ignored).

        Returns:
            A new Account.

        Raises:
            InvalidAccountError: If the value is not a well-formed address.
        """
        address = str(value).strip()
        if not ACCOUNT_ADDRESS_PATTERN.match(address):
            raise InvalidAccountError(f"Not a valid account address: {value!r}")
        return cls(address)

    @property
    def short(self) -> str:
        """Abbreviated address for display and log messages."""
        return f"{self.address[:6]}...{self.address[-4:]}"

    def __str__(self) -> str:
        return self.address


class TrackedAccountSet:
    """The set of accounts whose history is being reported.

    Serves both as the fetch scope and as the membership test for the
    internal-transfer rule. Duplicates are collapsed while the first-seen
    order is kept, so iteration order is deterministic.
    """

    def __init__(self, accounts: Iterable[Account | str]):
        """Initialize the tracked set.

        Args:
            accounts: Accounts (or raw address strings) to track.

        Raises:
            ValueError: If no accounts are given.
        """
        ordered: dict[str, Account] = {}
        for account in accounts:
            if not isinstance(account, Account):
                account = Account(str(account))
            ordered.setdefault(account.address, account)

        if not ordered:
            raise ValueError("At least one account must be tracked")

        self._accounts: tuple[Account, ...] = tuple(ordered.values())
        self._addresses: frozenset[str] = frozenset(ordered)

    @property
    def accounts(self) -> tuple[Account, ...]:
        """Tracked accounts in first-seen order."""
        return self._accounts

    def contains(self, participant: str | None) -> bool:
        """Check whether a participant address is tracked.

        Args:
            participant: Participant address (None is never tracked).

        Returns:
            True if the address belongs to the tracked set.
        """
        return participant is not None and participant in self._addresses

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Account):
            return item.address in self._addresses
        if isinstance(item, str):
            return item in self._addresses
        return False

    def __iter__(self) -> Iterator[Account]:
        return iter(self._accounts)

    def __len__(self) -> int:
        return len(self._accounts)

    def __repr__(self) -> str:
        return f"TrackedAccountSet({[a.short for a in self._accounts]})"

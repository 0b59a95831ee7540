"""Abstract paged transaction source and its error taxonomy."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ccd_tax_exporter.models.account import Account
from ccd_tax_exporter.models.transaction import RawTransaction


class FetchError(Exception):
    """Base exception for page fetch failures."""

    def __init__(self, message: str, account: Optional[Account] = None):
        """Initialize FetchError.

        Args:
            message: Error message.
            account: Optional account whose page failed to load.
        """
        self.account = account
        super().__init__(message)


class TransientFetchError(FetchError):
    """Network or server-side failure; the same request may succeed later."""

    pass


class FatalFetchError(FetchError):
    """Rejected request or malformed response; retrying will not help."""

    pass


@dataclass(frozen=True)
class Page:
    """One page of an account's transaction history.

    Attributes:
        transactions: Transactions on this page, in API order.
        next_cursor: Cursor for the following page, or None at end of stream.
    """

    transactions: tuple[RawTransaction, ...]
    next_cursor: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return self.next_cursor is None


class TransactionSource(ABC):
    """Capability to fetch one page of an account's transaction history.

    Implementations are stateless between calls apart from the cursor
    they are handed, so one instance may be shared by concurrent fetches.

    Subclasses must implement:
    - fetch_page(): Return the page following `cursor`
    """

    @property
    def name(self) -> str:
        """Return source name for logging."""
        return self.__class__.__name__

    @abstractmethod
    def fetch_page(
        self,
        account: Account,
        cursor: Optional[str],
        limit: int,
    ) -> Page:
        """Fetch transactions involving `account` that follow `cursor`.

        Args:
            account: Account whose history is requested.
            cursor: Opaque position returned by the previous page, or None
                for the start of the history.
            limit: Maximum number of transactions to return.

        Returns:
            The next page.

        Raises:
            TransientFetchError: On network errors or server failures.
            FatalFetchError: On rejected requests or malformed responses.
        """
        pass

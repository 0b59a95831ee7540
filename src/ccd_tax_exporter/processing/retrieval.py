"""Paginated retrieval of transaction histories for the tracked accounts."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Optional

from ccd_tax_exporter.api.base import FatalFetchError, Page, TransactionSource, TransientFetchError
from ccd_tax_exporter.models.account import Account, TrackedAccountSet
from ccd_tax_exporter.models.transaction import RawTransaction
from ccd_tax_exporter.processing.deduplicator import Deduplicator
from ccd_tax_exporter.utils.logging_config import get_logger

logger = get_logger(__name__)


class RetrievalFailed(Exception):
    """Raised when one or more account histories could not be fetched.

    Attributes:
        failures: Account address to failure message.
    """

    def __init__(self, failures: dict[str, str]):
        self.failures = dict(failures)
        details = "; ".join(f"{address}: {msg}" for address, msg in sorted(self.failures.items()))
        super().__init__(f"Retrieval failed for {len(self.failures)} account(s): {details}")


@dataclass
class AccountHistory:
    """Everything fetched for one account."""

    account: Account
    transactions: list[RawTransaction] = field(default_factory=list)
    pages: int = 0
    retries: int = 0


@dataclass
class RetrievalResult:
    """Merged retrieval output plus statistics.

    Attributes:
        transactions: Unique transactions ordered by (timestamp, identifier).
        pages_fetched: Total pages fetched across accounts.
        retries: Total transient failures retried.
        duplicates_dropped: Copies removed during the merge.
        per_account: Raw (pre-merge) transaction count per account address.
    """

    transactions: list[RawTransaction]
    pages_fetched: int = 0
    retries: int = 0
    duplicates_dropped: int = 0
    per_account: dict[str, int] = field(default_factory=dict)


class RetrievalEngine:
    """Drives pagination for every tracked account and merges the results.

    Accounts are fetched concurrently on a bounded thread pool. Each worker
    owns its own history; the merge runs on the calling thread only after
    all workers have joined.
    """

    def __init__(
        self,
        source: TransactionSource,
        page_size: int = 100,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        fetch_concurrency: int = 2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize retrieval engine.

        Args:
            source: Paged transaction source.
            page_size: Transactions requested per page.
            retry_attempts: Total attempts per page on transient errors.
            retry_delay: Initial backoff delay in seconds (doubles per retry).
            fetch_concurrency: Maximum accounts fetched in parallel.
            sleep: Sleep function used for backoff.
        """
        self.source = source
        self.page_size = page_size
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.fetch_concurrency = max(1, fetch_concurrency)
        self._sleep = sleep

    def retrieve(
        self,
        accounts: TrackedAccountSet,
        on_account_done: Optional[Callable[[Account, int], None]] = None,
    ) -> RetrievalResult:
        """Fetch and merge the complete history of every tracked account.

        Args:
            accounts: Tracked account set.
            on_account_done: Called on the calling thread with
                (account, transaction count) as each account completes.

        Returns:
            RetrievalResult with the merged, ordered transactions.

        Raises:
            RetrievalFailed: If any account could not be fetched completely.
        """
        histories: dict[Account, AccountHistory] = {}
        failures: dict[str, str] = {}

        workers = min(self.fetch_concurrency, len(accounts))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {
                executor.submit(self.fetch_account, account): account for account in accounts
            }
            # Every future is drained even after a failure so the other
            # accounts' errors are reported too.
            for future in as_completed(future_map):
                account = future_map[future]
                try:
                    history = future.result()
                except (TransientFetchError, FatalFetchError) as e:
                    failures[account.address] = str(e)
                    logger.error(f"Retrieval failed for {account.short}: {e}")
                    continue

                histories[account] = history
                if on_account_done is not None:
                    on_account_done(account, len(history.transactions))

        if failures:
            raise RetrievalFailed(failures)

        ordered = [histories[account] for account in accounts]
        deduplicator = Deduplicator()
        merged = deduplicator.merge([(h.account, h.transactions) for h in ordered])

        return RetrievalResult(
            transactions=merged,
            pages_fetched=sum(h.pages for h in ordered),
            retries=sum(h.retries for h in ordered),
            duplicates_dropped=deduplicator.duplicate_count,
            per_account={h.account.address: len(h.transactions) for h in ordered},
        )

    def fetch_account(self, account: Account) -> AccountHistory:
        """Page through one account's history until end of stream.

        Args:
            account: Account to fetch.

        Returns:
            AccountHistory with transactions in API order.

        Raises:
            TransientFetchError: If a page still fails after all retries.
            FatalFetchError: On a non-retryable failure or a stuck cursor.
        """
        history = AccountHistory(account=account)
        cursor: Optional[str] = None

        while True:
            page = self._fetch_with_retry(account, cursor, history)
            history.pages += 1
            history.transactions.extend(page.transactions)

            if page.is_last:
                break
            if page.next_cursor == cursor:
                raise FatalFetchError(
                    f"Pagination cursor did not advance past {cursor!r} for {account.short}",
                    account,
                )
            cursor = page.next_cursor

        logger.info(
            f"Fetched {len(history.transactions)} transactions for {account.short} "
            f"in {history.pages} page(s)"
        )
        return history

    def _fetch_with_retry(
        self,
        account: Account,
        cursor: Optional[str],
        history: AccountHistory,
    ) -> Page:
        """Fetch one page, retrying transient failures with backoff."""
        delay = self.retry_delay

        for attempt in range(1, self.retry_attempts + 1):
            try:
                return self.source.fetch_page(account, cursor, self.page_size)
            except TransientFetchError as e:
                if attempt >= self.retry_attempts:
                    raise TransientFetchError(
                        f"Giving up after {attempt} attempts: {e}", account
                    ) from e
                history.retries += 1
                logger.warning(
                    f"Transient error for {account.short} (attempt {attempt}/"
                    f"{self.retry_attempts}): {e}, retrying in {delay:.1f}s"
                )
                self._sleep(delay)
                delay *= 2

        # Unreachable: the loop either returns or raises
        raise TransientFetchError(f"No attempts made for {account.short}", account)

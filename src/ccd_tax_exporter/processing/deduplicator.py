"""Cross-account merge and duplicate removal."""

from typing import Iterable, Sequence

from ccd_tax_exporter.models.account import Account
from ccd_tax_exporter.models.transaction import RawTransaction
from ccd_tax_exporter.utils.logging_config import get_logger

logger = get_logger(__name__)


class Deduplicator:
    """Merges per-account histories into one chronologically ordered set.

    A transfer between two tracked accounts shows up in both histories.
    Duplicates are identified by transaction identifier only; the copies
    are the same on-chain transaction seen from two sides.

    When copies differ (the wallet-proxy only reports the fee to the
    sender), the most complete copy is kept. Among equally complete
    copies the one from the earliest account in tracked order wins, so the
    result never depends on the order in which fetches completed.

    Note: This class is NOT thread-safe. It is meant for the single-threaded
    reduction after all fetches have joined.
    """

    def __init__(self) -> None:
        self.duplicate_count = 0

    def merge(
        self,
        histories: Sequence[tuple[Account, Iterable[RawTransaction]]],
    ) -> list[RawTransaction]:
        """Merge account histories, dropping duplicate identifiers.

        Args:
            histories: (account, transactions) pairs in tracked-set order.

        Returns:
            Unique transactions sorted by (timestamp, identifier).
        """
        seen: dict[str, RawTransaction] = {}
        self.duplicate_count = 0

        for account, transactions in histories:
            for txn in transactions:
                kept = seen.get(txn.id)
                if kept is None:
                    seen[txn.id] = txn
                    continue

                self.duplicate_count += 1
                if txn.completeness > kept.completeness:
                    logger.debug(
                        f"Replacing copy of {txn.id} from {kept.source_account or '?'} "
                        f"with more complete copy from {account.short}"
                    )
                    seen[txn.id] = txn

        merged = sorted(seen.values(), key=lambda t: t.sort_key)
        logger.info(
            f"Merged {len(merged)} unique transactions, "
            f"dropped {self.duplicate_count} duplicates"
        )
        return merged


def merge_histories(
    histories: Sequence[tuple[Account, Iterable[RawTransaction]]],
) -> list[RawTransaction]:
    """Convenience function to merge and deduplicate account histories.

    Args:
        histories: (account, transactions) pairs in tracked-set order.

    Returns:
        Unique transactions sorted by (timestamp, identifier).
    """
    return Deduplicator().merge(histories)

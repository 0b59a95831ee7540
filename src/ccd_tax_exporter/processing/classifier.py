"""Transaction classifier: assigns tax categories relative to tracked accounts."""

from collections import defaultdict
from typing import Iterable, Optional

from ccd_tax_exporter.models.account import TrackedAccountSet
from ccd_tax_exporter.models.classification import Category, ClassifiedTransaction
from ccd_tax_exporter.models.transaction import Entry, RawTransaction, TransactionKind
from ccd_tax_exporter.utils.logging_config import get_logger

logger = get_logger(__name__)


class ClassificationInvariantViolation(Exception):
    """A transaction's participant data is structurally inconsistent."""

    def __init__(self, message: str, transaction_id: str):
        """Initialize ClassificationInvariantViolation.

        Args:
            message: What is inconsistent.
            transaction_id: Identifier of the offending transaction.
        """
        self.transaction_id = transaction_id
        super().__init__(f"{transaction_id}: {message}")


def _sorted_nets(nets: dict[str, int]) -> tuple[tuple[str, int], ...]:
    return tuple((asset, amount) for asset, amount in sorted(nets.items()) if amount != 0)


class Classifier:
    """Classifies transactions against the tracked account set.

    The classifier applies (in order):
    1. Every participant tracked -> INTERNAL_TRANSFER (excluded)
    2. Reward kind with a tracked beneficiary -> REWARD
    3. Fee paid by a tracked account -> extra FEE line next to the primary one
    4. One tracked account receives, none sends -> DEPOSIT
    5. One tracked account sends, none receives -> WITHDRAWAL
    6. Anything else -> OTHER

    Failed transactions are settled before rule 1: they keep their fee line
    but their primary line is excluded as OTHER with no net amount, and
    their entries are not checked. Structurally inconsistent transactions are
    logged, counted and classified as OTHER from their well-formed entries.

    Classification is a pure function of (transaction, tracked accounts);
    the only state kept is the warning counter.
    """

    def __init__(self, accounts: TrackedAccountSet):
        """Initialize classifier.

        Args:
            accounts: Tracked account set used for membership tests.
        """
        self.accounts = accounts
        self.warning_count = 0

    def classify_all(self, transactions: Iterable[RawTransaction]) -> list[ClassifiedTransaction]:
        """Classify an ordered sequence of transactions.

        Args:
            transactions: Transactions in chronological order.

        Returns:
            Classified lines in the same order; a transaction's primary line
            precedes its fee line.
        """
        lines: list[ClassifiedTransaction] = []
        for txn in transactions:
            lines.extend(self.classify(txn))

        counts: dict[Category, int] = defaultdict(int)
        for line in lines:
            counts[line.category] += 1
        summary = ", ".join(f"{cat.value}={n}" for cat, n in sorted(counts.items(), key=lambda c: c[0].value))
        logger.info(f"Classified {len(lines)} lines ({summary}), {self.warning_count} warnings")
        return lines

    def classify(self, txn: RawTransaction) -> list[ClassifiedTransaction]:
        """Classify a single transaction.

        Args:
            txn: Transaction to classify.

        Returns:
            The primary line, followed by a FEE line when a tracked account
            paid the fee.
        """
        warnings: tuple[str, ...] = ()
        entries = txn.entries
        degraded = False

        try:
            self._check_invariants(txn)
        except ClassificationInvariantViolation as e:
            self.warning_count += 1
            logger.warning(f"Classification anomaly, routing to other: {e}")
            warnings = (str(e),)
            entries = tuple(e for e in txn.entries if e.participant and e.amount is not None)
            degraded = True

        lines = [self._primary_line(txn, entries, degraded, warnings)]

        fee_line = self._fee_line(txn, warnings)
        if fee_line is not None:
            lines.append(fee_line)

        return lines

    def _check_invariants(self, txn: RawTransaction) -> None:
        """Raise if the transaction's participant data is inconsistent."""
        # Entries of a failed transaction are never used, only its fee
        if not txn.is_failed:
            if not txn.entries:
                raise ClassificationInvariantViolation(
                    "successful transaction has no entries", txn.id
                )
            for entry in txn.entries:
                if not entry.participant:
                    raise ClassificationInvariantViolation("entry without participant", txn.id)
                if entry.amount is None:
                    raise ClassificationInvariantViolation(
                        f"entry for {entry.participant} has no amount", txn.id
                    )

        if txn.fee is not None:
            if not txn.fee.payer:
                raise ClassificationInvariantViolation("fee without payer", txn.id)
            if txn.fee.amount is None:
                raise ClassificationInvariantViolation("fee without amount", txn.id)

    def _is_internal(self, txn: RawTransaction) -> bool:
        participants = txn.participants
        return bool(participants) and all(self.accounts.contains(p) for p in participants)

    def _tracked_nets(self, entries: tuple[Entry, ...]) -> dict[str, dict[str, int]]:
        """Signed net per tracked account per asset."""
        nets: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for entry in entries:
            if self.accounts.contains(entry.participant) and entry.amount is not None:
                nets[entry.participant][entry.asset] += entry.amount
        return nets

    def _primary_line(
        self,
        txn: RawTransaction,
        entries: tuple[Entry, ...],
        degraded: bool,
        warnings: tuple[str, ...],
    ) -> ClassifiedTransaction:
        """Apply the ordered rules to produce the transaction's primary line."""
        if txn.is_failed:
            # Nothing moved; only the fee line (if any) is taxable
            return ClassifiedTransaction(txn, Category.OTHER, excluded=True, warnings=warnings)

        if self._is_internal(txn):
            return ClassifiedTransaction(
                txn, Category.INTERNAL_TRANSFER, excluded=True, warnings=warnings
            )

        per_account = self._tracked_nets(entries)
        totals: dict[str, int] = defaultdict(int)
        for asset_nets in per_account.values():
            for asset, amount in asset_nets.items():
                totals[asset] += amount
        net_amounts = _sorted_nets(totals)

        category = Category.OTHER
        if not degraded:
            category = self._category_for(txn, per_account)

        excluded = not net_amounts
        if excluded:
            logger.debug(f"{txn.id}: no net effect on tracked accounts, not exported")

        return ClassifiedTransaction(
            txn, category, net_amounts=net_amounts, excluded=excluded, warnings=warnings
        )

    def _category_for(
        self,
        txn: RawTransaction,
        per_account: dict[str, dict[str, int]],
    ) -> Category:
        receivers = {a for a, nets in per_account.items() if any(v > 0 for v in nets.values())}
        senders = {a for a, nets in per_account.items() if any(v < 0 for v in nets.values())}

        if txn.kind is TransactionKind.REWARD and receivers and not senders:
            return Category.REWARD
        if len(receivers) == 1 and not senders:
            return Category.DEPOSIT
        if len(senders) == 1 and not receivers:
            return Category.WITHDRAWAL
        return Category.OTHER

    def _fee_line(
        self,
        txn: RawTransaction,
        warnings: tuple[str, ...],
    ) -> Optional[ClassifiedTransaction]:
        """Build the FEE line when a tracked account paid a fee."""
        fee = txn.fee
        if fee is None or fee.amount is None or not fee.amount:
            return None
        if not self.accounts.contains(fee.payer):
            return None

        return ClassifiedTransaction(
            txn,
            Category.FEE,
            net_amounts=((fee.asset, -abs(fee.amount)),),
            warnings=warnings,
        )


def classify_transactions(
    transactions: Iterable[RawTransaction],
    accounts: TrackedAccountSet,
) -> list[ClassifiedTransaction]:
    """Convenience function to classify transactions.

    Args:
        transactions: Transactions in chronological order.
        accounts: Tracked account set.

    Returns:
        Classified lines in the same order.
    """
    return Classifier(accounts).classify_all(transactions)

"""Tests for transaction classification rules."""

import pytest

from ccd_tax_exporter.models.account import TrackedAccountSet
from ccd_tax_exporter.models.classification import Category
from ccd_tax_exporter.models.transaction import (
    Entry,
    FeeEntry,
    RawTransaction,
    TransactionKind,
    TransactionStatus,
)
from ccd_tax_exporter.processing.classifier import Classifier, classify_transactions

from conftest import ADDR_A, ADDR_B, ADDR_C, at, make_reward, make_transfer


class TestInternalTransfers:
    """Tests for the internal-transfer exclusion rule."""

    def test_transfer_between_tracked_accounts(self, tracked_ab: TrackedAccountSet) -> None:
        """Test A->B with fee paid by A: excluded transfer plus one fee line."""
        txn = make_transfer("tx-1", ADDR_A, ADDR_B, 5_000_000, fee=2_500)

        lines = Classifier(tracked_ab).classify(txn)

        assert [line.category for line in lines] == [Category.INTERNAL_TRANSFER, Category.FEE]
        primary, fee = lines
        assert primary.excluded
        assert not primary.is_exportable
        assert fee.is_exportable
        assert fee.net_amounts == (("CCD", -2_500),)

    def test_single_account_operation_is_internal(self, tracked_a: TrackedAccountSet) -> None:
        """Test that an operation touching only the sender (e.g. delegation) is internal."""
        txn = RawTransaction(
            id="tx-deleg",
            timestamp=at(0),
            kind=TransactionKind.OTHER,
            entries=(Entry(ADDR_A, 0),),
            fee=FeeEntry(ADDR_A, 1_200),
        )

        lines = Classifier(tracked_a).classify(txn)

        assert lines[0].category is Category.INTERNAL_TRANSFER
        assert lines[1].category is Category.FEE

    def test_internal_without_fee(self, tracked_ab: TrackedAccountSet) -> None:
        """Test that an internal transfer with no fee yields a single excluded line."""
        txn = make_transfer("tx-1", ADDR_B, ADDR_A, 10)

        lines = Classifier(tracked_ab).classify(txn)

        assert len(lines) == 1
        assert lines[0].category is Category.INTERNAL_TRANSFER


class TestDepositsAndWithdrawals:
    """Tests for deposit/withdrawal rules."""

    def test_withdrawal_with_fee(self, tracked_a: TrackedAccountSet) -> None:
        """Test A->C: one withdrawal line plus one fee line."""
        txn = make_transfer("tx-1", ADDR_A, ADDR_C, 3_000_000, fee=1_000)

        lines = Classifier(tracked_a).classify(txn)

        assert [line.category for line in lines] == [Category.WITHDRAWAL, Category.FEE]
        assert lines[0].net_amounts == (("CCD", -3_000_000),)
        assert lines[1].net_amounts == (("CCD", -1_000),)

    def test_deposit_fee_not_attributed(self, tracked_a: TrackedAccountSet) -> None:
        """Test C->A: the fee was paid by C, so only a deposit line."""
        txn = make_transfer("tx-1", ADDR_C, ADDR_A, 3_000_000, fee=1_000)

        lines = Classifier(tracked_a).classify(txn)

        assert len(lines) == 1
        assert lines[0].category is Category.DEPOSIT
        assert lines[0].net_amount("CCD") == 3_000_000

    def test_conservation(self, tracked_a: TrackedAccountSet) -> None:
        """Test that the net amount equals the signed sum over tracked entries."""
        transactions = [
            make_transfer("tx-1", ADDR_A, ADDR_C, 700, fee=5, minutes=1),
            make_transfer("tx-2", ADDR_C, ADDR_A, 1_300, minutes=2),
        ]

        lines = classify_transactions(transactions, tracked_a)
        primary = [line for line in lines if not line.is_fee_line]

        for line, txn in zip(primary, transactions):
            tracked_sum = sum(e.amount for e in txn.entries if e.participant == ADDR_A)
            assert line.net_amount("CCD") == tracked_sum

    def test_zero_amount_transfer_is_excluded(self, tracked_a: TrackedAccountSet) -> None:
        """Test that a transfer with no net effect is not exported."""
        txn = make_transfer("tx-1", ADDR_A, ADDR_C, 0, fee=100)

        lines = Classifier(tracked_a).classify(txn)

        assert lines[0].excluded
        assert lines[1].category is Category.FEE


class TestRewardsAndOther:
    """Tests for reward and fallback rules."""

    def test_reward(self, tracked_a: TrackedAccountSet) -> None:
        """Test a reward credited to a tracked account."""
        lines = Classifier(tracked_a).classify(make_reward("blk-1", ADDR_A, 12_345))

        assert len(lines) == 1
        assert lines[0].category is Category.REWARD
        assert lines[0].net_amounts == (("CCD", 12_345),)

    def test_contract_call_with_two_tracked_senders(self, tracked_ab: TrackedAccountSet) -> None:
        """Test that several tracked accounts paying out falls back to other."""
        txn = RawTransaction(
            id="tx-multi",
            timestamp=at(0),
            kind=TransactionKind.CONTRACT_CALL,
            entries=(
                Entry(ADDR_A, -100),
                Entry(ADDR_B, -50),
                Entry("contract:<1,0>", 150),
            ),
        )

        lines = Classifier(tracked_ab).classify(txn)

        assert lines[0].category is Category.OTHER
        assert lines[0].net_amounts == (("CCD", -150),)

    def test_trade_between_assets(self, tracked_a: TrackedAccountSet) -> None:
        """Test a swap sending CCD and receiving a token."""
        txn = RawTransaction(
            id="tx-swap",
            timestamp=at(0),
            kind=TransactionKind.CONTRACT_CALL,
            entries=(
                Entry(ADDR_A, -1_000_000, "CCD"),
                Entry("contract:<9,0>", 1_000_000, "CCD"),
                Entry("contract:<9,0>", -42, "EUROe"),
                Entry(ADDR_A, 42, "EUROe"),
            ),
        )

        lines = Classifier(tracked_a).classify(txn)

        assert lines[0].category is Category.OTHER
        assert lines[0].net_amounts == (("CCD", -1_000_000), ("EUROe", 42))


class TestFailuresAndAnomalies:
    """Tests for failed transactions and malformed records."""

    def test_failed_transaction_only_fee(self, tracked_a: TrackedAccountSet) -> None:
        """Test that a rejected transfer still yields its fee, nothing else."""
        txn = make_transfer(
            "tx-1", ADDR_A, ADDR_C, 9_000_000, fee=1_500, status=TransactionStatus.FAILED
        )

        lines = Classifier(tracked_a).classify(txn)

        assert lines[0].excluded
        assert lines[0].net_amounts == ()
        assert lines[1].category is Category.FEE
        assert lines[1].net_amounts == (("CCD", -1_500),)

    def test_failed_entries_are_not_checked(self, tracked_ab: TrackedAccountSet) -> None:
        """Test that a rejected transfer without amounts is not counted as malformed."""
        txn = RawTransaction(
            id="tx-rejected",
            timestamp=at(0),
            kind=TransactionKind.TRANSFER,
            status=TransactionStatus.FAILED,
            entries=(Entry(ADDR_A, None), Entry("", None)),
            fee=FeeEntry(ADDR_A, 2_650),
        )
        classifier = Classifier(tracked_ab)

        lines = classifier.classify(txn)

        assert classifier.warning_count == 0
        assert [line.category for line in lines] == [Category.OTHER, Category.FEE]
        assert lines[0].excluded

    def test_missing_amount_routes_to_other(self, tracked_a: TrackedAccountSet) -> None:
        """Test that a malformed entry is reported and degraded, not fatal."""
        txn = RawTransaction(
            id="tx-bad",
            timestamp=at(0),
            kind=TransactionKind.TRANSFER,
            entries=(Entry(ADDR_C, None), Entry(ADDR_A, 500)),
        )
        classifier = Classifier(tracked_a)

        lines = classifier.classify(txn)

        assert classifier.warning_count == 1
        assert lines[0].category is Category.OTHER
        assert lines[0].net_amounts == (("CCD", 500),)
        assert "has no amount" in lines[0].warnings[0]

    def test_successful_without_entries(self, tracked_a: TrackedAccountSet) -> None:
        """Test that a successful transaction with no entries is counted as anomalous."""
        txn = RawTransaction(
            id="tx-empty",
            timestamp=at(0),
            kind=TransactionKind.OTHER,
            fee=FeeEntry(ADDR_A, 10),
        )
        classifier = Classifier(tracked_a)

        lines = classifier.classify(txn)

        assert classifier.warning_count == 1
        assert lines[0].excluded
        assert lines[1].category is Category.FEE

    @pytest.mark.parametrize(
        "fee",
        [FeeEntry(None, 100), FeeEntry(ADDR_A, None)],
        ids=["no-payer", "no-amount"],
    )
    def test_malformed_fee(self, tracked_a: TrackedAccountSet, fee: FeeEntry) -> None:
        """Test that a malformed fee produces no fee line."""
        txn = RawTransaction(
            id="tx-fee",
            timestamp=at(0),
            kind=TransactionKind.TRANSFER,
            entries=(Entry(ADDR_A, -100), Entry(ADDR_C, 100)),
            fee=fee,
        )
        classifier = Classifier(tracked_a)

        lines = classifier.classify(txn)

        assert classifier.warning_count == 1
        assert [line.category for line in lines] == [Category.OTHER]

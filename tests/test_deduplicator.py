"""Tests for cross-account merge and duplicate removal."""

from dataclasses import replace

from ccd_tax_exporter.models.account import Account
from ccd_tax_exporter.processing.deduplicator import Deduplicator, merge_histories

from conftest import ADDR_A, ADDR_B, ADDR_C, make_transfer


class TestDeduplicator:
    """Tests for Deduplicator."""

    def test_keeps_first_copy_when_equal(self) -> None:
        """Test that equally complete copies keep the earliest tracked account's."""
        txn = make_transfer("tx-1", ADDR_A, ADDR_B, 10, fee=1)
        from_a = replace(txn, source_account=ADDR_A)
        from_b = replace(txn, source_account=ADDR_B)

        merged = merge_histories([(Account(ADDR_A), [from_a]), (Account(ADDR_B), [from_b])])

        assert len(merged) == 1
        assert merged[0].source_account == ADDR_A

    def test_prefers_copy_with_fee(self) -> None:
        """Test that the sender's copy (which carries the fee) wins."""
        with_fee = make_transfer("tx-1", ADDR_B, ADDR_A, 10, fee=1)
        without_fee = replace(with_fee, fee=None)

        # A (receiver) is first in tracked order but its copy has no fee
        merged = merge_histories([
            (Account(ADDR_A), [without_fee]),
            (Account(ADDR_B), [with_fee]),
        ])

        assert merged[0].fee is not None
        assert merged[0].fee.amount == 1

    def test_counts_duplicates(self) -> None:
        """Test the duplicate counter."""
        shared = make_transfer("tx-1", ADDR_A, ADDR_B, 10)
        other = make_transfer("tx-2", ADDR_A, ADDR_C, 20, minutes=1)
        deduplicator = Deduplicator()

        merged = deduplicator.merge([
            (Account(ADDR_A), [shared, other]),
            (Account(ADDR_B), [shared]),
        ])

        assert [t.id for t in merged] == ["tx-1", "tx-2"]
        assert deduplicator.duplicate_count == 1

    def test_sorted_by_timestamp_then_id(self) -> None:
        """Test that output order ignores input order."""
        late = make_transfer("tx-a", ADDR_A, ADDR_C, 1, minutes=5)
        tie_z = make_transfer("tx-z", ADDR_A, ADDR_C, 1, minutes=1)
        tie_m = make_transfer("tx-m", ADDR_A, ADDR_C, 1, minutes=1)

        merged = merge_histories([(Account(ADDR_A), [late, tie_z, tie_m])])

        assert [t.id for t in merged] == ["tx-m", "tx-z", "tx-a"]

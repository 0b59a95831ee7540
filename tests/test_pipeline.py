"""End-to-end tests for the export pipeline with an in-memory source."""

import csv
from datetime import date
from pathlib import Path

import pytest

from ccd_tax_exporter.api.base import TransientFetchError
from ccd_tax_exporter.config import ConfigError, PipelineConfig
from ccd_tax_exporter.models.account import TrackedAccountSet
from ccd_tax_exporter.models.classification import Category
from ccd_tax_exporter.pipeline import run_pipeline
from ccd_tax_exporter.processing.retrieval import RetrievalFailed

from conftest import ADDR_A, ADDR_B, ADDR_C, InMemorySource, make_reward, make_transfer


def histories() -> dict[str, list]:
    internal = make_transfer("tx-ab", ADDR_A, ADDR_B, 5_000_000, fee=2_000, minutes=10)
    return {
        ADDR_A: [
            make_transfer("tx-ca", ADDR_C, ADDR_A, 10_000_000, fee=1_000, minutes=0),
            internal,
            make_transfer("tx-ac", ADDR_A, ADDR_C, 3_000_000, fee=1_500, minutes=60 * 24 * 40),
        ],
        ADDR_B: [
            internal,
            make_reward("blk-1", ADDR_B, 250_000, minutes=60 * 24 * 400),
        ],
    }


def read_rows(path: Path) -> list[dict[str, str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def make_config(tmp_path: Path, **overrides) -> PipelineConfig:
    values = {
        "accounts": TrackedAccountSet([ADDR_A, ADDR_B]),
        "output_path": tmp_path / "koinly.csv",
        "page_size": 2,
    }
    values.update(overrides)
    return PipelineConfig(**values)


class TestRunPipeline:
    """Tests for run_pipeline."""

    def test_internal_transfer_yields_only_fee_row(self, tmp_path: Path) -> None:
        """Test A->B between tracked accounts: a single fee row, nothing else."""
        result = run_pipeline(make_config(tmp_path), InMemorySource(histories()))

        rows = read_rows(result.output_path)
        internal_rows = [r for r in rows if r["TxHash"].startswith("tx-ab")]
        assert internal_rows == [
            {
                "Date": "2024-03-01 12:10:00 UTC",
                "Sent Amount": "0.002000",
                "Sent Currency": "CCD",
                "Received Amount": "",
                "Received Currency": "",
                "Fee Amount": "",
                "Fee Currency": "",
                "Net Worth Amount": "",
                "Net Worth Currency": "",
                "Label": "fee",
                "Description": "Transfer",
                "TxHash": "tx-ab-fee",
            }
        ]

    def test_full_export(self, tmp_path: Path) -> None:
        """Test the complete set of rows and statistics."""
        result = run_pipeline(make_config(tmp_path), InMemorySource(histories()))

        rows = read_rows(result.output_path)
        assert [r["TxHash"] for r in rows] == ["tx-ca", "tx-ab-fee", "tx-ac", "tx-ac-fee", "blk-1"]
        assert result.duplicates_dropped == 1
        assert len(result.transactions) == 4
        assert result.rows_by_label == {"received": 1, "fee": 2, "sent": 1, "reward": 1}
        assert [c.category for c in result.excluded] == [Category.INTERNAL_TRANSFER]

    def test_byte_identical_reruns(self, tmp_path: Path) -> None:
        """Test that the output does not depend on page size or concurrency."""
        first = run_pipeline(
            make_config(tmp_path, output_path=tmp_path / "a.csv", page_size=1, fetch_concurrency=1),
            InMemorySource(histories()),
        )
        second = run_pipeline(
            make_config(tmp_path, output_path=tmp_path / "b.csv", page_size=100, fetch_concurrency=4),
            InMemorySource(histories()),
        )

        assert first.output_path.read_bytes() == second.output_path.read_bytes()

    def test_retry_is_transparent(self, tmp_path: Path) -> None:
        """Test that one transient failure does not change the export."""
        clean = run_pipeline(
            make_config(tmp_path, output_path=tmp_path / "clean.csv"), InMemorySource(histories())
        )
        flaky_source = InMemorySource(
            histories(), failures={ADDR_B: [TransientFetchError("connection reset")]}
        )
        flaky = run_pipeline(
            make_config(tmp_path, output_path=tmp_path / "flaky.csv"),
            flaky_source,
            sleep=lambda _: None,
        )

        assert flaky.retries == 1
        assert flaky.output_path.read_bytes() == clean.output_path.read_bytes()

    def test_dry_run_writes_nothing(self, tmp_path: Path) -> None:
        result = run_pipeline(make_config(tmp_path, dry_run=True), InMemorySource(histories()))

        assert result.output_path is None
        assert len(result.rows) == 5
        assert list(tmp_path.iterdir()) == []

    def test_retrieval_failure_keeps_previous_export(self, tmp_path: Path) -> None:
        """Test that an aborted retrieval neither creates nor overwrites a file."""
        config = make_config(tmp_path, retry_attempts=2)
        config.output_path.write_text("last good export\n", encoding="utf-8")
        source = InMemorySource(
            histories(), failures={ADDR_A: [TransientFetchError("503")] * 2}
        )

        with pytest.raises(RetrievalFailed):
            run_pipeline(config, source, sleep=lambda _: None)

        assert config.output_path.read_text(encoding="utf-8") == "last good export\n"
        assert list(tmp_path.iterdir()) == [config.output_path]

    def test_date_window(self, tmp_path: Path) -> None:
        """Test that rows outside the reporting window are dropped."""
        config = make_config(tmp_path, start_date=date(2024, 4, 1), end_date=date(2024, 12, 31))

        result = run_pipeline(config, InMemorySource(histories()))

        assert [r["TxHash"] for r in read_rows(result.output_path)] == ["tx-ac", "tx-ac-fee"]

    def test_unknown_format_fails_before_fetching(self, tmp_path: Path) -> None:
        source = InMemorySource(histories())

        with pytest.raises(ConfigError):
            run_pipeline(make_config(tmp_path, output_format="unknown"), source)

        assert source.calls == []

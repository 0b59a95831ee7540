"""End-to-end export pipeline: retrieve, classify, export."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from ccd_tax_exporter.api.base import TransactionSource
from ccd_tax_exporter.config import PipelineConfig
from ccd_tax_exporter.models.account import Account
from ccd_tax_exporter.models.classification import ClassifiedTransaction
from ccd_tax_exporter.models.export_row import ExportRow
from ccd_tax_exporter.models.transaction import RawTransaction
from ccd_tax_exporter.output import get_exporter
from ccd_tax_exporter.processing.classifier import Classifier
from ccd_tax_exporter.processing.retrieval import RetrievalEngine
from ccd_tax_exporter.utils.date_utils import ensure_utc, is_date_in_range
from ccd_tax_exporter.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """Outcome of a completed pipeline run.

    Attributes:
        transactions: Unique raw transactions in chronological order.
        classified: Every classified line, excluded ones included.
        rows: Rows that were (or, in a dry run, would have been) written.
        output_path: File written, or None for a dry run.
        warning_count: Classification anomalies recovered from.
        pages_fetched: Pages fetched across all accounts.
        retries: Transient failures retried.
        duplicates_dropped: Cross-account duplicates removed.
        rows_by_label: Row count per label ("received"/"sent" when unlabeled).
    """

    transactions: list[RawTransaction]
    classified: list[ClassifiedTransaction]
    rows: list[ExportRow]
    output_path: Optional[Path] = None
    warning_count: int = 0
    pages_fetched: int = 0
    retries: int = 0
    duplicates_dropped: int = 0
    rows_by_label: dict[str, int] = field(default_factory=dict)

    @property
    def excluded(self) -> list[ClassifiedTransaction]:
        """Lines that were classified but not exported."""
        return [line for line in self.classified if not line.is_exportable]


def filter_by_date(
    lines: list[ClassifiedTransaction],
    config: PipelineConfig,
) -> list[ClassifiedTransaction]:
    """Keep lines whose block date (UTC) falls within the reporting window."""
    if config.start_date is None and config.end_date is None:
        return lines
    kept = [
        line
        for line in lines
        if is_date_in_range(
            ensure_utc(line.transaction.timestamp).date(), config.start_date, config.end_date
        )
    ]
    logger.info(
        f"Reporting window {config.start_date or '-'}..{config.end_date or '-'} "
        f"kept {len(kept)} of {len(lines)} lines"
    )
    return kept


def run_pipeline(
    config: PipelineConfig,
    source: TransactionSource,
    on_account_done: Optional[Callable[[Account, int], None]] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> PipelineResult:
    """Run retrieval, classification and export.

    Nothing is written unless retrieval completed for every account; the
    export itself is written atomically.

    Args:
        config: Immutable pipeline configuration.
        source: Paged transaction source.
        on_account_done: Optional progress callback per completed account.
        sleep: Optional sleep function for retry backoff.

    Returns:
        PipelineResult describing the run.

    Raises:
        RetrievalFailed: If any account history could not be fetched.
        ExportFailed: If the output file could not be written.
        ConfigError: If the output format is unknown.
    """
    exporter = get_exporter(config.output_format, config.assets, config.date_format)

    engine_kwargs = {} if sleep is None else {"sleep": sleep}
    engine = RetrievalEngine(
        source,
        page_size=config.page_size,
        retry_attempts=config.retry_attempts,
        retry_delay=config.retry_delay,
        fetch_concurrency=config.fetch_concurrency,
        **engine_kwargs,
    )

    with LogContext(logger, "retrieval", accounts=len(config.accounts), source=source.name):
        retrieval = engine.retrieve(config.accounts, on_account_done=on_account_done)

    with LogContext(logger, "classification", transactions=len(retrieval.transactions)):
        classifier = Classifier(config.accounts)
        classified = classifier.classify_all(retrieval.transactions)

    with LogContext(logger, "export", format=exporter.format_name, path=config.output_path):
        rows = exporter.build_rows(filter_by_date(classified, config))
        output_path = None
        if not config.dry_run:
            output_path = exporter.write(config.output_path, rows)

    rows_by_label: dict[str, int] = {}
    for row in rows:
        key = row.label or ("received" if row.received_amount else "sent")
        rows_by_label[key] = rows_by_label.get(key, 0) + 1

    return PipelineResult(
        transactions=retrieval.transactions,
        classified=classified,
        rows=rows,
        output_path=output_path,
        warning_count=classifier.warning_count,
        pages_fetched=retrieval.pages_fetched,
        retries=retrieval.retries,
        duplicates_dropped=retrieval.duplicates_dropped,
        rows_by_label=rows_by_label,
    )

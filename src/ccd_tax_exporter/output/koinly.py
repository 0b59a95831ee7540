"""Koinly universal CSV exporter."""

from dataclasses import replace

from ccd_tax_exporter.models.classification import Category, ClassifiedTransaction
from ccd_tax_exporter.models.export_row import ExportRow
from ccd_tax_exporter.output.base import BaseExporter
from ccd_tax_exporter.utils.date_utils import format_timestamp
from ccd_tax_exporter.utils.decimal_utils import format_units
from ccd_tax_exporter.utils.logging_config import get_logger
from ccd_tax_exporter.utils.sanitize import sanitize_for_csv

logger = get_logger(__name__)

KOINLY_HEADER = [
    "Date",
    "Sent Amount",
    "Sent Currency",
    "Received Amount",
    "Received Currency",
    "Fee Amount",
    "Fee Currency",
    "Net Worth Amount",
    "Net Worth Currency",
    "Label",
    "Description",
    "TxHash",
]

# Deposits and withdrawals carry no label; Koinly infers them from the columns
LABELS = {
    Category.DEPOSIT: "",
    Category.WITHDRAWAL: "",
    Category.FEE: "fee",
    Category.REWARD: "reward",
    Category.OTHER: "other",
}

FEE_SUFFIX = "-fee"


class KoinlyExporter(BaseExporter):
    """Maps classified lines onto Koinly's universal import format.

    Each line yields one row, except that a line touching several assets
    in the same direction is split into one row per asset (Koinly rows hold
    one sent and one received currency). An OTHER line that sends exactly
    one asset and receives exactly one asset stays a single two-sided row.

    TxHash values: the plain identifier for a single primary row,
    "<id>-fee" for a fee row, "<id>-1", "<id>-2", ... for split rows.
    """

    format_name = "koinly"

    @property
    def header(self) -> list[str]:
        return list(KOINLY_HEADER)

    def _amount(self, asset: str, amount: int) -> str:
        return format_units(amount, self.decimals_for(asset))

    def rows_for(self, line: ClassifiedTransaction) -> list[ExportRow]:
        txn = line.transaction
        date = format_timestamp(txn.timestamp, self.date_format)
        description = sanitize_for_csv(txn.description) or ""
        label = LABELS.get(line.category, "other")

        if line.is_fee_line:
            asset, amount = line.net_amounts[0]
            return [
                ExportRow(
                    date=date,
                    sent_amount=self._amount(asset, amount),
                    sent_currency=asset,
                    label=label,
                    description=description,
                    tx_hash=f"{txn.id}{FEE_SUFFIX}",
                )
            ]

        sent = [(a, v) for a, v in line.net_amounts if v < 0]
        received = [(a, v) for a, v in line.net_amounts if v > 0]

        if len(sent) <= 1 and len(received) <= 1:
            row = ExportRow(date=date, label=label, description=description, tx_hash=txn.id)
            if sent:
                asset, amount = sent[0]
                row = _with_sent(row, asset, self._amount(asset, amount))
            if received:
                asset, amount = received[0]
                row = _with_received(row, asset, self._amount(asset, amount))
            return [row]

        logger.debug(f"Splitting {txn.id} into {len(line.net_amounts)} rows, one per asset")
        rows = []
        for n, (asset, amount) in enumerate(line.net_amounts, start=1):
            row = ExportRow(
                date=date, label=label, description=description, tx_hash=f"{txn.id}-{n}"
            )
            if amount < 0:
                row = _with_sent(row, asset, self._amount(asset, amount))
            else:
                row = _with_received(row, asset, self._amount(asset, amount))
            rows.append(row)
        return rows


def _with_sent(row: ExportRow, asset: str, amount: str) -> ExportRow:
    return replace(row, sent_amount=amount, sent_currency=asset)


def _with_received(row: ExportRow, asset: str, amount: str) -> ExportRow:
    return replace(row, received_amount=amount, received_currency=asset)

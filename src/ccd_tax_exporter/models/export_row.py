"""Flattened export row model."""

from dataclasses import astuple, dataclass


@dataclass(frozen=True)
class ExportRow:
    """One line of the Koinly universal CSV.

    All fields are pre-rendered strings; absent values are empty strings.
    Field order matches the CSV column order.
    """

    date: str
    sent_amount: str = ""
    sent_currency: str = ""
    received_amount: str = ""
    received_currency: str = ""
    fee_amount: str = ""
    fee_currency: str = ""
    net_worth_amount: str = ""
    net_worth_currency: str = ""
    label: str = ""
    description: str = ""
    tx_hash: str = ""

    def as_list(self) -> list[str]:
        """Return the row as a list of cell values in column order."""
        return list(astuple(self))

"""Classification result models."""

from dataclasses import dataclass
from enum import Enum

from ccd_tax_exporter.models.transaction import RawTransaction


class Category(Enum):
    """Tax-relevant category assigned to a classified line."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    FEE = "fee"
    REWARD = "reward"
    INTERNAL_TRANSFER = "internal_transfer"  # Never exported
    OTHER = "other"


@dataclass(frozen=True)
class ClassifiedTransaction:
    """A RawTransaction annotated with a category and its net effect.

    One RawTransaction produces a primary line and, when a tracked account
    paid its fee, a second line with category FEE. Excluded lines stay in
    the intermediate model so callers can see what was dropped and why.

    Attributes:
        transaction: The source transaction.
        category: Assigned category.
        net_amounts: (asset, signed amount) pairs relative to the tracked
            account set, sorted by asset. Zero nets are omitted.
        excluded: Whether this line is left out of the export.
        warnings: Classification anomalies recovered from.
    """

    transaction: RawTransaction
    category: Category
    net_amounts: tuple[tuple[str, int], ...] = ()
    excluded: bool = False
    warnings: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.transaction.id

    @property
    def is_fee_line(self) -> bool:
        return self.category is Category.FEE

    @property
    def is_exportable(self) -> bool:
        return not self.excluded and self.category is not Category.INTERNAL_TRANSFER

    def net_amount(self, asset: str) -> int:
        """Signed net amount for one asset (0 if untouched)."""
        for symbol, amount in self.net_amounts:
            if symbol == asset:
                return amount
        return 0

    def __repr__(self) -> str:
        return (
            f"ClassifiedTransaction(id={self.id[:16]!r}..., "
            f"category={self.category.value}, net={dict(self.net_amounts)}, "
            f"excluded={self.excluded})"
        )

"""Remote transaction history sources."""

from ccd_tax_exporter.api.base import (
    FatalFetchError,
    FetchError,
    Page,
    TransactionSource,
    TransientFetchError,
)
from ccd_tax_exporter.api.wallet_proxy import WalletProxyClient, parse_transaction, resolve_base_url

__all__ = [
    "FetchError",
    "FatalFetchError",
    "TransientFetchError",
    "Page",
    "TransactionSource",
    "WalletProxyClient",
    "parse_transaction",
    "resolve_base_url",
]

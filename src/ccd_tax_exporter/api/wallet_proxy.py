"""Concordium wallet-proxy client.

Pulls an account's transaction history from the wallet-proxy
`/v1/accountTransactions/{account}` endpoint, one page at a time in
ascending order, and maps each item onto a RawTransaction.
"""

import os
from dataclasses import dataclass
from typing import Any, Optional

import requests

from ccd_tax_exporter.api.base import FatalFetchError, Page, TransactionSource, TransientFetchError
from ccd_tax_exporter.models.account import Account
from ccd_tax_exporter.models.transaction import (
    NATIVE_ASSET,
    Entry,
    FeeEntry,
    RawTransaction,
    TransactionKind,
    TransactionStatus,
)
from ccd_tax_exporter.utils.date_utils import timestamp_from_epoch
from ccd_tax_exporter.utils.decimal_utils import parse_units
from ccd_tax_exporter.utils.logging_config import get_logger

logger = get_logger(__name__)

NETWORK_URLS = {
    "mainnet": "https://wallet-proxy.mainnet.concordium.software",
    "testnet": "https://wallet-proxy.testnet.concordium.com",
}

API_KEY_ENV = "CCD_WALLET_PROXY_API_KEY"

TRANSFER_TYPES = {
    "transfer",
    "transferWithMemo",
    "transferWithSchedule",
    "transferWithScheduleAndMemo",
}
REWARD_TYPES = {
    "bakingReward",
    "blockReward",
    "finalizationReward",
    "paydayAccountReward",
    "paydayFoundationReward",
    "paydayPoolReward",
}
CONTRACT_TYPES = {"update", "initContract"}

# Balancing participant for minted rewards
PROTOCOL_PARTICIPANT = "protocol"


def resolve_base_url(network: str, base_url: Optional[str] = None) -> str:
    """Resolve the wallet-proxy base URL.

    Args:
        network: Network name ("mainnet" or "testnet").
        base_url: Explicit URL overriding the network default.

    Returns:
        Base URL without trailing slash.

    Raises:
        ValueError: If the network is unknown and no base URL is given.
    """
    if base_url:
        return base_url.rstrip("/")
    try:
        return NETWORK_URLS[network]
    except KeyError:
        raise ValueError(
            f"Unknown network '{network}', expected one of: {', '.join(sorted(NETWORK_URLS))}"
        ) from None


def map_kind(details_type: Optional[str], origin_type: Optional[str]) -> TransactionKind:
    """Map a wallet-proxy type tag onto the closed TransactionKind set."""
    if details_type in TRANSFER_TYPES:
        return TransactionKind.TRANSFER
    if details_type in REWARD_TYPES or origin_type == "reward":
        return TransactionKind.REWARD
    if details_type in CONTRACT_TYPES:
        return TransactionKind.CONTRACT_CALL
    return TransactionKind.OTHER


def _sender(origin: dict[str, Any], account: Account) -> Optional[str]:
    """Return the address that signed the transaction, if any."""
    origin_type = origin.get("type")
    if origin_type == "self":
        return account.address
    if origin_type == "account" and origin.get("address"):
        return str(origin["address"])
    return None


def _contract_participant(details: dict[str, Any]) -> str:
    contract = details.get("contractAddress")
    if isinstance(contract, dict) and "index" in contract:
        return f"contract:<{contract['index']},{contract.get('subindex', 0)}>"
    return "contract:unknown"


def _build_entries(
    kind: TransactionKind,
    details: dict[str, Any],
    item: dict[str, Any],
    account: Account,
    sender: Optional[str],
) -> tuple[Entry, ...]:
    """Build the participant entries for one wallet-proxy item."""
    if kind is TransactionKind.TRANSFER:
        amount = parse_units(details.get("transferAmount"))
        source = str(details.get("transferSource") or sender or "")
        destination = str(details.get("transferDestination") or "")
        return (
            Entry(source, -amount if amount is not None else None),
            Entry(destination, amount),
        )

    if kind is TransactionKind.REWARD:
        amount = parse_units(item.get("total", item.get("subtotal")))
        return (
            Entry(account.address, amount),
            Entry(PROTOCOL_PARTICIPANT, -amount if amount is not None else None),
        )

    subtotal = parse_units(item.get("subtotal", "0"))
    owner = sender or account.address
    entries = [Entry(owner, subtotal)]
    if kind is TransactionKind.CONTRACT_CALL and subtotal:
        entries.append(Entry(_contract_participant(details), -subtotal))
    return tuple(entries)


def parse_transaction(item: dict[str, Any], account: Account) -> RawTransaction:
    """Map one wallet-proxy history item onto a RawTransaction.

    Args:
        item: Decoded JSON object from the `transactions` list.
        account: Account whose history the item was fetched from.

    Returns:
        The mapped transaction.

    Raises:
        FatalFetchError: If identity or timing fields are missing.
    """
    if not isinstance(item, dict):
        raise FatalFetchError(f"Expected a transaction object, got {type(item).__name__}", account)

    for required in ("id", "blockTime", "blockHash"):
        if item.get(required) is None:
            raise FatalFetchError(f"Transaction item missing '{required}': {item!r:.200}", account)

    try:
        timestamp = timestamp_from_epoch(item["blockTime"])
    except ValueError as e:
        raise FatalFetchError(str(e), account) from e

    origin = item.get("origin") or {}
    details = item.get("details") or {}
    kind = map_kind(details.get("type"), origin.get("type"))
    status = (
        TransactionStatus.SUCCESS
        if details.get("outcome", "success") == "success"
        else TransactionStatus.FAILED
    )

    tx_hash = item.get("transactionHash")
    tx_id = str(tx_hash) if tx_hash else f"{item['blockHash']}-{item['id']}"

    sender = _sender(origin, account)
    fee = None
    cost = parse_units(item.get("cost"))
    if cost:
        fee = FeeEntry(payer=sender, amount=cost, asset=NATIVE_ASSET)

    description = str(details.get("description") or details.get("type") or "")
    if details.get("memo"):
        description = f"{description} (memo: {details['memo']})"

    # A rejected transaction moved nothing; only its cost was charged
    entries: tuple[Entry, ...] = ()
    if status is TransactionStatus.SUCCESS:
        entries = _build_entries(kind, details, item, account, sender)

    return RawTransaction(
        id=tx_id,
        timestamp=timestamp,
        kind=kind,
        status=status,
        entries=entries,
        fee=fee,
        block_hash=str(item["blockHash"]),
        description=description,
        source_account=account.address,
    )


@dataclass
class WalletProxyClient(TransactionSource):
    """Paged transaction source backed by the wallet-proxy REST API.

    Attributes:
        base_url: Wallet-proxy base URL.
        timeout: Per-request timeout in seconds.
        api_key: Optional bearer token (defaults to $CCD_WALLET_PROXY_API_KEY).
        session: HTTP session; created on first use if not given.
    """

    base_url: str = NETWORK_URLS["mainnet"]
    timeout: float = 30.0
    api_key: Optional[str] = None
    session: Optional[requests.Session] = None

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        if self.api_key is None:
            self.api_key = os.environ.get(API_KEY_ENV) or None
        if self.session is None:
            self.session = requests.Session()
            self.session.headers.update({"User-Agent": "ccd-tax-exporter"})

    def _get(self, path: str, params: dict[str, object], account: Account) -> dict[str, Any]:
        """Make a GET request and decode the JSON body.

        Raises:
            TransientFetchError: Network error, timeout, 429 or 5xx.
            FatalFetchError: Other 4xx or an undecodable body.
        """
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        url = f"{self.base_url}{path}"

        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientFetchError(f"Network error for {account.short}: {e}", account) from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientFetchError(f"Wallet-proxy returned {status} for {account.short}", account)
        if status >= 400:
            raise FatalFetchError(
                f"Wallet-proxy rejected request for {account.short} ({status}): {response.text[:200]}",
                account,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise FatalFetchError(f"Malformed JSON from wallet-proxy for {account.short}", account) from e

        if not isinstance(data, dict):
            raise FatalFetchError(f"Unexpected response shape for {account.short}", account)
        return data

    def fetch_page(
        self,
        account: Account,
        cursor: Optional[str],
        limit: int,
    ) -> Page:
        params: dict[str, object] = {"order": "ascending", "limit": limit}
        if cursor is not None:
            params["from"] = cursor

        data = self._get(f"/v1/accountTransactions/{account.address}", params, account)

        items = data.get("transactions")
        if not isinstance(items, list):
            raise FatalFetchError(f"Response for {account.short} has no 'transactions' list", account)

        transactions = tuple(parse_transaction(item, account) for item in items)
        next_cursor = str(items[-1]["id"]) if len(items) >= limit else None

        logger.debug(
            f"Fetched {len(transactions)} transactions for {account.short} "
            f"(cursor={cursor}, next={next_cursor})"
        )
        return Page(transactions=transactions, next_cursor=next_cursor)

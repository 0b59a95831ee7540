"""Configuration loading and validation for the CCD tax exporter."""

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

import yaml

from ccd_tax_exporter.models.account import Account, InvalidAccountError, TrackedAccountSet
from ccd_tax_exporter.models.transaction import NATIVE_ASSET
from ccd_tax_exporter.utils.date_utils import DEFAULT_EXPORT_DATE_FORMAT
from ccd_tax_exporter.utils.logging_config import get_logger

logger = get_logger(__name__)


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


DEFAULT_ASSETS = {NATIVE_ASSET: 6}
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
DEFAULT_FORMAT = "koinly"


@dataclass
class ApiConfig:
    """Configuration for the remote transaction API.

    Attributes:
        network: Network name used to pick the default wallet-proxy URL.
        base_url: Explicit wallet-proxy URL (overrides network).
        page_size: Transactions requested per page.
        timeout: Per-request timeout in seconds.
        retry_attempts: Total attempts per page on transient errors.
        retry_delay: Initial backoff delay in seconds (doubles per retry).
        fetch_concurrency: Number of accounts fetched in parallel.
    """

    network: str = "mainnet"
    base_url: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    fetch_concurrency: int = 2

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "ApiConfig":
        """Create from dictionary."""
        try:
            return cls(
                network=str(data.get("network", "mainnet")),
                base_url=str(data["base_url"]) if data.get("base_url") else None,
                page_size=int(data.get("page_size", DEFAULT_PAGE_SIZE)),  # type: ignore[arg-type]
                timeout=float(data.get("timeout", 30.0)),  # type: ignore[arg-type]
                retry_attempts=int(data.get("retry_attempts", 3)),  # type: ignore[arg-type]
                retry_delay=float(data.get("retry_delay", 1.0)),  # type: ignore[arg-type]
                fetch_concurrency=int(data.get("fetch_concurrency", 2)),  # type: ignore[arg-type]
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid 'api' settings: {e}") from e


@dataclass
class OutputConfig:
    """Configuration for output generation.

    Attributes:
        format: Export format name.
        date_format: strftime format for the Date column.
    """

    format: str = DEFAULT_FORMAT
    date_format: str = DEFAULT_EXPORT_DATE_FORMAT

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "OutputConfig":
        """Create from dictionary."""
        return cls(
            format=str(data.get("format", DEFAULT_FORMAT)),
            date_format=str(data.get("date_format", DEFAULT_EXPORT_DATE_FORMAT)),
        )


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file.
    """

    level: str = "INFO"
    file: str = "ccd_tax_exporter.log"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(
            level=str(data.get("level", "INFO")),
            file=str(data.get("file", "ccd_tax_exporter.log")),
        )


@dataclass
class Settings:
    """Settings loaded from settings.yaml, before CLI overrides.

    Attributes:
        api: Remote API configuration.
        accounts: Account addresses listed in the settings file.
        assets: Asset symbol to native decimal places.
        output: Output configuration.
        logging: Logging configuration.
    """

    api: ApiConfig = field(default_factory=ApiConfig)
    accounts: list[str] = field(default_factory=list)
    assets: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_ASSETS))
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration handed to the pipeline entry point.

    Attributes:
        accounts: Tracked account set.
        output_path: Destination file of the export.
        output_format: Registered exporter name.
        page_size: Transactions requested per page.
        retry_attempts: Total attempts per page on transient errors.
        retry_delay: Initial backoff delay in seconds.
        fetch_concurrency: Number of accounts fetched in parallel.
        assets: Asset symbol to native decimal places.
        start_date: First exported day (inclusive, UTC), or None.
        end_date: Last exported day (inclusive, UTC), or None.
        date_format: strftime format for the Date column.
        dry_run: Run every stage but skip writing the file.
    """

    accounts: TrackedAccountSet
    output_path: Path
    output_format: str = DEFAULT_FORMAT
    page_size: int = DEFAULT_PAGE_SIZE
    retry_attempts: int = 3
    retry_delay: float = 1.0
    fetch_concurrency: int = 2
    assets: Mapping[str, int] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_ASSETS)))
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    date_format: str = DEFAULT_EXPORT_DATE_FORMAT
    dry_run: bool = False

    def __post_init__(self) -> None:
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ConfigError(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {self.page_size}")
        if self.retry_attempts < 1:
            raise ConfigError(f"retry_attempts must be at least 1, got {self.retry_attempts}")
        if self.retry_delay < 0:
            raise ConfigError(f"retry_delay must not be negative, got {self.retry_delay}")
        if self.fetch_concurrency < 1:
            raise ConfigError(f"fetch_concurrency must be at least 1, got {self.fetch_concurrency}")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ConfigError(f"start_date {self.start_date} is after end_date {self.end_date}")
        if not isinstance(self.assets, MappingProxyType):
            object.__setattr__(self, "assets", MappingProxyType(dict(self.assets)))


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If file is invalid YAML or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(content).__name__}")
    return content


def _parse_assets(data: object) -> dict[str, int]:
    if not isinstance(data, dict):
        raise ConfigError(f"'assets' must be a mapping, got {type(data).__name__}")

    assets = dict(DEFAULT_ASSETS)
    for symbol, decimals in data.items():
        try:
            places = int(decimals)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid decimals for asset {symbol}: {decimals!r}") from e
        if places < 0:
            raise ConfigError(f"Decimals for asset {symbol} must not be negative")
        assets[str(symbol)] = places
    return assets


def _parse_account_list(data: object, source: str) -> list[str]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigError(f"'accounts' in {source} must be a list, got {type(data).__name__}")
    return [str(a) for a in data]


def load_settings(path: Path) -> Settings:
    """Load settings from settings.yaml.

    Args:
        path: Path to settings.yaml.

    Returns:
        Parsed Settings.
    """
    data = load_yaml_file(path)
    settings = Settings()

    if "api" in data:
        settings.api = ApiConfig.from_dict(data["api"] or {})  # type: ignore[arg-type]
    if "accounts" in data:
        settings.accounts = _parse_account_list(data["accounts"], str(path))
    if "assets" in data:
        settings.assets = _parse_assets(data["assets"] or {})
    if "output" in data:
        settings.output = OutputConfig.from_dict(data["output"] or {})  # type: ignore[arg-type]
    if "logging" in data:
        settings.logging = LoggingConfig.from_dict(data["logging"] or {})  # type: ignore[arg-type]

    return settings


def load_accounts_file(path: Path) -> list[str]:
    """Load tracked account addresses from a YAML file.

    Accepts either a plain list of addresses or a mapping with an
    `accounts` list.

    Args:
        path: Path to the accounts file.

    Returns:
        List of raw address strings.
    """
    data: object
    if not path.exists():
        raise FileNotFoundError(f"Accounts file not found: {path}")
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("accounts")
    return _parse_account_list(data, str(path))


def load_config(settings_path: Optional[Path] = None, config_dir: Optional[Path] = None) -> Settings:
    """Load settings, falling back to defaults when the file is absent.

    Args:
        settings_path: Path to settings.yaml (or None to use default).
        config_dir: Base config directory (default: ./config).

    Returns:
        Settings object.
    """
    if config_dir is None:
        config_dir = Path("config")
    if settings_path is None:
        settings_path = config_dir / "settings.yaml"

    if settings_path.exists():
        settings = load_settings(settings_path)
        logger.info(f"Loaded settings from {settings_path}")
    else:
        settings = Settings()
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    return settings


def parse_accounts(addresses: list[str]) -> TrackedAccountSet:
    """Validate raw addresses and build the tracked account set.

    Args:
        addresses: Raw address strings (duplicates allowed).

    Returns:
        TrackedAccountSet with duplicates collapsed.

    Raises:
        ConfigError: If an address is invalid or none are given.
    """
    accounts: list[Account] = []
    for raw in addresses:
        try:
            accounts.append(Account.parse(raw))
        except InvalidAccountError as e:
            raise ConfigError(str(e)) from e

    if not accounts:
        raise ConfigError("No accounts to track: pass --account or list them in the settings file")

    tracked = TrackedAccountSet(accounts)
    if len(tracked) < len(accounts):
        logger.info(f"Collapsed {len(accounts) - len(tracked)} duplicate account(s)")
    return tracked

"""Command-line interface for the CCD tax exporter."""

import argparse
import sys
from datetime import date, datetime
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ccd_tax_exporter import __version__
from ccd_tax_exporter.config import (
    ConfigError,
    PipelineConfig,
    Settings,
    load_accounts_file,
    load_config,
    parse_accounts,
)
from ccd_tax_exporter.models.account import Account
from ccd_tax_exporter.models.classification import Category
from ccd_tax_exporter.pipeline import PipelineResult, run_pipeline
from ccd_tax_exporter.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)


def parse_date_arg(value: str) -> date:
    """Parse a YYYY-MM-DD command-line date."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from None


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="ccd-tax-export",
        description=(
            "Export the transaction history of Concordium accounts "
            "as a CSV file for tax reporting tools"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -a 3kBx2h5Y2veb4hZgAJWPrr8RyQESKm5TjzF3ti1QQ4VSYLwK1G
  %(prog)s -a ADDR1 -a ADDR2 -o koinly.csv --start-date 2024-01-01 --end-date 2024-12-31
  %(prog)s --accounts-file my_accounts.yaml --network testnet -v
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Accounts
    parser.add_argument(
        "-a", "--account",
        dest="accounts",
        action="append",
        default=[],
        metavar="ADDRESS",
        help="Account address to track (repeat for several accounts)",
    )

    parser.add_argument(
        "--accounts-file",
        type=Path,
        default=None,
        help="YAML file listing account addresses to track",
    )

    # Output
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output file path (default: export/koinly_YYYYMMDD_HHMMSS.csv)",
    )

    parser.add_argument(
        "--format",
        dest="output_format",
        default=None,
        help="Output format (default: koinly)",
    )

    # Configuration
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings.yaml (default: config/settings.yaml)",
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path("config"),
        help="Base config directory (default: ./config)",
    )

    # API options
    api_group = parser.add_argument_group("Wallet proxy")
    api_group.add_argument(
        "--network",
        choices=["mainnet", "testnet"],
        default=None,
        help="Concordium network (default: mainnet)",
    )
    api_group.add_argument(
        "--base-url",
        default=None,
        help="Wallet-proxy base URL (overrides --network)",
    )
    api_group.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Transactions requested per page (default: 100)",
    )
    api_group.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Accounts fetched in parallel (default: 2)",
    )
    api_group.add_argument(
        "--retry-attempts",
        type=int,
        default=None,
        help="Attempts per page on network errors (default: 3)",
    )

    # Reporting window
    parser.add_argument(
        "--start-date",
        type=parse_date_arg,
        default=None,
        help="First day to export, UTC (YYYY-MM-DD)",
    )

    parser.add_argument(
        "--end-date",
        type=parse_date_arg,
        default=None,
        help="Last day to export, UTC (YYYY-MM-DD)",
    )

    # Verbosity
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v, -vv)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and classify but do not write the output file",
    )

    return parser


def get_log_level(verbosity: int) -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return "WARNING"


def generate_default_output_path(output_format: str = "koinly") -> Path:
    """Generate default output path with timestamp.

    Returns:
        Path with format export/<format>_YYYYMMDD_HHMMSS.csv
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return Path(f"export/{output_format}_{timestamp}.csv")


def build_pipeline_config(args: argparse.Namespace, settings: Settings) -> PipelineConfig:
    """Merge settings and command-line overrides into a PipelineConfig.

    Args:
        args: Parsed command-line arguments.
        settings: Settings loaded from file.

    Returns:
        Frozen pipeline configuration.

    Raises:
        ConfigError: If the merged configuration is invalid.
        FileNotFoundError: If the accounts file does not exist.
    """
    addresses = list(settings.accounts)
    if args.accounts_file:
        addresses.extend(load_accounts_file(args.accounts_file))
    addresses.extend(args.accounts)

    api = settings.api
    output_format = args.output_format or settings.output.format
    output_path = args.output or generate_default_output_path(output_format)

    return PipelineConfig(
        accounts=parse_accounts(addresses),
        output_path=output_path,
        output_format=output_format,
        page_size=args.limit if args.limit is not None else api.page_size,
        retry_attempts=(
            args.retry_attempts if args.retry_attempts is not None else api.retry_attempts
        ),
        retry_delay=api.retry_delay,
        fetch_concurrency=args.concurrency if args.concurrency is not None else api.fetch_concurrency,
        assets=settings.assets,
        start_date=args.start_date,
        end_date=args.end_date,
        date_format=settings.output.date_format,
        dry_run=args.dry_run,
    )


def create_progress() -> Progress:
    """Create a progress display.

    Returns:
        Rich Progress instance.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
    )


def display_summary(result: PipelineResult) -> None:
    """Display a summary of the pipeline run.

    Args:
        result: PipelineResult of the completed run.
    """
    classified = result.classified
    internal = sum(1 for c in classified if c.category is Category.INTERNAL_TRANSFER)

    console.print("\n[bold]Export Summary[/bold]")
    console.print(f"  Pages fetched: {result.pages_fetched}")
    console.print(f"  Retries: {result.retries}")
    console.print(f"  Unique transactions: {len(result.transactions)}")
    console.print(f"  Duplicates dropped: {result.duplicates_dropped}")
    console.print(f"  Internal transfers excluded: {internal}")
    console.print(f"  Rows exported: {len(result.rows)}")

    if result.rows_by_label:
        table = Table(title="Rows by label")
        table.add_column("Label")
        table.add_column("Rows", justify="right")
        for label, count in sorted(result.rows_by_label.items()):
            table.add_row(label, str(count))
        console.print(table)

    if result.warning_count:
        console.print(
            f"\n[yellow]{result.warning_count} malformed transaction(s) "
            "were exported as 'other' - see the log for details.[/yellow]"
        )


def main() -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args()

    # Load configuration
    try:
        settings = load_config(settings_path=args.config, config_dir=args.config_dir)
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    # Set up logging (verbosity flags take precedence over the settings file)
    log_level = get_log_level(args.verbose) if args.verbose else settings.logging.level
    setup_logging(level=log_level, log_file=settings.logging.file, console_output=args.verbose > 0)

    try:
        config = build_pipeline_config(args, settings)
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        parser.print_usage()
        return 1

    # Import processing and output modules
    from ccd_tax_exporter.api import WalletProxyClient, resolve_base_url
    from ccd_tax_exporter.output import ExportFailed
    from ccd_tax_exporter.processing import RetrievalFailed

    try:
        base_url = resolve_base_url(args.network or settings.api.network, args.base_url or settings.api.base_url)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    source = WalletProxyClient(base_url=base_url, timeout=settings.api.timeout)

    console.print(f"[bold]CCD Tax Exporter v{__version__}[/bold]\n")
    console.print(f"Wallet proxy: {base_url}")
    console.print(f"Tracked accounts: {len(config.accounts)}")
    console.print(f"Output file: {config.output_path} ({config.output_format})")
    if config.start_date or config.end_date:
        console.print(f"Date range: {config.start_date or 'start'} to {config.end_date or 'present'}")

    try:
        with create_progress() as progress:
            task = progress.add_task("Fetching account histories...", total=len(config.accounts))

            def on_account_done(account: Account, count: int) -> None:
                progress.console.print(f"  {account.short}: {count} transactions")
                progress.update(task, advance=1)

            result = run_pipeline(config, source, on_account_done=on_account_done)
    except RetrievalFailed as e:
        console.print("[red]Error: could not retrieve the complete history, no file written.[/red]")
        for address, message in sorted(e.failures.items()):
            console.print(f"  - {address}: {message}")
        return 1
    except ExportFailed as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if result.output_path is not None:
        console.print(f"\n[green]Export written to {result.output_path}[/green]")
    else:
        console.print("\n[yellow]Dry run - no output generated[/yellow]")

    display_summary(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())

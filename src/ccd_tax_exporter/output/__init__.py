"""Export formats for classified transactions."""

from typing import Mapping

from ccd_tax_exporter.config import ConfigError
from ccd_tax_exporter.output.base import BaseExporter, ExportFailed
from ccd_tax_exporter.output.koinly import KoinlyExporter

EXPORTERS: dict[str, type[BaseExporter]] = {
    KoinlyExporter.format_name: KoinlyExporter,
}


def get_exporter(name: str, assets: Mapping[str, int], date_format: str) -> BaseExporter:
    """Instantiate a registered exporter by format name.

    Args:
        name: Format name (case-insensitive).
        assets: Asset symbol to native decimal places.
        date_format: strftime format for date cells.

    Returns:
        Exporter instance.

    Raises:
        ConfigError: If no exporter is registered under `name`.
    """
    exporter_cls = EXPORTERS.get(name.lower())
    if exporter_cls is None:
        raise ConfigError(
            f"Unknown output format '{name}', expected one of: {', '.join(sorted(EXPORTERS))}"
        )
    return exporter_cls(assets=assets, date_format=date_format)


__all__ = ["BaseExporter", "ExportFailed", "KoinlyExporter", "EXPORTERS", "get_exporter"]

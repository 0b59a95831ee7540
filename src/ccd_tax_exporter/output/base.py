"""Base class for tabular exporters with atomic file output."""

import csv
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Mapping, Optional

from ccd_tax_exporter.models.classification import ClassifiedTransaction
from ccd_tax_exporter.models.export_row import ExportRow
from ccd_tax_exporter.utils.logging_config import get_logger

logger = get_logger(__name__)


class ExportFailed(Exception):
    """Exception raised when the export file cannot be written."""

    def __init__(self, message: str, output_path: Optional[Path] = None):
        """Initialize ExportFailed.

        Args:
            message: Error message.
            output_path: Optional path that was being written.
        """
        self.output_path = output_path
        super().__init__(message)


class BaseExporter(ABC):
    """Abstract base class for export formats.

    Subclasses must implement:
    - header: Column names of the output file
    - rows_for(): Map one classified line to export rows
    """

    format_name: str = ""

    def __init__(self, assets: Mapping[str, int], date_format: str):
        """Initialize exporter.

        Args:
            assets: Asset symbol to native decimal places.
            date_format: strftime format for date cells.
        """
        self.assets = assets
        self.date_format = date_format
        self._warned_assets: set[str] = set()

    @property
    @abstractmethod
    def header(self) -> list[str]:
        """Return the column names in output order."""
        pass

    @abstractmethod
    def rows_for(self, line: ClassifiedTransaction) -> list[ExportRow]:
        """Map one exportable classified line to its rows.

        Args:
            line: A non-excluded classified line.

        Returns:
            Rows for this line, in output order.
        """
        pass

    def decimals_for(self, asset: str) -> int:
        """Native decimal places of an asset, 0 (with a warning) if unknown."""
        decimals = self.assets.get(asset)
        if decimals is None:
            if asset not in self._warned_assets:
                self._warned_assets.add(asset)
                logger.warning(f"No decimals configured for asset {asset}, rendering whole units")
            return 0
        return decimals

    def build_rows(self, lines: Iterable[ClassifiedTransaction]) -> list[ExportRow]:
        """Map classified lines to export rows, skipping excluded lines.

        Args:
            lines: Classified lines in chronological order.

        Returns:
            Export rows in the same order.
        """
        rows: list[ExportRow] = []
        skipped = 0
        for line in lines:
            if not line.is_exportable:
                skipped += 1
                continue
            rows.extend(self.rows_for(line))

        logger.info(f"Built {len(rows)} {self.format_name} rows ({skipped} lines excluded)")
        return rows

    def write(self, output_path: Path, rows: Iterable[ExportRow]) -> Path:
        """Write rows to `output_path` atomically.

        Rows go to a temporary file next to the destination, which is renamed
        over the destination only once every row has been written. On failure
        the temporary file is removed and any previous export is left intact.

        Args:
            output_path: Destination file.
            rows: Rows to write.

        Returns:
            The destination path.

        Raises:
            ExportFailed: If the file cannot be written.
        """
        tmp_path: Optional[Path] = None
        count = 0
        written = False
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
            )
            tmp_path = Path(tmp_name)

            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(self.header)
                for row in rows:
                    writer.writerow(row.as_list())
                    count += 1

            os.replace(tmp_path, output_path)
            written = True
        except (OSError, csv.Error, ValueError) as e:
            # ValueError covers UnicodeEncodeError from unencodable text
            raise ExportFailed(f"Could not write {output_path}: {e}", output_path) from e
        finally:
            if not written and tmp_path is not None:
                tmp_path.unlink(missing_ok=True)

        logger.info(f"Exported {count} rows to {output_path}")
        return output_path

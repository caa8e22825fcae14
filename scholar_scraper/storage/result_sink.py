"""Streaming CSV writer for scraped records."""

import csv
import os
import logging
from pathlib import Path
from typing import List, Optional, TextIO

from ..errors import WriteError
from ..models import Record

logger = logging.getLogger(__name__)


class ResultSink:
    """Append-only CSV writer that flushes every row to disk"""

    def __init__(self, filepath: Path):
        self.filepath = Path(filepath)
        self._file: Optional[TextIO] = None
        self._writer = None
        self._count = 0

    def __enter__(self) -> "ResultSink":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def open(self):
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.filepath, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)
        logger.debug(f"Opened output file {self.filepath}")

    def close(self):
        if self._file:
            self._file.close()
            self._file = None
            self._writer = None

    def write_header(self, columns: Optional[List[str]] = None) -> None:
        """Write the header row, Record.csv_headers() by default."""
        self._write_row(columns if columns is not None else Record.csv_headers())

    def write_record(self, record: Record) -> None:
        """Write a single record and flush it to disk.

        Raises:
            WriteError: the row could not be written
        """
        self._write_row(record.to_csv_row())
        self._count += 1

    def _write_row(self, row: List[str]) -> None:
        if self._writer is None:
            raise RuntimeError("Sink not open. Use with context manager.")
        try:
            self._writer.writerow(row)
            self._file.flush()
            os.fsync(self._file.fileno())
        except (OSError, csv.Error) as e:
            raise WriteError(f"Could not write row to {self.filepath}: {e}") from e

    @property
    def count(self) -> int:
        """Return number of records written."""
        return self._count

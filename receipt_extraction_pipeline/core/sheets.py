"""
Spreadsheet sinks for formatted receipt rows.
"""

import csv
import logging
from pathlib import Path
from typing import List, Protocol, Sequence

from .normalizer import SHEET_HEADERS, Cell

logger = logging.getLogger(__name__)


class SheetSink(Protocol):
    def append_row(self, row: Sequence[Cell]) -> None: ...


class CsvSheetSink:
    """Appends receipt rows to a CSV file that starts with the fixed header row."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _is_empty(self) -> bool:
        return not self.path.exists() or self.path.stat().st_size == 0

    def initialize(self) -> bool:
        """
        Write the header row if the file is missing or empty.

        Returns:
            True if headers were written
        """
        if not self._is_empty():
            logger.debug("Sheet %s already has headers, skipping initialization", self.path)
            return False
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(SHEET_HEADERS)
        logger.info("Initialized sheet %s with headers", self.path)
        return True

    def append_rows(self, rows: Sequence[Sequence[Cell]]) -> None:
        if not rows:
            return
        self.initialize()
        with self.path.open("a", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            for row in rows:
                if len(row) != len(SHEET_HEADERS):
                    raise ValueError(f"expected {len(SHEET_HEADERS)} cells, got {len(row)}")
                w.writerow(row)
        logger.info("Added %d receipt row(s) to %s", len(rows), self.path)

    def append_row(self, row: Sequence[Cell]) -> None:
        self.append_rows([row])

    def read_recent(self, limit: int) -> List[List[str]]:
        """Return up to limit data rows (header excluded), oldest first."""
        if self._is_empty():
            return []
        with self.path.open("r", newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        return rows[1:limit + 1]

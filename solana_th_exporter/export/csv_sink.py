"""
CSV sink for TransferRecords.

One header row, then one row per record in arrival order. The file is
overwritten each run and flushed after every row so an aborted run keeps
what was already written.
"""

from __future__ import annotations

import csv
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import IO, Iterable, Iterator

from solana_th_exporter.classifier.models import (
    TransferRecord,
    format_amount,
    format_date,
    parse_date,
)
from solana_th_exporter.core.exceptions import OutputWriteError
from solana_th_exporter.exporter_logging import get_logger

logger = get_logger(__name__)

CSV_COLUMNS = [
    "Date",
    "Tx Hash",
    "Source",
    "Destination",
    "Sent Amount",
    "Sent Currency",
    "Received Amount",
    "Received Currency",
    "Fee Amount",
    "Fee Currency",
]


def record_to_row(record: TransferRecord) -> dict[str, str]:
    """Build one CSV row from a record; amounts as plain decimal strings."""
    return {
        "Date": format_date(record.timestamp),
        "Tx Hash": record.tx_hash,
        "Source": record.source,
        "Destination": record.destination,
        "Sent Amount": format_amount(record.sent_amount),
        "Sent Currency": record.sent_currency,
        "Received Amount": format_amount(record.received_amount),
        "Received Currency": record.received_currency,
        "Fee Amount": format_amount(record.fee_amount),
        "Fee Currency": record.fee_currency,
    }


def row_to_record(row: dict[str, str]) -> TransferRecord:
    """Inverse of record_to_row. Raises ValueError on a malformed row."""
    try:
        return TransferRecord(
            timestamp=parse_date(row["Date"]),
            tx_hash=row["Tx Hash"],
            source=row["Source"],
            destination=row["Destination"],
            sent_amount=Decimal(row["Sent Amount"]),
            sent_currency=row["Sent Currency"],
            received_amount=Decimal(row["Received Amount"]),
            received_currency=row["Received Currency"],
            fee_amount=Decimal(row["Fee Amount"]),
            fee_currency=row["Fee Currency"],
        )
    except (KeyError, InvalidOperation) as e:
        raise ValueError(f"invalid transactions row: {e}") from e


class CsvRecordSink:
    """
    Context manager writing TransferRecords to a CSV file.

        with CsvRecordSink(path) as sink:
            for record in records:
                sink.write(record)

    Raises OutputWriteError when the file cannot be opened or written.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.rows_written = 0
        self._fh: IO[str] | None = None
        self._writer: csv.DictWriter | None = None

    def open(self) -> "CsvRecordSink":
        try:
            if self.path.parent and not self.path.parent.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "w", newline="", encoding="utf-8")
            self._writer = csv.DictWriter(self._fh, fieldnames=CSV_COLUMNS)
            self._writer.writeheader()
            self._fh.flush()
        except OSError as e:
            self.close()
            raise OutputWriteError(str(self.path), e.strerror or str(e)) from e
        logger.debug("sink_opened", path=str(self.path))
        return self

    def write(self, record: TransferRecord) -> None:
        if self._writer is None or self._fh is None:
            raise OutputWriteError(str(self.path), "sink is not open")
        try:
            self._writer.writerow(record_to_row(record))
            self._fh.flush()
        except OSError as e:
            raise OutputWriteError(str(self.path), e.strerror or str(e)) from e
        self.rows_written += 1

    def write_all(self, records: Iterable[TransferRecord]) -> int:
        for record in records:
            self.write(record)
        return self.rows_written

    def close(self) -> None:
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError as e:
                raise OutputWriteError(str(self.path), e.strerror or str(e)) from e
            finally:
                self._fh = None
                self._writer = None

    def __enter__(self) -> "CsvRecordSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def save_records_to_csv(records: Iterable[TransferRecord], path: str | Path) -> int:
    """Write all records to path (overwriting); return row count."""
    with CsvRecordSink(path) as sink:
        count = sink.write_all(records)
    logger.info("transactions_saved", path=str(path), rows=count)
    return count


def read_records(path: str | Path) -> Iterator[TransferRecord]:
    """Parse a file written by CsvRecordSink back into TransferRecords."""
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            yield row_to_record(row)

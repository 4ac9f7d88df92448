"""
Record export: CSV serialization of TransferRecords.
"""

from solana_th_exporter.export.csv_sink import (
    CSV_COLUMNS,
    CsvRecordSink,
    read_records,
    record_to_row,
    save_records_to_csv,
)

__all__ = [
    "CSV_COLUMNS",
    "CsvRecordSink",
    "read_records",
    "record_to_row",
    "save_records_to_csv",
]

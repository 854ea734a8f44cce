"""Tabular exports of bookkeeping records."""

from .transactions_export import (
    EXPORT_FORMATS,
    TRANSACTION_COLUMNS,
    TransactionExporter,
    export_filename,
)

__all__ = [
    "EXPORT_FORMATS",
    "TRANSACTION_COLUMNS",
    "TransactionExporter",
    "export_filename",
]

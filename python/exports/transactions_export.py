"""
Transaction Export Module

Renders transaction rows as CSV or as a formatted Excel workbook.
"""

import csv
import io
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

# (header, row key)
TRANSACTION_COLUMNS = [
    ("ID", "id"),
    ("Date", "date"),
    ("Paid By", "paid_by"),
    ("Paid To", "paid_to"),
    ("Net Amount", "net_amount"),
    ("Incoming Amount", "incoming_amount"),
    ("Outgoing Amount", "outgoing_amount"),
    ("Currency", "currency"),
    ("Base Currency", "base_currency"),
    ("Base Currency Amount", "base_currency_amount"),
    ("Exchange Rate", "exchange_rate"),
    ("Account ID", "account_id"),
    ("Account Type", "account_type"),
    ("Linked Entry ID", "linked_entry_id"),
    ("Reference", "reference"),
    ("Category", "category"),
    ("Description", "description"),
    ("Status", "status"),
    ("Reconciliation Status", "reconciliation_status"),
    ("Approval Status", "approval_status"),
    ("Company", "company_name"),
    ("Created At", "created_at"),
    ("Updated At", "updated_at"),
]

AMOUNT_KEYS = {
    "net_amount",
    "incoming_amount",
    "outgoing_amount",
    "base_currency_amount",
}


def export_filename(fmt: str, today: date | None = None) -> str:
    """Build the download filename, e.g. transactions-2024-03-31.csv."""
    today = today or date.today()
    return f"transactions-{today.isoformat()}.{fmt}"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class TransactionExporter:
    """Exports transaction dictionaries to CSV or xlsx bytes."""

    HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
    HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
    AMOUNT_FORMAT = '#,##0.00'
    DATE_FORMAT = 'yyyy-mm-dd'

    THIN_BORDER = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    def __init__(self, columns: list[tuple[str, str]] | None = None):
        self.columns = columns or TRANSACTION_COLUMNS

    def export(self, rows: Iterable[dict[str, Any]], fmt: str) -> bytes:
        """Render rows in the requested format.

        Args:
            rows: Transaction dictionaries keyed by column key
            fmt: "csv" or "xlsx"

        Returns:
            Encoded file content

        Raises:
            ValueError: If the format is not supported
        """
        if fmt == "csv":
            return self.to_csv(rows)
        if fmt == "xlsx":
            return self.to_xlsx(rows)
        raise ValueError(f"Unsupported export format: {fmt}. Use one of: {', '.join(EXPORT_FORMATS)}")

    def to_csv(self, rows: Iterable[dict[str, Any]]) -> bytes:
        """Render rows as CSV with every field quoted."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow([header for header, _ in self.columns])

        count = 0
        for row in rows:
            writer.writerow([self._csv_value(key, row.get(key)) for _, key in self.columns])
            count += 1

        logger.info(f"Exported {count} transactions to CSV")
        return buffer.getvalue().encode("utf-8")

    def _csv_value(self, key: str, value: Any) -> str:
        # Dates are written without time; timestamps keep full precision
        if key == "date" and isinstance(value, datetime):
            return value.date().isoformat()
        return _text(value)

    def to_xlsx(self, rows: Iterable[dict[str, Any]]) -> bytes:
        """Render rows as a single-sheet workbook with a styled header."""
        wb = Workbook()
        ws = wb.active
        ws.title = "Transactions"

        self._build_header(ws)

        row_num = 2
        for row in rows:
            for col, (_, key) in enumerate(self.columns, 1):
                cell = ws.cell(row=row_num, column=col, value=self._xlsx_value(row.get(key)))
                cell.border = self.THIN_BORDER
                if key in AMOUNT_KEYS:
                    cell.number_format = self.AMOUNT_FORMAT
                elif key == "date":
                    cell.number_format = self.DATE_FORMAT
            row_num += 1

        ws.freeze_panes = "A2"
        self._auto_fit_columns(ws)

        output = io.BytesIO()
        wb.save(output)
        logger.info(f"Exported {row_num - 2} transactions to Excel")
        return output.getvalue()

    def _build_header(self, ws: Worksheet) -> None:
        for col, (header, _) in enumerate(self.columns, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.border = self.THIN_BORDER

    def _xlsx_value(self, value: Any) -> Any:
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, datetime) and value.tzinfo is not None:
            # openpyxl rejects timezone-aware datetimes
            return value.replace(tzinfo=None)
        return value

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        for col in range(1, len(self.columns) + 1):
            letter = get_column_letter(col)
            longest = max(
                (len(_text(cell.value)) for cell in ws[letter]),
                default=10,
            )
            ws.column_dimensions[letter].width = min(max(longest + 2, 10), 50)

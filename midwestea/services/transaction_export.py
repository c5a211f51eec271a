# midwestea/services/transaction_export.py
# QuickBooks invoice-import CSV built from the transactions table
#
# Columns follow the QuickBooks Online "Import invoices" template.
# Two exports share this module: transactions (reconcile page) and the
# invoices_to_import staging table filled by the Stripe webhooks.

import csv
import io
from datetime import date, datetime
from typing import Iterable, Optional

from midwestea.models.payment import InvoiceToImport, Transaction
from midwestea.services.formatting import (
    cents_to_dollars,
    format_csv_date,
    format_long_date,
    format_mmddyy,
)

CSV_HEADERS = [
    "InvoiceNo",
    "Customer",
    "InvoiceDate",
    "DueDate",
    "Terms",
    "Location",
    "Memo",
    "Item(Product/Service)",
    "ItemDescription",
    "ItemQuantity",
    "ItemRate",
    "ItemAmount",
    "Taxable",
    "TaxRate",
    "Service Date",
]

DESCRIPTION_PREFIX = {
    "registration_fee": "Registration Fee",
    "tuition_a": "First payment",
    "tuition_b": "Final payment",
}


def item_name(transaction_type: Optional[str]) -> str:
    return "Tuition" if transaction_type in ("tuition_a", "tuition_b") else "Registration Fee"


def item_description(transaction: Transaction) -> str:
    """'First payment for EMT Basic starting on March 7, 2025'."""
    description = DESCRIPTION_PREFIX.get(transaction.transaction_type, "Registration Fee")
    class_ = transaction.class_
    if class_ and class_.class_name:
        description += f" for {class_.class_name}"
    if class_ and class_.class_start_date:
        description += f" starting on {format_long_date(class_.class_start_date)}"
    return description


def _format_rate(quantity: Optional[float]) -> str:
    quantity = quantity or 1
    return str(int(quantity)) if float(quantity).is_integer() else str(quantity)


def build_row(transaction: Transaction) -> list[str]:
    class_ = transaction.class_
    student = transaction.student
    start_date = class_.class_start_date if class_ else None
    return [
        str(transaction.invoice_number or ""),
        (student.full_name or student.display_name) if student else "",
        format_csv_date(transaction.created_at),
        format_csv_date(transaction.due_date),
        "",
        "",
        (class_.class_id or "") if class_ else "",
        item_name(transaction.transaction_type),
        item_description(transaction),
        "1",
        _format_rate(transaction.quantity),
        cents_to_dollars(transaction.amount_due),
        "N",
        "",
        format_csv_date(start_date),
    ]


def build_csv(transactions: Iterable[Transaction]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for transaction in transactions:
        writer.writerow(build_row(transaction))
    return buffer.getvalue()


def export_filename(created: list[Optional[datetime]]) -> str:
    """midwestea-invoices-{earliest MMDDYY}-{latest MMDDYY}.csv"""
    dates = [d for d in created if d]
    start = format_mmddyy(min(dates)) if dates else "010101"
    end = format_mmddyy(max(dates)) if dates else "010101"
    return f"midwestea-invoices-{start}-{end}.csv"


# ── invoices_to_import ────────────────────────────────────────────────────────

INVOICE_CSV_HEADERS = [
    "InvoiceNo",
    "Customer",
    "InvoiceDate",
    "DueDate",
    "Item",
    "ItemDescription",
    "ItemQuantity",
    "ItemRate",
    "ItemAmount",
    "Taxable",
]


def build_invoice_row(invoice: InvoiceToImport) -> list[str]:
    return [
        str(invoice.invoice_number),
        invoice.customer_email or "",
        format_csv_date(invoice.invoice_date),
        format_csv_date(invoice.due_date),
        "Registration",
        invoice.subcategory or "",
        str(invoice.item_quantity or 1),
        _format_rate(invoice.item_rate),
        cents_to_dollars(invoice.item_amount),
        "N",
    ]


def build_invoice_csv(invoices: Iterable[InvoiceToImport]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(INVOICE_CSV_HEADERS)
    for invoice in invoices:
        writer.writerow(build_invoice_row(invoice))
    return buffer.getvalue()


def invoice_export_filename(today: date) -> str:
    return f"invoices_export_{today.isoformat()}.csv"

"""
export.py - CSV / XLSX export of expenses and credits

The CSV layout is one row per record:
    Type,Date,Title,Category/Source,Amount,Notes
expenses first, then credits, each newest first.
"""

from io import BytesIO
from typing import List

import pandas as pd

from tallybook.models import Credit, Expense

CSV_COLUMNS = ["Type", "Date", "Title", "Category/Source", "Amount", "Notes"]


def transactions_frame(expenses: List[Expense], credits: List[Credit]) -> pd.DataFrame:
    rows = []
    for e in sorted(expenses, key=lambda x: x.date, reverse=True):
        rows.append({
            "Type": "Expense",
            "Date": e.date,
            "Title": e.title,
            "Category/Source": e.category,
            "Amount": float(e.amount),
            "Notes": e.notes,
        })
    for c in sorted(credits, key=lambda x: x.date, reverse=True):
        rows.append({
            "Type": "Credit",
            "Date": c.date,
            "Title": c.title,
            "Category/Source": c.source,
            "Amount": float(c.amount),
            "Notes": c.notes,
        })
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def export_csv(expenses: List[Expense], credits: List[Credit]) -> str:
    """Return the CSV text (header included, even when there is nothing to export)."""
    return transactions_frame(expenses, credits).to_csv(index=False, lineterminator="\n")


def export_xlsx(expenses: List[Expense], credits: List[Credit]) -> bytes:
    """
    Workbook with a "transactions" sheet (same columns as the CSV) and a
    "totals" sheet summing amounts per type and category/source.
    """
    df = transactions_frame(expenses, credits)
    totals = df.groupby(["Type", "Category/Source"])["Amount"].sum().reset_index()
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="transactions")
        totals.to_excel(writer, index=False, sheet_name="totals")
    buffer.seek(0)
    return buffer.getvalue()

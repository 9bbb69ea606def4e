"""
dashboard.py - Streamlit UI entrypoint and orchestration

This module wires the UI components (tallybook.ui.components) with the business
logic (tallybook.tracker). The main() function builds the sidebar menu and
routes actions to components and tracker methods.

Design notes:
 - Keep the dashboard responsible only for UI orchestration and presentation.
 - All persistence and business rules live in tallybook.tracker, tallybook.models
   and tallybook.settlement.
 - Derived numbers come from tracker.analytics(), rebuilt on every run.
"""

import streamlit as st

from tallybook.tracker import FinanceTracker
from tallybook.ui import components


def main():
    """
    Streamlit page: sidebar menu controls which view is shown.
    """
    st.title("Tallybook")
    tracker = FinanceTracker()
    backend_name, backend_msg = tracker.storage_status()
    if backend_name == "google_sheets":
        st.sidebar.success(backend_msg)
    else:
        st.sidebar.warning(backend_msg)
        st.sidebar.caption(
            "For cloud persistence, set GOOGLE_SHEET_ID and "
            "GOOGLE_SERVICE_ACCOUNT_JSON in Streamlit app Secrets."
        )

    menu = [
        "Home",
        "Add Expense",
        "Add Credit",
        "Transactions",
        "Edit / Delete",
        "Calendar",
        "Spending Rate",
        "Financial Analysis",
        "Wishlist",
        "Split",
        "Clear All Data",
    ]
    choice = st.sidebar.selectbox("Select an option", menu)
    analytics = tracker.analytics()

    if choice == "Home":
        components.display_summary(analytics)

    elif choice == "Add Expense":
        def on_submit(entry: components.TransactionInput):
            tracker.add_expense(
                title=entry.title,
                amount=entry.amount,
                category=entry.label,
                date=entry.date,
                notes=entry.notes,
            )

        components.display_transaction_form("expense", on_submit)

    elif choice == "Add Credit":
        def on_submit(entry: components.TransactionInput):
            tracker.add_credit(
                title=entry.title,
                amount=entry.amount,
                source=entry.label,
                date=entry.date,
                notes=entry.notes,
            )

        components.display_transaction_form("credit", on_submit)

    elif choice == "Transactions":
        components.display_transaction_list(tracker)

    elif choice == "Edit / Delete":
        components.display_manage_transactions(tracker)

    elif choice == "Calendar":
        components.display_calendar(analytics)

    elif choice == "Spending Rate":
        components.display_spending_rates(analytics)

    elif choice == "Financial Analysis":
        components.display_financial_analysis(analytics)

    elif choice == "Wishlist":
        components.display_wishlist(tracker)

    elif choice == "Split":
        components.display_split_rooms(tracker)

    elif choice == "Clear All Data":
        # simple confirm button to avoid accidental data loss
        if st.button("Confirm Clear"):
            tracker.clear()
            st.success("All data cleared.")


if __name__ == "__main__":
    main()

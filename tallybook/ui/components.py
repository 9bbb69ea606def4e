"""
components.py - reusable Streamlit components / forms / displays

This module contains pure-UI helpers used by the dashboard:
 - display_transaction_form(kind, on_submit) for expenses and credits
 - display_summary / transaction list / manage transactions
 - display_spending_rates / financial analysis charts / calendar day view
 - display_wishlist
 - display_split_rooms (room creation, members, shared expenses, settle up)

Forms validate user input before it reaches the tracker:
 - title required, amount > 0
 - split expenses need a payer and at least one participant
"""

import datetime
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from tallybook.analytics import (
    WISHLIST_STATUSES,
    SpendingAnalytics,
    filter_wishlist,
    search_records,
    sort_wishlist,
    wishlist_totals,
)
from tallybook.categories import (
    WISHLIST_PRIORITIES,
    category_color,
    category_icon,
    category_names,
    source_color,
    source_icon,
    source_names,
)
from tallybook.settlement import Settlement, SplitMode


def _trigger_rerun():
    # st.rerun replaced st.experimental_rerun in newer Streamlit releases
    if hasattr(st, "rerun"):
        st.rerun()
    else:
        st.experimental_rerun()


def _money(value: float) -> str:
    return f"{value:,.2f}"


@dataclass
class TransactionInput:
    """Lightweight container passed to the on_submit callback."""
    title: str
    amount: float
    label: str  # category for expenses, source for credits
    date: str  # ISO date string
    notes: str


def display_transaction_form(kind: str, on_submit: Callable[[TransactionInput], None]):
    """
    Display the 'Add Expense' / 'Add Credit' form.

    kind is "expense" or "credit"; the label dropdown shows categories or
    credit sources accordingly.
    """
    is_expense = kind == "expense"
    st.header("Add Expense" if is_expense else "Add Credit")
    with st.form(key=f"{kind}_form", clear_on_submit=True):
        title = st.text_input("Title")
        amount = st.number_input("Amount", min_value=0.0, format="%.2f")
        options = category_names() if is_expense else source_names()
        label = st.selectbox("Category" if is_expense else "Source", options=options)
        date_val = st.date_input("Date", value=datetime.date.today())
        notes = st.text_input("Notes (optional)")
        submitted = st.form_submit_button("Add")

        if submitted:
            if not title.strip():
                st.error("Title is required.")
                return
            if amount <= 0:
                st.error("Amount must be greater than 0.")
                return
            on_submit(TransactionInput(
                title=title.strip(),
                amount=round(amount, 2),
                label=label,
                date=date_val.isoformat(),
                notes=notes.strip(),
            ))
            st.success("Expense added." if is_expense else "Credit added.")


def display_summary(analytics: SpendingAnalytics):
    """Net balance plus today / week / month cards."""
    st.header("Overview")
    st.metric("Net balance", _money(analytics.net_balance()))
    periods = analytics.period_totals()
    cols = st.columns(3)
    for col, (label, title) in zip(cols, (("today", "Today"), ("week", "This week"), ("month", "This month"))):
        with col:
            st.subheader(title)
            st.write(f"Spent: {_money(periods[label]['expenses'])}")
            st.write(f"Earned: {_money(periods[label]['credits'])}")
            st.write(f"Net: {_money(periods[label]['net'])}")


def _records_frame(records, label_field: str) -> pd.DataFrame:
    rows = [{
        "id": r.id,
        "date": r.date,
        "title": r.title,
        label_field: getattr(r, label_field),
        "amount": float(r.amount),
        "notes": r.notes,
    } for r in records]
    return pd.DataFrame(rows, columns=["id", "date", "title", label_field, "amount", "notes"])


def display_transaction_list(tracker):
    """
    Searchable expense and credit tables with CSV / XLSX export buttons.
    Expects a tallybook.tracker.FinanceTracker.
    """
    st.header("Transactions")
    col1, col2 = st.columns(2)
    with col1:
        search = st.text_input("Search title or category")
    with col2:
        sort_by = st.radio("Sort by", options=["date", "amount"], horizontal=True)

    tab_exp, tab_cred = st.tabs(["Expenses", "Credits"])
    with tab_exp:
        expenses = search_records(tracker.expenses, search, sort_by)
        if not expenses:
            st.write("No expenses recorded.")
        else:
            df = _records_frame(expenses, "category")
            df.insert(0, "icon", [category_icon(c) for c in df["category"]])
            st.dataframe(df.drop(columns=["id"]).style.format({"amount": "{:.2f}"}), use_container_width=True)
    with tab_cred:
        credits = search_records(tracker.credits, search, sort_by)
        if not credits:
            st.write("No credits recorded.")
        else:
            df = _records_frame(credits, "source")
            df.insert(0, "icon", [source_icon(s) for s in df["source"]])
            st.dataframe(df.drop(columns=["id"]).style.format({"amount": "{:.2f}"}), use_container_width=True)

    c1, c2 = st.columns(2)
    with c1:
        st.download_button(
            label="Export CSV",
            data=tracker.export_csv(),
            file_name="transactions.csv",
            mime="text/csv",
        )
    with c2:
        st.download_button(
            label="Export XLSX",
            data=tracker.export_xlsx(),
            file_name="transactions.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )


def display_manage_transactions(tracker):
    """
    UI to select, edit and delete an existing expense or credit.
    """
    st.header("Edit / Delete")
    kind = st.radio("Type", options=["Expense", "Credit"], horizontal=True)
    is_expense = kind == "Expense"
    records = tracker.expenses if is_expense else tracker.credits
    if not records:
        st.info(f"No {kind.lower()}s recorded.")
        return

    label_field = "category" if is_expense else "source"
    options = {f"{r.date} {r.title} {r.amount:.2f} #{r.id[:6]}": r.id for r in search_records(records)}
    sel_label = st.selectbox("Select entry", options=list(options.keys()))
    record = next((r for r in records if r.id == options[sel_label]), None)
    if record is None:
        st.error("Selected entry not found.")
        return

    with st.form(key=f"edit_{record.id}"):
        title = st.text_input("Title", value=record.title)
        amount = st.number_input("Amount", min_value=0.0, format="%.2f", value=float(record.amount))
        choices = category_names() if is_expense else source_names()
        current = getattr(record, label_field)
        if current not in choices:
            choices = choices + [current]
        label = st.selectbox(label_field.capitalize(), options=choices, index=choices.index(current))
        try:
            date_prefill = datetime.date.fromisoformat(record.date)
        except ValueError:
            date_prefill = datetime.date.today()
        date_selected = st.date_input("Date", value=date_prefill)
        notes = st.text_input("Notes", value=record.notes)
        save_btn = st.form_submit_button("Save changes")

        if save_btn:
            if not title.strip() or amount <= 0:
                st.error("Title is required and amount must be > 0")
            else:
                fields = {
                    "title": title.strip(),
                    "amount": round(amount, 2),
                    label_field: label,
                    "date": date_selected.isoformat(),
                    "notes": notes,
                }
                edit = tracker.edit_expense if is_expense else tracker.edit_credit
                if edit(record.id, **fields):
                    st.success("Entry updated.")
                    _trigger_rerun()
                else:
                    st.error("Failed to update entry.")

    # Delete UI (separate to avoid accidental deletes)
    st.markdown("---")
    delete_confirm = st.checkbox("I confirm I want to delete this entry")
    if st.button("Delete entry") and delete_confirm:
        delete = tracker.delete_expense if is_expense else tracker.delete_credit
        if delete(record.id):
            st.success("Entry deleted.")
            _trigger_rerun()
        else:
            st.error("Failed to delete entry. Check the server logs for details.")


def display_calendar(analytics: SpendingAnalytics):
    """Pick a day and list what was spent and earned on it."""
    st.header("Calendar")
    day = st.date_input("Day", value=analytics.today)
    expenses = analytics.expenses_on(day)
    credits = analytics.credits_on(day)
    spent = sum(e.amount for e in expenses)
    earned = sum(c.amount for c in credits)
    st.write(f"Spent {_money(spent)} / earned {_money(earned)}")
    if not expenses and not credits:
        st.info("Nothing recorded on this day.")
        return
    for e in expenses:
        st.write(f"{category_icon(e.category)} {e.title} ({e.category}): -{_money(e.amount)}")
    for c in credits:
        st.write(f"{source_icon(c.source)} {c.title} ({c.source}): +{_money(c.amount)}")


def display_spending_rates(analytics: SpendingAnalytics):
    """Financial health score, spending rates and projected balances."""
    st.header("Spending Rate")
    score = analytics.health_score()
    st.metric("Financial health score", f"{score:.0f} / 100", analytics.health_status())
    st.progress(int(score))

    cols = st.columns(3)
    cols[0].metric("Daily", _money(analytics.daily_spending_rate()))
    cols[1].metric("Weekly", _money(analytics.weekly_spending_rate()))
    cols[2].metric("Monthly", _money(analytics.monthly_spending_rate()))

    cols = st.columns(3)
    cols[0].metric("Burn rate (days)", f"{analytics.burn_rate():.0f}")
    cols[1].metric("Savings rate", f"{analytics.savings_rate():.1f}%")
    cols[2].metric("Spending velocity", f"{analytics.spending_velocity():+.1f}%")

    st.subheader("Projected balance")
    for days, balance in analytics.projections():
        st.write(f"In {days} days: {_money(balance)}")


def _pie(totals, title: str, color_for: Callable[[str], str]):
    df = pd.DataFrame(totals, columns=["name", "amount"])
    if df.empty or df["amount"].sum() <= 0:
        st.info("No positive amounts to chart.")
        return
    names = list(df["name"])
    scale = alt.Scale(domain=names, range=[color_for(n) for n in names])
    pie = alt.Chart(df).mark_arc(innerRadius=50).encode(
        theta=alt.Theta(field="amount", type="quantitative"),
        color=alt.Color(field="name", type="nominal", scale=scale, legend=alt.Legend(title=title)),
        tooltip=[
            alt.Tooltip("name:N", title=title),
            alt.Tooltip("amount:Q", title="Amount", format=".2f"),
        ],
    ).properties(title=title)
    st.altair_chart(pie, use_container_width=True)


def display_financial_analysis(analytics: SpendingAnalytics):
    """Monthly credit vs expense bars, daily trend and category / source shares."""
    st.header("Financial Analysis")
    monthly = analytics.monthly_summary()
    if not monthly:
        st.info("No dated transactions to chart.")
        return

    df = pd.DataFrame(monthly)
    long = df.melt(id_vars=["month", "label"], value_vars=["credit", "expense"], var_name="type", value_name="amount")
    bars = alt.Chart(long).mark_bar().encode(
        x=alt.X("month:T", title="Month", axis=alt.Axis(format="%Y-%m", labelAngle=-45)),
        xOffset="type:N",
        y=alt.Y("amount:Q", title="Amount"),
        color=alt.Color("type:N", scale=alt.Scale(domain=["credit", "expense"], range=["#2ca02c", "#d62728"])),
        tooltip=[
            alt.Tooltip("label:N", title="Month"),
            alt.Tooltip("type:N", title="Type"),
            alt.Tooltip("amount:Q", title="Amount", format=".2f"),
        ],
    ).properties(width="container", height=300)
    st.altair_chart(bars, use_container_width=True)

    st.dataframe(
        df[["label", "credit", "expense", "net"]].style.format({"credit": "{:.2f}", "expense": "{:.2f}", "net": "{:.2f}"}),
        use_container_width=True,
    )

    trend = analytics.daily_trend()
    if trend:
        st.subheader("Last 30 days")
        tdf = pd.DataFrame(trend).melt(id_vars=["date"], var_name="type", value_name="amount")
        line = alt.Chart(tdf).mark_line(point=True).encode(
            x=alt.X("date:T", title="Day"),
            y=alt.Y("amount:Q", title="Amount"),
            color=alt.Color("type:N", scale=alt.Scale(domain=["credit", "expense"], range=["#2ca02c", "#d62728"])),
        ).properties(width="container", height=250)
        st.altair_chart(line, use_container_width=True)

    col1, col2 = st.columns(2)
    with col1:
        _pie(analytics.category_totals(), "Category", category_color)
    with col2:
        _pie(analytics.source_totals(), "Source", source_color)


def display_wishlist(tracker):
    """Wishlist with add and edit forms, status filter, purchase toggles and totals."""
    st.header("Wishlist")
    totals = wishlist_totals(tracker.wishlist)
    col1, col2 = st.columns(2)
    col1.metric("Still to buy", _money(totals["pending"]))
    col2.metric("Purchased", _money(totals["purchased"]))

    with st.expander("Add item"):
        with st.form(key="wishlist_form", clear_on_submit=True):
            title = st.text_input("Item")
            price = st.number_input("Price", min_value=0.0, format="%.2f")
            priority = st.selectbox("Priority", options=list(WISHLIST_PRIORITIES), index=1)
            category = st.selectbox("Category", options=category_names())
            use_target = st.checkbox("Set a target date")
            target = st.date_input("Target date", value=datetime.date.today())
            image_url = st.text_input("Image URL (optional)")
            notes = st.text_input("Notes (optional)")
            if st.form_submit_button("Add to wishlist"):
                if not title.strip():
                    st.error("Item name is required.")
                else:
                    tracker.add_wishlist_item(
                        title=title.strip(),
                        price=round(price, 2),
                        priority=priority,
                        category=category,
                        notes=notes.strip(),
                        image_url=image_url.strip(),
                        target_date=target.isoformat() if use_target else None,
                    )
                    st.success("Added to wishlist.")

    cols = st.columns(2)
    status = cols[0].radio(
        "Show", options=list(WISHLIST_STATUSES), horizontal=True, key="wishlist_status",
        format_func=str.capitalize,
    )
    sort_by = cols[1].radio("Sort by", options=["date", "price", "priority"], horizontal=True, key="wishlist_sort")
    items = sort_wishlist(filter_wishlist(tracker.wishlist, status), sort_by)
    if not items:
        st.info("Your wishlist is empty." if not tracker.wishlist else f"No {status} items.")
        return
    for item in items:
        cols = st.columns([4, 2, 2, 1])
        label = f"~~{item.title}~~" if item.is_purchased else f"**{item.title}**"
        cols[0].markdown(f"{label} ({item.priority})" + (f" - by {item.target_date}" if item.target_date else ""))
        if item.image_url:
            cols[0].image(item.image_url, width=80)
        cols[1].write(_money(item.price))
        purchased = cols[2].checkbox("Purchased", value=item.is_purchased, key=f"bought_{item.id}")
        if purchased != item.is_purchased:
            tracker.set_purchased(item.id, purchased)
            _trigger_rerun()
        if cols[3].button("Delete", key=f"del_{item.id}"):
            tracker.delete_wishlist_item(item.id)
            _trigger_rerun()

    _display_edit_wishlist_item(tracker, items)


def _display_edit_wishlist_item(tracker, items):
    st.markdown("---")
    options = {f"{i.title} {i.price:.2f} #{i.id[:6]}": i.id for i in items}
    sel_label = st.selectbox("Edit item", options=list(options.keys()), key="wishlist_edit_pick")
    item = next((i for i in items if i.id == options[sel_label]), None)
    if item is None:
        st.error("Selected item not found.")
        return

    with st.form(key=f"edit_wish_{item.id}"):
        title = st.text_input("Item", value=item.title)
        price = st.number_input("Price", min_value=0.0, format="%.2f", value=float(item.price))
        priorities = list(WISHLIST_PRIORITIES)
        priority = st.selectbox(
            "Priority", options=priorities,
            index=priorities.index(item.priority) if item.priority in priorities else 1,
        )
        choices = category_names()
        if item.category not in choices:
            choices = choices + [item.category]
        category = st.selectbox("Category", options=choices, index=choices.index(item.category))
        use_target = st.checkbox("Set a target date", value=bool(item.target_date))
        try:
            target_prefill = datetime.date.fromisoformat(item.target_date or "")
        except ValueError:
            target_prefill = datetime.date.today()
        target = st.date_input("Target date", value=target_prefill)
        image_url = st.text_input("Image URL (optional)", value=item.image_url)
        notes = st.text_input("Notes (optional)", value=item.notes)
        if st.form_submit_button("Save changes"):
            if not title.strip():
                st.error("Item name is required.")
            else:
                updated = tracker.edit_wishlist_item(
                    item.id,
                    title=title.strip(),
                    price=round(price, 2),
                    priority=priority,
                    category=category,
                    notes=notes.strip(),
                    image_url=image_url.strip(),
                    target_date=target.isoformat() if use_target else None,
                )
                if updated:
                    st.success("Item updated.")
                    _trigger_rerun()
                else:
                    st.error("Failed to update item.")


def display_settlements(settlements: List[Settlement]):
    """Suggested transfers, or the all-settled state when there is nothing to pay."""
    st.subheader("Settle Up")
    if not settlements:
        st.success("All Settled! Everyone is even.")
        return
    st.write("Suggested settlements")
    for s in settlements:
        st.write(f"  {s.describe()}")


def display_balances(balances: Dict[str, float], fair_share: Optional[float] = None):
    st.subheader("Balances")
    if not balances:
        st.write("No members in this room.")
        return
    if fair_share is not None:
        st.caption(f"Fair share per person: {_money(fair_share)}")
    for name, balance in balances.items():
        if abs(balance) < 0.01:
            st.write(f"  {name}: settled")
        elif balance > 0:
            st.write(f"  {name}: gets back {_money(balance)}")
        else:
            st.write(f"  {name}: owes {_money(-balance)}")


def _display_create_room(tracker):
    with st.expander("Create room"):
        with st.form(key="create_room", clear_on_submit=True):
            name = st.text_input("Room name")
            members_text = st.text_area("Members (one name per line)")
            if st.form_submit_button("Create"):
                names = [n.strip() for n in members_text.splitlines() if n.strip()]
                try:
                    tracker.create_room(name, names)
                except ValueError as exc:
                    st.error(str(exc))
                else:
                    st.success("Room created.")
                    _trigger_rerun()


def _display_room(tracker, room):
    st.markdown(f"### {room.name}")
    st.caption(f"Created {room.created_date} - {len(room.members)} members - {len(room.expenses)} expenses")
    col1, col2 = st.columns(2)
    col1.metric("Total", _money(room.total_expenses()))
    col2.metric("Per person", _money(room.fair_share()))

    with st.expander("Members"):
        for m in room.members:
            st.write(f"- {m.name}" + (f" ({m.phone})" if m.phone else "") + (f" {m.email}" if m.email else ""))
        with st.form(key=f"add_member_{room.id}", clear_on_submit=True):
            name = st.text_input("Name")
            phone = st.text_input("Phone (optional)")
            email = st.text_input("Email (optional)")
            if st.form_submit_button("Add member"):
                try:
                    tracker.add_room_member(room.id, name, phone=phone, email=email)
                except ValueError as exc:
                    st.error(str(exc))
                else:
                    _trigger_rerun()
        if room.members:
            to_remove = st.selectbox("Remove member", options=[m.name for m in room.members], key=f"rm_{room.id}")
            cascade = st.checkbox("Also drop their expenses and shares", key=f"cascade_{room.id}")
            if st.button("Remove", key=f"rm_btn_{room.id}"):
                tracker.remove_room_member(room.id, to_remove, cascade=cascade)
                _trigger_rerun()

    if room.members:
        with st.expander("Add expense"):
            names = [m.name for m in room.members]
            with st.form(key=f"split_expense_{room.id}", clear_on_submit=True):
                title = st.text_input("Title")
                amount = st.number_input("Amount", min_value=0.0, format="%.2f")
                payer = st.selectbox("Paid by", options=names)
                participants = st.multiselect("Split among", options=names, default=names)
                date_val = st.date_input("Date", value=datetime.date.today())
                notes = st.text_input("Notes (optional)")
                if st.form_submit_button("Add expense"):
                    if not title.strip():
                        st.error("Title is required.")
                    elif amount <= 0:
                        st.error("Amount must be greater than 0.")
                    elif not participants:
                        st.error("At least one participant is required.")
                    else:
                        tracker.add_split_expense(
                            room.id, title.strip(), round(amount, 2), payer, participants,
                            date=date_val.isoformat(), notes=notes.strip(),
                        )
                        _trigger_rerun()

    if room.expenses:
        rows = [{
            "date": e.date,
            "title": e.title,
            "amount": e.amount,
            "paid by": room.member_name(e.payer_id),
            "split among": ", ".join(room.member_name(p) for p in e.participant_ids),
            "notes": e.notes,
        } for e in sorted(room.expenses, key=lambda x: x.date, reverse=True)]
        st.dataframe(pd.DataFrame(rows).style.format({"amount": "{:.2f}"}), use_container_width=True)
        expense_labels = {f"{e.date} {e.title} {e.amount:.2f} #{e.id[:6]}": e.id for e in room.expenses}
        to_delete = st.selectbox("Remove expense", options=list(expense_labels), key=f"rm_exp_{room.id}")
        if st.button("Remove expense", key=f"rm_exp_btn_{room.id}"):
            tracker.delete_split_expense(room.id, expense_labels[to_delete])
            _trigger_rerun()

    mode_label = st.radio(
        "Split mode",
        options=["Whole room", "Per expense participants"],
        horizontal=True,
        key=f"mode_{room.id}",
    )
    mode = SplitMode.ROOM_AVERAGE if mode_label == "Whole room" else SplitMode.PER_EXPENSE
    display_balances(room.balances(mode), fair_share=room.fair_share() if mode == SplitMode.ROOM_AVERAGE else None)
    display_settlements(room.settlements(mode))

    st.markdown("---")
    if st.button("Delete room", key=f"delete_room_{room.id}"):
        tracker.delete_room(room.id)
        _trigger_rerun()


def display_split_rooms(tracker):
    """Room list with a detail view for the selected room."""
    st.header("Split")
    _display_create_room(tracker)
    if not tracker.rooms:
        st.info("No split rooms yet. Create one to start sharing expenses.")
        return
    labels = {f"{r.name} ({len(r.members)} members) #{r.id[:6]}": r.id for r in tracker.rooms}
    selected = st.selectbox("Room", options=list(labels.keys()))
    _display_room(tracker, tracker.get_room(labels[selected]))

"""
tracker.py - core application logic and persistence

Responsibilities:
 - keep in-memory lists of expenses, credits, wishlist items and split rooms
 - persist/load data to Google Sheets (preferred) or local JSON fallback
 - provide helper APIs consumed by the UI:
     add/edit/delete for expenses, credits and wishlist items,
     split rooms (create, members, shared expenses, balances, settle up),
     list_expenses(filter by year/month), analytics(), CSV/XLSX export
"""

import datetime
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from tallybook import export
from tallybook.analytics import SpendingAnalytics, parse_date
from tallybook.categories import WISHLIST_PRIORITIES
from tallybook.models import Credit, Expense, SplitExpense, SplitRoom, WishlistItem
from tallybook.settlement import Settlement, SplitMode
from tallybook.storage import GoogleSheetsBackend, LocalJsonStore, empty_state

# ensure a logger is available
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

EDITABLE_EXPENSE_FIELDS = ("title", "amount", "category", "date", "notes")
EDITABLE_CREDIT_FIELDS = ("title", "amount", "source", "date", "notes")
EDITABLE_WISHLIST_FIELDS = (
    "title", "price", "image_url", "notes", "priority", "target_date", "category",
)


def _check_date(value: str) -> str:
    """Validate an ISO date string; empty means today."""
    if not value:
        return datetime.date.today().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if parse_date(value) is None:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD.")
    return value


class FinanceTracker:
    """
    Single-instance style tracker object. The UI creates one FinanceTracker()
    per script run and uses its methods to read/write data.
    """

    def __init__(self, data_file: Optional[str] = None, use_google_sheets: bool = True):
        self.expenses: List[Expense] = []
        self.credits: List[Credit] = []
        self.wishlist: List[WishlistItem] = []
        self.rooms: List[SplitRoom] = []
        self._local = LocalJsonStore(data_file)
        # initialize Google Sheets backend if configured
        self._gs_backend = GoogleSheetsBackend() if use_google_sheets else None
        self.load()

    def uses_google_sheets(self) -> bool:
        """True when the durable Google Sheets backend is active."""
        return bool(self._gs_backend and self._gs_backend.available)

    def storage_status(self) -> Tuple[str, str]:
        """
        Return current storage backend and a short diagnostic message for the UI.
        """
        if self.uses_google_sheets():
            return "google_sheets", "Persistent storage active (Google Sheets)."
        reason = self._gs_backend.reason if self._gs_backend else "Google Sheets disabled"
        return "local_json", f"Using local file fallback: {reason}."

    # -----------------------
    # Persistence
    # -----------------------
    def to_state(self) -> Dict[str, list]:
        return {
            "expenses": [e.to_dict() for e in self.expenses],
            "credits": [c.to_dict() for c in self.credits],
            "wishlist": [w.to_dict() for w in self.wishlist],
            "rooms": [r.to_dict() for r in self.rooms],
        }

    def save(self):
        """Persist state to Google Sheets when available, otherwise to the local JSON file."""
        data = self.to_state()
        if self.uses_google_sheets():
            logger.info("Saving data to Google Sheets (expenses=%d, rooms=%d)",
                        len(self.expenses), len(self.rooms))
            if self._gs_backend.save_state(data):
                return
            logger.warning("Google Sheets save failed, falling back to local JSON")
        self._local.save_state(data)

    def load(self):
        """
        Load state from Google Sheets when configured, otherwise local JSON.
        If no saved data exists the tracker stays empty.
        """
        data = None
        if self.uses_google_sheets():
            logger.info("Loading data from Google Sheets")
            data = self._gs_backend.load_state() or None
        if not data:
            data = self._local.load_state()
        data = {**empty_state(), **data}
        self.expenses = [Expense.from_dict(d) for d in data["expenses"]]
        self.credits = [Credit.from_dict(d) for d in data["credits"]]
        self.wishlist = [WishlistItem.from_dict(d) for d in data["wishlist"]]
        self.rooms = [SplitRoom.from_dict(d) for d in data["rooms"]]

    def _refresh(self):
        # Refresh from remote before mutating to reduce stale-session overwrites.
        if self.uses_google_sheets():
            self.load()

    def clear(self):
        """Reset tracker state and persist the cleared state."""
        self.expenses = []
        self.credits = []
        self.wishlist = []
        self.rooms = []
        self.save()

    # -----------------------
    # Generic edit / delete helpers
    # -----------------------
    def _edit(self, records: str, record_id: str, fields: Tuple[str, ...], kwargs: Dict):
        # validate before touching the record so a bad date leaves it unchanged
        if "date" in kwargs:
            kwargs = {**kwargs, "date": _check_date(kwargs["date"])}
        self._refresh()
        for r in getattr(self, records):
            if r.id == record_id:
                for key in fields:
                    if key in kwargs:
                        setattr(r, key, kwargs[key])
                self.save()
                logger.info("Updated %s id=%s", type(r).__name__, record_id)
                return r
        logger.info("Record id=%s not found", record_id)
        return None

    def _delete(self, records: str, record_id: str) -> bool:
        self._refresh()
        items = getattr(self, records)
        for i, r in enumerate(items):
            if r.id == record_id:
                removed = items.pop(i)
                try:
                    self.save()
                except Exception:
                    logger.exception("Error saving after delete")
                    # restore in-memory list if save failed
                    items.insert(i, removed)
                    return False
                logger.info("Deleted %s id=%s. Remaining=%d.", type(removed).__name__, record_id, len(items))
                return True
        logger.info("Record id=%s not found", record_id)
        return False

    # -----------------------
    # Expenses
    # -----------------------
    def add_expense(
        self,
        title: str,
        amount: float,
        category: str = "Others",
        date: str = "",
        notes: str = "",
    ) -> Expense:
        """Create an Expense, append it and persist. date: ISO "YYYY-MM-DD" (empty = today)."""
        self._refresh()
        exp = Expense(title=title, amount=amount, category=category, date=_check_date(date), notes=notes)
        self.expenses.append(exp)
        self.save()
        return exp

    def edit_expense(self, expense_id: str, **kwargs) -> Optional[Expense]:
        """
        Update fields of an existing expense (title, amount, category, date, notes).
        Returns the updated Expense or None if id not found.
        """
        return self._edit("expenses", expense_id, EDITABLE_EXPENSE_FIELDS, kwargs)

    def delete_expense(self, expense_id: str) -> bool:
        return self._delete("expenses", expense_id)

    def list_expenses(self, year: Optional[int] = None, month: Optional[int] = None) -> List[Expense]:
        """
        Return the list of expenses, optionally filtered by year and/or month.
        Expenses with missing or invalid dates are skipped when filtering.
        """
        if year is None and month is None:
            return list(self.expenses)
        out: List[Expense] = []
        for e in self.expenses:
            d = parse_date(e.date)
            if d is None:
                continue
            if year is not None and d.year != year:
                continue
            if month is not None and d.month != month:
                continue
            out.append(e)
        return out

    def available_periods(self) -> Tuple[List[int], Dict[int, List[int]]]:
        """
        Inspect expenses and credits and return available years and the months per year.
        """
        years = set()
        months_by_year = defaultdict(set)
        for r in self.expenses + self.credits:
            d = parse_date(r.date)
            if d is None:
                continue
            years.add(d.year)
            months_by_year[d.year].add(d.month)
        years_list = sorted(years)
        return years_list, {y: sorted(months_by_year[y]) for y in years_list}

    # -----------------------
    # Credits
    # -----------------------
    def add_credit(
        self,
        title: str,
        amount: float,
        source: str = "Other",
        date: str = "",
        notes: str = "",
    ) -> Credit:
        self._refresh()
        credit = Credit(title=title, amount=amount, source=source, date=_check_date(date), notes=notes)
        self.credits.append(credit)
        self.save()
        return credit

    def edit_credit(self, credit_id: str, **kwargs) -> Optional[Credit]:
        return self._edit("credits", credit_id, EDITABLE_CREDIT_FIELDS, kwargs)

    def delete_credit(self, credit_id: str) -> bool:
        return self._delete("credits", credit_id)

    # -----------------------
    # Wishlist
    # -----------------------
    def add_wishlist_item(
        self,
        title: str,
        price: float,
        priority: str = "Medium",
        category: str = "Others",
        notes: str = "",
        image_url: str = "",
        target_date: Optional[str] = None,
    ) -> WishlistItem:
        if priority not in WISHLIST_PRIORITIES:
            raise ValueError(f"Unknown priority {priority!r}.")
        self._refresh()
        item = WishlistItem(
            title=title,
            price=price,
            priority=priority,
            category=category,
            notes=notes,
            image_url=image_url,
            target_date=_check_date(target_date) if target_date else None,
        )
        self.wishlist.append(item)
        self.save()
        return item

    def edit_wishlist_item(self, item_id: str, **kwargs) -> Optional[WishlistItem]:
        if "priority" in kwargs and kwargs["priority"] not in WISHLIST_PRIORITIES:
            raise ValueError(f"Unknown priority {kwargs['priority']!r}.")
        if "target_date" in kwargs:
            target = kwargs["target_date"]
            kwargs = {**kwargs, "target_date": _check_date(target) if target else None}
        self._refresh()
        for item in self.wishlist:
            if item.id == item_id:
                for key in EDITABLE_WISHLIST_FIELDS:
                    if key in kwargs:
                        setattr(item, key, kwargs[key])
                self.save()
                return item
        return None

    def set_purchased(self, item_id: str, purchased: bool = True) -> Optional[WishlistItem]:
        self._refresh()
        for item in self.wishlist:
            if item.id == item_id:
                item.is_purchased = purchased
                self.save()
                return item
        return None

    def delete_wishlist_item(self, item_id: str) -> bool:
        return self._delete("wishlist", item_id)

    # -----------------------
    # Split rooms
    # -----------------------
    def create_room(self, name: str, member_names: List[str] = ()) -> SplitRoom:
        """
        Create a room with its initial members. Raises ValueError for a blank
        or already used room name, or a blank/duplicate member name; nothing
        is saved then.
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Room name is required.")
        self._refresh()
        if any(r.name == name for r in self.rooms):
            raise ValueError(f"A room named {name!r} already exists.")
        room = SplitRoom(name=name)
        for member_name in member_names:
            room.add_member(member_name)
        self.rooms.append(room)
        self.save()
        logger.info("Created room %r with %d members", room.name, len(room.members))
        return room

    def get_room(self, room_id: str) -> SplitRoom:
        for room in self.rooms:
            if room.id == room_id:
                return room
        raise KeyError(f"Room {room_id} not found")

    def delete_room(self, room_id: str) -> bool:
        return self._delete("rooms", room_id)

    def add_room_member(self, room_id: str, name: str, phone: str = "", email: str = ""):
        self._refresh()
        member = self.get_room(room_id).add_member(name, phone=phone, email=email)
        self.save()
        return member

    def remove_room_member(self, room_id: str, name: str, cascade: bool = False) -> bool:
        self._refresh()
        removed = self.get_room(room_id).remove_member(name, cascade=cascade)
        if removed:
            self.save()
            logger.info("Removed member %r from room %s (cascade=%s)", name, room_id, cascade)
        return removed

    def add_split_expense(
        self,
        room_id: str,
        title: str,
        amount: float,
        payer: str,
        participants: List[str],
        date: str = "",
        notes: str = "",
    ) -> SplitExpense:
        self._refresh()
        room = self.get_room(room_id)
        expense = room.add_expense(title, amount, payer, participants, date=_check_date(date), notes=notes)
        self.save()
        return expense

    def delete_split_expense(self, room_id: str, expense_id: str) -> bool:
        self._refresh()
        room = self.get_room(room_id)
        before = len(room.expenses)
        room.expenses = [e for e in room.expenses if e.id != expense_id]
        if len(room.expenses) == before:
            return False
        self.save()
        return True

    def room_balances(self, room_id: str, split_mode: SplitMode = SplitMode.ROOM_AVERAGE) -> Dict[str, float]:
        return self.get_room(room_id).balances(split_mode)

    def room_settlements(self, room_id: str, split_mode: SplitMode = SplitMode.ROOM_AVERAGE) -> List[Settlement]:
        return self.get_room(room_id).settlements(split_mode)

    # -----------------------
    # Queries / export
    # -----------------------
    def analytics(self, today: Optional[datetime.date] = None) -> SpendingAnalytics:
        return SpendingAnalytics(self.expenses, self.credits, today=today)

    def export_csv(self) -> str:
        return export.export_csv(self.expenses, self.credits)

    def export_xlsx(self) -> bytes:
        return export.export_xlsx(self.expenses, self.credits)

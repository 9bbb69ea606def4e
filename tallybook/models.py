"""
models.py - Data model definitions

This file defines the dataclasses shared by the tracker, the split-room logic
and the UI. Every record serializes to/from a plain dict so the whole tracker
state can be persisted as JSON (local file) or as sheet rows (Google Sheets).

Dates are stored as ISO strings "YYYY-MM-DD", same as everywhere else in the app.
"""

import datetime
import uuid
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Union

from tallybook.settlement import SplitMode, compute_balances, compute_settlements, Settlement


def new_id() -> str:
    """Random hex identifier used for every persisted record."""
    return uuid.uuid4().hex


def today_iso() -> str:
    return datetime.date.today().isoformat()


@dataclass
class Expense:
    """
    A personal expense.

    Fields:
      - id: hex identifier assigned at creation
      - title: short label shown in lists
      - amount: positive amount (currency is a display concern)
      - category: one of tallybook.categories.EXPENSE_CATEGORIES (free text tolerated)
      - date: ISO date string "YYYY-MM-DD"
      - notes: optional free text
    """
    id: str = field(default_factory=new_id)
    title: str = ""
    amount: float = 0.0
    category: str = "Others"
    date: str = field(default_factory=today_iso)
    notes: str = ""

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "amount": self.amount,
            "category": self.category,
            "date": self.date,
            "notes": self.notes,
        }

    @staticmethod
    def from_dict(d: Dict) -> "Expense":
        """
        Inverse of to_dict. Missing keys fall back to defaults so older files load.
        """
        return Expense(
            id=d.get("id") or new_id(),
            title=d.get("title", ""),
            amount=float(d.get("amount", 0.0) or 0.0),
            category=d.get("category", "Others") or "Others",
            date=d.get("date", "") or "",
            notes=d.get("notes", "") or "",
        )


@dataclass
class Credit:
    """Income entry (salary, freelance work, gifts, ...)."""
    id: str = field(default_factory=new_id)
    title: str = ""
    amount: float = 0.0
    source: str = "Other"
    date: str = field(default_factory=today_iso)
    notes: str = ""

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "amount": self.amount,
            "source": self.source,
            "date": self.date,
            "notes": self.notes,
        }

    @staticmethod
    def from_dict(d: Dict) -> "Credit":
        return Credit(
            id=d.get("id") or new_id(),
            title=d.get("title", ""),
            amount=float(d.get("amount", 0.0) or 0.0),
            source=d.get("source", "Other") or "Other",
            date=d.get("date", "") or "",
            notes=d.get("notes", "") or "",
        )


@dataclass
class WishlistItem:
    """
    Something the user wants to buy later.

    priority is "High", "Medium" or "Low"; target_date is optional.
    """
    id: str = field(default_factory=new_id)
    title: str = ""
    price: float = 0.0
    image_url: str = ""
    notes: str = ""
    priority: str = "Medium"
    is_purchased: bool = False
    date_added: str = field(default_factory=today_iso)
    target_date: Optional[str] = None
    category: str = "Others"

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price,
            "image_url": self.image_url,
            "notes": self.notes,
            "priority": self.priority,
            "is_purchased": self.is_purchased,
            "date_added": self.date_added,
            "target_date": self.target_date,
            "category": self.category,
        }

    @staticmethod
    def from_dict(d: Dict) -> "WishlistItem":
        return WishlistItem(
            id=d.get("id") or new_id(),
            title=d.get("title", ""),
            price=float(d.get("price", 0.0) or 0.0),
            image_url=d.get("image_url", "") or "",
            notes=d.get("notes", "") or "",
            priority=d.get("priority", "Medium") or "Medium",
            is_purchased=bool(d.get("is_purchased", False)),
            date_added=d.get("date_added", "") or "",
            target_date=d.get("target_date") or None,
            category=d.get("category", "Others") or "Others",
        )


@dataclass
class RoomMember:
    """A participant in a split room. The name is unique within its room."""
    name: str
    id: str = field(default_factory=new_id)
    phone: str = ""
    email: str = ""

    def to_dict(self) -> Dict:
        return {"id": self.id, "name": self.name, "phone": self.phone, "email": self.email}

    @staticmethod
    def from_dict(d: Dict) -> "RoomMember":
        return RoomMember(
            id=d.get("id") or new_id(),
            name=d.get("name", ""),
            phone=d.get("phone", "") or "",
            email=d.get("email", "") or "",
        )


@dataclass
class SplitExpense:
    """
    An expense shared inside a split room.

    payer_id and participant_ids reference RoomMember.id of the owning room.
    Nothing checks that they resolve: removing a member leaves them dangling
    unless the removal cascades.
    """
    title: str
    amount: float
    payer_id: str
    participant_ids: List[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    date: str = field(default_factory=today_iso)
    notes: str = ""

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "amount": self.amount,
            "payer_id": self.payer_id,
            "participant_ids": list(self.participant_ids),
            "date": self.date,
            "notes": self.notes,
        }

    @staticmethod
    def from_dict(d: Dict) -> "SplitExpense":
        return SplitExpense(
            id=d.get("id") or new_id(),
            title=d.get("title", ""),
            amount=float(d.get("amount", 0.0) or 0.0),
            payer_id=d.get("payer_id", "") or "",
            participant_ids=list(d.get("participant_ids", []) or []),
            date=d.get("date", "") or "",
            notes=d.get("notes", "") or "",
        )


@dataclass
class SplitRoom:
    """
    A named group of members sharing expenses.

    The room owns its members and expenses. Balances and settlements are never
    stored: balances() and settlements() recompute them from the current lists.
    """
    name: str
    id: str = field(default_factory=new_id)
    created_date: str = field(default_factory=today_iso)
    members: List[RoomMember] = field(default_factory=list)
    expenses: List[SplitExpense] = field(default_factory=list)

    # -----------------------
    # Member lookups
    # -----------------------
    def member_by_name(self, name: str) -> Optional[RoomMember]:
        return next((m for m in self.members if m.name == name), None)

    def member_by_id(self, member_id: str) -> Optional[RoomMember]:
        return next((m for m in self.members if m.id == member_id), None)

    def member_name(self, member_id: str) -> str:
        """Display name for a member id; unresolved ids are returned unchanged."""
        member = self.member_by_id(member_id)
        return member.name if member else member_id

    def _resolve(self, ref: str) -> str:
        # accept either a member id or a member name
        if self.member_by_id(ref):
            return ref
        member = self.member_by_name(ref)
        return member.id if member else ref

    # -----------------------
    # Mutations
    # -----------------------
    def add_member(self, name: str, phone: str = "", email: str = "") -> RoomMember:
        """Append a member. Raises ValueError on a blank or duplicate name."""
        name = (name or "").strip()
        if not name:
            raise ValueError("Member name is required.")
        if self.member_by_name(name):
            raise ValueError(f"Member '{name}' already exists in room '{self.name}'.")
        member = RoomMember(name=name, phone=phone.strip(), email=email.strip())
        self.members.append(member)
        return member

    def add_expense(
        self,
        title: str,
        amount: float,
        payer: str,
        participants: List[str],
        date: str = "",
        notes: str = "",
    ) -> SplitExpense:
        """
        Append a split expense.

        payer and participants may be member names or member ids. Names are
        resolved to ids; anything that does not resolve is kept as given.
        """
        expense = SplitExpense(
            title=title,
            amount=amount,
            payer_id=self._resolve(payer),
            participant_ids=[self._resolve(p) for p in participants],
            notes=notes,
        )
        if date:
            expense.date = date
        self.expenses.append(expense)
        return expense

    def remove_member(self, name: str, cascade: bool = False) -> bool:
        """
        Remove a member by name. Returns False when no such member exists.

        Without cascade, expenses keep the removed member's id. With cascade,
        expenses they paid are deleted and they are dropped from every
        participant list.
        """
        member = self.member_by_name(name)
        if member is None:
            return False
        self.members.remove(member)
        if cascade:
            kept: List[SplitExpense] = []
            for e in self.expenses:
                if e.payer_id == member.id:
                    continue
                e.participant_ids = [p for p in e.participant_ids if p != member.id]
                kept.append(e)
            self.expenses = kept
        return True

    # -----------------------
    # Derived views
    # -----------------------
    def total_expenses(self) -> float:
        return sum(e.amount for e in self.expenses)

    def fair_share(self) -> float:
        return self.total_expenses() / max(1, len(self.members))

    def paid_by(self, member: Union[RoomMember, str]) -> float:
        member_id = member.id if isinstance(member, RoomMember) else self._resolve(member)
        return sum(e.amount for e in self.expenses if e.payer_id == member_id)

    def balances(self, split_mode: SplitMode = SplitMode.ROOM_AVERAGE) -> Dict[str, float]:
        return compute_balances(self, split_mode)

    def settlements(self, split_mode: SplitMode = SplitMode.ROOM_AVERAGE) -> List[Settlement]:
        return compute_settlements(self.balances(split_mode))

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_date": self.created_date,
            "members": [m.to_dict() for m in self.members],
            "expenses": [e.to_dict() for e in self.expenses],
        }

    @staticmethod
    def from_dict(d: Dict) -> "SplitRoom":
        return SplitRoom(
            id=d.get("id") or new_id(),
            name=d.get("name", ""),
            created_date=d.get("created_date", "") or "",
            members=[RoomMember.from_dict(m) for m in d.get("members", []) or []],
            expenses=[SplitExpense.from_dict(e) for e in d.get("expenses", []) or []],
        )

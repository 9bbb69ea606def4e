"""
settlement.py - balance and settle-up math for split rooms

Responsibilities:
 - compute_balances(room, split_mode): net position per member
   (what they paid minus what they should have paid)
 - compute_settlements(balances): greedy list of transfers that clears
   every balance

Both functions are pure: they read the room / mapping they are given and
never mutate it. Positive balance => member should receive money.
Negative balance => member owes money.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping

# currency rounding epsilon used by the settle-up loop
SETTLE_TOLERANCE = 0.01


class SplitMode(str, Enum):
    """
    How a room's expenses are shared.

    ROOM_AVERAGE: every expense is divided among all current members
                  (one room-wide fair share). This is the historical behavior.
    PER_EXPENSE:  each expense is divided among its own participants.
    """
    ROOM_AVERAGE = "room_average"
    PER_EXPENSE = "per_expense"


@dataclass(frozen=True)
class Settlement:
    """One suggested transfer: from_member pays to_member amount."""
    from_member: str
    to_member: str
    amount: float

    def describe(self) -> str:
        return f"{self.from_member} pays {self.to_member} {self.amount:.2f}"


def compute_balances(room, split_mode: SplitMode = SplitMode.ROOM_AVERAGE) -> Dict[str, float]:
    """
    Net balance per member name, in the room's member order.

    Only current members get an entry. Expenses paid by an id that no longer
    resolves still count towards the room total in ROOM_AVERAGE mode, so such
    rooms do not sum to zero.
    """
    members = list(room.members)
    expenses = list(room.expenses)

    paid: Dict[str, float] = {m.id: 0.0 for m in members}
    for e in expenses:
        if e.payer_id in paid:
            paid[e.payer_id] += e.amount

    owed: Dict[str, float] = {m.id: 0.0 for m in members}
    if split_mode == SplitMode.PER_EXPENSE:
        all_ids = [m.id for m in members]
        for e in expenses:
            sharers = [p for p in dict.fromkeys(e.participant_ids) if p in owed] or all_ids
            if not sharers:
                continue
            share = e.amount / len(sharers)
            for p in sharers:
                owed[p] += share
    else:
        fair_share = sum(e.amount for e in expenses) / max(1, len(members))
        for m in members:
            owed[m.id] = fair_share

    return {m.name: paid[m.id] - owed[m.id] for m in members}


def compute_settlements(
    balances: Mapping[str, float], tolerance: float = SETTLE_TOLERANCE
) -> List[Settlement]:
    """
    Greedy settle-up suggestions.

    - nothing to do when every balance is within tolerance of zero
    - debtors (balance < 0) sorted most negative first
    - creditors (balance > 0) sorted largest first
    - match the current debtor with the current creditor, transfer the smaller
      of the two amounts, and move past whichever side drops below tolerance
    """
    if all(abs(v) < tolerance for v in balances.values()):
        return []

    # store debts as positive amounts still owed
    debtors = [[name, -amt] for name, amt in balances.items() if amt < 0]
    creditors = [[name, amt] for name, amt in balances.items() if amt > 0]
    debtors.sort(key=lambda x: x[1], reverse=True)
    creditors.sort(key=lambda x: x[1], reverse=True)

    settlements: List[Settlement] = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]
        amount = min(debtor[1], creditor[1])
        settlements.append(Settlement(debtor[0], creditor[0], amount))
        debtor[1] -= amount
        creditor[1] -= amount
        if debtor[1] < tolerance:
            i += 1
        if creditor[1] < tolerance:
            j += 1
    return settlements

"""
analytics.py - read-only queries over expenses, credits and the wishlist

SpendingAnalytics wraps the tracker's current lists and recomputes every value
on each call; it holds no derived state of its own. `today` is injectable so
the period totals and rates are testable.

Records with missing or malformed dates are ignored by date-based queries and
still count towards plain totals.
"""

import datetime
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from tallybook.categories import priority_rank
from tallybook.models import Credit, Expense, WishlistItem


def parse_date(value: str) -> Optional[datetime.date]:
    try:
        return datetime.date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def _total(records: Iterable) -> float:
    return sum(r.amount for r in records)


def months_between(start: datetime.date, end: datetime.date) -> int:
    """Whole calendar months elapsed from start to end."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


class SpendingAnalytics:
    """Totals, rates and breakdowns for the home, analysis and rate screens."""

    def __init__(
        self,
        expenses: List[Expense],
        credits: List[Credit],
        today: Optional[datetime.date] = None,
    ):
        self.expenses = list(expenses)
        self.credits = list(credits)
        self.today = today or datetime.date.today()

    # -----------------------
    # Period helpers
    # -----------------------
    def week_start(self) -> datetime.date:
        return self.today - datetime.timedelta(days=self.today.weekday())

    def month_start(self) -> datetime.date:
        return self.today.replace(day=1)

    @staticmethod
    def _on(records, day: datetime.date) -> list:
        return [r for r in records if parse_date(r.date) == day]

    @staticmethod
    def _since(records, start: datetime.date) -> list:
        out = []
        for r in records:
            d = parse_date(r.date)
            if d is not None and d >= start:
                out.append(r)
        return out

    # -----------------------
    # Expense / credit totals
    # -----------------------
    def expenses_on(self, day: datetime.date) -> List[Expense]:
        return self._on(self.expenses, day)

    def credits_on(self, day: datetime.date) -> List[Credit]:
        return self._on(self.credits, day)

    def total_expenses(self) -> float:
        return _total(self.expenses)

    def total_credit(self) -> float:
        return _total(self.credits)

    def net_balance(self) -> float:
        return self.total_credit() - self.total_expenses()

    def period_totals(self) -> Dict[str, Dict[str, float]]:
        """
        Expense, credit and net totals for today, this week (Monday start)
        and this month.
        """
        out: Dict[str, Dict[str, float]] = {}
        ranges = {
            "today": lambda recs: self._on(recs, self.today),
            "week": lambda recs: self._since(recs, self.week_start()),
            "month": lambda recs: self._since(recs, self.month_start()),
        }
        for label, select in ranges.items():
            spent = _total(select(self.expenses))
            earned = _total(select(self.credits))
            out[label] = {"expenses": spent, "credits": earned, "net": earned - spent}
        return out

    # -----------------------
    # Spending rates
    # -----------------------
    def _first_expense_date(self) -> Optional[datetime.date]:
        dates = [d for d in (parse_date(e.date) for e in self.expenses) if d is not None]
        return min(dates) if dates else None

    def daily_spending_rate(self) -> float:
        first = self._first_expense_date()
        if first is None:
            return 0.0
        days = max(1, (self.today - first).days)
        return self.total_expenses() / days

    def weekly_spending_rate(self) -> float:
        first = self._first_expense_date()
        if first is None:
            return 0.0
        weeks = max(1, (self.today - first).days // 7)
        return self.total_expenses() / weeks

    def monthly_spending_rate(self) -> float:
        first = self._first_expense_date()
        if first is None:
            return 0.0
        months = max(1, months_between(first, self.today))
        return self.total_expenses() / months

    def burn_rate(self) -> float:
        """Days the current net balance lasts at the daily spending rate."""
        net = self.net_balance()
        daily = self.daily_spending_rate()
        if net <= 0 or daily <= 0:
            return 0.0
        return net / daily

    def savings_rate(self) -> float:
        """Net balance as a percentage of total credit."""
        earned = self.total_credit()
        if earned <= 0:
            return 0.0
        return self.net_balance() / earned * 100

    def spending_velocity(self) -> float:
        """
        Percentage change between the older and the newer half of expenses
        (by date). With an odd count the middle expense is left out.
        """
        if len(self.expenses) < 2:
            return 0.0
        ordered = sorted(self.expenses, key=lambda e: e.date)
        half = len(ordered) // 2
        first_half = _total(ordered[:half])
        second_half = _total(ordered[-half:])
        if first_half <= 0:
            return 0.0
        return (second_half - first_half) / first_half * 100

    def projected_balance(self, days: int) -> float:
        return self.net_balance() - self.daily_spending_rate() * days

    def projections(self, horizons: Tuple[int, ...] = (30, 60, 90)) -> List[Tuple[int, float]]:
        return [(d, self.projected_balance(d)) for d in horizons]

    def health_score(self) -> float:
        """Financial health score between 0 and 100."""
        score = 50.0

        savings = self.savings_rate()
        if savings > 20:
            score += 30
        elif savings > 10:
            score += 20
        elif savings > 0:
            score += 10

        burn = self.burn_rate()
        if burn > 90:
            score += 25
        elif burn > 60:
            score += 15
        elif burn > 30:
            score += 5

        velocity = self.spending_velocity()
        if velocity < -10:
            score += 20
        elif velocity < 0:
            score += 10
        elif velocity > 20:
            score -= 10

        net = self.net_balance()
        if net > 0:
            score += min(25.0, net / 1000 * 5)
        else:
            score -= 15

        return max(0.0, min(100.0, score))

    def health_status(self) -> str:
        score = self.health_score()
        if score >= 75:
            return "Excellent"
        if score >= 60:
            return "Good"
        if score >= 45:
            return "Fair"
        if score >= 30:
            return "Needs Attention"
        return "Critical"

    # -----------------------
    # Breakdowns
    # -----------------------
    def monthly_summary(self) -> List[Dict]:
        """
        One row per calendar month with any activity, oldest first:
        {"month": date(YYYY, MM, 1), "label": "Jan 2026", "credit", "expense", "net"}
        """
        credit: Dict[datetime.date, float] = defaultdict(float)
        expense: Dict[datetime.date, float] = defaultdict(float)
        for bucket, records in ((credit, self.credits), (expense, self.expenses)):
            for r in records:
                d = parse_date(r.date)
                if d is None:
                    continue
                bucket[d.replace(day=1)] += r.amount
        rows = []
        for month in sorted(set(credit) | set(expense)):
            rows.append({
                "month": month,
                "label": month.strftime("%b %Y"),
                "credit": credit[month],
                "expense": expense[month],
                "net": credit[month] - expense[month],
            })
        return rows

    def daily_trend(self, days: int = 30) -> List[Dict]:
        """Per-day credit and expense totals for the last `days` days, oldest first."""
        start = self.today - datetime.timedelta(days=days)
        credit: Dict[datetime.date, float] = defaultdict(float)
        expense: Dict[datetime.date, float] = defaultdict(float)
        for bucket, records in ((credit, self.credits), (expense, self.expenses)):
            for r in self._since(records, start):
                bucket[parse_date(r.date)] += r.amount
        return [
            {"date": d, "credit": credit[d], "expense": expense[d]}
            for d in sorted(set(credit) | set(expense))
        ]

    def category_totals(self) -> List[Tuple[str, float]]:
        """Expense totals per category, largest first."""
        totals: Dict[str, float] = defaultdict(float)
        for e in self.expenses:
            totals[e.category] += e.amount
        return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)

    def source_totals(self) -> List[Tuple[str, float]]:
        """Credit totals per source, largest first."""
        totals: Dict[str, float] = defaultdict(float)
        for c in self.credits:
            totals[c.source] += c.amount
        return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)


def search_records(records: list, text: str = "", sort_by: str = "date") -> list:
    """
    Case-insensitive search on title and category/source, newest or largest first.
    sort_by is "date" or "amount".
    """
    needle = (text or "").strip().lower()
    out = list(records)
    if needle:
        out = [
            r for r in out
            if needle in r.title.lower()
            or needle in getattr(r, "category", getattr(r, "source", "")).lower()
        ]
    if sort_by == "amount":
        return sorted(out, key=lambda r: r.amount, reverse=True)
    return sorted(out, key=lambda r: r.date, reverse=True)


def sort_wishlist(items: List[WishlistItem], sort_by: str = "date") -> List[WishlistItem]:
    """sort_by is "date" (newest first), "price" (highest first) or "priority"."""
    if sort_by == "price":
        return sorted(items, key=lambda i: i.price, reverse=True)
    if sort_by == "priority":
        return sorted(items, key=lambda i: priority_rank(i.priority))
    return sorted(items, key=lambda i: i.date_added, reverse=True)


WISHLIST_STATUSES = ("all", "pending", "purchased")


def filter_wishlist(items: List[WishlistItem], status: str = "all") -> List[WishlistItem]:
    """Keep all items, only those still to buy, or only purchased ones."""
    if status not in WISHLIST_STATUSES:
        raise ValueError(f"Unknown wishlist status {status!r}.")
    if status == "pending":
        return [i for i in items if not i.is_purchased]
    if status == "purchased":
        return [i for i in items if i.is_purchased]
    return list(items)


def wishlist_totals(items: List[WishlistItem]) -> Dict[str, float]:
    """Value still to buy versus value already purchased."""
    pending = sum(i.price for i in items if not i.is_purchased)
    purchased = sum(i.price for i in items if i.is_purchased)
    return {"pending": pending, "purchased": purchased}

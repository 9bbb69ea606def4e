"""
categories.py - lookup tables for expense categories, credit sources and
wishlist priorities.

The UI uses these to populate dropdowns and to colour charts. Unknown names
fall back to a neutral icon and grey so free-text values from older data still
render.
"""

from typing import List, NamedTuple, Optional


class Category(NamedTuple):
    name: str
    icon: str
    color: str


FALLBACK_ICON = ":material/more_horiz:"
FALLBACK_COLOR = "#7f7f7f"

EXPENSE_CATEGORIES = [
    Category("Food", ":material/restaurant:", "#ff7f0e"),
    Category("Shopping", ":material/shopping_cart:", "#1f77b4"),
    Category("Travel", ":material/flight:", "#2ca02c"),
    Category("Bills", ":material/receipt_long:", "#d62728"),
    Category("Entertainment", ":material/tv:", "#9467bd"),
    Category("Health", ":material/favorite:", "#e377c2"),
    Category("Education", ":material/menu_book:", "#3f51b5"),
    Category("Others", FALLBACK_ICON, FALLBACK_COLOR),
]

CREDIT_SOURCES = [
    Category("Salary", ":material/work:", "#2ca02c"),
    Category("Freelance", ":material/laptop:", "#1f77b4"),
    Category("Investment", ":material/trending_up:", "#9467bd"),
    Category("Gift", ":material/redeem:", "#e377c2"),
    Category("Other", FALLBACK_ICON, FALLBACK_COLOR),
]

# lower rank sorts first
WISHLIST_PRIORITIES = {"High": 0, "Medium": 1, "Low": 2}


def _find(table: List[Category], name: str) -> Optional[Category]:
    return next((c for c in table if c.name == name), None)


def category_names() -> List[str]:
    return [c.name for c in EXPENSE_CATEGORIES]


def source_names() -> List[str]:
    return [c.name for c in CREDIT_SOURCES]


def category_color(name: str) -> str:
    found = _find(EXPENSE_CATEGORIES, name)
    return found.color if found else FALLBACK_COLOR


def category_icon(name: str) -> str:
    found = _find(EXPENSE_CATEGORIES, name)
    return found.icon if found else FALLBACK_ICON


def source_color(name: str) -> str:
    found = _find(CREDIT_SOURCES, name)
    return found.color if found else FALLBACK_COLOR


def source_icon(name: str) -> str:
    found = _find(CREDIT_SOURCES, name)
    return found.icon if found else FALLBACK_ICON


def priority_rank(priority: str) -> int:
    """Sort key for wishlist priorities; unknown values sort last."""
    return WISHLIST_PRIORITIES.get(priority, len(WISHLIST_PRIORITIES))

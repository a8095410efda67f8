from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, Optional

from .models import Category, Expense


def month_start(today: date) -> date:
    return today.replace(day=1)


def week_start(today: date) -> date:
    """Weeks start on Monday."""
    return today - timedelta(days=today.weekday())


@dataclass
class ExpenseStats:
    total: Decimal = Decimal(0)
    this_month: Decimal = Decimal(0)
    this_week: Decimal = Decimal(0)
    count: int = 0
    by_category: Dict[Category, Decimal] = field(default_factory=dict)


def compute_stats(expenses: Iterable[Expense], today: Optional[date] = None) -> ExpenseStats:
    """
    Sums by occurrence date. "This month" runs from the 1st of the current month
    through `today`, "this week" from this week's Monday through `today`.
    Future-dated expenses count toward the total only.
    """
    today = today or date.today()
    m_start, w_start = month_start(today), week_start(today)

    stats = ExpenseStats()
    cat_totals = defaultdict(Decimal)
    for e in expenses:
        stats.total += e.amount
        stats.count += 1
        cat_totals[e.category] += e.amount
        if m_start <= e.date <= today:
            stats.this_month += e.amount
        if w_start <= e.date <= today:
            stats.this_week += e.amount

    stats.by_category = dict(sorted(cat_totals.items(), key=lambda kv: kv[1], reverse=True))
    return stats

import unittest
from datetime import date
from decimal import Decimal

from expense_tracker.models import Category, Expense
from expense_tracker.stats import compute_stats, month_start, week_start


def _expense(i, amount, when, category=Category.FOOD):
    return Expense(id=str(i), user_id="u1", amount=Decimal(amount), category=category,
                   description="", date=when)


class TestComputeStats(unittest.TestCase):
    # Wednesday; the week started Monday 2024-05-13
    today = date(2024, 5, 15)

    def setUp(self):
        self.expenses = [
            _expense(1, "10.00", date(2024, 5, 15)),                       # this week
            _expense(2, "20.00", date(2024, 5, 13), Category.RENT),        # this week (Monday)
            _expense(3, "5.50", date(2024, 5, 12)),                        # this month, last week
            _expense(4, "100.00", date(2024, 4, 30), Category.RENT),       # last month
        ]

    def test_boundaries(self):
        self.assertEqual(month_start(self.today), date(2024, 5, 1))
        self.assertEqual(week_start(self.today), date(2024, 5, 13))

    def test_sums(self):
        stats = compute_stats(self.expenses, today=self.today)
        self.assertEqual(stats.total, Decimal("135.50"))
        self.assertEqual(stats.this_month, Decimal("35.50"))
        self.assertEqual(stats.this_week, Decimal("30.00"))
        self.assertEqual(stats.count, 4)
        self.assertEqual(list(stats.by_category), [Category.RENT, Category.FOOD])
        self.assertEqual(stats.by_category[Category.FOOD], Decimal("15.50"))

    def test_total_is_month_plus_older_plus_future(self):
        for today in (self.today, date(2024, 5, 3)):
            with self.subTest(today=today):
                stats = compute_stats(self.expenses, today=today)
                older = sum(e.amount for e in self.expenses if e.date < month_start(today))
                future = sum(e.amount for e in self.expenses if e.date > today)
                self.assertEqual(stats.total, stats.this_month + older + future)

    def test_future_dated_expense_is_not_this_month_or_week(self):
        upcoming = _expense(5, "99.00", date(2024, 5, 16))
        stats = compute_stats(self.expenses + [upcoming], today=self.today)
        self.assertEqual(stats.this_month, Decimal("35.50"))
        self.assertEqual(stats.this_week, Decimal("30.00"))
        self.assertEqual(stats.total, Decimal("234.50"))

    def test_week_spanning_two_months(self):
        # Friday 2024-05-03: the week started Monday 2024-04-29
        stats = compute_stats(self.expenses, today=date(2024, 5, 3))
        # everything dated after the 3rd is still in the future
        self.assertEqual(stats.this_week, Decimal("100.00"))
        self.assertEqual(stats.this_month, Decimal("0"))

    def test_empty(self):
        stats = compute_stats([], today=self.today)
        self.assertEqual(stats.total, Decimal(0))
        self.assertEqual(stats.by_category, {})


if __name__ == "__main__":
    unittest.main()

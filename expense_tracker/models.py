from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional

from .config import CURRENCY
from .errors import ValidationError

CENTS = Decimal("0.01")
AMOUNT_RE = re.compile(r"\d+(\.\d{1,2})?")  # digits with up to two decimals


class Category(str, Enum):
    FOOD = "food"
    RENT = "rent"
    TRANSPORTATION = "transportation"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    HEALTHCARE = "healthcare"
    UTILITIES = "utilities"
    EDUCATION = "education"
    OTHER = "other"

    @property
    def label(self) -> str:
        return self.value.capitalize()


CATEGORIES = [c.value for c in Category]


# -------------------- Helpers: Money, Dates --------------------
def format_money(d: Decimal) -> str:
    return f"{CURRENCY}{d.quantize(CENTS, rounding=ROUND_HALF_UP):,}"


def parse_amount(value: Any) -> Decimal:
    """Text or number from a form or a document -> non-negative Decimal with cents.

    Input is taken exactly as written: "1,250" or "0.005" are rejected rather than
    guessed at or rounded.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError("Amount is required.")
    text = str(value).strip()
    if text.startswith("-"):
        raise ValidationError("Amount cannot be negative.")
    if not AMOUNT_RE.fullmatch(text):
        raise ValidationError(f"Amount must be a number with at most two decimals, got {value!r}.")
    return Decimal(text).quantize(CENTS)


def parse_category(value: Any) -> Category:
    if isinstance(value, Category):
        return value
    try:
        return Category(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown category {value!r}. Choose one of: {', '.join(CATEGORIES)}."
        ) from None


def parse_date(value: Any) -> date:
    """Accepts a date, a datetime or an ISO string ("2024-05-01" or a full timestamp)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValidationError("Date is required.")
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD.") from None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# -------------------- Records --------------------
@dataclass
class Expense:
    id: str
    user_id: str
    amount: Decimal
    category: Category
    description: str
    date: date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict) -> "Expense":
        return cls(
            id=doc["$id"],
            user_id=doc.get("userId", ""),
            amount=parse_amount(doc.get("amount", 0)),
            category=parse_category(doc.get("category")),
            description=doc.get("description") or "",
            date=parse_date(doc.get("date")),
            created_at=parse_timestamp(doc.get("createdAt")),
            updated_at=parse_timestamp(doc.get("updatedAt")),
        )

    def to_row(self) -> dict:
        return {
            "Date": self.date.isoformat(),
            "Category": self.category.label,
            "Description": self.description,
            "Amount": float(self.amount),
        }


@dataclass
class NewExpense:
    """Form input for a record that does not exist remotely yet."""

    user_id: str
    amount: Decimal
    category: Category
    description: str = ""
    date: date = field(default_factory=date.today)

    @classmethod
    def parse(cls, user_id: str, amount: Any, category: Any, description: str = "",
              when: Any = None) -> "NewExpense":
        if not user_id:
            raise ValidationError("An expense needs an owner.")
        return cls(
            user_id=user_id,
            amount=parse_amount(amount),
            category=parse_category(category),
            description=(description or "").strip(),
            date=parse_date(when) if when else date.today(),
        )


@dataclass
class User:
    id: str
    email: str
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.email

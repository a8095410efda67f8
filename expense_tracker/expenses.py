from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Mapping, Optional

from .backend import ID, DocumentStore, Query, owner_permissions
from .errors import BackendError, FetchError, MutationError, ValidationError
from .models import (
    Expense,
    NewExpense,
    format_timestamp,
    parse_amount,
    parse_category,
    parse_date,
    utc_now,
)
from .state import AppState

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
IMMUTABLE_FIELDS = {"id", "$id", "user_id", "userId", "created_at", "createdAt", "updated_at", "updatedAt"}


def newest_first(expenses: Iterable[Expense]) -> List[Expense]:
    return sorted(expenses, key=lambda e: e.created_at or EPOCH, reverse=True)


def _patch_to_fields(patch: Mapping[str, Any]) -> dict:
    """Form-level patch -> document fields. Immutable keys are dropped, unknown keys rejected."""
    data = {}
    for key, value in patch.items():
        if key in IMMUTABLE_FIELDS:
            continue
        if key == "amount":
            data["amount"] = float(parse_amount(value))
        elif key == "category":
            data["category"] = parse_category(value).value
        elif key == "description":
            data["description"] = (value or "").strip()
        elif key == "date":
            data["date"] = parse_date(value).isoformat()
        else:
            raise ValidationError(f"Unknown expense field {key!r}.")
    return data


class ExpenseCollection:
    """The signed-in user's expenses, mirrored in AppState.expenses."""

    def __init__(
        self,
        store: DocumentStore,
        state: AppState,
        database_id: str,
        collection_id: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.state = state
        self.database_id = database_id
        self.collection_id = collection_id
        self._clock = clock

    @property
    def _acting_user(self) -> Optional[str]:
        return self.state.user.id if self.state.user else None

    def get(self, expense_id: str) -> Optional[Expense]:
        return next((e for e in self.state.expenses if e.id == expense_id), None)

    # -------------------- fetch --------------------
    def fetch_all(self, user_id: str) -> List[Expense]:
        """Replaces the shared list. Failure leaves an empty list and the FetchError in state.error, never raises."""
        queries = [Query.equal("userId", user_id), Query.order_desc("createdAt")]
        try:
            docs = self.store.list_documents(self.database_id, self.collection_id, queries, user_id=user_id)
        except BackendError as e:
            logger.error("Error fetching expenses: %s", e)
            self.state.expenses = []
            self.state.error = FetchError(f"Could not load expenses: {e.reason}")
            return []

        expenses = []
        for doc in docs:
            try:
                expenses.append(Expense.from_document(doc))
            except (ValidationError, KeyError, ValueError) as e:
                logger.warning("Skipping malformed expense %s: %s", doc.get("$id"), e)
        self.state.expenses = newest_first(expenses)
        self.state.error = None
        self.state.loaded_for = user_id
        return self.state.expenses

    # -------------------- create --------------------
    def create(self, new: NewExpense) -> Expense:
        now = format_timestamp(self._clock())
        data = {
            "userId": new.user_id,
            "amount": float(new.amount),
            "category": new.category.value,
            "description": new.description,
            "date": new.date.isoformat(),
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            doc = self.store.create_document(
                self.database_id,
                self.collection_id,
                ID.unique(),
                data,
                permissions=owner_permissions(new.user_id),
            )
        except BackendError as e:
            logger.error("Error adding expense: %s", e)
            raise MutationError(f"Could not add expense: {e.reason}") from e

        expense = Expense.from_document(doc)
        self.state.expenses = newest_first([expense, *self.state.expenses])
        return expense

    # -------------------- update --------------------
    def update(self, expense_id: str, patch: Mapping[str, Any]) -> Expense:
        data = _patch_to_fields(patch)
        now = self._clock()
        current = self.get(expense_id)
        if current is not None and current.updated_at is not None and now < current.updated_at:
            now = current.updated_at
        data["updatedAt"] = format_timestamp(now)

        try:
            doc = self.store.update_document(
                self.database_id, self.collection_id, expense_id, data, user_id=self._acting_user
            )
        except BackendError as e:
            logger.error("Error updating expense %s: %s", expense_id, e)
            raise MutationError(f"Could not update expense: {e.reason}") from e

        updated = Expense.from_document(doc)
        self.state.expenses = [updated if e.id == expense_id else e for e in self.state.expenses]
        return updated

    # -------------------- delete --------------------
    def delete(self, expense_id: str) -> None:
        try:
            self.store.delete_document(
                self.database_id, self.collection_id, expense_id, user_id=self._acting_user
            )
        except BackendError as e:
            logger.error("Error deleting expense %s: %s", expense_id, e)
            raise MutationError(f"Could not delete expense: {e.reason}") from e
        self.state.expenses = [e for e in self.state.expenses if e.id != expense_id]

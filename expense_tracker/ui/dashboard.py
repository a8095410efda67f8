from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import MutableMapping, Optional

import pandas as pd
import plotly.express as px
import streamlit as st

from ..errors import MutationError, ValidationError
from ..expenses import ExpenseCollection
from ..models import CATEGORIES, Category, Expense, NewExpense, format_money, parse_amount, parse_category, parse_date
from ..session import SessionManager
from ..stats import ExpenseStats, compute_stats

UI_KEY = "dashboard_ui"


@dataclass
class ExpenseFormValues:
    amount: str = ""
    category: str = Category.FOOD.value
    description: str = ""
    date: date = field(default_factory=date.today)

    @classmethod
    def from_expense(cls, expense: Expense) -> "ExpenseFormValues":
        return cls(
            amount=str(expense.amount),
            category=expense.category.value,
            description=expense.description,
            date=expense.date,
        )


@dataclass
class DashboardUI:
    """Ephemeral dashboard state; the expense list itself lives in AppState."""

    form_open: bool = False
    edit_target: Optional[Expense] = None
    values: ExpenseFormValues = field(default_factory=ExpenseFormValues)
    form_version: int = 0
    pending_delete: Optional[str] = None
    error: Optional[str] = None
    notice: Optional[str] = None


def get_dashboard_ui(session_state: MutableMapping) -> DashboardUI:
    if UI_KEY not in session_state:
        session_state[UI_KEY] = DashboardUI()
    return session_state[UI_KEY]


class DashboardController:
    def __init__(self, collection: ExpenseCollection, ui: DashboardUI):
        self.collection = collection
        self.ui = ui

    @property
    def state(self):
        return self.collection.state

    @property
    def expenses(self):
        return self.state.expenses

    @property
    def stats(self) -> ExpenseStats:
        return compute_stats(self.state.expenses)

    def load(self, force: bool = False) -> None:
        user = self.state.user
        if user is None:
            return
        if force or self.state.loaded_for != user.id:
            self.collection.fetch_all(user.id)
            self.ui.error = str(self.state.error) if self.state.error else None

    # -------------------- form --------------------
    def _reset_form(self) -> None:
        self.ui.form_open = False
        self.ui.edit_target = None
        self.ui.values = ExpenseFormValues()
        self.ui.form_version += 1

    def open_new(self) -> None:
        self._reset_form()
        self.ui.form_open = True
        self.ui.error = None

    def begin_edit(self, expense_id: str) -> None:
        expense = self.collection.get(expense_id)
        if expense is None:
            self.ui.error = "That expense no longer exists."
            return
        self.ui.edit_target = expense
        self.ui.values = ExpenseFormValues.from_expense(expense)
        self.ui.form_open = True
        self.ui.form_version += 1
        self.ui.error = None

    def cancel(self) -> None:
        self._reset_form()
        self.ui.error = None

    def _changed_fields(self, target: Expense, values: ExpenseFormValues) -> dict:
        patch = {}
        if parse_amount(values.amount) != target.amount:
            patch["amount"] = values.amount
        if parse_category(values.category) != target.category:
            patch["category"] = values.category
        if values.description.strip() != target.description:
            patch["description"] = values.description
        if parse_date(values.date) != target.date:
            patch["date"] = values.date
        return patch

    def submit(self, values: ExpenseFormValues) -> bool:
        """Update when editing, create otherwise. Returns True on success."""
        user = self.state.user
        if user is None:
            self.ui.error = "Please log in again."
            return False
        self.ui.values = values
        target = self.ui.edit_target
        try:
            if target is not None:
                self.collection.update(target.id, self._changed_fields(target, values))
                notice = "Expense updated."
            else:
                new = NewExpense.parse(user.id, values.amount, values.category, values.description, values.date)
                self.collection.create(new)
                notice = "Expense added."
        except (ValidationError, MutationError) as e:
            self.ui.error = str(e)
            return False

        self._reset_form()
        self.ui.error = None
        self.ui.notice = notice
        return True

    # -------------------- delete --------------------
    def request_delete(self, expense_id: str) -> None:
        self.ui.pending_delete = expense_id

    def cancel_delete(self) -> None:
        self.ui.pending_delete = None

    def confirm_delete(self) -> bool:
        expense_id = self.ui.pending_delete
        if expense_id is None:
            return False
        self.ui.pending_delete = None
        try:
            self.collection.delete(expense_id)
        except MutationError as e:
            self.ui.error = str(e)
            return False
        if self.ui.edit_target is not None and self.ui.edit_target.id == expense_id:
            self._reset_form()
        self.ui.error = None
        self.ui.notice = "Expense deleted."
        return True


# -------------------- UI: Dashboard --------------------
def expenses_frame(expenses) -> pd.DataFrame:
    columns = ["Date", "Category", "Description", "Amount"]
    return pd.DataFrame([e.to_row() for e in expenses], columns=columns)


def category_frame(stats: ExpenseStats) -> pd.DataFrame:
    return pd.DataFrame(
        {"Category": [c.label for c in stats.by_category], "Total": [float(v) for v in stats.by_category.values()]}
    )


def _render_sidebar(sessions: SessionManager) -> None:
    user = sessions.state.user
    with st.sidebar:
        st.markdown("### Account")
        st.caption(f"Signed in as {user.display_name if user else 'unknown'}")
        if st.button("Logout"):
            sessions.logout()
            st.session_state.pop(UI_KEY, None)
            st.rerun()


def _render_kpis(stats: ExpenseStats) -> None:
    k1, k2, k3, k4 = st.columns(4)
    k1.metric("Total", format_money(stats.total))
    k2.metric("This Month", format_money(stats.this_month))
    k3.metric("This Week", format_money(stats.this_week))
    k4.metric("Expenses", stats.count)


def _render_form(ctl: DashboardController) -> None:
    ui = ctl.ui
    editing = ui.edit_target is not None
    st.subheader("Edit Expense" if editing else "Add Expense")
    v = ui.values
    suffix = f"{ui.edit_target.id if editing else 'new'}_{ui.form_version}"

    with st.form(f"expense_form_{suffix}"):
        c1, c2 = st.columns(2)
        with c1:
            amount = st.text_input("Amount", value=v.amount, key=f"amount_{suffix}")
            category = st.selectbox(
                "Category",
                CATEGORIES,
                index=CATEGORIES.index(v.category) if v.category in CATEGORIES else 0,
                format_func=lambda c: Category(c).label,
                key=f"category_{suffix}",
            )
        with c2:
            when = st.date_input("Date", value=v.date, key=f"date_{suffix}")
            description = st.text_input("Description", value=v.description, key=f"description_{suffix}")
        b1, b2 = st.columns(2)
        save = b1.form_submit_button("Update" if editing else "Add", type="primary")
        cancel = b2.form_submit_button("Cancel")

    if cancel:
        ctl.cancel()
        st.rerun()
    if save:
        values = ExpenseFormValues(amount=amount, category=category, description=description, date=when)
        with st.spinner("Saving..."):
            ok = ctl.submit(values)
        if ok:
            st.rerun()


def _render_list(ctl: DashboardController) -> None:
    st.subheader("Expenses")
    if not ctl.expenses:
        st.info("No expenses yet. Use 'Add Expense' to record one.")
        return

    for e in ctl.expenses:
        c1, c2, c3, c4, c5 = st.columns([2, 2, 4, 2, 2])
        c1.write(e.date.isoformat())
        c2.write(e.category.label)
        c3.write(e.description or "—")
        c4.write(format_money(e.amount))
        with c5:
            if ctl.ui.pending_delete == e.id:
                st.warning("Delete this expense?")
                y, n = st.columns(2)
                if y.button("Yes", key=f"confirm_{e.id}"):
                    ctl.confirm_delete()
                    st.rerun()
                if n.button("No", key=f"keep_{e.id}"):
                    ctl.cancel_delete()
                    st.rerun()
            else:
                b1, b2 = st.columns(2)
                if b1.button("Edit", key=f"edit_{e.id}"):
                    ctl.begin_edit(e.id)
                    st.rerun()
                if b2.button("Delete", key=f"delete_{e.id}"):
                    ctl.request_delete(e.id)
                    st.rerun()


def _render_breakdown(ctl: DashboardController, stats: ExpenseStats) -> None:
    if not stats.by_category:
        return
    st.subheader("Spending by Category")
    tbl = category_frame(stats)
    fig_bar = px.bar(tbl, x="Category", y="Total", title="Expenses by Category", text_auto=True)
    fig_bar.update_layout(xaxis_tickangle=-45, height=350, margin=dict(t=60, b=10))
    st.plotly_chart(fig_bar, use_container_width=True)
    if stats.total > 0:
        fig_pie = px.pie(tbl, names="Category", values="Total", title="Distribution", hole=0.4)
        st.plotly_chart(fig_pie, use_container_width=True)

    csv = expenses_frame(ctl.expenses).to_csv(index=False).encode("utf-8")
    st.download_button("Download Expenses CSV", csv, file_name="expenses.csv", mime="text/csv")


def render_dashboard(sessions: SessionManager, ctl: DashboardController) -> None:
    _render_sidebar(sessions)

    with st.spinner("Loading expenses..."):
        ctl.load()

    if ctl.ui.notice:
        st.success(ctl.ui.notice)
        ctl.ui.notice = None
    if ctl.ui.error:
        st.error(ctl.ui.error)

    stats = ctl.stats
    _render_kpis(stats)
    st.markdown("---")

    if ctl.ui.form_open:
        _render_form(ctl)
    elif st.button("Add Expense", type="primary"):
        ctl.open_new()
        st.rerun()

    st.markdown("---")
    _render_list(ctl)
    st.markdown("---")
    _render_breakdown(ctl, stats)

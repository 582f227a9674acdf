"""
Read-side Summaries

DESIGN DECISION: Summaries are DETERMINISTIC functions of the live state.
They read AppState (soft-deleted records already excluded) and never
touch the store, so the UI can recompute them on every notification.

Money is summed as Decimal. Loans/repayments and business
deliveries/payments are balances of their own and never mix into
income/expense profit.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel

from devlife.models.records import (
    AppState,
    FinanceEntry,
    FinanceType,
    Priority,
    ProjectStatus,
    Task,
    parse_timestamp,
)


class FinanceView(str, Enum):
    """Finance list filters. Any FinanceType value is also a view."""
    ALL = "all"
    INCOME = "income"
    EXPENSE = "expense"
    LOAN = "loan"
    REPAYMENT = "repayment"
    BUSINESS_DELIVERY = "business_delivery"
    BUSINESS_PAYMENT = "business_payment"
    PROFIT = "profit"
    BUSINESS_BALANCE = "business_balance"


class TaskStatusFilter(str, Enum):
    ALL = "All"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    OVERDUE = "Overdue"


_VIEW_TYPES: dict[FinanceView, set[FinanceType]] = {
    FinanceView.PROFIT: {FinanceType.INCOME, FinanceType.EXPENSE},
    FinanceView.BUSINESS_BALANCE: {
        FinanceType.BUSINESS_DELIVERY,
        FinanceType.BUSINESS_PAYMENT,
    },
}


class FinanceSummary(BaseModel):
    revenue: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    loan_balance: Decimal = Decimal("0")
    receivables: Decimal = Decimal("0")


class DashboardStats(BaseModel):
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    active_projects: int = 0
    tasks_due_today: int = 0
    high_priority_tasks: int = 0
    overdue_tasks: int = 0
    pending_sync: int = 0


def _total(entries: Iterable[FinanceEntry], *types: FinanceType) -> Decimal:
    return sum((e.amount for e in entries if e.type in types), Decimal("0"))


def summarize_finances(entries: list[FinanceEntry]) -> FinanceSummary:
    """Totals per kind of money movement."""
    income = _total(entries, FinanceType.INCOME)
    expense = _total(entries, FinanceType.EXPENSE)
    return FinanceSummary(
        revenue=income,
        expenses=expense,
        profit=income - expense,
        loan_balance=_total(entries, FinanceType.LOAN) - _total(entries, FinanceType.REPAYMENT),
        receivables=(
            _total(entries, FinanceType.BUSINESS_DELIVERY)
            - _total(entries, FinanceType.BUSINESS_PAYMENT)
        ),
    )


def filter_finances(
    entries: list[FinanceEntry],
    view: FinanceView = FinanceView.ALL,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[FinanceEntry]:
    """
    Entries matching a view and an inclusive date range.

    Entries without a date are kept only when no range is given.
    """
    view = FinanceView(view)
    if view == FinanceView.ALL:
        types = set(FinanceType)
    else:
        types = _VIEW_TYPES.get(view) or {FinanceType(view.value)}

    results = []
    for entry in entries:
        if entry.type not in types:
            continue
        if start_date or end_date:
            if entry.date is None:
                continue
            if start_date and entry.date < start_date:
                continue
            if end_date and entry.date > end_date:
                continue
        results.append(entry)
    return results


def is_overdue(task: Task, now: datetime) -> bool:
    """Open task whose due day has fully passed."""
    if task.completed or task.due_date is None:
        return False
    end_of_day = datetime.combine(task.due_date, time(23, 59, 59), tzinfo=timezone.utc)
    return end_of_day < now


def filter_tasks(
    tasks: list[Task],
    now: datetime,
    search: str = "",
    priority: Optional[Priority] = None,
    status: TaskStatusFilter = TaskStatusFilter.ACTIVE,
) -> list[Task]:
    """
    Tasks matching a title search, priority and status, High priority
    first, then by due date (undated last).
    """
    now = parse_timestamp(now)
    needle = search.strip().lower()
    status = TaskStatusFilter(status)

    results = []
    for task in tasks:
        if needle and needle not in task.title.lower():
            continue
        if priority is not None and task.priority != priority:
            continue
        overdue = is_overdue(task, now)
        if status == TaskStatusFilter.ACTIVE and (task.completed or overdue):
            continue
        if status == TaskStatusFilter.COMPLETED and not task.completed:
            continue
        if status == TaskStatusFilter.OVERDUE and not overdue:
            continue
        results.append(task)

    return sorted(
        results,
        key=lambda t: (
            t.priority != Priority.HIGH,
            t.due_date is None,
            t.due_date or date.max,
        ),
    )


def dashboard_stats(state: AppState, now: datetime, pending_sync: int = 0) -> DashboardStats:
    """Headline numbers for the dashboard."""
    now = parse_timestamp(now)
    today = now.date()
    open_tasks = [t for t in state.tasks if not t.completed]

    total_income = _total(state.finances, FinanceType.INCOME, FinanceType.BUSINESS_PAYMENT)
    total_expense = _total(state.finances, FinanceType.EXPENSE)

    return DashboardStats(
        total_income=total_income,
        total_expense=total_expense,
        profit=total_income - total_expense,
        active_projects=sum(
            1 for p in state.projects
            if p.status in (ProjectStatus.IN_PROGRESS, ProjectStatus.PLANNING)
        ),
        tasks_due_today=sum(1 for t in open_tasks if t.due_date == today),
        high_priority_tasks=sum(1 for t in open_tasks if t.priority == Priority.HIGH),
        overdue_tasks=sum(1 for t in open_tasks if is_overdue(t, now)),
        pending_sync=pending_sync,
    )

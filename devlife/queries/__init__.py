"""Read-side summaries package."""

from devlife.queries.summaries import (
    DashboardStats,
    FinanceSummary,
    FinanceView,
    TaskStatusFilter,
    dashboard_stats,
    filter_finances,
    filter_tasks,
    is_overdue,
    summarize_finances,
)

__all__ = [
    "DashboardStats",
    "FinanceSummary",
    "FinanceView",
    "TaskStatusFilter",
    "dashboard_stats",
    "filter_finances",
    "filter_tasks",
    "is_overdue",
    "summarize_finances",
]

"""Sync activity logging package."""

from devlife.audit.logger import SyncActivityLogger, create_correlation_id

__all__ = ["SyncActivityLogger", "create_correlation_id"]

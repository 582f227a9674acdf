"""Local store package."""

from devlife.store.local_store import LocalStore, Repository

__all__ = ["LocalStore", "Repository"]

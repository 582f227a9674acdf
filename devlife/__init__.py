"""
DevLife - Offline-first Personal Productivity Core

Local-first storage for projects, finances, tasks and an API-key vault,
with background synchronization to a remote backend.

DESIGN PRINCIPLES:
1. Every edit lands locally first, no network wait
2. The local store is the only mutation path
3. Last write wins, by timestamp
4. Sync failures never interrupt the user
5. Remote backend is swappable
"""

__version__ = "1.0.0"
__author__ = "DevLife Team"

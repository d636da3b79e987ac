"""CLI commands for coach-sync."""

from .athletes import athletes
from .init import init
from .plan import plan
from .serve import serve
from .sync import drain, ledger, sync

__all__ = [
    "athletes",
    "drain",
    "init",
    "ledger",
    "plan",
    "serve",
    "sync",
]

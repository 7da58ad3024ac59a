"""Click commands for stocksync.

Run ``python -m stocksync.interfaces.cli`` or the installed ``stocksync``
script.
"""

from .__main__ import cli
from .lookup import lookup, reserve_link
from .serve import schedule, serve
from .status import runs, status
from .sync import check_provider, sync

__all__ = [
    "check_provider",
    "cli",
    "lookup",
    "reserve_link",
    "runs",
    "schedule",
    "serve",
    "status",
    "sync",
]

"""Security branch rebase with automatic resolution of generated artifact conflicts."""

from ci_housekeeping.rebase.conflicts import ConflictResolver, classify_conflict
from ci_housekeeping.rebase.security import SecurityRebaser

__all__ = ["ConflictResolver", "SecurityRebaser", "classify_conflict"]

"""ci-housekeeping data models.

- CheckReport: artifact check outcome
- RebaseResult / ConflictKind: security branch rebase
- QueueRunResult / QueueAction / QueuePhase: tracker queue maintenance
- PrelaunchResult / JobLaunch: bulk CI job launches
- PatchSummary / PatchSetSummary / FileChange: patch change summaries
"""

from ci_housekeeping.models.patch import FileChange, PatchSetSummary, PatchSummary
from ci_housekeeping.models.results import (
    CheckReport,
    ConflictKind,
    JobLaunch,
    PrelaunchResult,
    QueueAction,
    QueuePhase,
    QueueRunResult,
    RebaseResult,
)

__all__ = [
    "CheckReport",
    "ConflictKind",
    "FileChange",
    "JobLaunch",
    "PatchSetSummary",
    "PatchSummary",
    "PrelaunchResult",
    "QueueAction",
    "QueuePhase",
    "QueueRunResult",
    "RebaseResult",
]

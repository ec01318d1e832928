"""Result entities returned by the housekeeping operations.

- CheckReport: outcome of an artifact check (less-check, build-check)
- ConflictKind: classification of a conflicting path during a rebase
- RebaseResult: outcome of a security branch rebase
- QueuePhase / QueueAction / QueueRunResult: tracker queue maintenance
- JobLaunch / PrelaunchResult: bulk CI job launches
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


@dataclass
class CheckReport:
    """Outcome of an artifact check.

    Attributes:
        name: Check name
        success: Whether every verification passed
        lines: Report lines, as written to the report file
        changes: Paths whose regenerated content differs from git
    """

    name: str
    success: bool = True
    lines: list[str] = field(default_factory=list)
    changes: list[str] = field(default_factory=list)

    def fail(self) -> None:
        """Mark the check as failed."""
        self.success = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "success": self.success,
            "lines": self.lines,
            "changes": self.changes,
        }


class ConflictKind(Enum):
    """What a conflicting path is, and so how it gets resolved."""

    STYLESHEET = "stylesheet"
    YUI_BUILD = "yui_build"
    AMD_BUILD = "amd_build"
    UNRESOLVABLE = "unresolvable"


@dataclass
class RebaseResult:
    """Outcome of a security branch rebase.

    Attributes:
        branch: Security branch rebased
        success: Whether the rebase completed
        clean: Whether the rebase applied without conflicts
        loops: Number of `rebase --continue` failures retried
        conflicts_resolved: Conflicting paths regenerated, in order
        pushed: Whether both branches were force pushed
    """

    branch: str
    success: bool = False
    clean: bool = True
    loops: int = 0
    conflicts_resolved: list[str] = field(default_factory=list)
    pushed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch": self.branch,
            "success": self.success,
            "clean": self.clean,
            "loops": self.loops,
            "conflicts_resolved": self.conflicts_resolved,
            "pushed": self.pushed,
        }


class QueuePhase(Enum):
    """Release phase driving the queue rules."""

    BEFORE_RELEASE = "before"
    AFTER_RELEASE = "after"


@dataclass
class QueueAction:
    """A change applied (or, in dry-run, planned) to one issue.

    Attributes:
        rule: Rule that produced the action (A1, A2, A3a, A3b, B1a, B1b)
        issue: Issue key
        action: "held" or "moved_to_current"
    """

    rule: str
    issue: str
    action: str

    def log_line(self, timestamp: str) -> str:
        return f"{timestamp} {self.issue} {self.rule} {self.action}"


@dataclass
class QueueRunResult:
    """Outcome of one queue maintenance run.

    Attributes:
        today: Date the run was evaluated for
        phase: Before or after release
        last_week: Whether the before-release run is in the last week (hold mode)
        rules: Rules executed, in order
        actions: Changes applied
        dry_run: Whether writes were skipped
    """

    today: date
    phase: QueuePhase
    last_week: bool = False
    rules: list[str] = field(default_factory=list)
    actions: list[QueueAction] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": self.today.isoformat(),
            "phase": self.phase.value,
            "last_week": self.last_week,
            "rules": self.rules,
            "actions": [
                {"rule": a.rule, "issue": a.issue, "action": a.action} for a in self.actions
            ],
            "dry_run": self.dry_run,
        }


@dataclass
class JobLaunch:
    """One Jenkins job launched for an issue."""

    issue: str
    job_type: str
    label: str
    success: bool
    output: str = ""


@dataclass
class PrelaunchResult:
    """Outcome of a bulk job launch.

    Attributes:
        launches: Jobs launched
        skipped: Issues skipped, with the reason
    """

    launches: list[JobLaunch] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(launch.success for launch in self.launches)

"""Patch summary entities.

- FileChange: one file touched by a patch
- PatchSummary: one patch (one mail of a format-patch series, or a bare diff)
- PatchSetSummary: every patch read from one or more files
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class FileChange:
    """Single file changed by a patch.

    Attributes:
        path: Path after the change (path before it for deletions)
        old_path: Path before the change, when it differs (renames)
        status: added, deleted, renamed or modified
        additions: Lines added
        deletions: Lines removed
        binary: Whether git reported a binary change
        generated: Whether the file is a generated build artifact
    """

    path: str
    old_path: str | None = None
    status: str = "modified"
    additions: int = 0
    deletions: int = 0
    binary: bool = False
    generated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "old_path": self.old_path,
            "status": self.status,
            "additions": self.additions,
            "deletions": self.deletions,
            "binary": self.binary,
            "generated": self.generated,
        }


@dataclass
class PatchSummary:
    """Structured summary of a single patch.

    Attributes:
        subject: Commit subject, without the [PATCH n/m] prefix
        author: Author name
        email: Author email
        date: Author date
        commit: Commit id from the mbox separator line
        issue_keys: Tracker issue keys mentioned in subject or message
        files: Files changed
        source: File the patch was read from
    """

    subject: str = ""
    author: str | None = None
    email: str | None = None
    date: datetime | None = None
    commit: str | None = None
    issue_keys: list[str] = field(default_factory=list)
    files: list[FileChange] = field(default_factory=list)
    source: str | None = None

    @property
    def additions(self) -> int:
        return sum(f.additions for f in self.files)

    @property
    def deletions(self) -> int:
        return sum(f.deletions for f in self.files)

    @property
    def generated_files(self) -> list[FileChange]:
        return [f for f in self.files if f.generated]

    @property
    def components(self) -> list[str]:
        """Components touched, in first-seen order."""
        seen: list[str] = []
        for change in self.files:
            component = component_of(change.path)
            if component not in seen:
                seen.append(component)
        return seen

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "author": self.author,
            "email": self.email,
            "date": self.date.isoformat() if self.date else None,
            "commit": self.commit,
            "issue_keys": self.issue_keys,
            "components": self.components,
            "files": [f.to_dict() for f in self.files],
            "totals": {
                "files": len(self.files),
                "additions": self.additions,
                "deletions": self.deletions,
                "generated": len(self.generated_files),
            },
            "source": self.source,
        }


@dataclass
class PatchSetSummary:
    """All patches summarized in one run."""

    patches: list[PatchSummary] = field(default_factory=list)

    @property
    def issue_keys(self) -> list[str]:
        keys: list[str] = []
        for patch in self.patches:
            for key in patch.issue_keys:
                if key not in keys:
                    keys.append(key)
        return keys

    @property
    def file_count(self) -> int:
        return len({f.path for p in self.patches for f in p.files})

    @property
    def additions(self) -> int:
        return sum(p.additions for p in self.patches)

    @property
    def deletions(self) -> int:
        return sum(p.deletions for p in self.patches)

    def to_dict(self) -> dict[str, Any]:
        return {
            "patches": [p.to_dict() for p in self.patches],
            "issue_keys": self.issue_keys,
            "totals": {
                "patches": len(self.patches),
                "files": self.file_count,
                "additions": self.additions,
                "deletions": self.deletions,
            },
        }


# Plugin type directories: the first two segments name the plugin (mod/forum).
PLUGIN_ROOTS = {
    "auth", "availability", "blocks", "enrol", "filter", "local",
    "message", "mod", "question", "report", "repository", "theme",
}


def component_of(path: str) -> str:
    """Component a path belongs to: plugin directory or top-level directory."""
    parts = path.split("/")
    if len(parts) == 1:
        return "core"
    if parts[0] in PLUGIN_ROOTS and len(parts) > 2:
        return "/".join(parts[:2])
    return parts[0]

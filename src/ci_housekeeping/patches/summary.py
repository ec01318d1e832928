"""Structured change summaries from patch files.

Accepts `git format-patch` output (one or more mails in mbox form) or a
bare unified diff, and extracts subject, author, date, tracker issue keys
and per-file line statistics. Files that are generated build artifacts are
flagged, since reviewers regenerate rather than read them.
"""

import email
import email.policy
import logging
import re
from collections.abc import Iterable, Sequence
from email.message import EmailMessage
from email.utils import parseaddr, parsedate_to_datetime
from pathlib import Path

from ci_housekeeping.config import StyleTarget, default_style_targets
from ci_housekeeping.models.patch import FileChange, PatchSetSummary, PatchSummary
from ci_housekeeping.models.results import ConflictKind
from ci_housekeeping.rebase.conflicts import classify_conflict

logger = logging.getLogger(__name__)

# "From <sha> Mon Sep 17 00:00:00 2001" separates mails in format-patch output.
MBOX_SEPARATOR = re.compile(r"^From ([0-9a-f]{40}) ", re.MULTILINE)
SUBJECT_PREFIX = re.compile(r"^\s*\[PATCH[^\]]*\]\s*", re.IGNORECASE)
ISSUE_KEY = re.compile(r"\b([A-Z][A-Z0-9]+-\d+)\b")
NOT_ISSUE_PROJECTS = {"UTF", "ISO", "SHA", "RFC", "CVE"}

DIFF_GIT = re.compile(r"^diff --git a/(.+?) b/(.+)$")
HUNK = re.compile(r"^@@ -\d+(?:,(\d+))? \+\d+(?:,(\d+))? @@")


def find_issue_keys(*texts: str) -> list[str]:
    """Unique tracker issue keys in order of appearance."""
    keys: list[str] = []
    for text in texts:
        for key in ISSUE_KEY.findall(text or ""):
            if key.split("-")[0] in NOT_ISSUE_PROJECTS:
                continue
            if key not in keys:
                keys.append(key)
    return keys


def _strip_diff_path(path: str) -> str | None:
    path = path.split("\t")[0].strip()
    if path == "/dev/null":
        return None
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


class DiffParser:
    """Parses unified diff text into FileChange entries."""

    def __init__(self, style_targets: Sequence[StyleTarget] | None = None) -> None:
        self.style_targets = list(style_targets) if style_targets is not None else default_style_targets()

    def _finish(self, change: FileChange | None, files: list[FileChange]) -> None:
        if change is None:
            return
        change.generated = classify_conflict(change.path, self.style_targets) is not ConflictKind.UNRESOLVABLE
        files.append(change)

    def parse(self, text: str) -> list[FileChange]:
        """Parse diff text.

        Args:
            text: Diff text, possibly preceded by a commit message

        Returns:
            Files changed, in diff order
        """
        files: list[FileChange] = []
        current: FileChange | None = None
        old_left = new_left = 0
        lines = text.splitlines()
        i = 0

        while i < len(lines):
            line = lines[i]
            i += 1

            # Inside a hunk, counts decide where it ends: content lines can
            # look like headers ("--- ", "+++ ").
            if old_left > 0 or new_left > 0:
                if line.startswith("+"):
                    current.additions += 1
                    new_left -= 1
                elif line.startswith("-"):
                    current.deletions += 1
                    old_left -= 1
                elif line.startswith("\\"):
                    pass
                else:
                    old_left -= 1
                    new_left -= 1
                continue

            match = DIFF_GIT.match(line)
            if match:
                self._finish(current, files)
                current = FileChange(path=match.group(2))
                if match.group(1) != match.group(2):
                    current.old_path = match.group(1)
                continue

            if line.startswith("--- ") and i < len(lines) and lines[i].startswith("+++ "):
                old_path = _strip_diff_path(line[4:])
                new_path = _strip_diff_path(lines[i][4:])
                i += 1
                if current is None or current.additions or current.deletions:
                    # Bare unified diff without "diff --git" headers.
                    self._finish(current, files)
                    current = FileChange(path=new_path or old_path or "")
                if old_path is None:
                    current.status = "added"
                elif new_path is None:
                    current.status = "deleted"
                    current.path = old_path
                continue

            if current is None:
                continue

            if line.startswith("new file mode"):
                current.status = "added"
            elif line.startswith("deleted file mode"):
                current.status = "deleted"
            elif line.startswith("rename from "):
                current.old_path = line[len("rename from "):]
                current.status = "renamed"
            elif line.startswith("rename to "):
                current.path = line[len("rename to "):]
                current.status = "renamed"
            elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
                current.binary = True
            else:
                hunk = HUNK.match(line)
                if hunk:
                    old_left = int(hunk.group(1)) if hunk.group(1) is not None else 1
                    new_left = int(hunk.group(2)) if hunk.group(2) is not None else 1

        self._finish(current, files)
        return files


def _split_mails(text: str) -> list[tuple[str | None, str]]:
    starts = list(MBOX_SEPARATOR.finditer(text))
    if not starts:
        return [(None, text)]
    mails = []
    for index, match in enumerate(starts):
        end = starts[index + 1].start() if index + 1 < len(starts) else len(text)
        newline = text.find("\n", match.start(), end)
        body_start = newline + 1 if newline != -1 else end
        mails.append((match.group(1), text[body_start:end]))
    return mails


def _message_body(message: EmailMessage) -> str:
    parts = message.walk() if message.is_multipart() else [message]
    chunks = []
    for part in parts:
        if part.is_multipart():
            continue
        encoding = str(part.get("Content-Transfer-Encoding", "")).strip().lower()
        if encoding in ("base64", "quoted-printable"):
            payload = part.get_payload(decode=True) or b""
            charset = part.get_content_charset() or "utf-8"
            chunks.append(payload.decode(charset, errors="replace"))
        else:
            chunks.append(str(part.get_payload()))
    return "\n".join(chunks)


def _looks_like_mail(text: str) -> bool:
    head = text.lstrip().splitlines()[:20]
    return any(line.startswith(("From: ", "Subject: ")) for line in head)


def parse_patch(
    text: str,
    source: str | None = None,
    style_targets: Sequence[StyleTarget] | None = None,
) -> PatchSetSummary:
    """Summarize patch text.

    Args:
        text: format-patch output or a bare unified diff
        source: Name of the file the text came from
        style_targets: Compiled style sheets flagged as generated

    Returns:
        PatchSetSummary with one PatchSummary per mail (or one for a bare diff)
    """
    parser = DiffParser(style_targets)
    summary = PatchSetSummary()

    for commit, mail in _split_mails(text):
        if not _looks_like_mail(mail):
            summary.patches.append(PatchSummary(commit=commit, files=parser.parse(mail), source=source))
            continue

        message = email.message_from_string(mail.lstrip(), policy=email.policy.default)
        subject = " ".join(str(message.get("Subject", "")).split())
        subject = SUBJECT_PREFIX.sub("", subject)
        author, address = parseaddr(str(message.get("From", "")))

        date = None
        if message.get("Date"):
            try:
                date = parsedate_to_datetime(str(message["Date"]))
            except (TypeError, ValueError):
                logger.debug("Unparseable date in %s: %s", source, message["Date"])

        body = _message_body(message)
        description = body.split("\n---\n", 1)[0]

        summary.patches.append(
            PatchSummary(
                subject=subject,
                author=author or None,
                email=address or None,
                date=date,
                commit=commit,
                issue_keys=find_issue_keys(subject, description),
                files=parser.parse(body),
                source=source,
            )
        )

    return summary


def summarize_files(
    paths: Iterable[Path],
    style_targets: Sequence[StyleTarget] | None = None,
) -> PatchSetSummary:
    """Summarize several patch files into one set.

    Raises:
        OSError: If a file cannot be read
    """
    combined = PatchSetSummary()
    for path in paths:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
        combined.patches.extend(parse_patch(text, source=str(path), style_targets=style_targets).patches)
    logger.info(
        "Summarized %d patch(es): %d file(s), +%d -%d",
        len(combined.patches),
        combined.file_count,
        combined.additions,
        combined.deletions,
    )
    return combined

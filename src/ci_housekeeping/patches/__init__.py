"""Structured change summaries extracted from patch files."""

from ci_housekeeping.patches.summary import DiffParser, find_issue_keys, parse_patch, summarize_files

__all__ = ["DiffParser", "find_issue_keys", "parse_patch", "summarize_files"]

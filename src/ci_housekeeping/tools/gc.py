"""Periodic git garbage collection for long-lived CI checkouts."""

import logging
import time
from pathlib import Path

from ci_housekeeping.tools.git import GitRepository

logger = logging.getLogger(__name__)

STAMP_FILE = "ci_last_gc"
SECONDS_PER_DAY = 86400


class GitGarbageCollector:
    """Runs `git gc` when the checkout needs it.

    A gc is due when it never ran, when the last run is older than
    interval_days, or when loose objects exceed the threshold.
    """

    def __init__(
        self,
        git: GitRepository,
        interval_days: int = 7,
        loose_objects_threshold: int = 5000,
    ) -> None:
        self.git = git
        self.interval_days = interval_days
        self.loose_objects_threshold = loose_objects_threshold

    @property
    def stamp_path(self) -> Path:
        return self.git.git_dir / STAMP_FILE

    def is_due(self, now: float | None = None) -> bool:
        """Decide whether gc should run now."""
        now = time.time() if now is None else now

        if not self.stamp_path.exists():
            logger.debug("No previous gc recorded")
            return True

        age_days = (now - self.stamp_path.stat().st_mtime) / SECONDS_PER_DAY
        if age_days >= self.interval_days:
            logger.debug("Last gc %.1f days ago", age_days)
            return True

        loose = self.git.count_objects().get("count", 0)
        if loose > self.loose_objects_threshold:
            logger.debug("%d loose objects above threshold %d", loose, self.loose_objects_threshold)
            return True

        return False

    def run(self, force: bool = False) -> bool:
        """Run gc if due.

        Args:
            force: Run regardless of thresholds

        Returns:
            True if gc ran
        """
        if not force and not self.is_due():
            logger.info("Git gc not required")
            return False

        logger.info("Running git gc")
        self.git.gc()
        self.stamp_path.touch()
        return True

"""Integration queue maintenance.

Two queues are managed through the tracker CLI:
- candidates: issues awaiting integration, not yet in current
- current: issues under current integration

Before the release (normally the weeks of continuous integration):
  A1  Hold new features and improvements arriving to candidates.
  A2  Move important issues from candidates to current.
  A3a Before the last week, keep current fed with bugs while under a threshold.
  A3b During the last week, hold bugs arriving to candidates.
After the release (normally the weeks of on-sync):
  B1a Keep current fed with bugs while under a threshold.
  B1b Hold new features and improvements arriving to candidates.

Holding means adding the held label plus a standard comment.
An issue is important when it is in candidates, not agreed to land after the
release, and has a must-fix version, the mdlqa label, critical or blocker
priority, a security level, or belongs to one of the important components.

Run this job from freeze day to packaging day only.
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path

from ci_housekeeping.config import TrackerConfig, parse_ymd
from ci_housekeeping.errors import ConfigurationError
from ci_housekeeping.models.results import QueueAction, QueuePhase, QueueRunResult
from ci_housekeeping.templates.renderer import TemplateRenderer
from ci_housekeeping.tools.jira import TrackerClient

logger = logging.getLogger(__name__)

RESULT_FILE = "continuous_manage_queues.csv"
LOG_FILE = "continuous_manage_queues.log"

HELD = "held"
MOVED = "moved_to_current"

NEW_FEATURES = 'type IN ("New Feature", Improvement)'
BUGS = "type = Bug"
BY_PRIORITY = "ORDER BY priority DESC, votes DESC, created ASC"


def default_lastweek(release: date) -> date:
    """Last week starts seven days before the release."""
    return release - timedelta(days=7)


class QueueManager:
    """Applies the integration queue rules for a given day.

    Usage:
        manager = QueueManager(client, tracker_config, workspace)
        result = manager.run()
    """

    def __init__(
        self,
        client: TrackerClient,
        settings: TrackerConfig,
        workspace: Path,
        renderer: TemplateRenderer | None = None,
        build_timestamp: str | None = None,
    ) -> None:
        """Initialize the queue manager.

        Args:
            client: Tracker CLI client
            settings: Tracker settings (dates, thresholds, filters)
            workspace: Directory for the action log
            renderer: Comment template renderer
            build_timestamp: Prefix of action log lines (default: now)

        Raises:
            ConfigurationError: If release_date or lastweek_date is missing or malformed
        """
        if not settings.release_date:
            raise ConfigurationError("tracker.release_date")
        try:
            self.release_date = parse_ymd(settings.release_date, "$releasedate")
        except ValueError as e:
            raise ConfigurationError("tracker.release_date", str(e))

        if settings.lastweek_date:
            try:
                self.lastweek_date = parse_ymd(settings.lastweek_date, "$lastweekdate")
            except ValueError as e:
                raise ConfigurationError("tracker.lastweek_date", str(e))
        else:
            self.lastweek_date = default_lastweek(self.release_date)

        self.client = client
        self.settings = settings
        self.log_file = Path(workspace) / LOG_FILE
        self.renderer = renderer or TemplateRenderer()
        self.build_timestamp = build_timestamp or datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        self._moved: set[str] = set()

    # -------------------------------------------------------------------------
    # Phase decision
    # -------------------------------------------------------------------------

    def phase_for(self, today: date) -> QueuePhase:
        if today < self.release_date:
            return QueuePhase.BEFORE_RELEASE
        return QueuePhase.AFTER_RELEASE

    def in_last_week(self, today: date) -> bool:
        return today >= self.lastweek_date

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def not_held(self) -> str:
        label = self.settings.held_label
        return f"(labels IS EMPTY OR labels NOT IN ({label}))"

    @property
    def candidates(self) -> str:
        return f"{self.settings.candidates_filter} AND {self.not_held}"

    @property
    def important_jql(self) -> str:
        components = ", ".join(f'"{c}"' for c in self.settings.important_components)
        criteria = [
            self.settings.mustfix_filter,
            "labels IN (mdlqa)",
            "priority IN (Critical, Blocker)",
            "level IS NOT EMPTY",
        ]
        if components:
            criteria.append(f"component IN ({components})")
        return (
            f"{self.candidates} AND NOT {self.settings.after_release_filter} "
            f"AND ({' OR '.join(criteria)}) {BY_PRIORITY}"
        )

    @property
    def new_features_jql(self) -> str:
        return f"{self.candidates} AND {NEW_FEATURES} {BY_PRIORITY}"

    @property
    def bugs_to_feed_jql(self) -> str:
        return f"{self.candidates} AND NOT {self.settings.after_release_filter} AND {BUGS} {BY_PRIORITY}"

    @property
    def bugs_jql(self) -> str:
        return f"{self.candidates} AND {BUGS} {BY_PRIORITY}"

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _record(self, result: QueueRunResult, rule: str, issue: str, action: str) -> None:
        entry = QueueAction(rule=rule, issue=issue, action=action)
        result.actions.append(entry)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(entry.log_line(self.build_timestamp) + "\n")
        logger.info("%s: %s %s", rule, issue, action)

    def hold(self, result: QueueRunResult, rule: str, issue: str, template: str) -> None:
        """Add the held label and the standard comment."""
        comment = self.renderer.render_comment(
            template,
            release_date=self.release_date,
            lastweek_date=self.lastweek_date,
            held_label=self.settings.held_label,
        )
        self.client.add_labels(issue, self.settings.held_label)
        self.client.add_comment(issue, comment)
        self._record(result, rule, issue, HELD)

    def move_to_current(self, result: QueueRunResult, rule: str, issue: str) -> None:
        """Flag the issue as under current integration."""
        self.client.set_field_value(issue, self.settings.current_field, "Yes")
        self._moved.add(issue)
        self._record(result, rule, issue, MOVED)

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def hold_new_features(self, result: QueueRunResult, rule: str, template: str) -> None:
        """A1 / B1b."""
        for issue in self.client.get_issue_list(self.new_features_jql):
            self.hold(result, rule, issue, template)

    def move_important(self, result: QueueRunResult) -> None:
        """A2."""
        for issue in self.client.get_issue_list(self.important_jql):
            self.move_to_current(result, "A2", issue)

    def feed_current(self, result: QueueRunResult, rule: str) -> None:
        """A3a / B1a: top up the current queue with bugs."""
        current = len(self.client.get_issue_list(self.settings.current_jql))
        if current >= self.settings.current_min:
            logger.info(
                "%s: current queue has %d issues (minimum %d), not feeding",
                rule,
                current,
                self.settings.current_min,
            )
            return

        wanted = min(self.settings.move_max, self.settings.current_min - current)
        logger.info("%s: current queue has %d issues, moving up to %d", rule, current, wanted)
        candidates = [
            issue
            for issue in self.client.get_issue_list(self.bugs_to_feed_jql)
            if issue not in self._moved
        ]
        for issue in candidates[:wanted]:
            self.move_to_current(result, rule, issue)

    def hold_bugs(self, result: QueueRunResult) -> None:
        """A3b."""
        for issue in self.client.get_issue_list(self.bugs_jql):
            if issue in self._moved:
                continue
            self.hold(result, "A3b", issue, "lastweek_comment.txt.j2")

    def run(self, today: date | None = None) -> QueueRunResult:
        """Apply the rules for today.

        Args:
            today: Evaluation date (default: current local date)

        Returns:
            QueueRunResult
        """
        today = today or date.today()
        phase = self.phase_for(today)
        result = QueueRunResult(today=today, phase=phase, dry_run=self.client.dry_run)
        self._moved.clear()

        if self.client.dry_run:
            logger.info("Dry-run enabled, no changes will be performed to the tracker")

        try:
            if phase is QueuePhase.BEFORE_RELEASE:
                result.last_week = self.in_last_week(today)
                result.rules.append("A1")
                self.hold_new_features(result, "A1", "held_comment.txt.j2")
                result.rules.append("A2")
                self.move_important(result)
                if not result.last_week:
                    result.rules.append("A3a")
                    self.feed_current(result, "A3a")
                else:
                    result.rules.append("A3b")
                    self.hold_bugs(result)
            else:
                result.rules.append("B1a")
                self.feed_current(result, "B1a")
                result.rules.append("B1b")
                self.hold_new_features(result, "B1b", "onsync_comment.txt.j2")
        finally:
            self.client.cleanup()

        return result

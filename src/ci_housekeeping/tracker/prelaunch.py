"""Bulk launch of developer-requested CI jobs for a list of issues.

Each job type maps to a Jenkins job plus fixed build parameters. The issue's
repository and branch are added as REPOSITORY and BRANCH. The CLI output of
every launch is appended to `<workspace>/<resultfile>.jenkinscli` as
`<label>: <output>`.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ci_housekeeping.config import TrackerConfig
from ci_housekeeping.errors import ConfigurationError
from ci_housekeeping.models.results import JobLaunch, PrelaunchResult
from ci_housekeeping.tools.jenkins import JenkinsClient
from ci_housekeeping.tools.jira import TrackerClient

logger = logging.getLogger(__name__)

ALL_JOBS = "all"
PHPUNIT_JOB = "DEV.02 - Developer-requested PHPUnit"
BEHAT_JOB = "DEV.01 - Developer-requested Behat"


@dataclass
class JobDefinition:
    """A launchable job type.

    Attributes:
        job_type: Name used on the command line
        job: Jenkins job name
        label: Prefix of the result file line
        parameters: Fixed build parameters
        enabled: Included when launching "all"
    """

    job_type: str
    job: str
    label: str
    parameters: dict[str, str] = field(default_factory=dict)
    enabled: bool = True


JOBS: dict[str, JobDefinition] = {
    "phpunit": JobDefinition(
        job_type="phpunit",
        job=PHPUNIT_JOB,
        label="PHPUnit (sqlsrv)",
        parameters={"DATABASE": "sqlsrv", "PHPVERSION": "7.2"},
    ),
    # Failing too often to run by default.
    "behat-app": JobDefinition(
        job_type="behat-app",
        job=BEHAT_JOB,
        label="App tests (experimental)",
        parameters={
            "DATABASE": "pgsql",
            "PHPVERSION": "7.2",
            "BROWSER": "chrome",
            "BEHAT_TOTAL_RUNS": "1",
            "MOBILE_VERSION": "latest",
            "INSTALL_PLUGINAPP": "true",
            "TAGS": "@app",
        },
        enabled=False,
    ),
    "behat-goutte": JobDefinition(
        job_type="behat-goutte",
        job=BEHAT_JOB,
        label="Behat (goutte)",
        parameters={"DATABASE": "pgsql", "PHPVERSION": "7.2", "BROWSER": "goutte"},
    ),
    "behat-chrome": JobDefinition(
        job_type="behat-chrome",
        job=BEHAT_JOB,
        label="Behat (chrome)",
        parameters={"DATABASE": "pgsql", "PHPVERSION": "7.2", "BROWSER": "chrome"},
    ),
}


def select_jobs(job_type: str) -> list[JobDefinition]:
    """Jobs launched for a job type ("all" means every enabled job).

    Raises:
        ConfigurationError: If the job type is unknown
    """
    if job_type == ALL_JOBS:
        return [job for job in JOBS.values() if job.enabled]
    if job_type not in JOBS:
        known = ", ".join([ALL_JOBS, *JOBS])
        raise ConfigurationError("jobtype", f"Unknown job type: {job_type} (expected one of: {known})")
    return [JOBS[job_type]]


class PrelaunchRunner:
    """Launches the selected jobs for every issue.

    Usage:
        runner = PrelaunchRunner(jenkins, workspace, "results", tracker=tracker)
        result = runner.run(["MDL-12345"], job_type="all")
    """

    def __init__(
        self,
        jenkins: JenkinsClient,
        workspace: Path,
        result_name: str,
        tracker: TrackerClient | None = None,
        settings: TrackerConfig | None = None,
    ) -> None:
        self.jenkins = jenkins
        self.tracker = tracker
        self.settings = settings or TrackerConfig()
        self.result_file = Path(workspace) / f"{result_name}.jenkinscli"

    def _source(
        self,
        issue: str,
        repository: str | None,
        branch: str | None,
    ) -> tuple[str | None, str | None]:
        if repository and branch:
            return repository, branch
        if self.tracker is None:
            return repository, branch
        if not repository:
            repository = self.tracker.get_field_value(issue, self.settings.repository_field) or None
        if not branch:
            branch = self.tracker.get_field_value(issue, self.settings.branch_field) or None
        return repository, branch

    def _append(self, text: str) -> None:
        self.result_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.result_file, "a", encoding="utf-8") as f:
            f.write(text)

    def launch(self, issue: str, job: JobDefinition, repository: str, branch: str) -> JobLaunch:
        """Launch one job and record its output."""
        parameters = {"REPOSITORY": repository, "BRANCH": branch, **job.parameters}
        logger.info("%s: launching %s", issue, job.label)
        result = self.jenkins.build(job.job, parameters)

        output = result.stdout
        if not output.endswith("\n"):
            output += "\n"
        self._append(f"{job.label}: {output}")

        if not result.ok:
            logger.warning(
                "%s: %s launch failed (exit code %d): %s",
                issue,
                job.label,
                result.returncode,
                (result.stderr or result.stdout).strip(),
            )
        return JobLaunch(
            issue=issue,
            job_type=job.job_type,
            label=job.label,
            success=result.ok,
            output=result.stdout.strip(),
        )

    def run(
        self,
        issues: list[str],
        job_type: str = ALL_JOBS,
        repository: str | None = None,
        branch: str | None = None,
    ) -> PrelaunchResult:
        """Launch the jobs of a job type for each issue.

        Args:
            issues: Issue keys
            job_type: Job type, or "all"
            repository: Repository for every issue (read from the tracker if None)
            branch: Branch for every issue (read from the tracker if None)

        Returns:
            PrelaunchResult

        Raises:
            ConfigurationError: If the job type is unknown
        """
        jobs = select_jobs(job_type)
        result = PrelaunchResult()

        for issue in issues:
            issue_repository, issue_branch = self._source(issue, repository, branch)
            if not issue_repository or not issue_branch:
                reason = "missing repository or branch"
                logger.warning("%s: skipped, %s", issue, reason)
                result.skipped[issue] = reason
                continue
            for job in jobs:
                result.launches.append(self.launch(issue, job, issue_repository, issue_branch))

        return result

"""Security branch rebase.

Keeps a privately maintained security branch on top of the integration
branch. A reference branch, lastbased-<branch>, records the integration tip
the security branch was last rebased onto, so only the security commits are
replayed:

    git rebase --onto integration/<branch> security/lastbased-<branch>

When the rebase stops on conflicts in generated build artifacts they are
regenerated and the rebase continues, bounded by a loop-count safety limit.
On success both branches are force pushed to the security remote.

The security and reference branches are set up by hand, once. Missing
branches are reported, never created.
"""

from collections.abc import Sequence
from pathlib import Path

from ci_housekeeping.config import StyleTarget, default_style_targets
from ci_housekeeping.errors import ConfigurationError, HousekeepingError, RebaseError
from ci_housekeeping.models.results import RebaseResult
from ci_housekeeping.rebase.conflicts import ConflictResolver
from ci_housekeeping.tools.gc import GitGarbageCollector
from ci_housekeeping.tools.git import GitRepository
from ci_housekeeping.tools.npm import NpmToolchain
from ci_housekeeping.utils.logging import get_logger
from ci_housekeeping.utils.process import CommandRunner

logger = get_logger(__name__)

INTEGRATION_REMOTE = "integration"
SECURITY_REMOTE = "security"
REFERENCE_PREFIX = "lastbased-"


class SecurityRebaser:
    """Rebases the security branch onto the integration branch.

    Usage:
        rebaser = SecurityRebaser(runner, gitdir, "main",
                                  integration_remote=..., security_remote=...)
        result = rebaser.run()
    """

    def __init__(
        self,
        runner: CommandRunner,
        gitdir: Path | None,
        branch: str | None,
        integration_remote: str | None,
        security_remote: str | None,
        gitcmd: str = "git",
        npmcmd: str = "npm",
        clone_url: str = "git://git.moodle.org/moodle.git",
        max_loops: int = 100,
        style_targets: Sequence[StyleTarget] | None = None,
        gc: GitGarbageCollector | None = None,
        dry_run: bool = False,
    ) -> None:
        """Initialize the rebaser.

        Args:
            runner: Command runner
            gitdir: Checkout directory (cloned if missing)
            branch: Integration branch, also the security branch name
            integration_remote: URL of the integration repository
            security_remote: URL of the security repository
            gitcmd: git executable
            npmcmd: npm executable
            clone_url: Repository cloned when the checkout does not exist
            max_loops: Maximum failed `rebase --continue` attempts
            style_targets: Compiled style sheets regenerated on conflict
            gc: Garbage collector (default thresholds if None)
            dry_run: Skip the force pushes

        Raises:
            ConfigurationError: If a required parameter is missing
        """
        required = (
            ("git.cmd", gitcmd),
            ("git.dir", gitdir),
            ("git.branch", branch),
            ("rebase.integration_remote", integration_remote),
            ("rebase.security_remote", security_remote),
        )
        for name, value in required:
            if not value:
                raise ConfigurationError(name)

        self.runner = runner
        self.branch = branch
        self.integration_remote = integration_remote
        self.security_remote = security_remote
        self.clone_url = clone_url
        self.max_loops = max_loops
        self.dry_run = dry_run
        self.git = GitRepository(Path(gitdir), runner, gitcmd)
        self.npm = NpmToolchain(runner, self.git.path, npmcmd)
        self.gc = gc or GitGarbageCollector(self.git)
        self.resolver = ConflictResolver(
            self.git,
            self.npm,
            runner,
            style_targets if style_targets is not None else default_style_targets(),
        )

    @property
    def reference_branch(self) -> str:
        """Branch tracking the integration tip of the last successful rebase."""
        return f"{REFERENCE_PREFIX}{self.branch}"

    @property
    def security_branch(self) -> str:
        return self.branch

    def run(self) -> RebaseResult:
        """Rebase, resolve generated-artifact conflicts, push.

        Returns:
            RebaseResult

        Raises:
            RebaseError: If a branch is missing, a conflict needs a human, or
                the loop limit is reached
            ToolExecutionError: If a git command fails unexpectedly. A rebase
                stopped on conflicts is aborted before any error propagates.
        """
        result = RebaseResult(branch=self.branch)

        self.prepare_checkout()
        self.verify_branches()

        logger.info("Cleaning worktree")
        self.git.clean()
        self.git.reset_hard()
        self.gc.run()

        self.git.checkout_reset(self.security_branch, f"{SECURITY_REMOTE}/{self.security_branch}")

        logger.info("Rebasing security branch:")
        if not self.git.rebase_onto(
            f"{INTEGRATION_REMOTE}/{self.branch}",
            f"{SECURITY_REMOTE}/{self.reference_branch}",
        ):
            result.clean = False
            try:
                self.npm.prepare()
                self.resolve_until_done(result)
            except HousekeepingError:
                if self.git.rebase_in_progress():
                    logger.error("Aborting rebase of %s", self.security_branch)
                    self.git.rebase_abort()
                raise

        result.success = True
        self.push(result)
        return result

    def prepare_checkout(self) -> None:
        """Clone if needed, set remotes, drop leftovers of an interrupted run, fetch."""
        if not self.git.exists:
            logger.info("Doing initial clone of %s, git repo not found", self.clone_url)
            self.git.clone(self.clone_url)

        self.git.ensure_remote(SECURITY_REMOTE, self.security_remote)
        self.git.ensure_remote(INTEGRATION_REMOTE, self.integration_remote)

        if self.git.rebase_in_progress():
            logger.info("Aborting rebase left in progress by a previous run")
            self.git.rebase_abort()

        self.git.fetch(INTEGRATION_REMOTE)
        self.git.fetch(SECURITY_REMOTE)

    def verify_branches(self) -> None:
        """Check the three branches the rebase needs exist on their remotes."""
        if not self.git.remote_branch_exists(INTEGRATION_REMOTE, self.branch):
            raise RebaseError(
                f"Integration branch {self.branch} not found in integration.git. "
                "Something serious has gone wrong!"
            )
        if not self.git.remote_branch_exists(SECURITY_REMOTE, self.reference_branch):
            raise RebaseError(
                f"Reference branch {self.reference_branch} not found in security.git. "
                "Needs manual fix."
            )
        if not self.git.remote_branch_exists(SECURITY_REMOTE, self.security_branch):
            raise RebaseError(
                f"Security branch {self.security_branch} not found in security.git. "
                "Needs manual fix."
            )

    def resolve_until_done(self, result: RebaseResult) -> None:
        """Regenerate conflicting artifacts and continue until the rebase completes."""
        result.conflicts_resolved.extend(self.resolver.resolve())

        while not self.git.rebase_continue():
            if result.loops >= self.max_loops:
                self.git.rebase_abort()
                raise RebaseError("Stopping to prevent infinite loops. Check the script output.")
            result.loops += 1
            result.conflicts_resolved.extend(self.resolver.resolve())

    def push(self, result: RebaseResult) -> None:
        """Force push the rebased security branch and the new reference branch."""
        if self.dry_run:
            logger.info("Dry-run: not pushing %s nor %s", self.security_branch, self.reference_branch)
            return

        logger.info("Force pushing rebased security branch:")
        self.git.push_force(SECURITY_REMOTE, self.security_branch)
        logger.info("Force pushing updated reference branch:")
        self.git.push_force(
            SECURITY_REMOTE,
            f"refs/remotes/{INTEGRATION_REMOTE}/{self.branch}:refs/heads/{self.reference_branch}",
        )
        result.pushed = True

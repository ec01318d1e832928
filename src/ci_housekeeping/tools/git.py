"""Git client used by the checks and the security rebase.

Thin wrapper over the git executable. Commands that the callers branch on
return booleans or parsed output; commands whose failure ends the job raise
ToolExecutionError.
"""

import logging
import shlex
from pathlib import Path

from ci_housekeeping.utils.process import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

# Non-interactive `rebase --continue`: keep the recorded commit message.
NON_INTERACTIVE_ENV = {"GIT_EDITOR": "true"}


class GitRepository:
    """A git checkout driven through the git executable.

    Attributes:
        path: Checkout directory
        gitcmd: git executable (may include arguments)
    """

    def __init__(
        self,
        path: Path,
        runner: CommandRunner | None = None,
        gitcmd: str = "git",
    ) -> None:
        """Initialize the repository wrapper.

        Args:
            path: Checkout directory
            runner: Command runner (default: real subprocess runner)
            gitcmd: git executable
        """
        self.path = Path(path)
        self.runner = runner or CommandRunner()
        self.gitcmd = gitcmd

    def _git(self, *args: str, check: bool = False, **kwargs) -> CommandResult:
        return self.runner.run(
            [*shlex.split(self.gitcmd), *args],
            cwd=self.path,
            check=check,
            **kwargs,
        )

    @property
    def git_dir(self) -> Path:
        """The .git directory of the checkout."""
        return self.path / ".git"

    @property
    def exists(self) -> bool:
        """Return True if the checkout has been cloned."""
        return self.git_dir.is_dir()

    def clone(self, url: str) -> None:
        """Clone url into the checkout directory."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.runner.run(
            [*shlex.split(self.gitcmd), "clone", url, str(self.path)],
            cwd=self.path.parent,
            check=True,
        )

    # -------------------------------------------------------------------------
    # Working tree
    # -------------------------------------------------------------------------

    def reset_hard(self, ref: str | None = None) -> None:
        """Reset index and working tree, optionally to ref."""
        args = ["reset", "--hard"]
        if ref:
            args.append(ref)
        self._git(*args, check=True)

    def clean(self) -> None:
        """Remove untracked and ignored files and directories."""
        self._git("clean", "-dfx", check=True)

    def checkout_reset(self, branch: str, start_point: str) -> None:
        """Create branch at start_point, or reset it there if it exists."""
        self._git("checkout", "-B", branch, start_point, check=True)

    def add(self, *pathspecs: str) -> None:
        """Stage pathspecs."""
        self._git("add", *pathspecs, check=True)

    def modified_files(self) -> list[str]:
        """Tracked files modified in the working tree."""
        return self._git("ls-files", "-m", check=True).lines

    def untracked_files(self) -> list[str]:
        """Untracked files not covered by ignore rules."""
        return self._git("ls-files", "--others", "--exclude-standard", check=True).lines

    def conflicted_files(self) -> list[str]:
        """Paths with unresolved merge conflicts."""
        return self._git("diff", "--name-only", "--diff-filter=U", check=True).lines

    # -------------------------------------------------------------------------
    # Remotes
    # -------------------------------------------------------------------------

    def remotes(self) -> dict[str, str]:
        """Map remote name to its fetch URL."""
        remotes: dict[str, str] = {}
        for line in self._git("remote", "-v", check=True).lines:
            parts = line.split()
            if len(parts) >= 2 and (len(parts) < 3 or parts[2] == "(fetch)"):
                remotes[parts[0]] = parts[1]
        return remotes

    def ensure_remote(self, name: str, url: str) -> bool:
        """Make remote name point to url.

        Returns:
            True if the remote was added or updated
        """
        current = self.remotes()
        if current.get(name) == url:
            return False
        if name in current:
            logger.info("Updating %s remote url", name)
            self._git("remote", "set-url", name, url, check=True)
        else:
            logger.info("Adding %s remote", name)
            self._git("remote", "add", name, url, check=True)
        return True

    def fetch(self, remote: str) -> None:
        """Fetch from remote."""
        self._git("fetch", remote, check=True)

    def remote_branch_exists(self, remote: str, branch: str) -> bool:
        """Check a branch exists on the remote (git ls-remote --exit-code)."""
        return self._git("ls-remote", "--exit-code", "--heads", remote, branch).ok

    def push_force(self, remote: str, refspec: str) -> None:
        """Force push refspec to remote."""
        self._git("push", "-f", remote, refspec, check=True)

    # -------------------------------------------------------------------------
    # Rebase
    # -------------------------------------------------------------------------

    def rebase_in_progress(self) -> bool:
        """Return True if a previous rebase was left unfinished."""
        return (self.git_dir / "rebase-merge").is_dir() or (self.git_dir / "rebase-apply").is_dir()

    def rebase_onto(self, newbase: str, upstream: str) -> bool:
        """Start `git rebase --onto newbase upstream`; False when it stops on conflicts."""
        return self._git("rebase", "--onto", newbase, upstream, env=NON_INTERACTIVE_ENV).ok

    def rebase_continue(self) -> bool:
        """Continue the rebase; False when it stops again."""
        return self._git("rebase", "--continue", env=NON_INTERACTIVE_ENV).ok

    def rebase_abort(self) -> None:
        """Abort the rebase in progress."""
        self._git("rebase", "--abort", check=True)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def count_objects(self) -> dict[str, int]:
        """Parse `git count-objects -v` into integers."""
        stats: dict[str, int] = {}
        for line in self._git("count-objects", "-v", check=True).lines:
            key, _, value = line.partition(":")
            try:
                stats[key.strip()] = int(value.strip())
            except ValueError:
                continue
        return stats

    def gc(self) -> None:
        """Run git gc."""
        self._git("gc", "--quiet", check=True)

"""Conflict resolution for generated build artifacts.

When a rebase stops, every conflicting path is classified. Compiled style
sheets and built YUI/AMD modules are regenerated from their (already merged)
sources with the build tools and staged. Anything else needs a human.
"""

import logging
from collections.abc import Sequence

from ci_housekeeping.config import StyleTarget
from ci_housekeeping.errors import RebaseError
from ci_housekeeping.models.results import ConflictKind
from ci_housekeeping.tools.git import GitRepository
from ci_housekeeping.tools.npm import NpmToolchain
from ci_housekeeping.utils.logging import get_logger
from ci_housekeeping.utils.process import CommandRunner

logger = get_logger(__name__)

YUI_BUILD = "/yui/build/"
AMD_BUILD = "/amd/build/"

UNRESOLVABLE_MESSAGE = (
    "Auto rebase failed, conflicts couldn't be autoresolved, "
    "manual conflicts to be resolved by integrator."
)


def classify_conflict(path: str, style_targets: Sequence[StyleTarget]) -> ConflictKind:
    """Classify a conflicting path.

    Args:
        path: Path relative to the checkout root
        style_targets: Compiled style sheets that can be regenerated

    Returns:
        ConflictKind
    """
    if any(path == target.css for target in style_targets):
        return ConflictKind.STYLESHEET
    # Leading slash so top-level build dirs match too.
    candidate = "/" + path
    if YUI_BUILD in candidate:
        return ConflictKind.YUI_BUILD
    if AMD_BUILD in candidate:
        return ConflictKind.AMD_BUILD
    return ConflictKind.UNRESOLVABLE


class ConflictResolver:
    """Regenerates conflicting build artifacts during a rebase.

    Usage:
        resolver = ConflictResolver(git, npm, runner, style_targets)
        resolved = resolver.resolve()  # raises RebaseError if it cannot
    """

    def __init__(
        self,
        git: GitRepository,
        npm: NpmToolchain,
        runner: CommandRunner,
        style_targets: Sequence[StyleTarget],
    ) -> None:
        self.git = git
        self.npm = npm
        self.runner = runner
        self.style_targets = list(style_targets)

    def _abort(self, message: str) -> RebaseError:
        self.git.rebase_abort()
        logger.error(message)
        return RebaseError(message)

    def resolve(self) -> list[str]:
        """Resolve the conflicts of the current rebase step.

        Each artifact kind is regenerated at most once, however many of its
        files conflict.

        Returns:
            Conflicting paths, in the order git reported them

        Raises:
            RebaseError: After aborting the rebase, when a conflict cannot be resolved
        """
        conflicts = self.git.conflicted_files()
        kinds: dict[str, ConflictKind] = {}
        for path in conflicts:
            kind = classify_conflict(path, self.style_targets)
            logger.structured(logging.DEBUG, f"Conflict in {path}", path=path, kind=kind.value)
            if kind is ConflictKind.UNRESOLVABLE:
                logger.error("Conflict in %s cannot be regenerated", path)
                raise self._abort(UNRESOLVABLE_MESSAGE)
            kinds[path] = kind

        regenerated: set[ConflictKind] = set()
        for path, kind in kinds.items():
            if kind in regenerated:
                continue
            if kind is ConflictKind.STYLESHEET:
                logger.info("CSS conflict in %s", path)
                self.compile_less()
            elif kind is ConflictKind.YUI_BUILD:
                logger.info("YUI build conflict in %s", path)
                self.compile_yui()
            elif kind is ConflictKind.AMD_BUILD:
                logger.info("AMD build conflict in %s", path)
                self.compile_amd()
            regenerated.add(kind)

        return conflicts

    def _run_tool(self, args: list[str], stdout_to: str | None = None) -> None:
        result = self.runner.run(args, cwd=self.git.path)
        if not result.ok:
            raise self._abort(
                f"Regenerating build artifacts failed ({' '.join(args)}): "
                f"{(result.stderr or result.stdout).strip()}"
            )
        if stdout_to is not None:
            (self.git.path / stdout_to).write_text(result.stdout, encoding="utf-8")

    def compile_less(self) -> None:
        """Recompile the style sheets and stage them."""
        if self.npm.grunt_available():
            self._run_tool([self._tool("grunt"), "--no-color", "css"])
        else:
            recess = self._tool("recess")
            for target in self.style_targets:
                self._run_tool([recess, "--compile", "--compress", target.less], stdout_to=target.css)

        self.git.add(*(target.css for target in self.style_targets))

    def compile_yui(self) -> None:
        """Rebuild YUI modules and stage the build output."""
        if self.npm.grunt_available():
            self._run_tool([self._tool("grunt"), "--no-color", "shifter"])
        else:
            self._run_tool([self._tool("shifter"), "--walk", "--recursive"])

        self.git.add(f"*{YUI_BUILD}*")

    def compile_amd(self) -> None:
        """Rebuild AMD modules and stage the build output."""
        # AMD modules only exist on branches building with grunt.
        if not self.npm.grunt_available():
            raise self._abort("AMD build conflict on a branch without Gruntfile.js. " + UNRESOLVABLE_MESSAGE)
        self._run_tool([self._tool("grunt"), "--no-color", "amd"])

        self.git.add(f"*{AMD_BUILD}*")

    def _tool(self, name: str) -> str:
        path = self.npm.tool_path(name)
        if path is None:
            raise self._abort(f"{name} executable not found in {self.npm.bin_dir}")
        return str(path)

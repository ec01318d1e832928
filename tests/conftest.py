"""Shared pytest fixtures for ci-housekeeping tests.

External binaries are never executed: the jobs talk to a scripted runner
that records every command and replies with canned results. Fixtures are
organized by category:
- Runner fixtures: the scripted command runner
- Checkout fixtures: temporary git checkouts, themes, node tools
- Configuration fixtures: config dictionaries
- Patch fixtures: format-patch and diff samples
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from ci_housekeeping.errors import ToolExecutionError
from ci_housekeeping.utils.process import CommandResult

# =============================================================================
# Scripted Runner
# =============================================================================


@dataclass
class Reply:
    """Canned result of a command, with an optional side effect."""

    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    effect: Callable[[list[str], Path | None], None] | None = None


@dataclass
class Call:
    """A recorded command."""

    args: list[str]
    cwd: Path | None = None
    env: dict[str, str] | None = None
    stdin_devnull: bool = False

    @property
    def command(self) -> list[str]:
        """Arguments with the executable reduced to its name."""
        return [Path(self.args[0]).name, *self.args[1:]]


@dataclass
class FakeRunner:
    """CommandRunner stand-in.

    Replies are registered per command prefix; the executable is matched by
    name so checkout-local tools match regardless of their path. Several
    replies registered for one prefix are consumed in order, the last one
    repeating. Unmatched commands succeed with empty output.
    """

    calls: list[Call] = field(default_factory=list)
    rules: list[tuple[list[str], list[Reply]]] = field(default_factory=list)

    def on(self, *prefix: str, **reply: Any) -> "FakeRunner":
        for known, replies in self.rules:
            if known == list(prefix):
                replies.append(Reply(**reply))
                return self
        self.rules.append((list(prefix), [Reply(**reply)]))
        return self

    def _match(self, command: list[str]) -> Reply | None:
        best: tuple[int, list[Reply]] | None = None
        for prefix, replies in self.rules:
            if command[: len(prefix)] == prefix and (best is None or len(prefix) > best[0]):
                best = (len(prefix), replies)
        if best is None:
            return None
        replies = best[1]
        return replies.pop(0) if len(replies) > 1 else replies[0]

    def run(
        self,
        args: list[str],
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        stdin_devnull: bool = False,
        check: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        call = Call(list(args), cwd, env, stdin_devnull)
        self.calls.append(call)

        reply = self._match(call.command) or Reply()
        if reply.effect is not None:
            reply.effect(list(args), cwd)

        result = CommandResult(list(args), reply.returncode, reply.stdout, reply.stderr)
        if check and not result.ok:
            raise ToolExecutionError(call.command[0], " ".join(args[1:]), result.returncode, result.stderr)
        return result

    def commands(self, *prefix: str) -> list[list[str]]:
        """Recorded commands starting with prefix."""
        return [c.command for c in self.calls if c.command[: len(prefix)] == list(prefix)]

    def ran(self, *prefix: str) -> bool:
        return bool(self.commands(*prefix))


@pytest.fixture
def runner() -> FakeRunner:
    """Return a scripted command runner."""
    return FakeRunner()


# =============================================================================
# Checkout Fixtures
# =============================================================================


def make_tool(bin_dir: Path, name: str) -> Path:
    """Create an executable placeholder in bin_dir."""
    bin_dir.mkdir(parents=True, exist_ok=True)
    tool = bin_dir / name
    tool.write_text("#!/bin/sh\n")
    tool.chmod(0o755)
    return tool


@pytest.fixture
def install_tool() -> Callable[[Path, str], Path]:
    """Return a helper installing a fake node tool into a checkout."""

    def install(gitdir: Path, name: str) -> Path:
        return make_tool(gitdir / "node_modules" / ".bin", name)

    return install


@pytest.fixture
def checkout(tmp_path: Path) -> Path:
    """Create a temporary directory that mimics a git checkout."""
    gitdir = tmp_path / "moodle"
    (gitdir / ".git").mkdir(parents=True)
    return gitdir


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create the job workspace directory."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def grunt_checkout(checkout: Path, install_tool: Callable[[Path, str], Path]) -> Path:
    """Checkout of a branch building with grunt."""
    (checkout / "Gruntfile.js").write_text("module.exports = function(grunt) {};\n")
    install_tool(checkout, "grunt")
    install_tool(checkout, "recess")
    return checkout


def make_theme(
    gitdir: Path,
    name: str,
    less: dict[str, str] | None = None,
    css: list[str] | None = None,
    lessfile: str | None = None,
    complete: bool = True,
) -> Path:
    """Create a theme directory.

    Args:
        gitdir: Checkout directory
        name: Theme name
        less: less/<file> -> content
        css: style/<file> names created empty
        lessfile: $THEME->lessfile value in config.php
        complete: Create config.php, version.php and style/
    """
    theme = gitdir / "theme" / name
    theme.mkdir(parents=True)
    if complete:
        config = "<?php\n"
        if lessfile:
            config += f"$THEME->lessfile = '{lessfile}';\n"
        (theme / "config.php").write_text(config)
        (theme / "version.php").write_text("<?php\n")
        (theme / "style").mkdir()
    for filename, content in (less or {}).items():
        target = theme / "less" / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    for filename in css or []:
        (theme / "style").mkdir(exist_ok=True)
        (theme / "style" / filename).write_text("")
    return theme


@pytest.fixture
def theme_factory(checkout: Path) -> Callable[..., Path]:
    """Return a helper creating themes in the checkout."""

    def factory(name: str, **kwargs: Any) -> Path:
        return make_theme(checkout, name, **kwargs)

    return factory


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def full_config(tmp_path: Path) -> dict[str, Any]:
    """Return a complete configuration with all sections."""
    return {
        "workspace": str(tmp_path / "workspace"),
        "git": {"cmd": "git", "dir": str(tmp_path / "moodle"), "branch": "main"},
        "npm": {"cmd": "npm", "recess_version": "1.1.9"},
        "rebase": {
            "integration_remote": "git://git.example.org/integration.git",
            "security_remote": "git@git.example.org:security.git",
            "max_loops": 10,
        },
        "gc": {"interval_days": 3, "loose_objects_threshold": 100},
        "tracker": {
            "cli": "jira",
            "server": "https://tracker.example.org",
            "user": "bot",
            "password": "secret",
            "release_date": "2026-11-16",
            "current_min": 6,
            "move_max": 3,
        },
        "jenkins": {
            "cli": "jenkins-cli",
            "server": "https://ci.example.org",
            "user": "bot",
            "token": "t0k3n",
        },
        "ci": {"timeout": 600},
    }


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove job parameters that could leak into config substitution."""
    for name in list(os.environ):
        if name in {"gitdir", "gitbranch", "releasedate", "lastweekdate", "dryrun"}:
            monkeypatch.delenv(name)


# =============================================================================
# Patch Fixtures
# =============================================================================


@pytest.fixture
def format_patch() -> str:
    """Return two mails of `git format-patch --stdout` output."""
    return (
        "From 1111111111111111111111111111111111111111 Mon Sep 17 00:00:00 2001\n"
        "From: Jane Doe <jane@example.org>\n"
        "Date: Mon, 12 Oct 2026 10:15:00 +0200\n"
        "Subject: [PATCH 1/2] MDL-12345 forum: fix subscription\n"
        " check for guests\n"
        "\n"
        "Guests could subscribe, see MDL-12345 and MDLSITE-42.\n"
        "Uses UTF-8 everywhere.\n"
        "---\n"
        " mod/forum/lib.php | 3 ++-\n"
        " 1 file changed, 2 insertions(+), 1 deletion(-)\n"
        "\n"
        "diff --git a/mod/forum/lib.php b/mod/forum/lib.php\n"
        "index 1234567..89abcde 100644\n"
        "--- a/mod/forum/lib.php\n"
        "+++ b/mod/forum/lib.php\n"
        "@@ -10,3 +10,4 @@ function forum_subscribe() {\n"
        "     $a = 1;\n"
        "-    return true;\n"
        "+    // --- guard\n"
        "+    return !isguestuser();\n"
        "     }\n"
        "-- \n"
        "2.40.0\n"
        "\n"
        "From 2222222222222222222222222222222222222222 Mon Sep 17 00:00:00 2001\n"
        "From: John Roe <john@example.org>\n"
        "Date: Tue, 13 Oct 2026 09:00:00 +0000\n"
        "Subject: [PATCH 2/2] MDL-12345 forum: rebuild amd\n"
        "\n"
        "---\n"
        "diff --git a/mod/forum/amd/build/view.min.js b/mod/forum/amd/build/view.min.js\n"
        "index 1234567..89abcde 100644\n"
        "--- a/mod/forum/amd/build/view.min.js\n"
        "+++ b/mod/forum/amd/build/view.min.js\n"
        "@@ -1 +1 @@\n"
        "-define([],function(){});\n"
        "+define(['jquery'],function($){});\n"
        "diff --git a/lib/new.php b/lib/new.php\n"
        "new file mode 100644\n"
        "index 0000000..1234567\n"
        "--- /dev/null\n"
        "+++ b/lib/new.php\n"
        "@@ -0,0 +1,2 @@\n"
        "+<?php\n"
        "+// New.\n"
        "diff --git a/pix/old.png b/pix/old.png\n"
        "deleted file mode 100644\n"
        "index 1234567..0000000\n"
        "Binary files a/pix/old.png and /dev/null differ\n"
        "-- \n"
        "2.40.0\n"
    )


@pytest.fixture
def bare_diff() -> str:
    """Return a unified diff without git headers."""
    return (
        "--- lib/a.php\t2026-10-01 10:00:00\n"
        "+++ lib/a.php\t2026-10-02 10:00:00\n"
        "@@ -1,2 +1,2 @@\n"
        "-old\n"
        "+new\n"
        " same\n"
        "--- /dev/null\n"
        "+++ theme/boost/style/extra.css\n"
        "@@ -0,0 +1 @@\n"
        "+body {}\n"
    )

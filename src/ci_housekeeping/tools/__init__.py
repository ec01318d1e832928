"""Clients for the external tools the jobs drive.

- git: checkout operations, remotes, rebase
- gc: periodic git garbage collection
- npm: node toolchain (grunt, recess, shifter)
- jira: issue tracker CLI
- jenkins: Jenkins CLI
"""

from ci_housekeeping.tools.gc import GitGarbageCollector
from ci_housekeeping.tools.git import GitRepository
from ci_housekeeping.tools.jenkins import JenkinsClient
from ci_housekeeping.tools.jira import TrackerClient
from ci_housekeeping.tools.npm import NpmToolchain

__all__ = [
    "GitGarbageCollector",
    "GitRepository",
    "JenkinsClient",
    "NpmToolchain",
    "TrackerClient",
]

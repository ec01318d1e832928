"""ci-housekeeping - Continuous-integration housekeeping for a large open-source project.

Operations run as independent CLI commands, each a sequence of calls to
external tools (git, npm/grunt/recess/shifter, the tracker CLI, the Jenkins CLI):
- less-check: theme style sheets compile and match committed css
- build-check: built AMD/YUI modules match committed build output
- rebase-security: rebase the security branch, regenerating conflicting build artifacts
- patch-summary: structured change summaries from patch files
- manage-queues: integration queue rules applied through the tracker CLI
- prelaunch-jobs: developer-requested CI jobs launched through the Jenkins CLI
"""

__version__ = "0.1.0"
__author__ = "ci-housekeeping Contributors"

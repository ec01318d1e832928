"""Issue tracker automations.

- queues: integration queue maintenance (held label, feeding current)
- prelaunch: bulk launch of developer-requested CI jobs
"""

from ci_housekeeping.tracker.prelaunch import JOBS, JobDefinition, PrelaunchRunner, select_jobs
from ci_housekeeping.tracker.queues import QueueManager

__all__ = [
    "JOBS",
    "JobDefinition",
    "PrelaunchRunner",
    "QueueManager",
    "select_jobs",
]

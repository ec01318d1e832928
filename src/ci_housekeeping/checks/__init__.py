"""Generated artifact checks.

- LessChecker: theme .less sources compile and match committed .css
- BuildChecker: built AMD/YUI modules match committed build output
"""

from ci_housekeeping.checks.build import BuildChecker
from ci_housekeeping.checks.less import LessChecker

__all__ = ["BuildChecker", "LessChecker"]

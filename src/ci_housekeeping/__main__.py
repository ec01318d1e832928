"""Entry point for running ci-housekeeping as a module.

Usage:
    python -m ci_housekeeping [command] [options]

Example:
    python -m ci_housekeeping less-check --gitdir /var/lib/ci/moodle
    python -m ci_housekeeping check
"""

from ci_housekeeping.cli import app

if __name__ == "__main__":
    app()

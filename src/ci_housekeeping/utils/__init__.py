"""Utility modules for ci-housekeeping."""

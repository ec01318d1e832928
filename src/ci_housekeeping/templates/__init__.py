"""Jinja2 templates: tracker comments and patch summary reports."""

from ci_housekeeping.templates.renderer import TemplateRenderer

__all__ = ["TemplateRenderer"]

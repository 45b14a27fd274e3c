"""Cohort Progress Tracker: attendance and test summaries from platform exports."""

__version__ = "1.0.0"

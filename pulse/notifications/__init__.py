"""Scheduled digest generation."""

from .scheduler import DigestScheduler, ScheduleStatus, format_countdown, run_key, weekday_index

__all__ = ["DigestScheduler", "ScheduleStatus", "format_countdown", "run_key", "weekday_index"]

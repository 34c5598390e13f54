"""Telemetry for remote collaborator reliability."""

from .call_metrics import CallMetrics, CallStats

__all__ = ["CallMetrics", "CallStats"]

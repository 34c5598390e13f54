from time import perf_counter

import pytest

from pulse.observability import CallMetrics


def test_call_metrics_summary_tracks_counts():
    metrics = CallMetrics()
    metrics.record("list_documents", True, perf_counter())
    metrics.record("list_documents", False, perf_counter(), error="timeout")

    summary = metrics.summary()
    assert summary["list_documents"]["attempts"] == 2
    assert summary["list_documents"]["successes"] == 1
    assert summary["list_documents"]["failures"] == 1
    assert summary["list_documents"]["success_rate"] == 50.0


def test_track_records_failure_and_reraises():
    metrics = CallMetrics()
    with metrics.track("trigger"):
        pass
    with pytest.raises(RuntimeError):
        with metrics.track("trigger"):
            raise RuntimeError("boom")

    summary = metrics.summary()
    assert summary["trigger"]["attempts"] == 2
    assert summary["trigger"]["failures"] == 1

"""
Counter registry: declared names and labels only.
"""
from __future__ import annotations

import pytest

from alttext.enrichment import telemetry


def test_counter_total_sums_matching_label_sets():
    telemetry.increment_counter("inference_calls_total", outcome="ok")
    telemetry.increment_counter("inference_calls_total", outcome="ok")
    telemetry.increment_counter("inference_calls_total", outcome="timeout")

    assert telemetry.counter_total("inference_calls_total") == 3
    assert telemetry.counter_total("inference_calls_total", outcome="ok") == 2
    assert telemetry.counter_total("inference_calls_total", outcome="error") == 0


def test_unknown_counter_is_rejected():
    with pytest.raises(KeyError):
        telemetry.increment_counter("inference_call_total", outcome="ok")  # type: ignore[arg-type]


def test_undeclared_label_is_rejected():
    with pytest.raises(ValueError):
        telemetry.increment_counter("ingest_total", result="created")


def test_zero_amount_records_nothing():
    telemetry.increment_counter("metadata_read_failures_total", amount=0)
    assert telemetry.counter_total("metadata_read_failures_total") == 0

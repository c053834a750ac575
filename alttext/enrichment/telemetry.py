"""
Process-local counters for the read funnel, background tasks and ingest.

Every counter has a fixed name and a fixed set of label names, declared in
`COUNTERS`. Recording an undeclared counter or label is a programming error
and raises immediately, so a typo cannot silently create a new series.

Tests read values back with `counter_total` and clear state between cases
with `reset_for_tests`.
"""
from __future__ import annotations

from collections import Counter
from threading import Lock
from typing import Dict, FrozenSet, Literal, Mapping, Tuple

CounterName = Literal[
    "inference_calls_total",
    "enrichment_skipped_total",
    "response_cache_writes_total",
    "metadata_read_failures_total",
    "background_failures_total",
    "ingest_total",
    "ingest_compensation_failures_total",
]

# counter name -> allowed label names
COUNTERS: Mapping[str, FrozenSet[str]] = {
    "inference_calls_total": frozenset({"outcome"}),
    "enrichment_skipped_total": frozenset({"reason"}),
    "response_cache_writes_total": frozenset({"kind"}),
    "metadata_read_failures_total": frozenset(),
    "background_failures_total": frozenset(),
    "ingest_total": frozenset({"outcome"}),
    "ingest_compensation_failures_total": frozenset(),
}

Series = Tuple[str, Tuple[Tuple[str, str], ...]]

_values: "Counter[Series]" = Counter()
_guard = Lock()


def _series(name: str, labels: Dict[str, str]) -> Series:
    allowed = COUNTERS.get(name)
    if allowed is None:
        raise KeyError(f"unknown counter: {name}")
    extra = set(labels) - allowed
    if extra:
        raise ValueError(f"counter {name} has no label(s): {', '.join(sorted(extra))}")
    return name, tuple(sorted((key, str(value)) for key, value in labels.items()))


def increment_counter(name: CounterName, *, amount: int = 1, **labels: str) -> None:
    series = _series(name, labels)
    if amount:
        with _guard:
            _values[series] += amount


def counter_total(name: CounterName, **labels: str) -> int:
    """Sum `name` over every series whose labels include `labels`."""
    _, wanted = _series(name, labels)
    with _guard:
        return sum(
            value
            for (series_name, series_labels), value in _values.items()
            if series_name == name and set(wanted) <= set(series_labels)
        )


def reset_for_tests() -> None:
    with _guard:
        _values.clear()


__all__ = ["COUNTERS", "CounterName", "counter_total", "increment_counter", "reset_for_tests"]

"""Prometheus instrumentation for credential workflows."""

from __future__ import annotations

from prometheus_client import Counter

CREDENTIAL_EVENTS = Counter(
    "credential_events_total",
    "Credential workflow outcomes by operation.",
    ["event", "outcome"],
)


def record_event(event: str, outcome: str) -> None:
    CREDENTIAL_EVENTS.labels(event=event, outcome=outcome).inc()

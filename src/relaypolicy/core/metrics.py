"""
Prometheus metrics for policy decisions and administrative commands.

Module-level metric objects (singletons, thread-safe) registered in the
default ``prometheus_client`` registry. Exposition is left to the host
process, which already serves ``/metrics`` for its own collectors.

Architecture:
    POLICY_DECISIONS_TOTAL:        Decisions by mode (``admin``, ``write``,
                                   ``connection``) and outcome.
    POLICY_DECISION_SECONDS:       Latency of a write-authorization decision.
    ADMIN_COMMANDS_TOTAL:          NIP-86 commands by method and outcome
                                   (``ok`` or an error code).
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram


POLICY_DECISIONS_TOTAL = Counter(
    "policy_decisions_total",
    "Authorization decisions by mode and outcome",
    ["mode", "outcome"],
)

POLICY_DECISION_SECONDS = Histogram(
    "policy_decision_seconds",
    "Duration of a write-authorization decision in seconds",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

ADMIN_COMMANDS_TOTAL = Counter(
    "admin_commands_total",
    "Administrative commands by method and outcome",
    ["method", "outcome"],
)

"""
Prometheus metrics export.

Formats gateway stats in the Prometheus text exposition format.
No external dependencies required.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from signal_gateway.session_manager import SessionManager


class MetricType(str, Enum):
    """Prometheus metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDefinition:
    """A metric read from the stats dictionary."""

    name: str
    key: str
    help_text: str
    metric_type: MetricType
    source: str = "metrics"  # "metrics" or "stats"


# =============================================================================
# Metric Definitions
# =============================================================================

METRIC_DEFINITIONS: list[MetricDefinition] = [
    # Gauges
    MetricDefinition("users_connected", "users", "Registered clients", MetricType.GAUGE, "stats"),
    MetricDefinition("users_waiting", "waiting", "Clients in the waiting pool", MetricType.GAUGE, "stats"),
    MetricDefinition("pairs_active", "pairs", "Matched pairs", MetricType.GAUGE, "stats"),
    MetricDefinition(
        "rate_limiter_tracked", "rate_limiter_tracked",
        "Connections tracked by rate limiter", MetricType.GAUGE, "stats",
    ),
    # Sessions
    MetricDefinition("joins_total", "sessions_joins", "Successful joins", MetricType.COUNTER),
    MetricDefinition("superseded_total", "sessions_superseded", "Connections replaced by a newer join", MetricType.COUNTER),
    MetricDefinition("sessions_removed_total", "sessions_removed", "Sessions removed from the registry", MetricType.COUNTER),
    MetricDefinition(
        "partner_notifications_total", "sessions_partner_notifications",
        "partner-disconnected messages sent", MetricType.COUNTER,
    ),
    # Matchmaking
    MetricDefinition("match_requests_total", "matches_requests", "find-match requests", MetricType.COUNTER),
    MetricDefinition("matches_created_total", "matches_created", "Pairs created", MetricType.COUNTER),
    MetricDefinition("match_waiting_total", "matches_waiting", "Requests left waiting", MetricType.COUNTER),
    MetricDefinition("match_aborted_total", "matches_aborted", "Waiting entries pruned because their session was gone", MetricType.COUNTER),
    # Relay
    MetricDefinition("relay_forwarded_total", "relay_forwarded", "Negotiation messages forwarded", MetricType.COUNTER),
    MetricDefinition("relay_target_not_found_total", "relay_target_not_found", "Relays to unknown targets", MetricType.COUNTER),
    MetricDefinition("relay_delivery_failed_total", "relay_delivery_failed", "Relays the target refused", MetricType.COUNTER),
    # Liveness
    MetricDefinition("liveness_sweeps_total", "liveness_sweeps", "Liveness sweeps run", MetricType.COUNTER),
    MetricDefinition("liveness_evicted_closed_total", "liveness_evicted_closed", "Sessions evicted with a closed connection", MetricType.COUNTER),
    MetricDefinition("liveness_evicted_timeout_total", "liveness_evicted_timeout", "Sessions evicted for inactivity", MetricType.COUNTER),
    MetricDefinition("liveness_probe_failures_total", "liveness_probe_failures", "Probes that could not be sent", MetricType.COUNTER),
    # Transport
    MetricDefinition("frames_rate_limited_total", "frames_rate_limited", "Connections closed for exceeding the message rate", MetricType.COUNTER),
    MetricDefinition("frames_oversized_total", "frames_oversized", "Connections closed for oversized frames", MetricType.COUNTER),
    MetricDefinition("origin_rejected_total", "frames_origin_rejected", "Connections rejected by origin check", MetricType.COUNTER),
]


# =============================================================================
# Prometheus Formatter
# =============================================================================


class PrometheusFormatter:
    """
    Formats metrics in Prometheus text exposition format.

    Reference: https://prometheus.io/docs/instrumenting/exposition_formats/

    Usage:
        formatter = PrometheusFormatter()
        output = formatter.format_all_metrics(stats)
    """

    def __init__(self, prefix: str = "signalgw"):
        self._prefix = prefix

    def format_metric(
        self,
        name: str,
        value: float | int,
        help_text: str,
        metric_type: MetricType,
        labels: dict[str, str] | None = None,
    ) -> str:
        """Format a single metric with its HELP and TYPE lines."""
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} {metric_type.value}",
        ]
        if labels:
            label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
            lines.append(f"{name}{{{label_str}}} {value}")
        else:
            lines.append(f"{name} {value}")
        return "\n".join(lines)

    def format_all_metrics(self, stats: dict[str, Any]) -> str:
        """
        Format all metrics from ``SessionManager.get_stats()``.

        Returns:
            Complete Prometheus exposition format string.
        """
        lines: list[str] = []
        metrics = stats.get("metrics", {})

        for definition in METRIC_DEFINITIONS:
            source = stats if definition.source == "stats" else metrics
            lines.append(self.format_metric(
                f"{self._prefix}_{definition.name}",
                source.get(definition.key, 0),
                definition.help_text,
                definition.metric_type,
            ))

        # Error replies by code
        errors_name = f"{self._prefix}_errors_total"
        lines.append(f"# HELP {errors_name} Error replies sent to clients by code")
        lines.append(f"# TYPE {errors_name} counter")
        for code, count in sorted(metrics.get("errors", {}).items()):
            lines.append(f'{errors_name}{{code="{code}"}} {count}')

        lines.append(self.format_metric(
            f"{self._prefix}_scrape_timestamp",
            int(time.time()),
            "Timestamp of metrics scrape",
            MetricType.GAUGE,
        ))

        return "\n".join(lines) + "\n"


_formatter: PrometheusFormatter | None = None


def get_prometheus_formatter() -> PrometheusFormatter:
    """Get singleton Prometheus formatter."""
    global _formatter
    if _formatter is None:
        _formatter = PrometheusFormatter()
    return _formatter


def generate_prometheus_metrics(manager: "SessionManager") -> str:
    """Generate Prometheus metrics from a SessionManager."""
    return get_prometheus_formatter().format_all_metrics(manager.get_stats())

"""
Prometheus metrics for the Jenkins relay application.

This module defines the metrics collected while receiving webhooks, scheduling
and cancelling Jenkins builds and posting commit statuses back to GitHub.
"""

import time

from prometheus_client import Counter, Histogram, Info


# Webhook reception metrics
webhooks_received_total = Counter(
    "jenkins_relay_webhooks_received_total",
    "Total number of webhooks received",
    ["source", "event_type"],  # source = github|jenkins|operator
)

webhook_processing_duration_seconds = Histogram(
    "jenkins_relay_webhook_processing_duration_seconds",
    "Time spent processing webhooks",
    ["source", "event_type"],
)

webhook_processing_errors_total = Counter(
    "jenkins_relay_webhook_processing_errors_total",
    "Total number of webhook processing errors",
    ["source", "event_type", "error_type"],
)

# Jenkins metrics
jenkins_builds_scheduled_total = Counter(
    "jenkins_relay_jenkins_builds_scheduled_total",
    "Total number of Jenkins builds scheduled",
    ["job"],
)

jenkins_builds_cancelled_total = Counter(
    "jenkins_relay_jenkins_builds_cancelled_total",
    "Total number of Jenkins build instances cancelled",
    ["job"],
)

jenkins_api_call_duration_seconds = Histogram(
    "jenkins_relay_jenkins_api_call_duration_seconds",
    "Duration of Jenkins API calls",
    ["endpoint"],  # endpoint = build|query|stop
)

jenkins_api_errors_total = Counter(
    "jenkins_relay_jenkins_api_errors_total",
    "Total number of failed Jenkins API calls",
    ["endpoint", "error_type"],
)

# GitHub status update metrics
github_status_updates_total = Counter(
    "jenkins_relay_github_status_updates_total",
    "Total number of GitHub commit statuses posted",
    ["repo_name", "state"],
)

# Application info
app_info = Info("jenkins_relay_app", "Jenkins relay application information")


class MetricsContext:
    """Context manager for timing operations and handling errors with metrics."""

    def __init__(self, histogram, error_counter, error_labels=None):
        self.histogram = histogram
        self.error_counter = error_counter
        self.error_labels = error_labels or []
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.histogram.observe(time.time() - self.start_time)

        if exc_type is not None:
            self.error_counter.labels(*self.error_labels, exc_type.__name__).inc()

        return False  # Don't suppress exceptions


def track_webhook_processing(source: str, event_type: str):
    """Context manager for tracking webhook processing metrics."""
    webhooks_received_total.labels(source, event_type).inc()
    return MetricsContext(
        webhook_processing_duration_seconds.labels(source, event_type),
        webhook_processing_errors_total,
        error_labels=[source, event_type],
    )


def track_jenkins_api_call(endpoint: str):
    """Context manager for tracking Jenkins API call metrics."""
    return MetricsContext(
        jenkins_api_call_duration_seconds.labels(endpoint),
        jenkins_api_errors_total,
        error_labels=[endpoint],
    )

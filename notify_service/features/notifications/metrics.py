"""Prometheus metrics for notification dispatch monitoring.

Tracks:
- Submissions and retries
- Delivery results and duration by channel
- Batch processing and queue depth
- Retention purges

Usage:
    from notify_service.features.notifications.metrics import (
        notification_submitted_total,
        notification_delivered_total,
    )

    notification_submitted_total.labels(
        notification_type="email",
        priority="high",
    ).inc()

    notification_delivered_total.labels(
        channel="sms",
        status="failed",
    ).inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Submission Metrics
# =============================================================================

notification_submitted_total = Counter(
    "notification_submitted_total",
    "Total number of notifications accepted for dispatch",
    labelnames=["notification_type", "priority"],
)
"""
Counter for accepted submissions (single and bulk).

Labels:
    notification_type: Type string as submitted (email, sms, push, webhook, ...)
    priority: Priority level (low, normal, high)
"""

notification_retries_total = Counter(
    "notification_retries_total",
    "Total number of retry submissions",
    labelnames=["notification_type"],
)
"""
Counter for failed notifications sent back to the queue.

Labels:
    notification_type: Type of the retried notification
"""

# =============================================================================
# Delivery Metrics
# =============================================================================

notification_delivered_total = Counter(
    "notification_delivered_total",
    "Total number of delivery attempts by channel and status",
    labelnames=["channel", "status"],
)
"""
Counter for delivery outcomes.

Labels:
    channel: Provider channel (email, sms, push, webhook)
    status: Outcome (sent, failed)

Example:
    notification_delivered_total.labels(channel="email", status="sent").inc()
"""

notification_delivery_duration_seconds = Histogram(
    "notification_delivery_duration_seconds",
    "Provider send duration in seconds",
    labelnames=["channel"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
"""
Histogram of provider send latency.

Labels:
    channel: Provider channel

Buckets:
    - 0.05s-0.5s: HTTP channels (push, webhook, sms)
    - 1s-10s: SMTP handshakes
    - 30s: Provider timeouts
"""

# =============================================================================
# Processor Metrics
# =============================================================================

notification_batches_total = Counter(
    "notification_batches_total",
    "Total number of processor ticks by outcome",
    labelnames=["outcome"],
)
"""
Counter for processor ticks that dequeued work.

Labels:
    outcome: processed (a batch ran) or skipped (a batch was still in flight)
"""

notification_batch_size = Histogram(
    "notification_batch_size",
    "Number of notifications per dispatched batch",
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000],
)

notification_queue_depth = Gauge(
    "notification_queue_depth",
    "Current number of notification ids waiting in the dispatch queue",
)
"""
Gauge showing dispatch queue depth.

Example:
    notification_queue_depth.set(42)
"""

notification_in_flight = Gauge(
    "notification_in_flight",
    "Whether a dispatch batch is currently in flight (0 or 1)",
)

# =============================================================================
# Retention Metrics
# =============================================================================

notification_purged_total = Counter(
    "notification_purged_total",
    "Total number of notification records removed by retention purges",
)


__all__ = [
    "notification_batch_size",
    "notification_batches_total",
    "notification_delivered_total",
    "notification_delivery_duration_seconds",
    "notification_in_flight",
    "notification_purged_total",
    "notification_queue_depth",
    "notification_retries_total",
    "notification_submitted_total",
]

from prometheus_client import Counter, Gauge


scheduler_scans_total = Counter(
    "reminder_scheduler_scans_total",
    "Total overdue scan cycles",
)

scheduler_scan_failures_total = Counter(
    "reminder_scheduler_scan_failures_total",
    "Total overdue scan cycles skipped because the task store query failed",
)

reminders_published_total = Counter(
    "reminders_published_total",
    "Total reminder messages published to the queue",
)

reminders_publish_failed_total = Counter(
    "reminders_publish_failed_total",
    "Total reminder messages that could not be published",
)

reminders_delivered_total = Counter(
    "reminders_delivered_total",
    "Total reminders pushed to at least one live session",
)

reminders_no_session_total = Counter(
    "reminders_no_session_total",
    "Total reminders completed while the owner had no live session",
)

reminders_poison_total = Counter(
    "reminders_poison_total",
    "Total malformed reminder messages dropped from the queue",
)

reminders_stale_total = Counter(
    "reminders_stale_total",
    "Total reminder messages dropped because the task was already handled",
)

reminders_requeued_total = Counter(
    "reminders_requeued_total",
    "Total reminder messages negatively acknowledged for redelivery",
)

push_connections_active = Gauge(
    "push_connections_active",
    "Live push-channel connections",
)

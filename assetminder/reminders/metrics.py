from prometheus_client import Counter


reminders_scheduled_total = Counter(
    "reminders_scheduled_total",
    "Total notifications scheduled",
    ["channel"],
)

reminders_cancelled_total = Counter(
    "reminders_cancelled_total",
    "Total scheduled notifications cancelled",
    ["channel"],
)

dispatcher_scans_total = Counter(
    "reminder_dispatcher_scans_total",
    "Total dispatcher scan cycles",
    ["channel"],
)

reminders_dispatch_success_total = Counter(
    "reminders_dispatch_success_total",
    "Total notifications delivered",
    ["channel"],
)

reminders_dispatch_failed_total = Counter(
    "reminders_dispatch_failed_total",
    "Total failed delivery attempts",
    ["channel"],
)

reminders_retried_total = Counter(
    "reminders_retried_total",
    "Total notifications rescheduled for retry",
    ["channel"],
)

reminders_reclaimed_total = Counter(
    "reminders_reclaimed_total",
    "Total stale processing claims reclaimed",
    ["channel"],
)

reminders_swept_total = Counter(
    "reminders_swept_total",
    "Total terminal notifications deleted by retention",
    ["channel"],
)

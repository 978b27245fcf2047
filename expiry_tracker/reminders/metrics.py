from prometheus_client import Counter


reminders_scheduled_total = Counter(
    "reminders_scheduled_total",
    "Total expiry reminders scheduled",
)

reminders_cancelled_total = Counter(
    "reminders_cancelled_total",
    "Total pending reminders cancelled",
)

reconcile_runs_total = Counter(
    "reminder_reconcile_runs_total",
    "Total reconciliation passes",
)

reconcile_failures_total = Counter(
    "reminder_reconcile_failures_total",
    "Total per-user or per-item reconciliation failures",
)

reminders_dispatch_success_total = Counter(
    "reminders_dispatch_success_total",
    "Total successful push dispatches",
)

reminders_dispatch_failed_total = Counter(
    "reminders_dispatch_failed_total",
    "Total failed push dispatches",
)

broadcasts_total = Counter(
    "reminder_broadcasts_total",
    "Total admin broadcasts queued",
)

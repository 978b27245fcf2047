"""Expiry reminders: rule evaluation, scheduling, reconciliation and delivery.

The API process uses the scheduler and the queue adapter; the Celery worker
(``celery -A expiry_tracker.reminders.celery_app worker``) runs delivery, and
Celery beat triggers the hourly reconciliation pass.
"""

"""
Expiry Tracker Backend Application Package

REST API for tracking food items and documents with expiry dates, plus the
reminder pipeline (scheduler, reconciliation, delivery) that runs on Celery.
"""

"""Celery application and periodic jobs."""

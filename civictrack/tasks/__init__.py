"""Celery tasks for the CivicTrack worker."""

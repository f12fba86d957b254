"""Scheduled reminders: storage, scheduling, dispatch, cancellation and retention."""

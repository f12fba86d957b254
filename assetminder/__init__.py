"""
AssetMinder Backend Application Package

Scheduled multi-channel reminders (push, email, SMS) for inventory items.
"""

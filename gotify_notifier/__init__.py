"""
Gotify notifier application entry point.
"""

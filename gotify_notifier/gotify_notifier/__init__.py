"""
gotify_notifier package.

Runtime support for the Gotify tray notifier. The notifier itself lives in
``gotify_core``; this package holds process-level helpers such as logging.
"""

__all__ = [
    "logger",
]

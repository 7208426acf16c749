"""
Value types and pure helpers shared across the Gotify notifier.
"""

from .message import Message, MessageParseError, parse_message_list  # noqa: F401
from .text_layout import alert_height, stack_offset, wrap_text  # noqa: F401

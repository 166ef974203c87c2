"""
Enumeration types used across the application.
"""

from enum import Enum


class AppVariant(str, Enum):
    """Local app variant; stored in the `app_type` discriminator column"""
    CHAT_ASSISTANT = "chat_assistant"
    CHATFLOW = "chatflow"
    WORKFLOW = "workflow"

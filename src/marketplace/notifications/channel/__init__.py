"""Channel adapter registry — pluggable notification dispatch channels.

Provides singleton access to channel adapters. Uses fake adapters by
default; real SMS/WhatsApp/email providers are selected with the
NOTIFICATION_ADAPTER environment variable in production.
"""

import os
from enum import Enum


class Channel(Enum):
    SMS = "sms"
    WHATSAPP = "whatsapp"
    EMAIL = "email"


_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the configured channel adapter (singleton per channel type).

    Args:
        channel_type: One of Channel enum values ("sms", "whatsapp", "email")
    """
    if channel_type not in _channel_instances:
        channel = Channel(channel_type)
        adapter = os.environ.get("NOTIFICATION_ADAPTER", "fake")
        if adapter == "fake":
            from marketplace.notifications.channel.fake_adapter import FakeChannelAdapter

            _channel_instances[channel_type] = FakeChannelAdapter(channel.value)
        else:
            raise ValueError(f"Unknown notification adapter: {adapter}")

    return _channel_instances[channel_type]


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()

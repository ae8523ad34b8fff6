"""Notification channel port — abstract interface for SMS, WhatsApp and email dispatch."""

from abc import ABC, abstractmethod


class ChannelPort(ABC):
    """Abstract interface for channel adapters."""

    @abstractmethod
    def send(self, to: str, body: str, subject: str | None = None) -> dict:
        """Send a message to ``to``.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...

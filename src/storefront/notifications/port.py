"""Notifier port: abstract interface for customer notifications."""

from abc import ABC, abstractmethod


class Notifier(ABC):
    """Abstract interface for notification dispatch adapters."""

    @abstractmethod
    def send(self, recipient_id: str, template: str, context: dict) -> dict:
        """Deliver one notification.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...

"""Fake notifier: records notifications in memory for test assertions."""

from uuid import uuid4

from storefront.notifications.port import Notifier


class FakeNotifier(Notifier):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, recipient_id: str, template: str, context: dict) -> dict:
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"note-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "recipient_id": recipient_id,
                "template": template,
                "context": context,
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def sent_with(self, template: str) -> list[dict]:
        return [n for n in self.sent if n["template"] == template]

    def reset(self):
        """Clear sent notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

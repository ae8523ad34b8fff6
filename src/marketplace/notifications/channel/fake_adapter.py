"""Fake channel adapter — records sent messages for testing and development."""

from uuid import uuid4

from marketplace.notifications.channel.port import ChannelPort


class FakeChannelAdapter(ChannelPort):
    """Channel adapter that records messages in memory for test assertions."""

    def __init__(self, channel: str):
        self.channel = channel
        self.sent_messages: list[dict] = []
        self.should_succeed = True
        self.failure_reason = f"{channel} delivery failed"
        self.should_raise = False

    def configure(self, should_succeed: bool = True, failure_reason: str | None = None, should_raise: bool = False):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason or f"{self.channel} delivery failed"
        self.should_raise = should_raise

    def send(self, to: str, body: str, subject: str | None = None) -> dict:
        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"{self.channel}-{uuid4().hex[:12]}"
        self.sent_messages.append({"message_id": message_id, "to": to, "subject": subject, "body": body})
        return {"message_id": message_id, "status": "sent"}

    def messages_to(self, recipient: str) -> list[dict]:
        return [m for m in self.sent_messages if m["to"] == recipient]

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent_messages.clear()
        self.configure()

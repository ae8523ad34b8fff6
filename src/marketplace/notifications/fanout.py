"""NotificationFanout — fire-and-forget delivery of templated messages.

Messages are rendered on the caller's thread and handed to a small worker
pool, so order operations never wait on (or fail because of) a channel
provider. Every outcome is logged and counted.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

import structlog

from marketplace import config
from marketplace.notifications.channel import Channel, get_channel
from marketplace.notifications.templates import get_template

logger = structlog.get_logger(__name__)


class NotificationFanout:
    def __init__(self, max_workers: int = config.NOTIFICATION_WORKERS):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        self._lock = threading.Lock()
        self._pending: set[Future] = set()
        self._sent = 0
        self._failed = 0

    @property
    def stats(self) -> dict:
        with self._lock:
            return {"sent": self._sent, "failed": self._failed, "pending": len(self._pending)}

    def notify(self, channel: str, recipient: str | None, template_key: str, payload: dict) -> Future | None:
        """Queue one message. Never raises; returns the send future when one was queued."""
        try:
            channel = Channel(channel).value
        except ValueError:
            self._record_failure(channel, recipient, template_key, "Unknown notification channel")
            return None

        if not recipient:
            self._record_failure(channel, recipient, template_key, "No recipient on file")
            return None

        try:
            message = get_template(template_key).render(payload)
        except (KeyError, ValueError) as exc:
            self._record_failure(channel, recipient, template_key, f"Template render failed: {exc}")
            return None

        try:
            future = self._executor.submit(self._send, channel, recipient, template_key, message)
        except RuntimeError as exc:
            # Executor already shut down
            self._record_failure(channel, recipient, template_key, str(exc))
            return None

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _send(self, channel: str, recipient: str, template_key: str, message: dict) -> None:
        try:
            result = get_channel(channel).send(recipient, message["body"], subject=message.get("subject"))
        except Exception as exc:
            self._record_failure(channel, recipient, template_key, str(exc))
            return

        if result.get("status") == "sent":
            with self._lock:
                self._sent += 1
            logger.info(
                "Notification sent",
                channel=channel,
                template=template_key,
                message_id=result.get("message_id"),
            )
        else:
            self._record_failure(channel, recipient, template_key, result.get("error", "Unknown dispatch error"))

    def _record_failure(self, channel, recipient, template_key, reason: str) -> None:
        with self._lock:
            self._failed += 1
        logger.warning(
            "Notification not delivered",
            channel=channel,
            recipient=recipient,
            template=template_key,
            reason=reason,
        )

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: float | None = 5.0) -> bool:
        """Wait for queued sends. Returns False if some were still running at the timeout."""
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)


_fanout: NotificationFanout | None = None
_fanout_lock = threading.Lock()


def get_fanout() -> NotificationFanout:
    """Return the process-wide fan-out (created on first use)."""
    global _fanout
    with _fanout_lock:
        if _fanout is None:
            _fanout = NotificationFanout()
        return _fanout


def reset_fanout():
    """Drain and discard the fan-out singleton (useful for testing)."""
    global _fanout
    with _fanout_lock:
        if _fanout is not None:
            _fanout.shutdown(wait_for_pending=True)
        _fanout = None

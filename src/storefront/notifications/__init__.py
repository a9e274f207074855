"""Notifier registry: singleton access to the active notification adapter."""

from storefront.notifications.port import Notifier

_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Return the configured notifier. Defaults to FakeNotifier."""
    global _notifier
    if _notifier is None:
        from storefront.notifications.fake_notifier import FakeNotifier

        _notifier = FakeNotifier()
    return _notifier


def set_notifier(notifier: Notifier) -> None:
    global _notifier
    _notifier = notifier


def reset_notifier() -> None:
    """Reset to the default notifier (useful for testing)."""
    global _notifier
    _notifier = None

"""Notification dispatcher factory.

get_dispatcher() / set_dispatcher() swap the dispatcher the order event
handlers use. Emails through the configured channel by default.
"""

from marketplace.notification.port import NotificationDispatcher

_current_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    global _current_dispatcher
    if _current_dispatcher is None:
        from marketplace.notification.email_dispatcher import EmailNotificationDispatcher

        _current_dispatcher = EmailNotificationDispatcher()
    return _current_dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _current_dispatcher
    _current_dispatcher = dispatcher


def reset_dispatcher() -> None:
    global _current_dispatcher
    _current_dispatcher = None

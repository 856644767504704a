"""Notification dispatcher port.

Order workflows tell customers what happened through this interface. Sends
happen after the order change has committed; a failed send never affects
the order.
"""

from abc import ABC, abstractmethod


class NotificationDispatcher(ABC):
    @abstractmethod
    def send_order_confirmation(self, order) -> None: ...

    @abstractmethod
    def send_payment_confirmation(self, order) -> None: ...

    @abstractmethod
    def send_status_update(self, order, status: str) -> None: ...

# storefront/core/notifications.py
import logging
from abc import ABC, abstractmethod
from typing import Literal

logger = logging.getLogger(__name__)

ToastLevel = Literal["success", "warning", "error", "info"]

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class NotificationSink(ABC):
    """
    Receives a (level, title, message) toast after each admin operation.
    """

    @abstractmethod
    def notify(self, level: ToastLevel, title: str, message: str) -> None:
        pass


class LoggingNotificationSink(NotificationSink):
    """Default sink: toasts go to the application log."""

    def notify(self, level: ToastLevel, title: str, message: str) -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "[%s] %s: %s", level, title, message)

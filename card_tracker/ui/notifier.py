"""User-facing notices, logged and kept for the front end to show."""

from dataclasses import dataclass
from typing import Callable, List, Optional

from ..utils.log import get_logger

LEVELS = ("info", "success", "warning", "error")


@dataclass
class Notice:
    message: str
    level: str = "info"
    # Blocking notices stop the operation that raised them
    blocking: bool = False


class Notifier:
    """Collects notices and mirrors them into the log."""

    def __init__(self, listener: Optional[Callable[[Notice], None]] = None, history_limit: int = 100):
        self.logger = get_logger(__name__)
        self.listener = listener
        self.history_limit = history_limit
        self.notices: List[Notice] = []

    def notify(self, message: str, level: str = "info", blocking: bool = False) -> Notice:
        if level not in LEVELS:
            level = "info"
        notice = Notice(message=message, level=level, blocking=blocking)

        if level == "success":
            self.logger.info(f"SUCCESS: {message}")
        elif level == "error":
            self.logger.error(f"ERROR: {message}")
        elif level == "warning":
            self.logger.warning(f"WARNING: {message}")
        else:
            self.logger.info(f"INFO: {message}")

        self.notices.append(notice)
        del self.notices[:-self.history_limit]
        if self.listener is not None:
            self.listener(notice)
        return notice

    def success(self, message: str) -> Notice:
        return self.notify(message, "success")

    def info(self, message: str) -> Notice:
        return self.notify(message, "info")

    def warning(self, message: str, blocking: bool = False) -> Notice:
        return self.notify(message, "warning", blocking=blocking)

    def error(self, message: str) -> Notice:
        return self.notify(message, "error")

    @property
    def last(self) -> Optional[Notice]:
        return self.notices[-1] if self.notices else None

    def clear(self) -> None:
        self.notices.clear()

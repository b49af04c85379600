from __future__ import annotations

from typing import List, Protocol, Tuple

from .log import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    """Receives degraded-result and failure reports from engine operations."""

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    def info(self, message: str) -> None:
        logger.info(message)

    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)


class CollectingNotifier:
    """Keeps every report in order, e.g. for a status box or a test."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def by_level(self, level: str) -> List[str]:
        return [m for lvl, m in self.messages if lvl == level]

    def summary(self) -> str:
        return "\n".join(f"{lvl.upper()}: {m}" for lvl, m in self.messages)

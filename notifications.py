"""User-facing notifications raised by mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"


@dataclass
class Notification:
    level: str
    message: str


class Notifier:
    def __init__(self) -> None:
        self.history: List[Notification] = []

    def success(self, message: str) -> None:
        self.history.append(Notification(SUCCESS, message))
        logger.info(message)

    def error(self, message: str) -> None:
        self.history.append(Notification(ERROR, message))
        logger.error(message)

    def last(self) -> Notification | None:
        return self.history[-1] if self.history else None

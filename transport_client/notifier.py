"""
User-facing alert surface.

Controllers report failures through a ``Notifier`` instead of raising, the
same way each screen popped a modal alert and kept its previous state.
"""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def alert(self, title: str, message: str) -> None: ...

    def confirm(self, title: str, message: str) -> bool: ...


class LoggingNotifier:
    """Logs alerts; answers confirmations with a fixed choice."""

    def __init__(self, assume_yes: bool = False):
        self.assume_yes = assume_yes

    def alert(self, title: str, message: str) -> None:
        logger.warning(f"{title}: {message}")

    def confirm(self, title: str, message: str) -> bool:
        logger.info(f"{title}: {message} -> {'yes' if self.assume_yes else 'no'}")
        return self.assume_yes


class ConsoleNotifier(LoggingNotifier):
    """Asks on stdin; used by the CLI."""

    def confirm(self, title: str, message: str) -> bool:
        if self.assume_yes:
            return True
        answer = input(f"{title}: {message} [y/N] ")
        return answer.strip().lower() in {"y", "yes"}

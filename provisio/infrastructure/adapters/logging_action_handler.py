"""
Logging Action Handler

Architectural Intent:
- ActionHandlerPort implementation that reports through logging
- Honours dry-run: irreversible actions are described, never executed
- Keeps a transcript so callers and tests can inspect what happened
"""

import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class LoggingActionHandler:
    def __init__(self, dry_run: bool = False) -> None:
        self._dry_run = dry_run
        self.messages: list[str] = []
        self.performed: list[str] = []

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def report_progress(self, message: str) -> None:
        self.messages.append(message)
        logger.info(message)

    async def perform_action(
        self,
        description: str,
        action: Callable[[], Awaitable[Any]],
    ) -> Optional[Any]:
        if self._dry_run:
            self.report_progress(f"Would {description}")
            return None
        self.report_progress(description)
        result = await action()
        self.performed.append(description)
        return result

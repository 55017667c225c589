"""
Action Handler Port

Architectural Intent:
- Port for the caller's reporting and dry-run context
- Passed to every lifecycle operation so drivers consult it before
  performing irreversible side effects
"""

from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class ActionHandlerPort(Protocol):
    """Reporting/dry-run capability handed to drivers."""

    @property
    def dry_run(self) -> bool: ...

    def report_progress(self, message: str) -> None: ...

    async def perform_action(
        self,
        description: str,
        action: Callable[[], Awaitable[Any]],
    ) -> Optional[Any]:
        """Run `action` unless in dry-run mode; report `description` either way."""
        ...

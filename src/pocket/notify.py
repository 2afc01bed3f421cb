"""Outbound message channel used by the batch classifier and status reporter.

Message formatting and delivery belong to the host transport (a chat bot,
for example). The pipeline only needs to send, edit and delete messages
and to offer choice buttons.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("pocket.notify")

__all__ = ["Choice", "LoggingNotifier", "Notifier"]


@dataclass(frozen=True)
class Choice:
    """A selectable option attached to a message.

    Attributes:
        label: Text shown to the user
        token: Opaque batch token the choice resolves
        category: Category selected by the choice
    """

    label: str
    token: str
    category: str


@runtime_checkable
class Notifier(Protocol):
    async def send(self, text: str, choices: list[Choice] | None = None) -> Any:
        """Send a message and return a reference usable for edit/delete."""
        ...

    async def edit(self, ref: Any, text: str) -> None: ...

    async def delete(self, ref: Any) -> None: ...


class LoggingNotifier:
    """Notifier that writes messages to the log. Used when no transport is wired."""

    def __init__(self):
        self._ids = itertools.count(1)

    async def send(self, text: str, choices: list[Choice] | None = None) -> int:
        ref = next(self._ids)
        logger.info(
            "notify_send",
            extra={
                "ref": ref,
                "text": text,
                "choices": [c.category for c in choices] if choices else [],
            },
        )
        return ref

    async def edit(self, ref: Any, text: str) -> None:
        logger.info("notify_edit", extra={"ref": ref, "text": text})

    async def delete(self, ref: Any) -> None:
        logger.info("notify_delete", extra={"ref": ref})

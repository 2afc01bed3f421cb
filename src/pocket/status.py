"""Deferred progress indicators for slow operations.

``StatusReporter.start`` returns a handle and arms a timer. If the
operation finishes before the timer fires, the user only ever sees the
final result. If the timer fires first, an indicator message appears,
can show step progress, and is then edited into the final result.

``complete`` and ``cancel`` set the handle's completed flag before any
await, and the timer callback checks that flag before doing anything, so
for one operation the user never gets both an indicator and a separate
result message, and never gets neither.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any

from .notify import Notifier

logger = logging.getLogger("pocket.status")

__all__ = ["OPERATION_TEMPLATES", "OperationKind", "StatusHandle", "StatusReporter"]


class OperationKind(str, Enum):
    EXTRACTING_LINKS = "extracting_links"
    FETCHING_METADATA = "fetching_metadata"
    UPLOADING_IMAGE = "uploading_image"
    CLASSIFYING_NOTE = "classifying_note"
    SEARCHING_NOTES = "searching_notes"
    PROCESSING_NOTE = "processing_note"


OPERATION_TEMPLATES = {
    OperationKind.EXTRACTING_LINKS: "Extracting links...",
    OperationKind.FETCHING_METADATA: "Fetching metadata...",
    OperationKind.UPLOADING_IMAGE: "Uploading image...",
    OperationKind.CLASSIFYING_NOTE: "Classifying note...",
    OperationKind.SEARCHING_NOTES: "Searching notes...",
    OperationKind.PROCESSING_NOTE: "Processing...",
}


class StatusHandle:
    """Lifecycle of one status indicator. Created by ``StatusReporter.start``."""

    def __init__(
        self,
        notifier: Notifier,
        operation: OperationKind,
        total_steps: int | None,
        show_after_ms: int,
        edit_debounce_ms: int = 100,
    ):
        self.notifier = notifier
        self.operation = operation
        self.total_steps = total_steps
        self.show_after_ms = show_after_ms
        self.edit_debounce_ms = edit_debounce_ms
        self.current_step = 0
        self._completed = False
        self._shown = False
        self._ref: Any = None
        self._timer: asyncio.TimerHandle | None = None
        self._show_task: asyncio.Task | None = None
        self._last_edit = 0.0

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def shown(self) -> bool:
        return self._shown

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.show_after_ms / 1000, self._on_threshold)

    def _on_threshold(self) -> None:
        self._timer = None
        if self._completed:
            return
        self._show_task = asyncio.get_running_loop().create_task(
            self._show(), name=f"status_show:{self.operation.value}"
        )

    def _text(self) -> str:
        base = OPERATION_TEMPLATES[self.operation]
        if self.total_steps and self.current_step > 0:
            return f"{base} ({self.current_step}/{self.total_steps})"
        return base

    async def _show(self) -> None:
        try:
            self._ref = await self.notifier.send(self._text())
            self._shown = True
            self._last_edit = time.monotonic()
        except Exception as e:
            logger.warning(
                "status_show_failed",
                extra={"operation": self.operation.value, "error": str(e)},
            )

    async def _settle(self) -> None:
        """Stop the timer and wait for an indicator send already in flight."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._show_task is not None:
            await asyncio.shield(self._show_task)
            self._show_task = None

    async def update(self, step: int | None = None) -> None:
        """Record progress and refresh a visible indicator.

        Edits closer together than the debounce interval are skipped.
        """
        self.current_step = step if step is not None else self.current_step + 1
        if self._completed or not self._shown:
            return
        now = time.monotonic()
        if (now - self._last_edit) * 1000 < self.edit_debounce_ms:
            return
        try:
            await self.notifier.edit(self._ref, self._text())
            self._last_edit = now
        except Exception as e:
            logger.warning(
                "status_update_failed",
                extra={"operation": self.operation.value, "error": str(e)},
            )

    async def complete(self, final_text: str) -> Any:
        """Deliver the final result.

        Edits the indicator when it is visible, otherwise sends the result
        as a new message.

        Returns:
            Reference of the message holding the result, or None if delivery failed
        """
        if self._completed:
            return None
        self._completed = True
        await self._settle()

        if self._shown:
            try:
                await self.notifier.edit(self._ref, final_text)
                return self._ref
            except Exception as e:
                logger.warning(
                    "status_complete_edit_failed",
                    extra={"operation": self.operation.value, "error": str(e)},
                )
                await self._delete_indicator()

        try:
            return await self.notifier.send(final_text)
        except Exception as e:
            logger.error(
                "status_complete_failed",
                extra={"operation": self.operation.value, "error": str(e)},
            )
            return None

    async def cancel(self) -> None:
        """Stop without a result; removes a visible indicator."""
        if self._completed:
            return
        self._completed = True
        await self._settle()
        await self._delete_indicator()

    async def _delete_indicator(self) -> None:
        if not self._shown:
            return
        try:
            await self.notifier.delete(self._ref)
        except Exception as e:
            logger.warning(
                "status_delete_failed",
                extra={"operation": self.operation.value, "error": str(e)},
            )
        self._shown = False
        self._ref = None


class StatusReporter:
    """Creates status handles bound to a notifier.

    Example:
        >>> reporter = StatusReporter(notifier)
        >>> status = reporter.start("processing_note", total_steps=3)
        >>> await status.update(1)
        >>> await status.complete("Saved!")
    """

    def __init__(self, notifier: Notifier, show_after_ms: int = 500, edit_debounce_ms: int = 100):
        self.notifier = notifier
        self.show_after_ms = show_after_ms
        self.edit_debounce_ms = edit_debounce_ms

    def start(
        self,
        operation: OperationKind | str,
        total_steps: int | None = None,
        show_after_ms: int | None = None,
    ) -> StatusHandle:
        """Begin tracking an operation. Must be called inside a running event loop.

        Raises:
            ValueError: If the operation kind is unknown
        """
        handle = StatusHandle(
            self.notifier,
            OperationKind(operation),
            total_steps,
            self.show_after_ms if show_after_ms is None else show_after_ms,
            self.edit_debounce_ms,
        )
        handle._arm()
        return handle

"""Tests for deferred progress indicators."""

import asyncio

import pytest

from src.pocket.status import OperationKind, StatusReporter


class TestFastOperations:
    @pytest.mark.asyncio
    async def test_fast_completion_sends_only_result(self, notifier):
        reporter = StatusReporter(notifier, show_after_ms=50)
        status = reporter.start(OperationKind.PROCESSING_NOTE)

        ref = await status.complete("Saved!")
        await asyncio.sleep(0.08)

        assert notifier.sent == [(1, "Saved!", [])]
        assert notifier.edits == []
        assert ref == 1
        assert status.shown is False

    @pytest.mark.asyncio
    async def test_cancel_before_threshold_sends_nothing(self, notifier):
        status = StatusReporter(notifier, show_after_ms=20).start("searching_notes")
        await status.cancel()
        await asyncio.sleep(0.05)
        assert notifier.sent == []
        assert notifier.deleted == []


class TestSlowOperations:
    @pytest.mark.asyncio
    async def test_indicator_edited_into_result(self, notifier):
        status = StatusReporter(notifier, show_after_ms=10).start("classifying_note")
        await asyncio.sleep(0.05)

        assert status.shown is True
        assert notifier.texts == ["Classifying note..."]

        ref = await status.complete("Classified as todo")

        assert ref == 1
        assert notifier.edits == [(1, "Classified as todo")]
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_complete_while_indicator_in_flight(self, notifier):
        """Completion waits for the indicator send, then edits it."""
        notifier.send_gate = asyncio.Event()
        status = StatusReporter(notifier, show_after_ms=10).start("processing_note")
        await asyncio.sleep(0.03)

        completing = asyncio.create_task(status.complete("Done"))
        await asyncio.sleep(0)
        notifier.send_gate.set()
        await asyncio.wait_for(completing, timeout=1.0)

        assert notifier.texts == ["Processing..."]
        assert notifier.edits == [(1, "Done")]

    @pytest.mark.asyncio
    async def test_step_progress(self, notifier):
        reporter = StatusReporter(notifier, show_after_ms=10, edit_debounce_ms=0)
        status = reporter.start("processing_note", total_steps=3)
        await status.update(1)
        await asyncio.sleep(0.05)

        assert notifier.texts == ["Processing... (1/3)"]

        await status.update()
        assert notifier.edits == [(1, "Processing... (2/3)")]

    @pytest.mark.asyncio
    async def test_rapid_updates_debounced(self, notifier):
        reporter = StatusReporter(notifier, show_after_ms=10, edit_debounce_ms=1000)
        status = reporter.start("uploading_image", total_steps=5)
        await asyncio.sleep(0.05)

        await status.update(1)
        await status.update(2)

        assert notifier.edits == []
        assert status.current_step == 2

    @pytest.mark.asyncio
    async def test_cancel_removes_indicator(self, notifier):
        status = StatusReporter(notifier, show_after_ms=10).start("fetching_metadata")
        await asyncio.sleep(0.05)
        await status.cancel()
        assert notifier.deleted == [1]
        assert status.shown is False

    @pytest.mark.asyncio
    async def test_failed_edit_falls_back_to_new_message(self, notifier):
        status = StatusReporter(notifier, show_after_ms=10).start("extracting_links")
        await asyncio.sleep(0.05)
        notifier.fail_edit = True

        ref = await status.complete("3 links saved")

        assert notifier.deleted == [1]
        assert notifier.texts == ["Extracting links...", "3 links saved"]
        assert ref == 2


class TestHandleLifecycle:
    @pytest.mark.asyncio
    async def test_complete_only_once(self, notifier):
        status = StatusReporter(notifier, show_after_ms=50).start("processing_note")
        assert await status.complete("first") == 1
        assert await status.complete("second") is None
        assert notifier.texts == ["first"]

    @pytest.mark.asyncio
    async def test_unknown_operation(self, notifier):
        with pytest.raises(ValueError):
            StatusReporter(notifier).start("compiling_kernel")

    @pytest.mark.asyncio
    async def test_per_call_threshold_override(self, notifier):
        reporter = StatusReporter(notifier, show_after_ms=10_000)
        status = reporter.start("searching_notes", show_after_ms=10)
        await asyncio.sleep(0.05)
        assert status.shown is True
        await status.complete("2 results")

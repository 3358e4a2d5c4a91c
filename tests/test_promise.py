"""Tests for deferred values and the event channel."""

import asyncio

import pytest
from pydeflate.errors import CompressionError
from pydeflate.events import EventChannel, StreamEvent
from pydeflate.promise import Deferred


class TestDeferred:
    """Tests for Deferred."""

    @pytest.mark.asyncio
    async def test_data_signal_resolves_with_payload(self):
        """Test that a data signal resolves with its payload."""
        deferred = Deferred()
        deferred.resolve("data", b"payload")
        assert await deferred == b"payload"
        assert deferred.signal == "data"

    @pytest.mark.asyncio
    async def test_multiple_payload_items_become_tuple(self):
        """Test several payload items."""
        deferred = Deferred()
        deferred.resolve("pipe", "a", "b")
        assert await deferred == ("a", "b")

    @pytest.mark.asyncio
    async def test_no_payload_resolves_none(self):
        """Test a bare signal."""
        deferred = Deferred()
        deferred.resolve("finish")
        assert await deferred is None

    @pytest.mark.asyncio
    async def test_error_signal_rejects(self):
        """Test that an error signal rejects with the detail."""
        deferred = Deferred()
        error = CompressionError("broken", code=-3)
        deferred.resolve("error", error)
        with pytest.raises(CompressionError) as exc_info:
            await deferred
        assert exc_info.value is error
        assert deferred.signal == "error"

    @pytest.mark.asyncio
    async def test_error_message_is_wrapped(self):
        """Test that a plain error detail becomes a CompressionError."""
        deferred = Deferred()
        deferred.reject("bad input")
        with pytest.raises(CompressionError, match="bad input"):
            await deferred

    @pytest.mark.asyncio
    async def test_only_first_resolution_counts(self):
        """Test single resolution."""
        deferred = Deferred()
        assert deferred.resolve("data", 1) is True
        assert deferred.resolve("data", 2) is False
        assert deferred.resolve("error", "late") is False
        assert await deferred == 1

    @pytest.mark.asyncio
    async def test_done_callback(self):
        """Test done callbacks receive the deferred."""
        deferred = Deferred()
        seen = []
        deferred.add_done_callback(seen.append)
        deferred.resolve("data", "x")
        await asyncio.sleep(0)
        assert seen == [deferred]


class TestEventChannel:
    """Tests for EventChannel."""

    @pytest.mark.asyncio
    async def test_events_buffered_before_iteration(self):
        """Test that early events are kept in order."""
        channel = EventChannel()
        channel.publish("drain")
        channel.publish("finish")
        channel.close()
        events = [event async for event in channel]
        assert events == [StreamEvent("drain"), StreamEvent("finish")]

    @pytest.mark.asyncio
    async def test_publish_after_close_ignored(self):
        """Test that a closed channel drops new events."""
        channel = EventChannel()
        channel.close()
        channel.publish("drain")
        assert [event async for event in channel] == []

    @pytest.mark.asyncio
    async def test_pending_does_not_wait(self):
        """Test pending() returns buffered events only."""
        channel = EventChannel()
        assert channel.pending() == []
        channel.publish("error", ValueError("x"))
        pending = channel.pending()
        assert [event.name for event in pending] == ["error"]
        assert channel.pending() == []

    @pytest.mark.asyncio
    async def test_iteration_waits_for_events(self):
        """Test that iteration suspends until something is published."""
        channel = EventChannel()

        async def producer():
            await asyncio.sleep(0.01)
            channel.publish("drain")
            channel.close()

        task = asyncio.create_task(producer())
        events = [event.name async for event in channel]
        await task
        assert events == ["drain"]

"""Tests for the threshold-plus-window batch aggregator."""

import asyncio

import pytest

from beadbridge.bridge.batch import BatchAggregator, BatchState


class Recorder:
    def __init__(self, fail: bool = False):
        self.flushed: list[list[int]] = []
        self.fail = fail

    async def __call__(self, items: list[int]) -> None:
        if self.fail:
            raise RuntimeError("downstream unavailable")
        self.flushed.append(items)


class TestBatchAggregator:
    """Tests for BatchAggregator."""

    @pytest.mark.asyncio
    async def test_under_threshold_delivers_individually(self):
        recorder = Recorder()
        batch = BatchAggregator(threshold=3, window_seconds=60, on_flush=recorder)

        assert [batch.add(i) for i in range(3)] == [True, True, True]
        assert batch.state == BatchState.ACCUMULATING
        assert recorder.flushed == []

    @pytest.mark.asyncio
    async def test_overflow_flushed_once_after_window(self):
        recorder = Recorder()
        batch = BatchAggregator(threshold=2, window_seconds=0.01, on_flush=recorder)

        results = [batch.add(i) for i in range(5)]

        assert results == [True, True, False, False, False]
        assert batch.state == BatchState.ARMED

        await asyncio.sleep(0.1)

        assert recorder.flushed == [[2, 3, 4]]
        assert batch.state == BatchState.IDLE
        assert batch.pending == 0

    @pytest.mark.asyncio
    async def test_new_window_after_flush(self):
        recorder = Recorder()
        batch = BatchAggregator(threshold=1, window_seconds=0.01, on_flush=recorder)

        batch.add("a")
        batch.add("b")
        await asyncio.sleep(0.1)

        assert batch.add("c") is True
        assert recorder.flushed == [["b"]]

    @pytest.mark.asyncio
    async def test_flush_now_sends_held_events(self):
        recorder = Recorder()
        batch = BatchAggregator(threshold=2, window_seconds=60, on_flush=recorder)
        for i in range(4):
            batch.add(i)

        await batch.flush_now()

        assert recorder.flushed == [[2, 3]]
        assert batch.state == BatchState.IDLE

    @pytest.mark.asyncio
    async def test_flush_at_or_below_threshold_sends_nothing(self):
        recorder = Recorder()
        batch = BatchAggregator(threshold=2, window_seconds=60, on_flush=recorder)
        batch.add(1)

        await batch.flush_now()

        assert recorder.flushed == []
        assert batch.pending == 0

    @pytest.mark.asyncio
    async def test_flush_failure_is_logged_not_raised(self, caplog):
        batch = BatchAggregator(threshold=0, window_seconds=60, on_flush=Recorder(fail=True))
        batch.add(1)

        await batch.flush_now()

        assert "Batch flush of 1 events failed" in caplog.text

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError):
            BatchAggregator(threshold=-1, window_seconds=1, on_flush=Recorder())

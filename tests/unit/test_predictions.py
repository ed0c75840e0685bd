"""Unit tests for PredictionStore."""

import asyncio
import threading
import time

import pytest

from mlb_live_commentary.replay.predictions import PredictionStore


class TestSaveAndGet:
    """Test storing predictions."""

    def test_get_missing(self):
        assert PredictionStore().get("u1", 775296) is None

    def test_save_replaces(self):
        """Test only the latest prediction is kept."""
        store = PredictionStore()

        store.save("u1", 775296, "A", play_index=3)
        store.save("u1", 775296, "B", play_index=4)

        prediction = store.get("u1", 775296)
        assert prediction.prediction == "B"
        assert prediction.play_index == 4

    def test_keys_normalized(self):
        store = PredictionStore()
        store.save("u1", 775296, "A", play_index=0)

        assert store.get("u1", "775296").prediction == "A"
        assert store.get("u2", 775296) is None

    def test_clear(self):
        store = PredictionStore()
        store.save("u1", 775296, "A", play_index=0)

        store.clear()

        assert store.get("u1", 775296) is None


class TestWaitFor:
    """Test PredictionStore.wait_for()."""

    @pytest.mark.asyncio
    async def test_existing_returns_immediately(self):
        store = PredictionStore()
        store.save("u1", 775296, "A", play_index=0)

        prediction = await store.wait_for("u1", 775296, timeout=5)

        assert prediction.prediction == "A"
        assert store.pending_count("u1", 775296) == 0

    @pytest.mark.asyncio
    async def test_woken_by_save(self):
        store = PredictionStore()
        waiter = asyncio.create_task(store.wait_for("u1", 775296, timeout=5))
        await asyncio.sleep(0)
        assert store.pending_count("u1", 775296) == 1

        store.save("u1", 775296, "Ohtani homers", play_index=0)

        prediction = await asyncio.wait_for(waiter, 1)
        assert prediction.prediction == "Ohtani homers"
        assert store.pending_count("u1", 775296) == 0

    @pytest.mark.asyncio
    async def test_latest_value_wins(self):
        """Test two saves before the waiter runs resolve it with the second."""
        store = PredictionStore()
        waiter = asyncio.create_task(store.wait_for("u1", 775296, timeout=5))
        await asyncio.sleep(0)

        store.save("u1", 775296, "A", play_index=0)
        store.save("u1", 775296, "B", play_index=0)

        assert (await waiter).prediction == "B"

    @pytest.mark.asyncio
    async def test_save_from_another_thread(self):
        store = PredictionStore()
        waiter = asyncio.create_task(store.wait_for("u1", 775296, timeout=5))
        await asyncio.sleep(0)

        thread = threading.Thread(target=store.save, args=("u1", 775296, "From thread", 0))
        thread.start()

        assert (await asyncio.wait_for(waiter, 2)).prediction == "From thread"
        thread.join()

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self):
        """Test a wait without a save ends after roughly the timeout."""
        store = PredictionStore()

        start = time.monotonic()
        prediction = await store.wait_for("u1", 775296, timeout=0.1)
        elapsed = time.monotonic() - start

        assert prediction is None
        assert 0.09 <= elapsed < 1.0
        assert store.pending_count("u1", 775296) == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_removed(self):
        store = PredictionStore()
        waiter = asyncio.create_task(store.wait_for("u1", 775296, timeout=5))
        await asyncio.sleep(0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert store.pending_count("u1", 775296) == 0

    @pytest.mark.asyncio
    async def test_other_keys_not_woken(self):
        store = PredictionStore()

        store.save("u2", 775296, "Not mine", play_index=0)

        assert await store.wait_for("u1", 775296, timeout=0.05) is None

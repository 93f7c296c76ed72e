"""
Unit tests for the per-container event queue.
"""
import asyncio

from mqdockerup.MANAGERS.event_queue import PendingEventQueue


class TestPendingEventQueue:
    """Tests for PendingEventQueue."""

    def test_same_key_runs_in_order_despite_delays(self):
        order = []

        def job(name, delay):
            async def run():
                await asyncio.sleep(delay)
                order.append(name)
            return run

        async def scenario():
            queue = PendingEventQueue()
            queue.enqueue("c1", job("die", 0.05))
            last = queue.enqueue("c1", job("start", 0))
            await last

        asyncio.run(scenario())
        assert order == ["die", "start"]

    def test_one_job_in_flight_per_key(self):
        active = {"now": 0, "max": 0}

        async def job():
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
            await asyncio.sleep(0.01)
            active["now"] -= 1

        async def scenario():
            queue = PendingEventQueue()
            tasks = [queue.enqueue("c1", job) for _ in range(5)]
            await asyncio.gather(*tasks)

        asyncio.run(scenario())
        assert active["max"] == 1

    def test_different_keys_run_concurrently(self):
        started = []

        async def scenario():
            gate = asyncio.Event()
            queue = PendingEventQueue()

            def job(name):
                async def run():
                    started.append(name)
                    await gate.wait()
                return run

            a = queue.enqueue("a", job("a"))
            b = queue.enqueue("b", job("b"))
            await asyncio.sleep(0.01)
            assert sorted(started) == ["a", "b"]
            gate.set()
            await asyncio.gather(a, b)

        asyncio.run(scenario())

    def test_failure_does_not_break_chain(self, caplog):
        order = []

        async def failing():
            order.append("fail")
            raise RuntimeError("boom")

        async def succeeding():
            order.append("ok")

        async def scenario():
            queue = PendingEventQueue()
            queue.enqueue("c1", failing)
            await queue.enqueue("c1", succeeding)

        asyncio.run(scenario())
        assert order == ["fail", "ok"]
        assert "boom" in caplog.text

    def test_entry_removed_when_chain_settles(self):
        async def noop():
            pass

        async def scenario():
            queue = PendingEventQueue()
            await queue.enqueue("c1", noop)
            await asyncio.sleep(0)
            return len(queue), "c1" in queue

        assert asyncio.run(scenario()) == (0, False)

    def test_settled_head_does_not_remove_newer_tail(self):
        async def scenario():
            gate = asyncio.Event()
            queue = PendingEventQueue()

            async def quick():
                pass

            async def slow():
                await gate.wait()

            first = queue.enqueue("c1", quick)
            queue.enqueue("c1", slow)
            await first
            await asyncio.sleep(0)
            still_tracked = "c1" in queue
            gate.set()
            await queue.drain()
            return still_tracked, len(queue)

        assert asyncio.run(scenario()) == (True, 0)

"""Tests for the closable event channel."""

from __future__ import annotations

import asyncio

from melospy.channel import Channel


class TestChannel:
    """Tests for Channel."""

    async def test_send_and_recv(self) -> None:
        channel: Channel[int] = Channel()

        assert channel.send(1)
        assert channel.send(2)

        assert await channel.recv() == 1
        assert await channel.recv() == 2

    async def test_send_after_close_is_noop(self) -> None:
        channel: Channel[int] = Channel()
        channel.close()

        assert channel.closed
        assert channel.send(1) is False
        assert await channel.recv() is None

    async def test_drains_before_end(self) -> None:
        channel: Channel[str] = Channel()
        channel.send("a")
        channel.send("b")
        channel.close()

        received = [item async for item in channel]

        assert received == ["a", "b"]
        assert await channel.recv() is None

    async def test_close_twice(self) -> None:
        channel: Channel[int] = Channel()
        channel.close()
        channel.close()

        assert [item async for item in channel] == []

    async def test_recv_waits_for_item(self) -> None:
        channel: Channel[int] = Channel()

        async def producer() -> None:
            await asyncio.sleep(0.01)
            channel.send(42)

        task = asyncio.create_task(producer())
        assert await asyncio.wait_for(channel.recv(), timeout=1) == 42
        await task

    async def test_close_wakes_receiver(self) -> None:
        channel: Channel[int] = Channel()

        async def closer() -> None:
            await asyncio.sleep(0.01)
            channel.close()

        task = asyncio.create_task(closer())
        assert await asyncio.wait_for(channel.recv(), timeout=1) is None
        await task

    async def test_try_recv(self) -> None:
        channel: Channel[int] = Channel()

        assert channel.try_recv() is None
        channel.send(5)
        assert channel.try_recv() == 5
        channel.close()
        assert channel.try_recv() is None

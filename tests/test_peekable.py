import asyncio

import pytest

from linkagg.peekable import (
    Channel,
    DisconnectedError,
    EmptyError,
    NoMatchError,
    PeekableReceiver,
)


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        Channel(0)


def test_try_send_and_try_recv_in_order():
    channel = Channel(3)
    for item in ["a", "b", "c"]:
        channel.try_send(item)
    assert [channel.try_recv() for _ in range(3)] == ["a", "b", "c"]


def test_try_recv_empty_then_disconnected():
    channel = Channel(1)
    with pytest.raises(EmptyError):
        channel.try_recv()
    channel.close()
    with pytest.raises(DisconnectedError):
        channel.try_recv()


def test_try_send_full():
    channel = Channel(1)
    channel.try_send(1)
    with pytest.raises(asyncio.QueueFull):
        channel.try_send(2)
    assert len(channel) == 1


def test_closed_channel_drains_remaining_items():
    channel = Channel(2)
    channel.try_send("left")
    channel.close()
    with pytest.raises(DisconnectedError):
        channel.try_send("late")
    assert channel.try_recv() == "left"
    with pytest.raises(DisconnectedError):
        channel.try_recv()


@pytest.mark.asyncio
async def test_send_waits_for_capacity():
    channel = Channel(1)
    await channel.send("a")
    task = asyncio.create_task(channel.send("b"))
    await asyncio.sleep(0)
    assert not task.done()
    assert await channel.recv() == "a"
    await task
    assert channel.try_recv() == "b"


@pytest.mark.asyncio
async def test_blocked_send_fails_on_close():
    channel = Channel(1)
    await channel.send("a")
    task = asyncio.create_task(channel.send("b"))
    await asyncio.sleep(0)
    channel.close()
    with pytest.raises(DisconnectedError):
        await task
    assert channel.try_recv() == "a"
    with pytest.raises(DisconnectedError):
        channel.try_recv()


@pytest.mark.asyncio
async def test_recv_waits_and_fails_on_close():
    channel = Channel(1)
    task = asyncio.create_task(channel.recv())
    await asyncio.sleep(0)
    channel.close()
    with pytest.raises(DisconnectedError):
        await task
    assert len(channel) == 0
    with pytest.raises(DisconnectedError):
        channel.try_send("late")


@pytest.mark.asyncio
async def test_peek_does_not_consume():
    channel = Channel(2)
    receiver = PeekableReceiver(channel)
    await channel.send("x")
    await channel.send("y")
    assert await receiver.peek() == "x"
    assert await receiver.peek() == "x"
    assert await receiver.recv() == "x"
    assert await receiver.recv() == "y"


@pytest.mark.asyncio
async def test_peek_waits_for_item():
    channel = Channel(1)
    receiver = PeekableReceiver(channel)
    task = asyncio.create_task(receiver.peek())
    await asyncio.sleep(0)
    assert not task.done()
    await channel.send("late")
    assert await task == "late"
    assert receiver.try_recv() == "late"
    with pytest.raises(EmptyError):
        receiver.try_recv()


def test_try_peek_keeps_item():
    channel = Channel(1)
    receiver = PeekableReceiver(channel)
    channel.try_send(5)
    assert receiver.try_peek() == 5
    assert len(channel) == 0
    assert receiver.try_recv() == 5


@pytest.mark.asyncio
async def test_recv_if_match_and_no_match():
    channel = Channel(2)
    receiver = PeekableReceiver(channel)
    await channel.send(1)
    await channel.send(2)
    with pytest.raises(NoMatchError):
        await receiver.recv_if(lambda item: item == 2)
    assert await receiver.recv_if(lambda item: item == 1) == 1
    assert await receiver.recv_if(lambda item: item == 2) == 2


@pytest.mark.asyncio
async def test_recv_if_disconnected():
    channel = Channel(1)
    channel.close()
    with pytest.raises(DisconnectedError):
        await PeekableReceiver(channel).recv_if(lambda item: True)


def test_try_recv_if_errors_and_success():
    channel = Channel(1)
    receiver = PeekableReceiver(channel)
    with pytest.raises(EmptyError):
        receiver.try_recv_if(lambda item: True)
    channel.try_send("keep")
    with pytest.raises(NoMatchError):
        receiver.try_recv_if(lambda item: item == "other")
    channel.close()
    assert receiver.try_recv_if(lambda item: item == "keep") == "keep"
    with pytest.raises(DisconnectedError):
        receiver.try_recv_if(lambda item: True)
import pytest

from voicebird.join import JoinError
from voicebird.shards import ShardHandle, Sharder


def test_send_with_sender_delivers_immediately():
    sent = []
    handle = ShardHandle()
    handle.register(sent.append)
    handle.send({"op": 4})
    assert sent == [{"op": 4}]


def test_messages_buffered_until_registered_in_order():
    sent = []
    handle = ShardHandle()
    handle.send("a")
    handle.send("b")
    assert sent == []
    handle.register(sent.append)
    assert sent == ["a", "b"]


def test_deregister_buffers_again():
    first, second = [], []
    handle = ShardHandle()
    handle.register(first.append)
    handle.deregister()
    handle.send("queued")
    assert first == []
    handle.register(second.append)
    assert second == ["queued"]
    assert first == []


def test_failed_flush_discards_rest_of_queue():
    received = []
    failures = {"left": 1}

    def flaky(message):
        if failures["left"]:
            failures["left"] -= 1
            raise ConnectionError("closed")
        received.append(message)

    handle = ShardHandle()
    handle.send("a")
    handle.send("b")
    handle.register(flaky)
    assert received == []

    handle.send("c")
    assert received == ["c"]

    later = []
    handle.register(later.append)
    assert later == []


def test_sender_error_raises_join_error():
    def broken(message):
        raise ConnectionError("closed")

    handle = ShardHandle()
    handle.register(broken)
    with pytest.raises(JoinError) as info:
        handle.send("x")
    assert isinstance(info.value.__cause__, ConnectionError)


def test_sharder_returns_same_handle_per_shard():
    sharder = Sharder()
    assert sharder.get_shard(0) is sharder.get_shard(0)
    assert sharder.get_shard(0) is not sharder.get_shard(1)


def test_sharder_register_routes_to_handle():
    sent = []
    sharder = Sharder()
    shard = sharder.get_shard(3)
    shard.send("early")
    sharder.register_shard_handle(3, sent.append)
    shard.send("late")
    assert sent == ["early", "late"]


def test_sharder_deregister_buffers():
    sent = []
    sharder = Sharder()
    sharder.register_shard_handle(2, sent.append)
    sharder.deregister_shard_handle(2)
    sharder.get_shard(2).send("held")
    assert sent == []
    sharder.register_shard_handle(2, sent.append)
    assert sent == ["held"]
import threading

import pytest

from mulapos.services.channel import BroadcastChannel


def test_subscribers_filtered_by_hash():
    ch = BroadcastChannel()
    mine, everything = [], []
    ch.subscribe(mine.append, "H1")
    ch.subscribe(everything.append)

    ch.publish("snapshot", "H1", {"cart": []})
    ch.publish("snapshot", "H2", {"cart": []})
    ch.publish("storage", None, {"key": "session-H1"})
    ch.publish("storage", None, {"key": "session-H2"})
    ch.publish("storage", None, {})

    assert [m.seq for m in mine] == [1, 3, 5]
    assert [m.seq for m in everything] == [1, 2, 3, 4, 5]


def test_unsubscribe_and_failing_subscriber():
    ch = BroadcastChannel()
    got = []

    def broken(_msg):
        raise RuntimeError("boom")

    ch.subscribe(broken)
    unsub = ch.subscribe(got.append)
    ch.publish("ledger")
    unsub()
    ch.publish("ledger")
    assert len(got) == 1


def test_wait_returns_new_messages_or_times_out():
    ch = BroadcastChannel()
    ch.publish("snapshot", "H1")
    assert [m.seq for m in ch.wait(0, "H1", timeout=0)] == [1]
    assert ch.wait(1, "H1", timeout=0.05) == []

    timer = threading.Timer(0.05, ch.publish, args=("ended", "H1"))
    timer.start()
    try:
        msgs = ch.wait(1, "H1", timeout=2)
    finally:
        timer.join()
    assert [m.type for m in msgs] == ["ended"]


def test_history_is_bounded():
    ch = BroadcastChannel(history=3)
    for _ in range(5):
        ch.publish("ledger")
    assert [m.seq for m in ch.since(0)] == [3, 4, 5]
    assert ch.last_seq == 5


def test_storage_rollback_sends_nothing(terminal):
    seen = []
    terminal.channel.subscribe(seen.append)
    with pytest.raises(RuntimeError):
        with terminal.storage.transaction() as tx:
            tx.set_json("completed-sales", [{"id": "x"}])
            tx.notify("ledger")
            raise RuntimeError("abort")
    assert seen == []
    assert terminal.storage.get_raw("completed-sales") is None


def test_nested_transactions_commit_once(terminal):
    seen = []
    terminal.channel.subscribe(seen.append)
    with terminal.storage.transaction() as outer:
        outer.set_json("a", 1)
        with terminal.storage.transaction() as inner:
            assert inner is outer
            inner.set_json("b", 2)
        assert seen == []
    assert [m.payload["key"] for m in seen] == ["a", "b"]
    assert terminal.storage.keys() == ["a", "b"]

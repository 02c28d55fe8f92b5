"""
Unit tests for the feed connection manager
"""
import threading
import time

import pytest

from SNITAP.feed.connection import ConnectionManager, ConnectionState, StreamListener

from conftest import FakeSocket


class RecordingListener(StreamListener):
    def __init__(self):
        self.calls = []

    def on_open(self):
        self.calls.append(("open", None))

    def on_message(self, message):
        self.calls.append(("message", message))

    def on_error(self, error):
        self.calls.append(("error", error))

    def on_close(self):
        self.calls.append(("close", None))

    def kinds(self):
        return [kind for kind, _ in self.calls]

    def messages(self):
        return [payload for kind, payload in self.calls if kind == "message"]


def wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def listener():
    return RecordingListener()


class TestConnectionManager:
    """Test ConnectionManager lifecycle and delivery"""

    def test_delivers_messages_in_order(self, listener):
        """Test open, messages and close reach listeners on dispatch"""
        socket = FakeSocket(["a", "b", "c"])
        manager = ConnectionManager("ws://feed.test", connect=lambda url, **kw: socket,
                                    auto_reconnect=False)
        manager.subscribe(listener)

        manager.open()
        manager.join(timeout=2)

        assert listener.calls == []
        assert manager.dispatch() == 5
        assert listener.kinds() == ["open", "message", "message", "message", "close"]
        assert listener.messages() == ["a", "b", "c"]
        assert not manager.is_open
        assert manager.state is ConnectionState.DISCONNECTED

    def test_open_is_idempotent(self, listener):
        """Test a second open returns the running handle"""
        socket = FakeSocket([], block=True)
        manager = ConnectionManager("ws://feed.test", connect=lambda url, **kw: socket,
                                    auto_reconnect=False)

        first = manager.open()
        assert manager.open() is first

        manager.close()
        assert socket.closed.is_set()
        assert not manager.is_open

    def test_close_discards_pending_items(self, listener):
        """Test nothing from a closed connection is delivered"""
        socket = FakeSocket(["a", "b"], block=True)
        manager = ConnectionManager("ws://feed.test", connect=lambda url, **kw: socket,
                                    auto_reconnect=False)
        manager.subscribe(listener)

        manager.open()
        assert wait_for(lambda: manager.queue.qsize() >= 3)
        manager.close()

        assert manager.dispatch() == 0
        assert listener.calls == []

    def test_reopen_does_not_double_deliver(self, listener):
        """Test items of the previous generation are dropped after reopen"""
        sockets = [FakeSocket(["old"], block=True), FakeSocket(["new"], block=True)]
        manager = ConnectionManager("ws://feed.test", connect=lambda url, **kw: sockets.pop(0),
                                    auto_reconnect=False)
        manager.subscribe(listener)

        first = manager.open()
        assert wait_for(lambda: manager.queue.qsize() >= 2)
        manager.close()
        second = manager.open()

        assert second.generation > first.generation
        assert wait_for(lambda: manager.queue.qsize() >= 2)
        manager.dispatch()
        manager.close()

        assert listener.messages() == ["new"]

    def test_error_reported_once_per_outage(self, listener):
        """Test repeated connect failures post a single error"""
        attempts = []
        manager = ConnectionManager("ws://feed.test", auto_reconnect=True,
                                    max_reconnect_delay=0.02)
        manager.INITIAL_RECONNECT_DELAY = 0.01

        def failing_connect(url, **kwargs):
            attempts.append(url)
            if len(attempts) >= 3:
                manager.stop_event.set()
            raise OSError("connection refused")

        manager._connect = failing_connect
        manager.subscribe(listener)

        manager.open()
        manager.join(timeout=2)

        assert len(attempts) == 3
        manager.dispatch()
        assert listener.kinds() == ["error"]
        assert isinstance(listener.calls[0][1], OSError)

    def test_connect_receives_open_timeout(self):
        """Test the handshake timeout is forwarded to the factory"""
        seen = {}

        def connect(url, **kwargs):
            seen.update(kwargs, url=url)
            return FakeSocket([])

        manager = ConnectionManager("ws://feed.test", connect=connect,
                                    auto_reconnect=False, open_timeout=3.5)
        manager.open()
        manager.join(timeout=2)

        assert seen == {"url": "ws://feed.test", "open_timeout": 3.5}

    def test_unsubscribe(self, listener):
        """Test removed listeners receive nothing"""
        manager = ConnectionManager("ws://feed.test", connect=lambda url, **kw: FakeSocket(["a"]),
                                    auto_reconnect=False)
        manager.subscribe(listener)
        manager.subscribe(listener)
        manager.unsubscribe(listener)
        manager.unsubscribe(listener)

        manager.open()
        manager.join(timeout=2)
        manager.dispatch()

        assert listener.calls == []

    def test_reopen_during_slow_handshake_closes_new_socket(self):
        """Test a late handshake of a closed cycle cannot hide the newer socket"""
        release = threading.Event()
        old = FakeSocket(["old"], block=True)
        new = FakeSocket(["new"], block=True)
        calls = []

        def connect(url, **kwargs):
            calls.append(url)
            if len(calls) == 1:
                release.wait(2)
                return old
            return new

        manager = ConnectionManager("ws://feed.test", connect=connect, auto_reconnect=False)

        manager.open()
        first_thread = manager.reader_thread
        manager.close(timeout=0.05)
        manager.open()
        assert wait_for(lambda: manager.state is ConnectionState.CONNECTED)

        # The first cycle finishes its handshake after the second connected
        release.set()
        first_thread.join(timeout=2)
        assert old.closed.is_set()
        assert not new.closed.is_set()
        assert manager.state is ConnectionState.CONNECTED

        manager.close(timeout=1)
        assert new.closed.is_set()
        assert not manager.reader_thread.is_alive()
        assert not manager.is_open


class TestReconnectBackoff:
    """Test the reconnect wait is cancelled by close"""

    def test_close_cancels_pending_backoff(self):
        """Test close returns promptly while waiting to reconnect"""
        attempts = []

        def failing_connect(url, **kwargs):
            attempts.append(url)
            raise OSError("connection refused")

        manager = ConnectionManager("ws://feed.test", connect=failing_connect,
                                    auto_reconnect=True, max_reconnect_delay=60.0)
        manager.INITIAL_RECONNECT_DELAY = 30.0

        manager.open()
        assert wait_for(lambda: manager.state is ConnectionState.RECONNECTING and attempts)

        started = time.monotonic()
        manager.close(timeout=2)

        assert time.monotonic() - started < 1.0
        assert not manager.reader_thread.is_alive()
        assert manager.state is ConnectionState.DISCONNECTED
        time.sleep(0.1)
        assert len(attempts) == 1

"""
Connection Manager Module - Persistent feed connection to the engine

Handles:
- Background thread owning one WebSocket connection to the log feed
- Open / error / close detection with optional exponential-backoff reconnect
- Queue hand-off so listeners run on the consumer thread, one message at a time
- Generation tagging so a reopened connection never double-delivers
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from queue import Empty, Queue
from threading import Event, Thread
from typing import Any, Callable, Dict, List, Optional

from websockets.sync.client import connect as websocket_connect


class ConnectionState(Enum):
    """Feed connection states"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class StreamListener:
    """Receiver of feed notifications; override what you need"""

    def on_open(self) -> None:
        pass

    def on_message(self, message: Any) -> None:
        pass

    def on_error(self, error: Exception) -> None:
        pass

    def on_close(self) -> None:
        pass


@dataclass(frozen=True)
class ConnectionHandle:
    """Identifies one open() cycle"""
    generation: int
    url: str


@dataclass(frozen=True)
class FeedMessage:
    """Item handed from the reader thread to the consumer"""
    generation: int
    kind: str
    payload: Any = None


class ConnectionManager:
    """Background reader for the engine's log feed"""

    INITIAL_RECONNECT_DELAY = 1.0

    def __init__(
        self,
        url: str,
        logger: Optional[logging.Logger] = None,
        connect: Optional[Callable[..., Any]] = None,
        auto_reconnect: bool = True,
        max_reconnect_delay: float = 10.0,
        open_timeout: float = 10.0,
    ):
        """
        Initialize the connection manager

        Args:
            url: WebSocket URL of the feed
            logger: Logger for connection events
            connect: Factory returning a context-managed, iterable connection
            auto_reconnect: Reopen automatically after a failure
            max_reconnect_delay: Upper bound of the backoff delay in seconds
            open_timeout: Handshake timeout in seconds
        """
        self.url = url
        self.logger = logger or logging.getLogger(__name__)
        self._connect = connect or websocket_connect
        self.auto_reconnect = auto_reconnect
        self.max_reconnect_delay = max_reconnect_delay
        self.open_timeout = open_timeout

        # Thread management
        self.queue: Queue = Queue()
        self.stop_event = Event()
        self.reader_thread: Optional[Thread] = None
        # One socket slot per generation; a late handshake never clobbers a newer one
        self._sockets: Dict[int, Any] = {}
        self._lock = threading.Lock()

        self._generation = 0
        self._handle: Optional[ConnectionHandle] = None
        self.state = ConnectionState.DISCONNECTED

        self._listeners: List[StreamListener] = []

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[ConnectionHandle]:
        return self._handle

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: StreamListener) -> None:
        """Register a listener for dispatched feed notifications"""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StreamListener) -> None:
        """Remove a listener; unknown listeners are ignored"""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def open(self) -> ConnectionHandle:
        """
        Start the reader thread

        Returns:
            Handle of the active cycle (the existing one if already open)
        """
        with self._lock:
            if self._handle is not None:
                return self._handle

            self._generation += 1
            self.stop_event = Event()
            self._handle = ConnectionHandle(self._generation, self.url)

            self.reader_thread = Thread(
                target=self._run,
                args=(self._generation, self.stop_event),
                daemon=True,
            )
            self.reader_thread.start()
            self.logger.info(f"Feed reader started for {self.url} (generation {self._generation})")
            return self._handle

    def close(self, timeout: float = 3.0) -> None:
        """Stop the reader, cancel any pending reconnect and drop queued items"""
        with self._lock:
            if self._handle is None and not (self.reader_thread and self.reader_thread.is_alive()):
                return

            self._handle = None
            # Bump so anything the old thread still posts is stale
            self._generation += 1
            self.stop_event.set()
            sockets = list(self._sockets.values())
            thread = self.reader_thread

        for socket in sockets:
            try:
                socket.close()
            except Exception as e:
                self.logger.debug(f"Error closing feed socket: {e}")

        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                self.logger.warning("Feed reader thread did not terminate gracefully.")

        self._purge()
        self.state = ConnectionState.DISCONNECTED
        self.logger.info("Feed connection closed")

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the reader thread to finish on its own"""
        if self.reader_thread:
            self.reader_thread.join(timeout=timeout)

    def dispatch(self, max_items: int = 5000) -> int:
        """
        Deliver queued notifications to listeners on the calling thread

        Args:
            max_items: Upper bound of items handled in one call

        Returns:
            Number of notifications delivered
        """
        delivered = 0
        while delivered < max_items:
            try:
                item = self.queue.get_nowait()
            except Empty:
                break

            if item.generation != self._generation:
                continue

            for listener in list(self._listeners):
                if item.kind == "message":
                    listener.on_message(item.payload)
                elif item.kind == "open":
                    listener.on_open()
                elif item.kind == "error":
                    listener.on_error(item.payload)
                elif item.kind == "close":
                    listener.on_close()
            delivered += 1

        return delivered

    def _purge(self) -> None:
        while True:
            try:
                self.queue.get_nowait()
            except Empty:
                break

    def _set_state(self, generation: int, state: ConnectionState) -> None:
        # Threads of closed cycles must not report over the current one
        with self._lock:
            if generation == self._generation:
                self.state = state

    def _post(self, generation: int, kind: str, payload: Any = None) -> None:
        self.queue.put(FeedMessage(generation, kind, payload))

    def _run(self, generation: int, stop_event: Event) -> None:
        """Reader loop - runs in background thread"""
        delay = self.INITIAL_RECONNECT_DELAY
        error_reported = False
        first_attempt = True

        while not stop_event.is_set():
            self._set_state(generation, ConnectionState.CONNECTING if first_attempt else ConnectionState.RECONNECTING)
            first_attempt = False

            try:
                with self._connect(self.url, open_timeout=self.open_timeout) as ws:
                    with self._lock:
                        self._sockets[generation] = ws
                    if stop_event.is_set():
                        break

                    self._set_state(generation, ConnectionState.CONNECTED)
                    delay = self.INITIAL_RECONNECT_DELAY
                    error_reported = False
                    self._post(generation, "open")
                    self.logger.info(f"Connected to feed {self.url}")

                    for message in ws:
                        if stop_event.is_set():
                            break
                        self._post(generation, "message", message)

                if not stop_event.is_set():
                    self._post(generation, "close")
                    self.logger.info("Feed closed by remote side")

            except Exception as e:
                if stop_event.is_set():
                    break
                self.logger.error(f"Feed connection error on {self.url}: {e}")
                # One diagnostic per outage, not per retry
                if not error_reported:
                    self._post(generation, "error", e)
                    error_reported = True

            finally:
                with self._lock:
                    self._sockets.pop(generation, None)

            if not self.auto_reconnect:
                break

            self._set_state(generation, ConnectionState.RECONNECTING)
            if stop_event.wait(delay):
                break
            delay = min(delay * 2, self.max_reconnect_delay)

        with self._lock:
            if self._handle is not None and self._handle.generation == generation:
                self._handle = None
            if generation == self._generation:
                self.state = ConnectionState.DISCONNECTED
        self.logger.info(f"Feed reader stopped (generation {generation})")

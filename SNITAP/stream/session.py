"""
Live Session Module - Owned lifecycle for one telemetry view

Handles:
- Wiring the connection manager, lookup directory and pipeline together
- Deterministic open / close (usable as a context manager)
- Draining the feed on the consumer thread
- Sort state persistence between sessions
"""
import logging
from typing import Callable, Optional, Tuple

from SNITAP.config import Settings
from SNITAP.enrichment.directory import LookupDirectory
from SNITAP.feed.connection import ConnectionHandle, ConnectionManager, ConnectionState

from .pipeline import EventPipeline
from .sorter import SortSpec, load_sort_state, save_sort_state


class LiveSession:
    """One feed connection plus the pipeline it feeds"""

    def __init__(
        self,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
        connect: Optional[Callable] = None,
    ):
        """
        Initialize the session (nothing is opened yet)

        Args:
            settings: Runtime settings
            logger: Logger shared with the connection manager
            connect: Optional connection factory (tests inject a fake)
        """
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)

        self.directory = LookupDirectory(
            settings.api_url,
            timeout=settings.http_timeout,
            asn_file=settings.asn_file,
        )
        self.pipeline = EventPipeline(
            capacity=settings.capacity,
            row_height=settings.row_height,
            overscan=settings.overscan,
            follow_threshold=settings.follow_threshold,
            directory=self.directory,
            sort_spec=load_sort_state(settings.state_file),
            on_sort_change=self._save_sort,
        )
        self.manager = ConnectionManager(
            settings.feed_url,
            logger=self.logger,
            connect=connect,
            auto_reconnect=settings.auto_reconnect,
            max_reconnect_delay=settings.max_reconnect_delay,
        )
        self.manager.subscribe(self.pipeline)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def state(self) -> ConnectionState:
        return self.manager.state

    @property
    def handle(self) -> Optional[ConnectionHandle]:
        """Handle of the running open() cycle, if any"""
        return self.manager.handle

    def open(self) -> Tuple[bool, str]:
        """
        Open the feed (idempotent)

        Returns:
            Tuple of (success, message)
        """
        if self.manager.is_open:
            return False, "Feed already open"

        try:
            handle = self.manager.open()
            return True, f"Connecting to {handle.url}"

        except Exception as e:
            self.logger.error(f"Error opening feed: {e}", exc_info=True)
            return False, f"Failed to open feed: {str(e)}"

    def close(self) -> Tuple[bool, str]:
        """
        Close the feed; buffered events stay browsable

        Returns:
            Tuple of (success, message)
        """
        try:
            self.manager.close()
            return True, "Feed closed"

        except Exception as e:
            self.logger.error(f"Error closing feed: {e}", exc_info=True)
            return False, f"Failed to close feed: {str(e)}"

        finally:
            self.pipeline.connected = False

    def reopen(self) -> Tuple[bool, str]:
        """Close and open again without leaking the previous connection"""
        success, message = self.close()
        if not success:
            return success, message
        return self.open()

    def poll(self) -> int:
        """Deliver pending feed notifications into the pipeline"""
        return self.manager.dispatch()

    def refresh_enrichment(self) -> dict:
        """
        Reload the side tables (blocking; run off the UI thread)

        Returns:
            Merged result of the device and ASN refresh
        """
        result = {}
        try:
            asn_result = self.directory.load_asn_file()
            device_result = self.directory.refresh_devices()
        except Exception as e:
            self.logger.error(f"Enrichment refresh crashed: {e}", exc_info=True)
            return {"error": f"Enrichment refresh failed: {e}"}

        result.update(asn_result)
        result.update(device_result)
        if "error" in device_result or "error" in asn_result:
            result["error"] = device_result.get("error") or asn_result.get("error")
            self.logger.warning(f"Enrichment refresh failed: {result['error']}")
        return result

    def _save_sort(self, spec: SortSpec) -> None:
        save_sort_state(self.settings.state_file, spec)

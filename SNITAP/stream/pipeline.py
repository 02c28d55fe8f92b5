"""
Event Pipeline Module - Headless event-stream pipeline

Handles:
- Ingestion of feed messages into the ring buffer (pause drops, never queues)
- Show-all selection, enrichment, filtering and sorting of the retained window
- Per-stage memoization keyed only on each stage's own inputs
- Viewport window and autoscroll state for the presentation layer
- Operator controls (filter, sort, pause, clear, show-all, counts)
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Hashable, List, Optional, Tuple

from SNITAP.enrichment.directory import LookupDirectory, LookupTable
from SNITAP.enrichment.enricher import enrich_all
from SNITAP.feed.connection import StreamListener

from .autoscroll import AutoscrollController
from .filter_engine import FilterExpression, apply_filter, compile_filter
from .line_parser import WS_ERROR_LINE, Event, LineParser, StructuredEvent
from .ring_buffer import RingBuffer
from .sorter import SortColumn, SortSpec, sort_events, toggle_sort
from .windower import ViewportWindow, compute_window, max_scroll_offset


@dataclass(frozen=True)
class PipelineStats:
    """Counts reported to the operator"""
    total: int
    visible: int
    filtered: int
    targets: int
    received: int
    evicted: int
    unseen: int
    paused: bool


class _StageCache:
    """Single-entry memo for one pipeline stage"""

    def __init__(self):
        self.key: Optional[Hashable] = None
        self.value: Any = None

    def get(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        if self.key != key or self.value is None:
            self.value = compute()
            self.key = key
        return self.value

    def reset(self) -> None:
        self.key = None
        self.value = None


class EventPipeline(StreamListener):
    """
    Owns the retained events and every derived view of them

    All methods are meant to be called from one consumer thread; feed
    notifications arrive through ConnectionManager.dispatch().
    """

    def __init__(
        self,
        capacity: int = 1000,
        row_height: int = 1,
        overscan: int = 5,
        follow_threshold: float = 1,
        directory: Optional[LookupDirectory] = None,
        sort_spec: Optional[SortSpec] = None,
        on_sort_change: Optional[Callable[[SortSpec], None]] = None,
    ):
        """
        Initialize the pipeline

        Args:
            capacity: Ring buffer capacity
            row_height: Fixed row height used by the windower
            overscan: Rows rendered beyond each edge of the viewport
            follow_threshold: Distance from the bottom that still counts as following
            directory: Source of enrichment tables (None disables enrichment)
            sort_spec: Initial sort state
            on_sort_change: Called with the new SortSpec after every change
        """
        if row_height <= 0:
            raise ValueError("row_height must be positive")

        self.logger = logging.getLogger(__name__)
        self.buffer: RingBuffer[Event] = RingBuffer(capacity)
        self.parser = LineParser()
        self.directory = directory
        self.autoscroll = AutoscrollController(follow_threshold)
        self.on_sort_change = on_sort_change

        # Viewport geometry
        self.row_height = row_height
        self.overscan = overscan
        self.scroll_offset: float = 0
        self.container_height: float = 0
        self._follow_pending = False

        # Operator state
        self._query = ""
        self._expression: FilterExpression = compile_filter("")
        self._sort_spec = sort_spec or SortSpec()
        self.show_all = False
        self.paused = False

        # Feed state
        self.connected = False
        self.last_error: Optional[str] = None
        self.unseen_count = 0
        self.dropped_while_paused = 0

        self._selected = _StageCache()
        self._enriched = _StageCache()
        self._filtered = _StageCache()
        self._sorted = _StageCache()

    # Feed notifications

    def on_open(self) -> None:
        self.connected = True
        self.last_error = None

    def on_close(self) -> None:
        self.connected = False

    def on_message(self, message: Any) -> int:
        """
        Ingest one transport message

        Returns:
            Number of events appended (0 while paused)
        """
        if self.paused:
            self.dropped_while_paused += 1
            return 0

        events = self.parser.parse_message(message)
        if events:
            self.buffer.extend(events)
            self.unseen_count += len(events)
            self._follow_pending = True
        return len(events)

    def on_error(self, error: Exception) -> None:
        """Surface a transport failure as a diagnostic line"""
        self.connected = False
        self.last_error = str(error)
        if self.paused:
            return
        self.buffer.push(self.parser.parse_record(self.parser.next_raw_line(WS_ERROR_LINE)))
        self._follow_pending = True

    # Operator controls

    @property
    def filter(self) -> str:
        return self._query

    def set_filter(self, query: str) -> None:
        """Replace the filter query; re-parsed only when it changed"""
        query = query or ""
        if query == self._query:
            return
        self._query = query
        self._expression = compile_filter(query)
        self._follow_pending = True

    @property
    def sort_spec(self) -> SortSpec:
        return self._sort_spec

    def set_sort(self, spec: SortSpec) -> None:
        if spec == self._sort_spec:
            return
        self._sort_spec = spec
        self._follow_pending = True
        if self.on_sort_change:
            self.on_sort_change(spec)

    def toggle_sort(self, column: SortColumn) -> SortSpec:
        """Cycle the sort on a column (asc -> desc -> none)"""
        self.set_sort(toggle_sort(self._sort_spec, column))
        return self._sort_spec

    def clear_sort(self) -> None:
        self.set_sort(SortSpec())

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def toggle_pause(self) -> bool:
        """Flip pause; returns the new paused state"""
        self.paused = not self.paused
        return self.paused

    def set_show_all(self, show_all: bool) -> None:
        if show_all == self.show_all:
            return
        self.show_all = show_all
        self._follow_pending = True

    def clear(self) -> None:
        """Drop every retained event and return to the top, following"""
        self.buffer.clear()
        self.unseen_count = 0
        self.scroll_offset = 0
        self.autoscroll.jump_to_latest(self.container_height, self.row_height, 0)
        self._follow_pending = False

    def reset_unseen(self) -> None:
        self.unseen_count = 0

    # Derived sequences

    def _table(self) -> Optional[LookupTable]:
        return self.directory.table if self.directory else None

    def selected_events(self) -> Tuple[Event, ...]:
        """Retained events after the show-all selection"""
        key = (self.buffer.version, self.show_all)

        def compute():
            events = self.buffer.snapshot()
            if self.show_all:
                return events
            # Transport diagnostics stay visible in structured-only mode
            return tuple(
                e for e in events
                if isinstance(e, StructuredEvent) or e.is_diagnostic
            )

        return self._selected.get(key, compute)

    def enriched_events(self) -> List[Event]:
        table = self._table()
        key = (self.buffer.version, self.show_all, table.version if table else None)

        def compute():
            events = self.selected_events()
            if table is None:
                return list(events)
            return enrich_all(events, table)

        return self._enriched.get(key, compute)

    def filtered_events(self) -> List[Event]:
        table = self._table()
        key = (self.buffer.version, self.show_all, table.version if table else None, self._query)
        return self._filtered.get(key, lambda: apply_filter(self.enriched_events(), self._expression))

    def rows(self) -> List[Event]:
        """Filtered and sorted sequence presented to the operator"""
        table = self._table()
        key = (
            self.buffer.version, self.show_all,
            table.version if table else None, self._query, self._sort_spec,
        )
        return self._sorted.get(key, lambda: sort_events(self.filtered_events(), self._sort_spec))

    # Viewport

    def set_viewport(self, container_height: float) -> None:
        """Update the visible area height (e.g. after a resize)"""
        self.container_height = max(0, container_height)
        if self.autoscroll.is_following:
            self._follow_pending = True

    def content_height(self) -> float:
        return len(self.rows()) * self.row_height

    def scroll_to(self, offset: float) -> float:
        """Operator scroll; updates the follow/pinned state"""
        total = len(self.rows())
        limit = max_scroll_offset(self.container_height, self.row_height, total)
        self.scroll_offset = min(max(0, offset), limit)
        self.autoscroll.on_scroll(self.scroll_offset, self.container_height, total * self.row_height)
        self._follow_pending = False
        return self.scroll_offset

    def scroll_by(self, delta: float) -> float:
        return self.scroll_to(self.scroll_offset + delta)

    def jump_to_latest(self) -> float:
        self.scroll_offset = self.autoscroll.jump_to_latest(
            self.container_height, self.row_height, len(self.rows())
        )
        self._follow_pending = False
        return self.scroll_offset

    def window(self) -> ViewportWindow:
        """Current viewport window, applying autoscroll for new rows"""
        total = len(self.rows())
        if self._follow_pending:
            self.scroll_offset = self.autoscroll.on_append(
                self.scroll_offset, self.container_height, self.row_height, total
            )
            self._follow_pending = False

        limit = max_scroll_offset(self.container_height, self.row_height, total)
        self.scroll_offset = min(max(0, self.scroll_offset), limit)

        return compute_window(
            self.scroll_offset, self.container_height, self.row_height, self.overscan, total
        )

    def visible_events(self) -> List[Event]:
        """Events materialized for the current window"""
        window = self.window()
        return self.rows()[window.first_visible_index:window.last_visible_index]

    def stats(self) -> PipelineStats:
        selected = self.selected_events()
        return PipelineStats(
            total=len(self.buffer),
            visible=len(selected),
            filtered=len(self.rows()),
            targets=sum(1 for e in selected if isinstance(e, StructuredEvent) and e.is_target),
            received=self.buffer.total_pushed,
            evicted=self.buffer.evicted,
            unseen=self.unseen_count,
            paused=self.paused,
        )

"""
Connection Table Module - Windowed table of connection events

Handles:
- Rendering only the rows inside the pipeline's viewport window
- Color-coded protocol, target and diagnostic rows
- Keyboard and mouse scrolling fed back into the autoscroll controller
- Row cursor and highlight messages for the details panel
"""
from typing import List, Optional, Tuple

from rich.console import RenderableType
from rich.table import Table
from rich.text import Text
from textual import events
from textual.binding import Binding
from textual.message import Message
from textual.widget import Widget

from SNITAP.stream.line_parser import Event, UnstructuredEvent
from SNITAP.stream.pipeline import EventPipeline
from SNITAP.stream.sorter import SortColumn, SortDirection


# Header row occupies one terminal line above the data rows
HEADER_LINES = 1
MOUSE_SCROLL_ROWS = 3


class ConnectionTable(Widget, can_focus=True):
    """
    Virtualized table showing the filtered and sorted connection events

    Only the slice [first, last) reported by the pipeline is formatted;
    off-screen rows exist purely as scroll extent.
    """

    BINDINGS = [
        Binding("up", "cursor_up", "Up", show=False),
        Binding("down", "cursor_down", "Down", show=False),
        Binding("pageup", "page_up", "Page Up", show=False),
        Binding("pagedown", "page_down", "Page Down", show=False),
        Binding("home", "scroll_top", "Top", show=False),
        Binding("end", "jump_latest", "Latest"),
    ]

    COLUMNS = [
        (SortColumn.TIMESTAMP, {"width": 15}),
        (SortColumn.PROTOCOL, {"width": 8}),
        (SortColumn.DOMAIN, {"ratio": 3}),
        (SortColumn.SOURCE, {"ratio": 2}),
        (SortColumn.DESTINATION, {"ratio": 3}),
        (SortColumn.TARGET, {"width": 8}),
    ]

    class EventHighlighted(Message):
        """Posted when the cursor moves onto an event"""

        def __init__(self, table: "ConnectionTable", event: Event) -> None:
            super().__init__()
            self.table = table
            self.event = event

        @property
        def control(self) -> "ConnectionTable":
            return self.table

    def __init__(self, **kwargs):
        """Initialize the connection table"""
        super().__init__(**kwargs)
        self.pipeline: Optional[EventPipeline] = None
        self.cursor_index: Optional[int] = None

    def attach(self, pipeline: EventPipeline) -> None:
        """Bind the table to the pipeline it renders"""
        self.pipeline = pipeline
        self._sync_viewport()
        self.refresh()

    # Geometry

    @property
    def visible_row_count(self) -> int:
        return max(0, self.size.height - HEADER_LINES)

    def _sync_viewport(self) -> None:
        if self.pipeline:
            self.pipeline.set_viewport(self.visible_row_count * self.pipeline.row_height)

    def _top_index(self) -> int:
        return int(self.pipeline.scroll_offset // self.pipeline.row_height)

    def on_resize(self, event: events.Resize) -> None:
        self._sync_viewport()
        self.refresh()

    # Rendering

    def render(self) -> RenderableType:
        if not self.pipeline:
            return Text("Connecting to feed...", style="dim italic")

        window = self.pipeline.window()
        rows = self.pipeline.rows()

        table = Table(
            box=None,
            expand=True,
            show_edge=False,
            pad_edge=False,
            header_style="bold",
            padding=(0, 1),
        )
        spec = self.pipeline.sort_spec
        for column, layout in self.COLUMNS:
            table.add_column(
                self._header_label(column, spec.column, spec.direction),
                no_wrap=True,
                overflow="ellipsis",
                **layout,
            )

        if not rows:
            message = "Waiting for connections..." if not self.pipeline.filter else "No connections match your filter"
            table.add_row("", "", Text(message, style="dim italic"), "", "", "")
            return table

        # The window already bounds the work; only its on-screen part is drawn
        top = self._top_index()
        start = max(top, window.first_visible_index)
        stop = min(top + self.visible_row_count, window.last_visible_index)
        for index in range(start, stop):
            style = "reverse" if index == self.cursor_index else None
            table.add_row(*self._format_event(rows[index]), style=style)

        return table

    @staticmethod
    def _header_label(column: SortColumn, active: Optional[SortColumn], direction: SortDirection) -> Text:
        if column is active and direction is not SortDirection.NONE:
            return Text(f"{column.label} {direction.arrow}", style="bold cyan")
        return Text(column.label)

    @staticmethod
    def _format_event(event: Event) -> Tuple:
        """
        Format an event for table display

        Returns:
            Tuple of formatted cell values
        """
        if isinstance(event, UnstructuredEvent):
            style = "red bold" if event.is_diagnostic else "dim"
            return ("-", "", Text(event.raw, style=style), "", "", "")

        time_part = event.timestamp.split(" ")[1] if " " in event.timestamp else event.timestamp
        protocol = Text(event.protocol.value, style=event.protocol.color)

        if event.device_name:
            source = Text(event.device_name, style="bold")
        else:
            source = event.source

        destination = Text(event.destination)
        if event.destination_org:
            destination.append(f" {event.destination_org}", style="dim")

        target = Text("✓", style="yellow bold") if event.is_target else ""

        return (time_part, protocol, event.domain, source, destination, target)

    # Cursor and scrolling

    def _rows(self) -> List[Event]:
        return self.pipeline.rows() if self.pipeline else []

    def _move_cursor(self, index: int) -> None:
        rows = self._rows()
        if not rows:
            self.cursor_index = None
            return

        index = min(max(0, index), len(rows) - 1)
        self.cursor_index = index

        top = self._top_index()
        if index < top:
            self.pipeline.scroll_to(index * self.pipeline.row_height)
        elif index >= top + self.visible_row_count:
            self.pipeline.scroll_to((index - self.visible_row_count + 1) * self.pipeline.row_height)

        self.post_message(self.EventHighlighted(self, rows[index]))
        self.refresh()

    def _scroll_rows(self, count: int) -> None:
        if self.pipeline:
            self.pipeline.scroll_by(count * self.pipeline.row_height)
            self.refresh()

    def action_cursor_up(self) -> None:
        if self.cursor_index is None:
            self._move_cursor(self._top_index())
        else:
            self._move_cursor(self.cursor_index - 1)

    def action_cursor_down(self) -> None:
        if self.cursor_index is None:
            self._move_cursor(self._top_index())
        else:
            self._move_cursor(self.cursor_index + 1)

    def action_page_up(self) -> None:
        self._scroll_rows(-max(1, self.visible_row_count))

    def action_page_down(self) -> None:
        self._scroll_rows(max(1, self.visible_row_count))

    def action_scroll_top(self) -> None:
        if self.pipeline:
            self.pipeline.scroll_to(0)
            self.refresh()

    def action_jump_latest(self) -> None:
        """Return to the newest rows and resume following"""
        if self.pipeline:
            self.pipeline.jump_to_latest()
            self.cursor_index = None
            self.refresh()

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self._scroll_rows(MOUSE_SCROLL_ROWS)
        event.stop()

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self._scroll_rows(-MOUSE_SCROLL_ROWS)
        event.stop()

    def get_selected_event(self) -> Optional[Event]:
        """Event under the cursor, if any"""
        rows = self._rows()
        if self.cursor_index is None or self.cursor_index >= len(rows):
            return None
        return rows[self.cursor_index]

"""
UI Components Module - Reusable UI panels and controls for the connections view

Handles:
- Filter and control panel (filter input, show-all, pause, buttons)
- Connection statistics panel
- Connection details panel
"""
from typing import Optional

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.widgets import Button, Checkbox, Input, Label, Static

from SNITAP.stream.line_parser import Event, UnstructuredEvent
from SNITAP.stream.pipeline import PipelineStats


FILTER_PLACEHOLDER = "Filter: tcp+domain:google.com+!source:10.0.0.5 (+ joins, ! negates)"


class ConnectionControlPanel(Horizontal):
    """Filter input and feed controls"""

    def compose(self) -> ComposeResult:
        """Compose the control panel"""
        yield Input(
            placeholder=FILTER_PLACEHOLDER,
            id="connection-filter-input",
            classes="control-input"
        )
        yield Checkbox("All packets", id="show-all-checkbox")
        yield Checkbox("Paused", id="pause-checkbox")
        yield Button("Latest", variant="primary", id="jump-latest-btn")
        yield Button("Reconnect", variant="default", id="reconnect-btn")
        yield Button("Clear", variant="warning", id="clear-connections-btn")


class ConnectionStatsPanel(Static):
    """Panel showing feed and buffer statistics"""

    feed_state = reactive("disconnected")
    total_events = reactive(0)
    shown_events = reactive(0)
    target_events = reactive(0)
    evicted_events = reactive(0)
    unseen_events = reactive(0)
    paused = reactive(False)

    def compose(self) -> ComposeResult:
        yield Label("[bold]Feed Statistics[/bold]", classes="panel-title")
        yield Static(self._render_stats(), id="connection-stats")

    def update_from(self, stats: PipelineStats, feed_state: str) -> None:
        """Copy a pipeline snapshot into the reactive fields"""
        self.feed_state = feed_state
        self.total_events = stats.total
        self.shown_events = stats.filtered
        self.target_events = stats.targets
        self.evicted_events = stats.evicted
        self.unseen_events = stats.unseen
        self.paused = stats.paused

    def watch_feed_state(self, new_value: str) -> None:
        self._update_stats_display()

    def watch_total_events(self, new_value: int) -> None:
        self._update_stats_display()

    def watch_shown_events(self, new_value: int) -> None:
        self._update_stats_display()

    def watch_target_events(self, new_value: int) -> None:
        self._update_stats_display()

    def watch_evicted_events(self, new_value: int) -> None:
        self._update_stats_display()

    def watch_unseen_events(self, new_value: int) -> None:
        self._update_stats_display()

    def watch_paused(self, new_value: bool) -> None:
        self._update_stats_display()

    def _render_stats(self) -> str:
        state_color = "green" if self.feed_state == "connected" else "yellow"
        lines = [
            f"Feed: [{state_color}]{self.feed_state}[/{state_color}]",
            f"Buffered: {self.total_events}",
            f"Shown: {self.shown_events}",
            f"Targets: {self.target_events}",
            f"Evicted: {self.evicted_events}",
            f"New: {self.unseen_events}",
        ]
        if self.paused:
            lines.append("[bold yellow]PAUSED[/bold yellow]")
        return "\n".join(lines)

    def _update_stats_display(self) -> None:
        """Update the stats display widget"""
        try:
            stats_widget = self.query_one("#connection-stats", Static)
            stats_widget.update(self._render_stats())
        except Exception:
            # Widget might not be mounted yet
            pass


class ConnectionDetailsPanel(Vertical):
    """Panel showing every field of the highlighted event"""

    def compose(self) -> ComposeResult:
        """Compose the details panel"""
        yield Label("[bold]Connection Details[/bold]", classes="panel-title")
        yield Static(
            "Highlight a connection to view details...",
            id="connection-details-content",
            classes="details-display"
        )

    def update_details(self, event: Optional[Event]) -> None:
        """
        Update the details display

        Args:
            event: Highlighted event, or None to reset the panel
        """
        if event is None:
            details = "Highlight a connection to view details..."
        elif isinstance(event, UnstructuredEvent):
            details = f"[bold]Raw:[/bold] {escape(event.raw)}"
        else:
            # Only engines that tag matched rule groups fill ip_set / host_set
            set_line = f"[bold]Set:[/bold] {escape(event.set_name)}\n" if event.set_name else ""
            details = f"""
[bold]Time:[/bold] {event.timestamp}
[bold]Protocol:[/bold] {event.protocol.value}
{set_line}[bold]Domain:[/bold] {escape(event.domain)}
[bold]Source:[/bold] {escape(event.source)}
[bold]Device:[/bold] {escape(event.device_name or '-')}
[bold]Destination:[/bold] {escape(event.destination)}
[bold]Organization:[/bold] {escape(event.destination_org or '-')}
[bold]Target:[/bold] {'yes' if event.is_target else 'no'}

[dim]{escape(event.raw)}[/dim]
            """

        try:
            details_widget = self.query_one("#connection-details-content", Static)
            details_widget.update(details.strip())
        except Exception:
            # Widget might not be mounted yet
            pass

"""
Connections View Module - Main UI orchestration

Handles:
- Main view composition and layout
- Live session lifecycle (open on mount, close on unmount)
- Periodic draining of the feed into the pipeline
- Background refresh of the device and organization tables
- Event handlers and hotkeys for filter, sort, pause and clear
"""
import logging
from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.timer import Timer
from textual.widgets import Button, Checkbox, Input, Label

from SNITAP.config import Settings, load_settings
from SNITAP.feed.connection import ConnectionState
from SNITAP.stream.session import LiveSession
from SNITAP.stream.sorter import SortColumn

from .components import ConnectionControlPanel, ConnectionDetailsPanel, ConnectionStatsPanel
from .connection_table import ConnectionTable


FILTER_DEBOUNCE_SECONDS = 0.3


class ConnectionsView(Vertical):
    """Live view of the connections observed by the engine"""

    BINDINGS = [
        Binding("p", "toggle_pause", "Pause"),
        Binding("ctrl+x", "clear", "Clear"),
        Binding("delete", "clear", "Clear", show=False),
        Binding("a", "toggle_show_all", "All packets"),
        Binding("1", "sort('timestamp')", "Sort time", show=False),
        Binding("2", "sort('protocol')", "Sort protocol", show=False),
        Binding("3", "sort('domain')", "Sort domain", show=False),
        Binding("4", "sort('source')", "Sort source", show=False),
        Binding("5", "sort('destination')", "Sort destination", show=False),
        Binding("6", "sort('target')", "Sort target", show=False),
        Binding("0", "clear_sort", "Clear sort", show=False),
    ]

    def __init__(self, settings: Optional[Settings] = None, connect=None, **kwargs):
        """
        Initialize the connections view

        Args:
            settings: Runtime settings (loaded from the environment if omitted)
            connect: Optional connection factory passed to the session
        """
        super().__init__(**kwargs)
        self.settings = settings or load_settings()
        self._connect = connect

        # Set up logging with file handler
        self.logger = logging.getLogger('ConnectionsMonitor')
        self.logger.setLevel(logging.DEBUG)

        # Create file handler if not already exists
        if not self.logger.handlers:
            log_dir = self.settings.log_dir
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / "connections.log"

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)

            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        self.logger.info("ConnectionsView initialized")

        self.session: Optional[LiveSession] = None
        self.poll_timer: Optional[Timer] = None
        self.enrichment_timer: Optional[Timer] = None
        self._filter_timer: Optional[Timer] = None
        self._last_state: Optional[ConnectionState] = None
        self._enrichment_error: Optional[str] = None

    def compose(self) -> ComposeResult:
        """Compose the connections view"""
        yield ConnectionControlPanel(id="connection-control-panel")

        with Horizontal(id="connections-content"):
            # Main table (70%)
            with Vertical(classes="main-panel"):
                yield Label("[bold]Connections[/bold]", classes="section-title")
                yield ConnectionTable(id="connection-table")

            # Right sidebar (30%)
            with Vertical(classes="right-panel"):
                yield ConnectionStatsPanel(id="connection-stats-panel")
                yield ConnectionDetailsPanel(id="connection-details-panel")

    def on_mount(self) -> None:
        """Open the live session when the view is mounted"""
        self.session = LiveSession(self.settings, logger=self.logger, connect=self._connect)

        table = self.query_one("#connection-table", ConnectionTable)
        table.attach(self.session.pipeline)
        self.query_one("#pause-checkbox", Checkbox).value = self.session.pipeline.paused

        success, message = self.session.open()
        if not success:
            self.notify(message, severity="error")

        self.poll_timer = self.set_interval(self.settings.poll_interval, self.update_ui_from_feed)
        self.enrichment_timer = self.set_interval(
            self.settings.device_refresh_interval,
            self.refresh_enrichment
        )
        self.refresh_enrichment()
        self._update_stats()

    def update_ui_from_feed(self) -> None:
        """Drain pending feed notifications and redraw when something changed"""
        if not self.session:
            return

        try:
            delivered = self.session.poll()
            state = self.session.state

            if state != self._last_state:
                self.logger.info(f"Feed state: {state.value}")
                self._last_state = state
            elif not delivered:
                return

            pipeline = self.session.pipeline
            if pipeline.autoscroll.is_following:
                pipeline.reset_unseen()

            self.query_one("#connection-table", ConnectionTable).refresh()
            self._update_stats()

        except Exception as e:
            self.logger.error(f"Error updating UI from feed: {e}", exc_info=True)

    @work(exclusive=True, thread=True)
    def refresh_enrichment(self) -> None:
        """Reload device and organization tables in a background thread"""
        if not self.session:
            return

        result = self.session.refresh_enrichment()
        self.app.call_from_thread(self._apply_enrichment_result, result)

    def _apply_enrichment_result(self, result: dict) -> None:
        """Report the outcome of a refresh (main thread)"""
        error = result.get("error")
        if error and error != self._enrichment_error:
            self.notify(f"Device lookup unavailable: {error}", severity="warning")
        elif not error and self._enrichment_error:
            self.notify("Device lookup restored", severity="information")
        self._enrichment_error = error

        self.query_one("#connection-table", ConnectionTable).refresh()

    def _update_stats(self) -> None:
        """Update statistics panel"""
        if not self.session:
            return
        stats_panel = self.query_one("#connection-stats-panel", ConnectionStatsPanel)
        stats_panel.update_from(self.session.pipeline.stats(), self.session.state.value)

    def _refresh_view(self) -> None:
        self.query_one("#connection-table", ConnectionTable).refresh()
        self._update_stats()

    # Event Handlers

    @on(Input.Changed, "#connection-filter-input")
    def handle_filter_changed(self, event: Input.Changed) -> None:
        """Handle filter input changes with debouncing"""
        if self._filter_timer:
            self._filter_timer.stop()

        value = event.value
        self._filter_timer = self.set_timer(
            FILTER_DEBOUNCE_SECONDS,
            lambda: self._apply_filter(value)
        )

    def _apply_filter(self, query: str) -> None:
        if not self.session:
            return
        self.session.pipeline.set_filter(query)
        self._refresh_view()

    @on(Checkbox.Changed, "#show-all-checkbox")
    def handle_show_all_changed(self, event: Checkbox.Changed) -> None:
        """Handle the all-packets toggle"""
        if not self.session:
            return
        self.session.pipeline.set_show_all(event.value)
        self._refresh_view()

    @on(Checkbox.Changed, "#pause-checkbox")
    def handle_pause_changed(self, event: Checkbox.Changed) -> None:
        """Handle the pause toggle"""
        if not self.session:
            return
        pipeline = self.session.pipeline
        if event.value == pipeline.paused:
            return

        if event.value:
            pipeline.pause()
            self.notify("Paused - new connections are discarded", severity="warning")
        else:
            pipeline.resume()
            self.notify("Resumed", severity="information")

        self.set_class(pipeline.paused, "paused")
        self._update_stats()

    @on(Button.Pressed, "#jump-latest-btn")
    def handle_jump_latest(self) -> None:
        """Handle jump to latest button"""
        self.query_one("#connection-table", ConnectionTable).action_jump_latest()
        if self.session:
            self.session.pipeline.reset_unseen()
            self._update_stats()

    @on(Button.Pressed, "#reconnect-btn")
    def handle_reconnect(self) -> None:
        """Handle reconnect button"""
        if not self.session:
            return
        success, message = self.session.reopen()

        if success:
            self.notify(message, severity="information")
        else:
            self.notify(message, severity="error")

    @on(Button.Pressed, "#clear-connections-btn")
    def handle_clear(self) -> None:
        """Handle clear button"""
        self.action_clear()

    @on(ConnectionTable.EventHighlighted, "#connection-table")
    def handle_event_highlighted(self, message: ConnectionTable.EventHighlighted) -> None:
        """Show the highlighted event in the details panel"""
        details_panel = self.query_one("#connection-details-panel", ConnectionDetailsPanel)
        details_panel.update_details(message.event)

    # Actions

    def action_toggle_pause(self) -> None:
        checkbox = self.query_one("#pause-checkbox", Checkbox)
        checkbox.value = not checkbox.value

    def action_toggle_show_all(self) -> None:
        checkbox = self.query_one("#show-all-checkbox", Checkbox)
        checkbox.value = not checkbox.value

    def action_clear(self) -> None:
        """Drop every buffered connection"""
        if not self.session:
            return
        self.session.pipeline.clear()

        table = self.query_one("#connection-table", ConnectionTable)
        table.cursor_index = None
        self.query_one("#connection-details-panel", ConnectionDetailsPanel).update_details(None)

        self._refresh_view()
        self.notify("Connections cleared", severity="information")

    def action_sort(self, column: str) -> None:
        """Cycle the sort on a column"""
        if not self.session:
            return
        spec = self.session.pipeline.toggle_sort(SortColumn(column))
        self.logger.debug(f"Sort changed: {spec.to_dict()}")
        self._refresh_view()

    def action_clear_sort(self) -> None:
        if not self.session:
            return
        self.session.pipeline.clear_sort()
        self._refresh_view()

    def on_unmount(self) -> None:
        """Cleanup when view is unmounted"""
        for timer in (self.poll_timer, self.enrichment_timer, self._filter_timer):
            if timer:
                timer.stop()

        if self.session:
            _, message = self.session.close()
            self.logger.info(f"ConnectionsView closed its session: {message}")

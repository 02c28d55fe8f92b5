"""
SNITAP Main Application - Live connection console using Textual
"""
from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header

from SNITAP.config import Settings, load_settings
from SNITAP.UI.views.connections import ConnectionsView


class SNITapApp(App):
    """SNI Tap - Terminal UI for the connection feed"""

    TITLE = "SNITAP - Connections"
    CSS_PATH = "snitap.tcss"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f", "focus_filter", "Filter"),
        ("t", "focus_table", "Table"),
        Binding("escape", "focus_table", "Table", show=False),
    ]

    def __init__(self, settings: Optional[Settings] = None, connect=None, **kwargs):
        super().__init__(**kwargs)
        self.settings = settings or load_settings()
        self._connect = connect

    def compose(self) -> ComposeResult:
        """Compose the main UI layout"""
        yield Header(show_clock=True)
        yield ConnectionsView(self.settings, connect=self._connect, id="connections-view")
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = self.settings.feed_url
        self.action_focus_table()

    def action_focus_filter(self) -> None:
        self.query_one("#connection-filter-input").focus()

    def action_focus_table(self) -> None:
        self.query_one("#connection-table").focus()


def run_app(settings: Optional[Settings] = None) -> None:
    """Entry point to run the SNITAP application"""
    app = SNITapApp(settings=settings)
    app.run()


if __name__ == "__main__":
    run_app()

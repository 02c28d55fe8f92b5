"""
Connections Package - Live view of the engine's connection log

This package provides the terminal interface for the SNI tap feed with:
- Windowed rendering of the retained connection events
- Filter, sort, pause and clear controls
- Device and organization enrichment of each row
- Feed statistics and per-event details

Package Structure:
- components: UI panels and controls (ConnectionControlPanel, ConnectionStatsPanel, ConnectionDetailsPanel)
- connection_table: Windowed connection table widget (ConnectionTable)
- view: Main view orchestration (ConnectionsView)
"""

from .view import ConnectionsView

from .components import ConnectionControlPanel, ConnectionStatsPanel, ConnectionDetailsPanel
from .connection_table import ConnectionTable

__all__ = [
    # Main view
    'ConnectionsView',

    # UI components
    'ConnectionControlPanel',
    'ConnectionStatsPanel',
    'ConnectionDetailsPanel',
    'ConnectionTable',
]

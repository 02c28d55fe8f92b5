"""
SNITAP UI Package - Textual terminal interface
"""

from .app import SNITapApp, run_app

__all__ = [
    'SNITapApp',
    'run_app',
]

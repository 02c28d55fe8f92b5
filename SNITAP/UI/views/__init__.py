"""
SNITAP UI Views Package
"""

from .connections import ConnectionsView

__all__ = [
    'ConnectionsView',
]

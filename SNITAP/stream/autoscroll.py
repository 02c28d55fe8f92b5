"""
Autoscroll Controller Module - Follow-the-tail versus pinned reading position

FOLLOWING: every append moves the viewport to the new bottom.
PINNED:    appends leave the scroll offset untouched.
"""
from enum import Enum

from .windower import max_scroll_offset


class ScrollMode(Enum):
    FOLLOWING = "following"
    PINNED = "pinned-to-position"


class AutoscrollController:
    """Two-state machine driven by operator scrolls and buffer appends"""

    def __init__(self, threshold: float = 1):
        """
        Initialize the controller

        Args:
            threshold: Max distance from the bottom still considered "at the bottom"
        """
        self.threshold = threshold
        self.mode = ScrollMode.FOLLOWING

    @property
    def is_following(self) -> bool:
        return self.mode is ScrollMode.FOLLOWING

    def distance_from_bottom(self, scroll_offset: float, container_height: float, content_height: float) -> float:
        return content_height - scroll_offset - container_height

    def on_scroll(self, scroll_offset: float, container_height: float, content_height: float) -> ScrollMode:
        """Update the mode after the operator scrolled"""
        distance = self.distance_from_bottom(scroll_offset, container_height, content_height)
        if distance > self.threshold:
            self.mode = ScrollMode.PINNED
        else:
            self.mode = ScrollMode.FOLLOWING
        return self.mode

    def jump_to_latest(self, container_height: float, row_height: int, total_count: int) -> float:
        """Explicit "jump to latest": resume following, return the bottom offset"""
        self.mode = ScrollMode.FOLLOWING
        return max_scroll_offset(container_height, row_height, total_count)

    def on_append(self, scroll_offset: float, container_height: float, row_height: int, total_count: int) -> float:
        """
        Scroll offset to use after new rows were appended

        Returns:
            The new bottom when following, otherwise the unchanged offset
        """
        if self.is_following:
            return max_scroll_offset(container_height, row_height, total_count)
        return scroll_offset

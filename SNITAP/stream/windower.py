"""
Viewport Windower Module - Minimal row slice for the visible area

Only rows in [first, last) are materialized; everything before and after
is represented by spacer heights so the scrollable extent stays correct.
"""
import math
from dataclasses import dataclass


@dataclass(frozen=True)
class ViewportWindow:
    """Rows to materialize plus the spacer sizes around them"""
    first_visible_index: int
    last_visible_index: int
    leading_spacer_height: int
    trailing_spacer_height: int

    @property
    def row_count(self) -> int:
        return self.last_visible_index - self.first_visible_index

    def indices(self) -> range:
        return range(self.first_visible_index, self.last_visible_index)


def compute_window(
    scroll_offset: float,
    container_height: float,
    row_height: int,
    overscan: int,
    total_count: int,
) -> ViewportWindow:
    """
    Compute the slice of a row sequence that must be rendered

    Args:
        scroll_offset: Distance scrolled from the top
        container_height: Height of the visible area
        row_height: Fixed height of one row (same unit as the offsets)
        overscan: Extra rows rendered above and below the visible area
        total_count: Length of the filtered and sorted sequence

    Returns:
        ViewportWindow covering the visible rows
    """
    if row_height <= 0:
        raise ValueError("row_height must be positive")

    total_count = max(0, total_count)
    overscan = max(0, overscan)

    first = max(0, math.floor(max(0, scroll_offset) / row_height) - overscan)
    # Offsets past the end (e.g. after a clear) must not leave a gap
    first = min(first, total_count)

    visible_rows = math.ceil(max(0, container_height) / row_height) + 2 * overscan
    last = min(total_count, first + visible_rows)

    return ViewportWindow(
        first_visible_index=first,
        last_visible_index=last,
        leading_spacer_height=first * row_height,
        trailing_spacer_height=(total_count - last) * row_height,
    )


def max_scroll_offset(container_height: float, row_height: int, total_count: int) -> float:
    """Scroll offset that shows the last row at the bottom edge"""
    return max(0, total_count * row_height - container_height)

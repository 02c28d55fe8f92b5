"""
Sorter Module - Stable single-column ordering of connection events

Handles:
- Sort column / direction model with a distinguishable "none" state
- Column click cycling (asc -> desc -> none -> asc)
- Stable sorting (ties and direction "none" keep arrival order)
- Loading and saving the sort state between sessions
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .line_parser import Event, StructuredEvent, UnstructuredEvent


logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S.%f"


class SortColumn(Enum):
    """Sortable table columns"""
    TIMESTAMP = "timestamp"
    PROTOCOL = "protocol"
    DOMAIN = "domain"
    SOURCE = "source"
    DESTINATION = "destination"
    TARGET = "target"

    @property
    def label(self) -> str:
        labels = {
            SortColumn.TIMESTAMP: "Time",
            SortColumn.PROTOCOL: "Protocol",
            SortColumn.DOMAIN: "Domain",
            SortColumn.SOURCE: "Source",
            SortColumn.DESTINATION: "Destination",
            SortColumn.TARGET: "Target",
        }
        return labels[self]


class SortDirection(Enum):
    """Sort direction; NONE keeps arrival order"""
    ASC = "asc"
    DESC = "desc"
    NONE = "none"

    @property
    def arrow(self) -> str:
        return {"asc": "▲", "desc": "▼", "none": ""}[self.value]


@dataclass(frozen=True)
class SortSpec:
    """Active sort column and direction"""
    column: Optional[SortColumn] = None
    direction: SortDirection = SortDirection.NONE

    @property
    def is_active(self) -> bool:
        return self.column is not None and self.direction is not SortDirection.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'column': self.column.value if self.column else None,
            'direction': self.direction.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SortSpec":
        """Build a SortSpec from saved state, falling back to unsorted"""
        try:
            column = SortColumn(data['column']) if data.get('column') else None
            direction = SortDirection(data.get('direction') or "none")
        except (ValueError, AttributeError):
            return cls()
        return cls(column=column, direction=direction)


def toggle_sort(spec: SortSpec, column: SortColumn) -> SortSpec:
    """
    Next sort state after the operator clicks a column

    Same column cycles asc -> desc -> none -> asc; another column
    always starts at asc.
    """
    if spec.column is not column:
        return SortSpec(column, SortDirection.ASC)

    cycle = {
        SortDirection.NONE: SortDirection.ASC,
        SortDirection.ASC: SortDirection.DESC,
        SortDirection.DESC: SortDirection.NONE,
    }
    return SortSpec(column, cycle[spec.direction])


def _timestamp_key(value: str) -> datetime:
    date_part, _, fraction = value.partition(".")
    try:
        return datetime.strptime(f"{date_part}.{fraction[:6] or '0'}", TIMESTAMP_FORMAT)
    except ValueError:
        return datetime.min


SORT_KEYS: Dict[SortColumn, Callable[[StructuredEvent], Any]] = {
    SortColumn.TIMESTAMP: lambda e: _timestamp_key(e.timestamp),
    SortColumn.PROTOCOL: lambda e: e.protocol.value,
    SortColumn.DOMAIN: lambda e: e.domain.lower(),
    SortColumn.SOURCE: lambda e: e.source.lower(),
    SortColumn.DESTINATION: lambda e: e.destination.lower(),
    SortColumn.TARGET: lambda e: int(e.is_target),
}


def sort_events(events: Iterable[Event], spec: SortSpec) -> List[Event]:
    """
    Sort events by the spec

    Unstructured lines have no column values; they keep their
    arrival order after the sorted structured events.
    """
    events = list(events)
    if not spec.is_active:
        return events

    structured = [e for e in events if isinstance(e, StructuredEvent)]
    unstructured = [e for e in events if isinstance(e, UnstructuredEvent)]

    # sorted() is stable in both directions
    ordered = sorted(
        structured,
        key=SORT_KEYS[spec.column],
        reverse=spec.direction is SortDirection.DESC,
    )
    return ordered + unstructured


def load_sort_state(path: Path) -> SortSpec:
    """Read the saved sort spec; missing or unreadable files mean unsorted"""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return SortSpec.from_dict(data.get('sort', {}))
    except FileNotFoundError:
        return SortSpec()
    except (OSError, ValueError, AttributeError) as e:
        logger.warning(f"Could not read sort state from {path}: {e}")
        return SortSpec()


def save_sort_state(path: Path, spec: SortSpec) -> bool:
    """Write the sort spec; returns False when the file cannot be written"""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump({'sort': spec.to_dict()}, f, indent=2)
        return True
    except OSError as e:
        logger.warning(f"Could not save sort state to {path}: {e}")
        return False

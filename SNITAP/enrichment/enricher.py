"""
Enricher Module - Attach looked-up display fields to events

Pure functions over one LookupTable snapshot; source-of-truth fields are
never changed and a table is never mixed with another within one event.
"""
from dataclasses import replace
from typing import Iterable, List

from SNITAP.stream.line_parser import Event, StructuredEvent
from SNITAP.util import split_host_port

from .directory import LookupTable


def enrich(event: Event, table: LookupTable) -> Event:
    """
    Decorate one event with device name and destination organization

    Args:
        event: Parsed event (unstructured events pass through)
        table: Lookup table snapshot

    Returns:
        The same event when nothing applies, otherwise an enriched copy
    """
    if not isinstance(event, StructuredEvent):
        return event

    source_host, _ = split_host_port(event.source)
    destination_host, _ = split_host_port(event.destination)

    device_name = table.device_label(source_host)
    destination_org = table.org_for(destination_host)

    if device_name == event.device_name and destination_org == event.destination_org:
        return event

    return replace(event, device_name=device_name, destination_org=destination_org)


def enrich_all(events: Iterable[Event], table: LookupTable) -> List[Event]:
    """Enrich a sequence against a single table snapshot"""
    return [enrich(event, table) for event in events]

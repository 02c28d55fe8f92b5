"""
Line Parser Module - Structured parsing of feed records

Handles:
- Raw feed records with their arrival sequence number
- SNI connection line extraction (timestamp, protocol, target flag, endpoints)
- Tagged structured / unstructured event variants
- Splitting multi-record messages into single lines
"""
import re
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional, Dict, Any, List, Union


# Sentinel injected locally when the transport fails; never sent by the engine
WS_ERROR_LINE = "[WS ERROR]"


class Protocol(Enum):
    """Transport protocol of a connection event"""
    TCP = "TCP"
    UDP = "UDP"

    @property
    def color(self) -> str:
        """Get color representation for this protocol"""
        return "cyan" if self is Protocol.TCP else "magenta"


class EventKind(Enum):
    """Discriminator for the two event variants"""
    STRUCTURED = "structured"
    UNSTRUCTURED = "unstructured"


@dataclass(frozen=True)
class RawLine:
    """One UTF-8 record as received from the feed"""
    seq: int
    text: str


@dataclass(frozen=True)
class StructuredEvent:
    """Successfully parsed SNI connection event"""
    seq: int
    timestamp: str
    protocol: Protocol
    is_target: bool
    domain: str
    source: str
    destination: str
    raw: str
    # The SNI log line carries no rule-group label yet; kept for engines that add one
    ip_set: Optional[str] = None
    host_set: Optional[str] = None
    device_name: Optional[str] = None
    destination_org: Optional[str] = None

    kind = EventKind.STRUCTURED

    @property
    def set_name(self) -> str:
        """Label of the configuration group that matched, if any"""
        return self.ip_set or self.host_set or ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for export"""
        data = asdict(self)
        data['protocol'] = self.protocol.value
        data['kind'] = self.kind.value
        return data


@dataclass(frozen=True)
class UnstructuredEvent:
    """Feed line that did not match the connection grammar"""
    seq: int
    raw: str

    kind = EventKind.UNSTRUCTURED

    @property
    def is_diagnostic(self) -> bool:
        """True for the locally injected transport error marker"""
        return self.raw == WS_ERROR_LINE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for export"""
        return {'seq': self.seq, 'raw': self.raw, 'kind': self.kind.value}


Event = Union[StructuredEvent, UnstructuredEvent]


class LineParser:
    """
    Parser for the engine's SNI log lines

    Supported format:
    - "2025/10/13 22:41:12.466126 [INFO] SNI TCP: host 10.0.0.2:5000 -> 1.2.3.4:443"
    - "... [INFO] SNI UDP TARGET: host 10.0.0.2:5000 -> 1.2.3.4:443"

    Anything else is kept verbatim as an UnstructuredEvent.
    """

    PATTERN = re.compile(
        r'^(?P<timestamp>\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}\.\d+)'
        r'\s+\[INFO\]\s+SNI\s+(?P<protocol>TCP|UDP)'
        r'(?P<target>\s+TARGET)?:'
        r'\s+(?P<domain>\S+)'
        r'\s+(?P<source>\S+)'
        r'\s+->\s+(?P<destination>\S+)$'
    )

    def __init__(self, start_seq: int = 0):
        """
        Initialize the parser

        Args:
            start_seq: First sequence number handed out by next_raw_line()
        """
        self._next_seq = start_seq

    def next_raw_line(self, text: str) -> RawLine:
        """Wrap text into a RawLine with the next arrival sequence number"""
        raw = RawLine(seq=self._next_seq, text=text)
        self._next_seq += 1
        return raw

    def parse(self, line: str, seq: int = 0) -> Optional[StructuredEvent]:
        """
        Parse a single line into a structured event

        Args:
            line: The feed line
            seq: Sequence number to stamp on the event

        Returns:
            StructuredEvent, or None when the line does not match
        """
        match = self.PATTERN.match(line.rstrip('\r\n'))
        if not match:
            return None

        return StructuredEvent(
            seq=seq,
            timestamp=match.group('timestamp'),
            protocol=Protocol(match.group('protocol')),
            is_target=match.group('target') is not None,
            domain=match.group('domain'),
            source=match.group('source'),
            destination=match.group('destination'),
            raw=line.rstrip('\r\n'),
        )

    def parse_record(self, raw: RawLine) -> Event:
        """Parse a RawLine into either event variant"""
        event = self.parse(raw.text, raw.seq)
        if event is None:
            return UnstructuredEvent(seq=raw.seq, raw=raw.text.rstrip('\r\n'))
        return event

    def parse_message(self, message: Union[str, bytes]) -> List[Event]:
        """
        Parse one transport message, which may carry several records

        Args:
            message: Text or binary frame payload

        Returns:
            Events in the order the records appear, blank lines skipped
        """
        if isinstance(message, bytes):
            message = message.decode('utf-8', errors='replace')

        events = []
        for line in message.splitlines():
            if not line.strip():
                continue
            events.append(self.parse_record(self.next_raw_line(line)))

        return events


def parse_line(line: str) -> Optional[StructuredEvent]:
    """Parse one line with a throwaway parser (sequence number 0)"""
    return LineParser().parse(line)

import pytest

from SNITAP.stream.line_parser import (
    WS_ERROR_LINE,
    LineParser,
    Protocol,
    StructuredEvent,
    UnstructuredEvent,
    parse_line,
)

from conftest import SAMPLE_LINE, make_line


@pytest.fixture
def parser():
    return LineParser()


def test_parse_sample_line():
    event = parse_line(SAMPLE_LINE)

    assert isinstance(event, StructuredEvent)
    assert event.protocol == Protocol.TCP
    assert event.is_target is False
    assert event.domain == "assets.alicdn.com"
    assert event.source == "192.168.1.100:38894"
    assert event.destination == "92.123.206.67:443"
    assert event.timestamp == "2025/10/13 22:41:12.466126"
    assert event.raw == SAMPLE_LINE


def test_parse_target_marker(parser):
    event = parser.parse(make_line(protocol="UDP", target=True))

    assert event.protocol == Protocol.UDP
    assert event.is_target is True


def test_parse_rejects_other_lines(parser):
    assert parser.parse("2025/10/13 22:41:12.466126 [WARN] queue full") is None
    assert parser.parse("") is None
    assert parser.parse(make_line(protocol="ICMP")) is None


def test_parse_strips_line_ending(parser):
    event = parser.parse(SAMPLE_LINE + "\r\n")
    assert event.destination == "92.123.206.67:443"


def test_next_raw_line_sequence_numbers():
    parser = LineParser(start_seq=10)
    first = parser.next_raw_line("a")
    second = parser.next_raw_line("b")

    assert (first.seq, second.seq) == (10, 11)


def test_parse_record_falls_back_to_unstructured(parser):
    event = parser.parse_record(parser.next_raw_line("engine started"))

    assert isinstance(event, UnstructuredEvent)
    assert event.raw == "engine started"
    assert not event.is_diagnostic


def test_ws_error_line_is_diagnostic(parser):
    event = parser.parse_record(parser.next_raw_line(WS_ERROR_LINE))
    assert isinstance(event, UnstructuredEvent)
    assert event.is_diagnostic


def test_parse_message_splits_records(parser):
    message = "\n".join([make_line("a.com"), "", "noise", make_line("b.com")])
    events = parser.parse_message(message)

    assert [type(e) for e in events] == [StructuredEvent, UnstructuredEvent, StructuredEvent]
    assert [e.seq for e in events] == [0, 1, 2]
    assert events[2].domain == "b.com"


def test_parse_message_accepts_bytes(parser):
    events = parser.parse_message(SAMPLE_LINE.encode("utf-8"))
    assert len(events) == 1
    assert events[0].domain == "assets.alicdn.com"


def test_set_name_and_to_dict():
    event = parse_line(SAMPLE_LINE)
    assert event.set_name == ""

    data = event.to_dict()
    assert data["protocol"] == "TCP"
    assert data["kind"] == "structured"
    assert data["domain"] == "assets.alicdn.com"

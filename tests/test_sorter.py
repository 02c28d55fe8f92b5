import json

import pytest

from SNITAP.stream.line_parser import LineParser
from SNITAP.stream.sorter import (
    SortColumn,
    SortDirection,
    SortSpec,
    load_sort_state,
    save_sort_state,
    sort_events,
    toggle_sort,
)

from conftest import make_line


@pytest.fixture
def events():
    parser = LineParser()
    lines = [
        make_line("b.com", protocol="UDP", timestamp="2025/10/13 22:41:12.000300"),
        make_line("a.com", protocol="TCP", timestamp="2025/10/13 22:41:12.000100"),
        "engine notice",
        make_line("c.com", protocol="TCP", target=True, timestamp="2025/10/13 22:41:12.000200"),
        make_line("a.com", protocol="UDP", timestamp="2025/10/13 22:41:13.000000"),
    ]
    return parser.parse_message("\n".join(lines))


def test_direction_none_keeps_arrival_order(events):
    spec = SortSpec(SortColumn.DOMAIN, SortDirection.NONE)
    assert sort_events(events, spec) == events
    assert sort_events(events, SortSpec()) == events


def test_sorting_twice_equals_sorting_once(events):
    for column in SortColumn:
        for direction in (SortDirection.ASC, SortDirection.DESC):
            spec = SortSpec(column, direction)
            once = sort_events(events, spec)
            assert sort_events(once, spec) == once


def test_sort_is_stable_on_ties(events):
    result = sort_events(events, SortSpec(SortColumn.DOMAIN, SortDirection.ASC))
    domains = [getattr(e, "domain", None) for e in result]

    assert domains == ["a.com", "a.com", "b.com", "c.com", None]
    # the two a.com rows keep arrival order
    assert result[0].seq < result[1].seq


def test_unstructured_events_go_last(events):
    result = sort_events(events, SortSpec(SortColumn.PROTOCOL, SortDirection.DESC))
    assert result[-1].raw == "engine notice"


def test_timestamp_sort(events):
    result = sort_events(events, SortSpec(SortColumn.TIMESTAMP, SortDirection.ASC))
    assert [e.seq for e in result] == [1, 3, 0, 4, 2]


def test_target_sort_desc(events):
    result = sort_events(events, SortSpec(SortColumn.TARGET, SortDirection.DESC))
    assert result[0].domain == "c.com"


def test_tri_state_cycling():
    spec = SortSpec(SortColumn.DOMAIN, SortDirection.NONE)
    seen = []
    for _ in range(3):
        spec = toggle_sort(spec, SortColumn.DOMAIN)
        seen.append(spec.direction)

    assert seen == [SortDirection.ASC, SortDirection.DESC, SortDirection.NONE]
    assert spec.column is SortColumn.DOMAIN


@pytest.mark.parametrize("direction", list(SortDirection))
def test_other_column_starts_ascending(direction):
    spec = toggle_sort(SortSpec(SortColumn.DOMAIN, direction), SortColumn.SOURCE)
    assert spec == SortSpec(SortColumn.SOURCE, SortDirection.ASC)


def test_sort_state_round_trip(tmp_path):
    path = tmp_path / "nested" / "state.json"
    spec = SortSpec(SortColumn.DESTINATION, SortDirection.DESC)

    assert save_sort_state(path, spec)
    assert load_sort_state(path) == spec


def test_sort_state_missing_or_invalid(tmp_path):
    assert load_sort_state(tmp_path / "missing.json") == SortSpec()

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    assert load_sort_state(bad) == SortSpec()

    wrong = tmp_path / "wrong.json"
    wrong.write_text(json.dumps({"sort": {"column": "nope", "direction": "asc"}}))
    assert load_sort_state(wrong) == SortSpec()

    listing = tmp_path / "list.json"
    listing.write_text("[]")
    assert load_sort_state(listing) == SortSpec()


def test_sortable_columns_match_table():
    assert [column.value for column in SortColumn] == [
        "timestamp", "protocol", "domain", "source", "destination", "target",
    ]
    # State saved by a build that still sorted by rule group
    assert SortSpec.from_dict({"column": "set", "direction": "asc"}) == SortSpec()

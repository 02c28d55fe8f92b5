import pytest

from SNITAP.stream.ring_buffer import RingBuffer


def test_bounded_retention_keeps_last_items_in_order():
    buffer = RingBuffer(capacity=5)
    buffer.extend(range(12))

    assert len(buffer) == 5
    assert buffer.snapshot() == (7, 8, 9, 10, 11)
    assert buffer.total_pushed == 12
    assert buffer.evicted == 7


def test_under_capacity_keeps_everything():
    buffer = RingBuffer(capacity=5)
    buffer.extend(["a", "b"])

    assert buffer.snapshot() == ("a", "b")
    assert buffer.evicted == 0


def test_version_changes_on_push_and_clear():
    buffer = RingBuffer(capacity=3)
    start = buffer.version

    buffer.push(1)
    after_push = buffer.version
    buffer.clear()

    assert after_push > start
    assert buffer.version > after_push
    assert buffer.snapshot() == ()


def test_snapshot_is_a_copy():
    buffer = RingBuffer(capacity=3)
    buffer.push(1)
    snapshot = buffer.snapshot()
    buffer.push(2)

    assert snapshot == (1,)


@pytest.mark.parametrize("capacity", [0, -1])
def test_invalid_capacity(capacity):
    with pytest.raises(ValueError):
        RingBuffer(capacity=capacity)

from __future__ import annotations

import pytest

from salescache._codec import JsonCodec
from salescache.exceptions import SerializationError
from salescache.models import Record
from salescache.state.policy import is_empty, item_count, should_persist


@pytest.mark.parametrize("value", [None, [], {}, ()])
def test_empty_values(value: object) -> None:
    assert is_empty(value)


@pytest.mark.parametrize("value", [[1], {"a": 1}, 0, False, "", "x", Record(id="r1")])
def test_non_empty_values(value: object) -> None:
    assert not is_empty(value)


def test_guard_blocks_empty_over_non_empty_unless_forced() -> None:
    assert not should_persist(incoming=[], confirmed=[{"id": "a"}])
    assert not should_persist(incoming={}, confirmed={"theme": "dark"})
    assert should_persist(incoming=[], confirmed=[{"id": "a"}], force=True)
    assert should_persist(incoming=[], confirmed=None)
    assert should_persist(incoming=[{"id": "b"}], confirmed=[{"id": "a"}])


def test_item_count_only_counts_arrays() -> None:
    assert item_count([1, 2, 3]) == 3
    assert item_count({"a": 1}) == 0
    assert item_count("abc") == 0


def test_codec_rejects_unserializable_values() -> None:
    codec = JsonCodec()
    with pytest.raises(SerializationError):
        codec.encode({"bad": object()}, key="shopee_goals")
    with pytest.raises(SerializationError):
        codec.encode(float("nan"))
    with pytest.raises(SerializationError):
        codec.decode("{not json", key="shopee_goals")


def test_codec_keeps_shape_and_dumps_models() -> None:
    codec = JsonCodec()
    value = {"items": [[1, 2], {"nested": {"deep": True}}], "record": Record(id=7, extra="kept")}

    decoded = codec.decode(codec.encode(value))

    assert decoded["items"] == [[1, 2], {"nested": {"deep": True}}]
    assert decoded["record"] == {"id": "7", "extra": "kept"}

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytest

from fqlclient import Int32, Int64, wire_field
from fqlclient.records import WIRE_FIELD_KEY, int_width, is_record, parse_field_tag, record_fields


@pytest.mark.parametrize(
    "tag,expected",
    [
        ("name", ("name", None)),
        ("stocked_on,date", ("stocked_on", "date")),
        (",long", ("", "long")),
        ("", ("", None)),
        ("-", ("-", None)),
    ],
)
def test_parse_field_tag(tag, expected) -> None:
    assert parse_field_tag(tag) == expected


def test_wire_field_keeps_user_metadata() -> None:
    f = wire_field("x", default=1, metadata={"doc": "kept"})
    assert f.default == 1
    assert f.metadata["doc"] == "kept"
    assert f.metadata[WIRE_FIELD_KEY] == ("x", None)


@dataclass
class Order:
    number: Int64 = wire_field(",long")
    placed: datetime = wire_field("placed_at,time")
    items: Optional[Int32] = wire_field("item_count", default=None)
    internal: str = wire_field("-", default="")
    scratch: str = ""


def test_record_fields_in_declaration_order() -> None:
    specs = record_fields(Order)
    assert [(s.attr, s.name, s.hint) for s in specs] == [
        ("number", "number", "long"),
        ("placed", "placed_at", "time"),
        ("items", "item_count", None),
    ]
    assert [s.has_default for s in specs] == [False, False, True]


def test_record_fields_are_cached() -> None:
    assert record_fields(Order) is record_fields(Order)


def test_record_fields_requires_dataclass_type() -> None:
    with pytest.raises(TypeError, match="not a dataclass type"):
        record_fields(dict)


def test_int_width() -> None:
    assert int_width(Int32) == 32
    assert int_width(Int64) == 64
    assert int_width(Optional[Int32]) == 32
    assert int_width(int) is None


def test_is_record() -> None:
    assert is_record(Order(1, datetime(2023, 1, 1)))
    assert not is_record(Order)
    assert not is_record({"number": 1})
    assert dataclasses.is_dataclass(Order)

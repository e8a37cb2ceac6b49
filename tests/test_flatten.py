from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from odmon.flatten import flatten_record, format_value, select_pairs, select_path


class _Unprintable:
    def __str__(self) -> str:
        raise RuntimeError("no text for you")


def test_format_value_scalars() -> None:
    assert format_value(None) == ""
    assert format_value("abc") == "abc"
    assert format_value(42) == "42"
    assert format_value(1.5) == "1.5"
    assert format_value(0.1) == "0.1"
    assert format_value(1234567.25) == "1234567.25"
    assert format_value(True) == "True"
    assert format_value(False) == "False"
    assert format_value(Decimal("1.10")) == "1.10"
    assert format_value(date(2026, 2, 10)) == "2026-02-10"


def test_format_value_timestamp_roundtrip_keeps_offset() -> None:
    """
    时间戳渲染后再解析，必须得到同一时刻与同一时区偏移。
    """
    tz = timezone(timedelta(hours=5, minutes=30))
    dt = datetime(2026, 2, 10, 12, 34, 56, 123456, tzinfo=tz)

    text = format_value(dt)
    parsed = datetime.fromisoformat(text)

    assert text == "2026-02-10T12:34:56.123456+05:30"
    assert parsed == dt
    assert parsed.utcoffset() == dt.utcoffset()


def test_format_value_never_raises() -> None:
    assert format_value(_Unprintable()) == ""
    assert format_value([1, "a", None]) == '[1,"a",null]'
    assert format_value([datetime(2026, 1, 1, tzinfo=timezone.utc)]) == '["2026-01-01T00:00:00+00:00"]'
    assert format_value([_Unprintable()]) == '[""]'


def test_flat_record_one_line_per_non_empty_key_in_record_order() -> None:
    record = {"b": "1", "a": 2, "c": "", "d": None, "e": "   "}

    assert flatten_record(record) == 'b="1"\na="2"'
    assert flatten_record(record, include_empty=True) == 'b="1"\na="2"\nc=""\nd=""\ne="   "'


def test_nested_record_uses_dotted_keys_and_skips_empty() -> None:
    record = {"a": {"b": "x", "c": ""}}

    assert flatten_record(record, include_empty=False) == 'a.b="x"'
    assert flatten_record(record, include_empty=True) == 'a.b="x"\na.c=""'


def test_deep_nesting_is_spliced_in_place() -> None:
    record = {"first": 1, "a": {"b": {"c": 3}, "d": 4}, "last": 5}

    assert flatten_record(record).split("\n") == [
        'first="1"',
        'a.b.c="3"',
        'a.d="4"',
        'last="5"',
    ]


def test_empty_nested_record_produces_no_lines() -> None:
    assert flatten_record({"a": {}, "b": {"c": None}}) == ""


def test_custom_line_format_separator_and_prefix() -> None:
    record = {"x": 1, "y": {"z": "w"}}

    out = flatten_record(record, key_prefix="p.", record_separator=" | ", line_format="{0}:{1}")

    assert out == "p.x:1 | p.y.z:w"


def test_keys_filter_restricts_top_level_in_filter_order() -> None:
    record = {"a": 1, "b": 2, "c": {"d": 3}}

    assert list(select_pairs(record, ["c", "missing", "a"])) == [("c", {"d": 3}), ("a", 1)]
    assert flatten_record(record, keys=["c", "missing", "a"]) == 'c.d="3"\na="1"'


def test_empty_keys_are_skipped() -> None:
    assert flatten_record({"": "hidden", "k": "v"}) == 'k="v"'


def test_select_path_descends_and_stops() -> None:
    record = {"a": {"b": {"c": 7}}, "n": 5, "l": [1, 2]}

    assert select_path(record, ["a", "b", "c"]) == 7
    assert select_path(record, ["a", "b"]) == {"c": 7}
    # 到达非 mapping 后停止，剩余 path 忽略
    assert select_path(record, ["n", "x", "y"]) == 5
    assert select_path(record, ["l", "0"]) == [1, 2]
    # key 不存在：返回已到达的值
    assert select_path(record, ["a", "missing"]) == {"b": {"c": 7}}


def test_select_path_empty_path_returns_record() -> None:
    record = {"a": 1}

    assert select_path(record, []) is record
    assert select_path(record, None) is record

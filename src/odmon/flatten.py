from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable, Iterator, Mapping, Sequence

from .models import Record, Value


DEFAULT_LINE_FORMAT = '{0}="{1}"'
DEFAULT_RECORD_SEPARATOR = "\n"


def format_value(value: Any) -> str:
    """
    将单个值渲染为与 locale 无关的文本；任何异常都返回空串，绝不中断轮询周期。

    - None -> ""
    - datetime/date/time -> ISO8601（保留时区偏移，可原样 fromisoformat 回来）
    - float -> repr（最短可往返表示）
    - bool/int/Decimal/str -> str
    - 嵌套 mapping / 列表 -> 紧凑 JSON
    """
    try:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        if isinstance(value, bool):
            return str(value)
        if isinstance(value, float):
            return repr(value)
        if isinstance(value, (int, Decimal)):
            return str(value)
        if isinstance(value, Mapping):
            return _to_json(dict(value))
        if isinstance(value, (list, tuple)):
            return _to_json(list(value))
        return str(value)
    except Exception:  # noqa: BLE001
        return ""


def _to_json(value: Any) -> str:
    return json.dumps(value, default=format_value, ensure_ascii=False, separators=(",", ":"))


def select_pairs(record: Record, keys: Sequence[str] | None = None) -> Iterator[tuple[str, Value]]:
    """
    将记录转为 (key, value) 对。

    指定 keys 时只输出记录中存在的那些顶层 key，顺序与 keys 一致。
    """
    if keys is None:
        for k, v in record.items():
            yield str(k), v
        return
    for k in keys:
        if k in record:
            yield k, record[k]


def iter_lines(
    pairs: Iterable[tuple[str, Value]],
    *,
    key_prefix: str = "",
    line_format: str = DEFAULT_LINE_FORMAT,
    include_empty: bool = False,
) -> Iterator[str]:
    for name, value in pairs:
        if not name:
            continue
        path = key_prefix + name
        if isinstance(value, Mapping):
            # 父 key 本身不输出一行，子字段以 parent.child 展开
            yield from iter_lines(
                select_pairs(value),
                key_prefix=path + ".",
                line_format=line_format,
                include_empty=include_empty,
            )
            continue
        text = format_value(value)
        if not include_empty and not text.strip():
            continue
        yield line_format.format(path, text)


def flatten_pairs(
    pairs: Iterable[tuple[str, Value]],
    *,
    key_prefix: str = "",
    record_separator: str = DEFAULT_RECORD_SEPARATOR,
    line_format: str = DEFAULT_LINE_FORMAT,
    include_empty: bool = False,
) -> str:
    return record_separator.join(
        iter_lines(pairs, key_prefix=key_prefix, line_format=line_format, include_empty=include_empty)
    )


def flatten_record(
    record: Record,
    *,
    key_prefix: str = "",
    record_separator: str = DEFAULT_RECORD_SEPARATOR,
    line_format: str = DEFAULT_LINE_FORMAT,
    include_empty: bool = False,
    keys: Sequence[str] | None = None,
) -> str:
    """
    递归展开一条记录为 key="value" 文本（多行以 record_separator 连接）。

    keys 仅作用于顶层字段（whole-record-to-pairs 变体），嵌套记录始终全部展开。
    """
    return flatten_pairs(
        select_pairs(record, keys),
        key_prefix=key_prefix,
        record_separator=record_separator,
        line_format=line_format,
        include_empty=include_empty,
    )


def select_path(record: Record, path: Sequence[str] | None) -> Value:
    """
    沿 path 逐级下钻取值，不会抛异常。

    当前值不是 mapping、key 不存在或 path 走完时停止，返回已到达的值；
    path 为空时返回整条记录。
    """
    current: Value = record
    for key in path or ():
        if not isinstance(current, Mapping) or key not in current:
            break
        current = current[key]
    return current

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Mapping, TypeAlias

from .errors import ConfigurationError


# 记录中的值：标量或嵌套记录。formatter/flatten 按此联合类型做 isinstance 分派。
Value: TypeAlias = "None | bool | int | float | Decimal | str | datetime | date | time | Mapping[str, Value]"
Record: TypeAlias = "Mapping[str, Value]"


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def parse_rfc3339_datetime(value: str) -> datetime:
    """
    解析常见的 RFC3339/ISO8601 时间串为带 tzinfo 的 datetime。

    兼容：
    - 2026-02-10T12:34:56Z
    - 2026-02-10T12:34:56+00:00
    - 2026-02-10T12:34:56.123Z
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def split_address(address: str) -> tuple[str, str]:
    """
    将包含资源名的地址拆分为 (service root, resource[?query])。

    例如 http://host/api/Widgets?$top=5 -> ("http://host/api/", "Widgets?$top=5")。
    最后一段为空（以 / 结尾或没有路径）时无法判断资源名，抛 ConfigurationError。
    """
    parts = urllib.parse.urlsplit(address.strip())
    path = parts.path
    segment = path.rsplit("/", 1)[-1] if path else ""
    if not segment:
        raise ConfigurationError(
            "You must either set the resource, or specify an address which includes the resource, like .../Packages"
        )
    root = urllib.parse.urlunsplit((parts.scheme, parts.netloc, path[: len(path) - len(segment)], "", ""))
    resource = segment + ("?" + parts.query if parts.query else "")
    return root, resource


def derive_resource(address: str) -> str:
    """从地址最后一段路径推导资源名（不含 query）。"""
    _, resource = split_address(address)
    return resource.split("?", 1)[0]


@dataclass(frozen=True, slots=True)
class PollSpec:
    """
    单个 stanza 的一次轮询配置。

    address:
      - OData 服务地址（可作为模板，含 {0} 占位符）；未配置 resource 时最后一段路径即资源名
    filter:
      - $filter 表达式模板（可选）
    tail_filter_path:
      - 从每条记录中取 cursor 的字段路径；为空时不读写 cursor
    default_tail_filter:
      - 尚无 cursor 时代入模板的默认值
    select:
      - 仅输出这些顶层字段（按此顺序）；为空则输出全部
    """

    stanza: str
    address: str
    resource: str = ""
    filter: str = ""
    tail_filter_path: tuple[str, ...] = ()
    default_tail_filter: str = ""
    include_empty: bool = False
    select: tuple[str, ...] = ()

    @property
    def tail_filter_enabled(self) -> bool:
        return bool(self.tail_filter_path)

    def validate(self) -> None:
        if not self.stanza:
            raise ConfigurationError("stanza name must not be empty")
        if not self.address or not self.address.strip():
            raise ConfigurationError("You must set (at least) the address", stanza=self.stanza)
        if not self.resource:
            try:
                derive_resource(self.address)
            except ConfigurationError as e:
                raise ConfigurationError(str(e), stanza=self.stanza) from e


@dataclass(frozen=True, slots=True)
class FetchRequest:
    """
    交给 fetcher 的请求：address 为 service root，resource 为实体集（可能带自己的 query）。
    """

    address: str
    resource: str
    filter: str = ""

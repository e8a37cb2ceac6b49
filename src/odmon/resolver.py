from __future__ import annotations

from .errors import ConfigurationError
from .models import PollSpec


def substitute(template: str, value: str, *, stanza: str | None = None) -> str:
    """将 cursor 代入模板的唯一位置占位符（{0} 或 {}）；没有占位符的模板原样返回。"""
    try:
        return template.format(value)
    except (IndexError, KeyError, ValueError) as e:
        raise ConfigurationError(f"invalid template {template!r}: {e}", stanza=stanza) from e


def resolve_parameters(spec: PollSpec, cursor: str | None) -> tuple[str, str]:
    """
    计算本周期实际使用的 (address, filter)。

    未配置 tail filter 时原样返回；否则 cursor（为空则用 default_tail_filter）
    只代入 filter（filter 非空时）或 address 二者之一，绝不同时代入。
    """
    if not spec.tail_filter_enabled:
        return spec.address, spec.filter

    value = cursor or spec.default_tail_filter or ""
    if spec.filter:
        return spec.address, substitute(spec.filter, value, stanza=spec.stanza)
    return substitute(spec.address, value, stanza=spec.stanza), spec.filter

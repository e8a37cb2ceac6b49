from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import ConfigurationError
from .flatten import DEFAULT_LINE_FORMAT, DEFAULT_RECORD_SEPARATOR
from .models import PollSpec


_TRUE_LITERALS = ("true", "1", "yes", "on")


def _require_dict(value: Any, *, where: str) -> Mapping[str, Any]:
    if not isinstance(value, dict):
        raise ConfigurationError(f"Expected object at {where}, got {type(value)}")
    return value


def _get_bool(d: Mapping[str, Any], key: str, default: bool) -> bool:
    v = d.get(key, default)
    if v is None:
        return default
    if isinstance(v, str):
        return v.strip().lower() in _TRUE_LITERALS
    return bool(v)


def _get_int(d: Mapping[str, Any], key: str, default: int) -> int:
    v = d.get(key, default)
    if isinstance(v, bool):
        return default
    try:
        return int(v)
    except Exception:
        return default


def _get_str(d: Mapping[str, Any], key: str, default: str | None = None) -> str | None:
    v = d.get(key, default)
    if v is None:
        return None
    return str(v)


def _get_str_list(d: Mapping[str, Any], key: str, default: list[str]) -> list[str]:
    """列表或逗号分隔字符串均可（stanza 参数习惯写成 "a,b,c"）。"""
    v = d.get(key, default)
    if v is None:
        return list(default)
    if isinstance(v, str):
        return [p.strip() for p in v.split(",") if p.strip()]
    if isinstance(v, list):
        return [str(x) for x in v]
    return list(default)


@dataclass(frozen=True, slots=True)
class StanzaConfig:
    """
    单个输入实例（stanza）的配置。

    spec:
      - 轮询参数（address/resource/filter/tailFilterPath/defaultTailFilter/includeEmpty/select）
    token_env / username_env / password_env:
      - OData 服务凭据的环境变量名（可选，不配置则匿名访问）
    """

    spec: PollSpec
    token_env: str | None = None
    username_env: str | None = None
    password_env: str | None = None


@dataclass(frozen=True, slots=True)
class OutputConfig:
    """
    line_format:
      - str.format 格式串，{0} 为 key，{1} 为 value
    record_separator:
      - 同一条记录内各行之间的分隔符
    """

    line_format: str = DEFAULT_LINE_FORMAT
    record_separator: str = DEFAULT_RECORD_SEPARATOR


@dataclass(frozen=True, slots=True)
class HecSinkConfig:
    """
    HTTP Event Collector 投递配置。url/token 只通过环境变量读取，避免落盘。
    """

    url_env: str
    token_env: str
    sourcetype: str | None = None
    index: str | None = None
    host: str | None = None


@dataclass(frozen=True, slots=True)
class AppConfig:
    """
    应用总配置。

    poll_interval_seconds:
      - 轮询间隔（daemon 模式下生效）
    checkpoint_dir:
      - checkpoint 目录，每个 stanza 一个 cursor 文件
    xml_stream:
      - 是否向 stdout 输出 XML 事件流；未配置任何 sink 时默认开启
    """

    poll_interval_seconds: int
    checkpoint_dir: str
    stanzas: tuple[StanzaConfig, ...]
    output: OutputConfig
    xml_stream: bool
    hec: HecSinkConfig | None

    def resolve_env(self, env_name: str | None) -> str | None:
        if not env_name:
            return None
        return os.environ.get(env_name)


def _validate_line_format(line_format: str) -> str:
    try:
        line_format.format("key", "value")
    except (IndexError, KeyError, ValueError) as e:
        raise ConfigurationError(f"invalid line_format {line_format!r}: {e}") from e
    return line_format


def parse_stanza(raw: Mapping[str, Any], *, where: str) -> StanzaConfig:
    """
    解析单个 stanza。参数名沿用 modular input 的写法：
    address / resource / filter / tailFilterPath / defaultTailFilter / includeEmpty / select
    """
    name = _get_str(raw, "name", "") or ""
    spec = PollSpec(
        stanza=name,
        address=_get_str(raw, "address", "") or "",
        resource=_get_str(raw, "resource", "") or "",
        filter=_get_str(raw, "filter", "") or "",
        tail_filter_path=tuple(_get_str_list(raw, "tailFilterPath", [])),
        default_tail_filter=_get_str(raw, "defaultTailFilter", "") or "",
        include_empty=_get_bool(raw, "includeEmpty", False),
        select=tuple(_get_str_list(raw, "select", [])),
    )
    if not spec.stanza:
        raise ConfigurationError(f"missing stanza name at {where}")
    return StanzaConfig(
        spec=spec,
        token_env=_get_str(raw, "token_env", None),
        username_env=_get_str(raw, "username_env", None),
        password_env=_get_str(raw, "password_env", None),
    )


def load_config(config_path: str) -> AppConfig:
    """
    使用 JSON 作为配置落地形式，避免引入第三方 YAML 解析依赖。

    JSON 顶层结构（示意）：
    {
      "poll_interval_seconds": 300,
      "checkpoint_dir": "./checkpoints",
      "output": { "line_format": "{0}=\\"{1}\\"", "record_separator": "\\n" },
      "stanzas": [ { "name": "odata://nuget", "address": "...", ... } ],
      "sinks": { "xml_stream": {}, "hec": { ... } }
    }

    stanza 自身的校验（address/resource）推迟到轮询周期的 Init 阶段，
    这样一个 stanza 配错不会影响其它 stanza。
    """
    with open(config_path, "rb") as f:
        raw = json.loads(f.read().decode("utf-8"))

    root = _require_dict(raw, where="$")
    poll_interval_seconds = _get_int(root, "poll_interval_seconds", 300)
    checkpoint_dir = str(root.get("checkpoint_dir") or "./checkpoints")

    output_raw = _require_dict(root.get("output", {}), where="$.output")
    output = OutputConfig(
        line_format=_validate_line_format(_get_str(output_raw, "line_format", DEFAULT_LINE_FORMAT) or DEFAULT_LINE_FORMAT),
        record_separator=_get_str(output_raw, "record_separator", None) or DEFAULT_RECORD_SEPARATOR,
    )

    stanzas_raw = root.get("stanzas", [])
    if not isinstance(stanzas_raw, list):
        raise ConfigurationError(f"Expected list at $.stanzas, got {type(stanzas_raw)}")
    stanzas = tuple(
        parse_stanza(_require_dict(s, where=f"$.stanzas[{i}]"), where=f"$.stanzas[{i}]")
        for i, s in enumerate(stanzas_raw)
    )
    names = [s.spec.stanza for s in stanzas]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(f"duplicate stanza names: {', '.join(duplicates)}")

    sinks = _require_dict(root.get("sinks", {}), where="$.sinks")

    hec_cfg: HecSinkConfig | None = None
    if isinstance(sinks.get("hec"), dict):
        hec = _require_dict(sinks["hec"], where="$.sinks.hec")
        hec_cfg = HecSinkConfig(
            url_env=str(hec.get("url_env") or "HEC_URL"),
            token_env=str(hec.get("token_env") or "HEC_TOKEN"),
            sourcetype=_get_str(hec, "sourcetype", None),
            index=_get_str(hec, "index", None),
            host=_get_str(hec, "host", None),
        )

    xml_stream = isinstance(sinks.get("xml_stream"), dict) or hec_cfg is None

    return AppConfig(
        poll_interval_seconds=poll_interval_seconds,
        checkpoint_dir=checkpoint_dir,
        stanzas=stanzas,
        output=output,
        xml_stream=xml_stream,
        hec=hec_cfg,
    )

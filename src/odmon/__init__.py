"""
OData Resource Monitor (odmon)

按计划轮询 OData 资源，将每条记录递归展开为 key="value" 文本后交给事件 sink，
并为每个 stanza 持久化 cursor，使下一次轮询只拉取新数据。
"""

from .errors import ConfigurationError, FetchError, PersistenceError, PollError
from .flatten import flatten_record, format_value, select_path
from .models import PollSpec

__all__ = [
    "ConfigurationError",
    "FetchError",
    "PersistenceError",
    "PollError",
    "PollSpec",
    "flatten_record",
    "format_value",
    "select_path",
]

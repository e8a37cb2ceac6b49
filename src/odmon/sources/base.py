from __future__ import annotations

from typing import Iterable, Protocol

from ..models import FetchRequest, Record


class ResourceFetcher(Protocol):
    """
    远端资源适配器接口：按 (address, resource, filter) 返回记录序列。

    约定：
    - 返回值是惰性的可迭代对象，按页拉取，迭代过程中可能抛出传输/协议异常
    - 顺序即远端返回顺序，不保证按时间排序
    """

    def fetch(self, request: FetchRequest) -> Iterable[Record]: ...

from __future__ import annotations

from typing import Protocol


class EventSink(Protocol):
    """
    事件投递接口：每次写入一条已展开的文本及其 stanza。

    约定：
    - write 失败抛异常，由 runner 统一捕获并计数
    - channel() 用于日志与故障记录
    - 投递保证与批量策略由 sink 自己负责
    """

    def channel(self) -> str: ...

    def write(self, data: str, stanza: str) -> None: ...

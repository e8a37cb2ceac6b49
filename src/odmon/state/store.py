from __future__ import annotations

from typing import Protocol


class CheckpointStore(Protocol):
    """
    checkpoint 接口：每个 stanza 一个 cursor 字符串。

    - load：不存在时返回空串
    - save：整体覆盖，不追加
    """

    def load(self, stanza: str) -> str: ...

    def save(self, stanza: str, value: str) -> None: ...

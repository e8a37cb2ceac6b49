"""
轮询周期的异常层级。

所有周期级错误都继承 PollError，便于 runner 统一捕获；
单个值的格式化失败不在此列（formatter 内部吞掉并返回空串）。
"""

from __future__ import annotations


class PollError(Exception):
    """周期级错误基类，携带 stanza 与失败时所处的状态，便于日志定位。"""

    def __init__(self, message: str, *, stanza: str | None = None, state: str | None = None) -> None:
        self.stanza = stanza
        self.state = state
        super().__init__(message)


class ConfigurationError(PollError):
    """配置不完整或无法解析（缺 address、resource 无法推导、模板非法等），在任何网络请求前抛出。"""


class FetchError(PollError):
    """远端拉取失败（传输/认证/协议），本周期终止，下个周期从上次持久化的 cursor 重试。"""


class PersistenceError(PollError):
    """checkpoint 读写失败；已发出的事件不会撤回。"""

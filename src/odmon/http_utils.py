from __future__ import annotations

import json
import random
import ssl
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Mapping


_PATH_SAFE = "/$'(),:=@;"
_QUERY_SAFE = "$'(),:"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    url: str
    headers: Mapping[str, str]
    body: bytes

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8-sig"))


class HttpClient:
    """
    轻量 HTTP 客户端（仅依赖标准库），供 OData fetcher 与 HEC sink 使用。

    策略：
    - GET 对 429/5xx 与连接错误做有限次退避重试
    - POST 不重试（避免重复投递事件），失败直接抛出
    - 统一超时、User-Agent
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        user_agent: str = "odata-resource-monitor/0",
        max_retries: int = 3,
        base_backoff_seconds: float = 0.8,
        verify_ssl: bool = True,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent
        self._max_retries = max_retries
        self._base_backoff_seconds = base_backoff_seconds
        self._ssl_context = ssl.create_default_context() if verify_ssl else ssl._create_unverified_context()

    def _open(self, req: urllib.request.Request) -> HttpResponse:
        with urllib.request.urlopen(req, timeout=self._timeout_seconds, context=self._ssl_context) as resp:  # noqa: S310
            resp_headers = {k: v for k, v in resp.headers.items()}
            return HttpResponse(
                status=getattr(resp, "status", 200),
                url=resp.geturl(),
                headers=resp_headers,
                body=resp.read(),
            )

    def _headers(self, headers: Mapping[str, str] | None) -> dict[str, str]:
        request_headers = {"User-Agent": self._user_agent}
        if headers:
            request_headers.update(dict(headers))
        return request_headers

    def get(self, url: str, *, headers: Mapping[str, str] | None = None) -> HttpResponse:
        request_headers = self._headers(headers)

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                req = urllib.request.Request(url=url, headers=request_headers, method="GET")
                return self._open(req)
            except urllib.error.HTTPError as e:
                last_error = e
                retry = e.code in (429, 500, 502, 503, 504)
                if (not retry) or attempt >= self._max_retries:
                    raise
            except (urllib.error.URLError, TimeoutError) as e:
                last_error = e
                if attempt >= self._max_retries:
                    raise

            backoff = self._base_backoff_seconds * (2**attempt)
            jitter = random.random() * 0.25 * backoff
            time.sleep(backoff + jitter)

        assert last_error is not None
        raise last_error

    def post(self, url: str, body: bytes, *, headers: Mapping[str, str] | None = None) -> HttpResponse:
        req = urllib.request.Request(url=url, data=body, headers=self._headers(headers), method="POST")
        return self._open(req)


def with_query_params(url: str, params: Mapping[str, str | None]) -> str:
    """
    合并 query 参数。使用 %20 而不是 + 编码空格，并保留 OData 的 $ 前缀与字面量引号。
    """
    parsed = urllib.parse.urlparse(url)
    q = dict(urllib.parse.parse_qsl(parsed.query, keep_blank_values=True))
    q.update({k: v for k, v in params.items() if v is not None})
    new_query = urllib.parse.urlencode(q, quote_via=urllib.parse.quote, safe=_QUERY_SAFE)
    return urllib.parse.urlunparse(parsed._replace(query=new_query))


def requote_url(url: str) -> str:
    """
    重新编码 path 与 query，使手写模板（含空格、代入的 cursor）可以直接交给 urlopen。

    已编码的部分先 unquote 再 quote，不会二次编码；+ 按字面量处理并编码为 %2B，
    避免 2020-01-01T00:00:00+00:00 这类时间偏移在服务端变成空格。
    """
    parts = urllib.parse.urlsplit(url)
    path = urllib.parse.quote(urllib.parse.unquote(parts.path), safe=_PATH_SAFE)
    items: list[str] = []
    for item in parts.query.split("&"):
        if not item:
            continue
        k, sep, v = item.partition("=")
        items.append(
            urllib.parse.quote(urllib.parse.unquote(k), safe=_QUERY_SAFE)
            + sep
            + urllib.parse.quote(urllib.parse.unquote(v), safe=_QUERY_SAFE)
        )
    return urllib.parse.urlunsplit(parts._replace(path=path, query="&".join(items)))

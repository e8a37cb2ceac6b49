from __future__ import annotations

import base64
import logging
import re
import urllib.parse
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, timezone
from typing import Any, Iterator, Mapping

from ..http_utils import HttpClient, requote_url, with_query_params
from ..models import FetchRequest, Record


logger = logging.getLogger(__name__)

# OData v2 的 JSON 日期字面量：/Date(1700000000000)/ 或 /Date(1700000000000+0060)/（偏移单位为分钟）
_V2_DATE_RE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")


def _parse_v2_date(value: str) -> datetime | None:
    m = _V2_DATE_RE.match(value)
    if not m:
        return None
    dt = datetime(1970, 1, 1, tzinfo=UTC) + timedelta(milliseconds=int(m.group(1)))
    offset = m.group(2)
    if offset:
        sign = -1 if offset[0] == "-" else 1
        delta = timedelta(minutes=int(offset[1:])) * sign
        dt = dt.astimezone(timezone(delta))
    return dt


def _is_annotation(key: str) -> bool:
    return "@odata." in key or key.startswith("odata.") or key in ("__metadata", "__deferred")


def _clean(value: Any) -> Any:
    """去掉 OData 注解字段，并把 v2 日期字面量转为 datetime。"""
    if isinstance(value, dict):
        if set(value) == {"__deferred"}:
            return None
        return {k: _clean(v) for k, v in value.items() if not _is_annotation(k)}
    if isinstance(value, list):
        return [_clean(v) for v in value]
    if isinstance(value, str) and value.startswith("/Date("):
        parsed = _parse_v2_date(value)
        if parsed is not None:
            return parsed
    return value


def _unwrap_page(data: Any, *, url: str) -> tuple[list[Any], str | None]:
    """
    兼容两种 JSON 形态：
    - v4：{"value": [...], "@odata.nextLink": "..."}
    - v2/v3 verbose：{"d": {"results": [...], "__next": "..."}} 或 {"d": [...]}
    """
    if isinstance(data, dict) and "d" in data:
        d = data["d"]
        if isinstance(d, list):
            return d, None
        if isinstance(d, dict):
            if isinstance(d.get("results"), list):
                return d["results"], d.get("__next")
            return [d], None
    if isinstance(data, dict) and isinstance(data.get("value"), list):
        return data["value"], data.get("@odata.nextLink") or data.get("odata.nextLink")
    if isinstance(data, list):
        return data, None
    raise ValueError(f"OData response expected a collection, got {type(data).__name__}: {url}")


@dataclass(slots=True)
class ODataFetcher:
    """
    OData 资源拉取：GET <root>/<resource>?$filter=...，按 nextLink 逐页惰性产出记录。

    认证二选一：token（Bearer）或 username/password（Basic）。
    """

    http: HttpClient
    token: str | None = None
    username: str | None = None
    password: str | None = None

    def _headers(self) -> Mapping[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        elif self.username:
            raw = f"{self.username}:{self.password or ''}".encode("utf-8")
            headers["Authorization"] = "Basic " + base64.b64encode(raw).decode("ascii")
        return headers

    def request_url(self, request: FetchRequest) -> str:
        url = requote_url(request.address.rstrip("/") + "/" + request.resource.lstrip("/"))
        if request.filter:
            url = with_query_params(url, {"$filter": request.filter})
        return url

    def fetch(self, request: FetchRequest) -> Iterator[Record]:
        next_url: str | None = self.request_url(request)
        page = 0
        while next_url:
            page += 1
            resp = self.http.get(next_url, headers=self._headers())
            items, next_link = _unwrap_page(resp.json(), url=resp.url)
            logger.debug("odata page fetched: url=%s page=%d items=%d", resp.url, page, len(items))

            for it in items:
                if not isinstance(it, dict):
                    continue
                yield _clean(it)

            next_url = urllib.parse.urljoin(resp.url, next_link) if next_link else None

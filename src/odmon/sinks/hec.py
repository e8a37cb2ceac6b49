from __future__ import annotations

import json
import time
from dataclasses import dataclass

from ..http_utils import HttpClient


@dataclass(slots=True)
class HecEventSink:
    """
    HTTP Event Collector 投递：每条事件 POST 一次 JSON。

    说明：
    - url 可以是 HEC 根地址（https://host:8088），也可以直接是 /services/collector/event
    - 鉴权头为 Authorization: Splunk <token>
    - 响应 JSON 中 code != 0 视为失败
    """

    url: str
    token: str
    http: HttpClient
    sourcetype: str | None = None
    index: str | None = None
    host: str | None = None

    def channel(self) -> str:
        return "hec"

    def endpoint(self) -> str:
        url = self.url.rstrip("/")
        if url.endswith("/services/collector/event") or url.endswith("/services/collector"):
            return url
        return url + "/services/collector/event"

    def write(self, data: str, stanza: str) -> None:
        payload = self._build_payload(data, stanza)
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        resp = self.http.post(
            self.endpoint(),
            body,
            headers={
                "Authorization": f"Splunk {self.token}",
                "Content-Type": "application/json; charset=utf-8",
                "Accept": "application/json",
            },
        )
        if resp.status >= 400:
            raise RuntimeError(f"HEC request failed: status={resp.status}, body={resp.body[:200]!r}")

        try:
            reply = resp.json()
        except Exception as e:  # noqa: BLE001
            raise RuntimeError(f"HEC invalid JSON response: {resp.body[:200]!r}") from e

        code = reply.get("code") if isinstance(reply, dict) else None
        if str(code) != "0":
            raise RuntimeError(f"HEC returned error: {reply!r}")

    def _build_payload(self, data: str, stanza: str) -> dict[str, object]:
        payload: dict[str, object] = {
            "time": round(time.time(), 3),
            "source": stanza,
            "event": data,
        }
        if self.sourcetype:
            payload["sourcetype"] = self.sourcetype
        if self.index:
            payload["index"] = self.index
        if self.host:
            payload["host"] = self.host
        return payload

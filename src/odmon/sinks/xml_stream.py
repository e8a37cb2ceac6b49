from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import TextIO
from xml.sax.saxutils import escape, quoteattr


@dataclass(slots=True)
class XmlEventStreamSink:
    """
    以 modular input 的 XML 流格式输出事件：

    <stream>
    <event stanza="odata://nuget"><data>Id="a"...</data></event>
    </stream>

    首次写入时输出 <stream>，close() 时补上 </stream>。
    """

    stream: TextIO = field(default_factory=lambda: sys.stdout)
    _opened: bool = False

    def channel(self) -> str:
        return "xml_stream"

    def write(self, data: str, stanza: str) -> None:
        if not self._opened:
            self.stream.write("<stream>\n")
            self._opened = True
        self.stream.write(f"<event stanza={quoteattr(stanza)}><data>{escape(data)}</data></event>\n")
        self.stream.flush()

    def close(self) -> None:
        if self._opened:
            self.stream.write("</stream>\n")
            self.stream.flush()
            self._opened = False

    def __enter__(self) -> "XmlEventStreamSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

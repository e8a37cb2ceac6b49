import os
import sys
from dataclasses import dataclass, field

import pytest


PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_DIR = os.path.join(PROJECT_ROOT, "src")

if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)


@dataclass
class ListSink:
    """
    纯内存 sink：收集 (stanza, data)，便于断言。
    """

    events: list[tuple[str, str]] = field(default_factory=list)

    def channel(self) -> str:
        return "list"

    def write(self, data: str, stanza: str) -> None:
        self.events.append((stanza, data))


@pytest.fixture()
def list_sink() -> ListSink:
    return ListSink()

from .base import EventSink
from .hec import HecEventSink
from .xml_stream import XmlEventStreamSink

__all__ = [
    "EventSink",
    "HecEventSink",
    "XmlEventStreamSink",
]

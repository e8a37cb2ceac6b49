from .base import ResourceFetcher
from .odata import ODataFetcher

__all__ = [
    "ODataFetcher",
    "ResourceFetcher",
]

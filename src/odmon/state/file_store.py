from __future__ import annotations

import contextlib
import logging
import os
import urllib.parse
from dataclasses import dataclass

from ..errors import PersistenceError


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FileCheckpointStore:
    """
    文件 checkpoint：checkpoint_dir 下每个 stanza 一个纯文本文件，内容即 cursor。

    文件名为 stanza 名的 URL 编码（odata://nuget -> odata%3A%2F%2Fnuget），
    保证不同 stanza 不会落到同一个文件。
    写入先落临时文件再 os.replace，中途失败不会留下半截 cursor。
    """

    checkpoint_dir: str

    def path_for(self, stanza: str) -> str:
        return os.path.join(self.checkpoint_dir, urllib.parse.quote(stanza, safe=""))

    def load(self, stanza: str) -> str:
        path = self.path_for(stanza)
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                value = f.read()
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise PersistenceError(f"failed to read checkpoint {path}: {e}", stanza=stanza) from e
        if value.endswith("\n"):
            value = value[:-1]
        return value

    def save(self, stanza: str, value: str) -> None:
        path = self.path_for(stanza)
        tmp_path = path + ".tmp"
        try:
            os.makedirs(self.checkpoint_dir, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8", newline="") as f:
                f.write(value)
                f.write("\n")
            os.replace(tmp_path, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.remove(tmp_path)
            raise PersistenceError(f"failed to write checkpoint {path}: {e}", stanza=stanza) from e
        logger.debug("checkpoint saved: stanza=%s path=%s cursor=%r", stanza, path, value)

"""Line-oriented decoding of command output streams."""

from __future__ import annotations

import codecs
from typing import Callable, List, Optional

LineCallback = Callable[[str], None]


class LineBuffer:
    """Decodes a byte stream and emits complete lines to a callback."""

    def __init__(self, callback: Optional[LineCallback]) -> None:
        self._callback = callback
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self.chunks: List[str] = []

    def feed(self, data: bytes) -> None:
        text = self._decoder.decode(data)
        self.chunks.append(text)
        self._pending += text
        *lines, self._pending = self._pending.split("\n")
        for line in lines:
            self._emit(line)

    def flush(self) -> None:
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.chunks.append(tail)
            self._pending += tail
        if self._pending:
            self._emit(self._pending)
            self._pending = ""

    def text(self) -> str:
        return "".join(self.chunks)

    def _emit(self, line: str) -> None:
        line = line.rstrip("\r")
        if self._callback and line.strip():
            self._callback(line)

"""
Scoped guards that are held for exactly one evaluation.

OutputCapture buffers everything written to sys.stdout and only hands it to
the host once the evaluation has completed. ErrorCapture routes warnings to
the host's error handler. Both undo themselves on every exit path.
"""

import codecs
import contextlib
import enum
import io
import warnings
from typing import Callable, List, Optional

DEFAULT_CHUNK_SIZE = 4096


class OutputPhase(enum.IntFlag):
    """Flags passed to the host's stdout sink alongside each chunk."""
    START = 1
    WRITE = 2
    FINAL = 4


StdoutSink = Callable[[str, OutputPhase], Optional[str]]


class _BytesView(io.RawIOBase):
    """`sys.stdout.buffer` for an OutputCapture: decodes bytes into its chunks."""

    def __init__(self, owner):
        super().__init__()
        self._owner = owner
        self._decoder = codecs.getincrementaldecoder(owner.encoding)(errors="replace")

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        data = bytes(b)
        self._owner.write(self._decoder.decode(data))
        return len(data)

    def flush(self):
        self._owner.write(self._decoder.decode(b"", final=True))


class OutputCapture(io.TextIOBase):
    """An in-memory stdout that stores text in fixed-size chunks.

    Bytes written to `.buffer` are decoded as UTF-8 into the same chunks.
    """

    encoding = 'utf-8'

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        super().__init__()
        self.chunk_size = max(1, int(chunk_size))
        self._chunks: List[str] = []
        self._redirect = None
        self._buffer = None

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return False

    def write(self, s) -> int:
        if not isinstance(s, str):
            raise TypeError(f"write() argument must be str, not {type(s).__name__}")
        n = len(s)
        if self._chunks:
            room = self.chunk_size - len(self._chunks[-1])
            if room > 0:
                self._chunks[-1] += s[:room]
                s = s[room:]
        while s:
            self._chunks.append(s[:self.chunk_size])
            s = s[self.chunk_size:]
        return n

    @property
    def buffer(self) -> _BytesView:
        if self._buffer is None:
            self._buffer = _BytesView(self)
        return self._buffer

    @property
    def chunks(self) -> List[str]:
        return list(self._chunks)

    def getvalue(self) -> str:
        return "".join(self._chunks)

    def __enter__(self):
        self._redirect = contextlib.redirect_stdout(self)
        self._redirect.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb):
        redirect, self._redirect = self._redirect, None
        redirect.__exit__(exc_type, exc, tb)
        if exc_type is not None:
            self.discard()
        return False

    def flush_to(self, sink: StdoutSink) -> str:
        """Hand every chunk to `sink` in order, then empty the buffer.

        An empty buffer is still reported once, as a single empty chunk
        that is both START and FINAL. Returns the concatenation of what the sink reported back.
        """
        chunks, self._chunks = self._chunks or [""], []
        out = []
        last = len(chunks) - 1
        for i, chunk in enumerate(chunks):
            phase = OutputPhase.WRITE
            if i == 0:
                phase |= OutputPhase.START
            if i == last:
                phase |= OutputPhase.FINAL
            written = sink(chunk, phase)
            if written:
                out.append(written)
        return "".join(out)

    def discard(self):
        self._chunks = []


class ErrorCapture:
    """Installs `handler` as the process-wide warnings hook while held.

    `handler` has the signature of `warnings.showwarning`. It may raise to
    abort the evaluation. The previous hook and filters are restored on exit.
    """

    def __init__(self, handler):
        self.handler = handler
        self._catcher = None

    @property
    def active(self) -> bool:
        return self._catcher is not None

    def __enter__(self):
        if self._catcher is not None:
            raise RuntimeError("ErrorCapture is not reentrant")
        self._catcher = warnings.catch_warnings()
        self._catcher.__enter__()
        warnings.simplefilter("always")
        warnings.showwarning = self.handler
        return self

    def __exit__(self, exc_type, exc, tb):
        catcher, self._catcher = self._catcher, None
        catcher.__exit__(exc_type, exc, tb)
        return False

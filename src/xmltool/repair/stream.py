"""Buffered byte reader and writer used by both repair passes.

The reader pulls fixed-size chunks from a binary source and offers the small
amount of lookahead the passes need: peeking a bounded window, reading runs of
bytes that match a pattern, and pushing already-consumed bytes back so they
can be classified again.
"""

from typing import BinaryIO, Optional, Pattern, Tuple

DEFAULT_CHUNK_SIZE = 8192
DEFAULT_OUTPUT_BUFFER_SIZE = 65536


class ByteReader:
    """Sequential reader over a binary source with lookahead and push-back."""

    __slots__ = ("_source", "_chunk_size", "_buffer", "_pos", "_eof", "bytes_read")

    def __init__(self, source: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize the reader.

        Args:
            source: Binary file-like object with a read(size) method
            chunk_size: Number of bytes requested from the source per read
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        self._source = source
        self._chunk_size = chunk_size
        self._buffer = bytearray()
        self._pos = 0
        self._eof = False
        self.bytes_read = 0

    def _fill(self, wanted: int) -> bool:
        """Make at least ``wanted`` unread bytes available if the source has them.

        Returns:
            True when ``wanted`` bytes are buffered, False at end of input
        """
        while len(self._buffer) - self._pos < wanted:
            if self._eof:
                return False
            chunk = self._source.read(self._chunk_size)
            if isinstance(chunk, str):
                raise TypeError("source must be opened in binary mode")
            if not chunk:
                self._eof = True
                return False
            self.bytes_read += len(chunk)
            if self._pos >= self._chunk_size:
                del self._buffer[:self._pos]
                self._pos = 0
            self._buffer += chunk
        return True

    @property
    def position(self) -> int:
        """Offset of the next byte to be read, counted from the start of input."""
        return self.bytes_read - (len(self._buffer) - self._pos)

    def read_byte(self) -> Optional[int]:
        """Consume one byte, or return None at end of input."""
        if self._pos >= len(self._buffer) and not self._fill(1):
            return None
        byte = self._buffer[self._pos]
        self._pos += 1
        return byte

    def peek(self, size: int) -> bytes:
        """Return up to ``size`` upcoming bytes without consuming them."""
        self._fill(size)
        return bytes(self._buffer[self._pos:self._pos + size])

    def read(self, size: int) -> bytes:
        """Consume up to ``size`` bytes."""
        self._fill(size)
        data = bytes(self._buffer[self._pos:self._pos + size])
        self._pos += len(data)
        return data

    def unread(self, data: bytes) -> None:
        """Push bytes back so they are read again before anything else."""
        if not data:
            return
        if self._pos >= len(data) and self._buffer[self._pos - len(data):self._pos] == data:
            self._pos -= len(data)
            return
        self._buffer[self._pos:self._pos] = data

    def read_run(self, pattern: Pattern[bytes], limit: Optional[int] = None) -> bytes:
        """Consume the longest run of bytes matching ``pattern`` at the cursor.

        ``pattern`` must match a repeated single-byte class (for example
        ``rb"[^<>&]+"``) so that a run split across chunks can be continued.

        Args:
            pattern: Compiled bytes pattern for the run
            limit: Stop once the run is longer than this many bytes

        Returns:
            The run, possibly empty
        """
        run = bytearray()
        while self._fill(1):
            match = pattern.match(self._buffer, self._pos)
            if match is None:
                break
            end = match.end()
            run += self._buffer[self._pos:end]
            self._pos = end
            if end < len(self._buffer):
                break
            if limit is not None and len(run) > limit:
                break
        return bytes(run)

    def read_through(self, marker: bytes) -> Tuple[bytes, bool]:
        """Consume input up to and including the next ``marker``.

        Returns:
            tuple: (consumed bytes including the marker, or everything up to
            end of input; whether the marker was found)
        """
        collected = bytearray()
        while True:
            index = self._buffer.find(marker, self._pos)
            if index >= 0:
                end = index + len(marker)
                collected += self._buffer[self._pos:end]
                self._pos = end
                return bytes(collected), True
            # Keep a tail that could hold the start of a split marker.
            safe = max(self._pos, len(self._buffer) - len(marker) + 1)
            collected += self._buffer[self._pos:safe]
            self._pos = safe
            if not self._fill(len(self._buffer) - self._pos + 1):
                collected += self._buffer[self._pos:]
                self._pos = len(self._buffer)
                return bytes(collected), False


class ByteWriter:
    """Buffered writer over a binary sink."""

    __slots__ = ("_sink", "_buffer", "_limit", "bytes_written")

    def __init__(self, sink: BinaryIO, buffer_size: int = DEFAULT_OUTPUT_BUFFER_SIZE) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be > 0")
        self._sink = sink
        self._buffer = bytearray()
        self._limit = buffer_size
        self.bytes_written = 0

    def write(self, data: bytes) -> None:
        self._buffer += data
        if len(self._buffer) >= self._limit:
            self.flush()

    def write_byte(self, byte: int) -> None:
        self._buffer.append(byte)
        if len(self._buffer) >= self._limit:
            self.flush()

    def flush(self) -> None:
        """Hand buffered bytes to the sink."""
        if not self._buffer:
            return
        data = bytes(self._buffer)
        self._buffer.clear()
        self._sink.write(data)
        self.bytes_written += len(data)

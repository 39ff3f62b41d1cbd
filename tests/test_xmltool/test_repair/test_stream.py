"""Tests for the buffered byte reader and writer."""

import io
import re
from unittest.mock import MagicMock

import pytest

from xmltool.repair.stream import ByteReader, ByteWriter

TEXT = re.compile(rb"[^<]+")


class TestByteReader:
    """Test ByteReader lookahead and push-back."""

    def test_read_byte_until_eof(self):
        """Test consuming a source byte by byte."""
        reader = ByteReader(io.BytesIO(b"ab"), chunk_size=1)

        assert reader.read_byte() == ord("a")
        assert reader.read_byte() == ord("b")
        assert reader.read_byte() is None
        assert reader.bytes_read == 2
        assert reader.position == 2

    def test_peek_does_not_consume(self):
        """Test that peek() leaves the cursor in place across chunks."""
        reader = ByteReader(io.BytesIO(b"amp; rest"), chunk_size=2)

        assert reader.peek(4) == b"amp;"
        assert reader.read(4) == b"amp;"
        assert reader.peek(100) == b" rest"

    def test_read_run_across_chunks(self):
        """Test that a run split over several chunks is read whole."""
        reader = ByteReader(io.BytesIO(b"some text<tag>"), chunk_size=3)

        assert reader.read_run(TEXT) == b"some text"
        assert reader.read_byte() == ord("<")

    def test_read_run_empty(self):
        """Test a run that does not match at the cursor."""
        reader = ByteReader(io.BytesIO(b"<tag>"))
        assert reader.read_run(TEXT) == b""
        assert reader.read_byte() == ord("<")

    def test_read_run_limit(self):
        """Test that a run stops once it exceeds the limit."""
        reader = ByteReader(io.BytesIO(b"x" * 50), chunk_size=4)
        run = reader.read_run(TEXT, limit=10)
        assert 10 < len(run) < 50

    def test_unread_consumed_bytes(self):
        """Test pushing back bytes that were just read."""
        reader = ByteReader(io.BytesIO(b"abcdef"), chunk_size=2)
        consumed = reader.read(3)

        reader.unread(consumed)

        assert reader.read(6) == b"abcdef"

    def test_unread_new_bytes(self):
        """Test pushing back bytes that did not come from the source."""
        reader = ByteReader(io.BytesIO(b"def"))
        reader.read_byte()

        reader.unread(b"xyz")

        assert reader.read(10) == b"xyzef"

    def test_unread_after_compaction(self):
        """Test push-back after the buffer has discarded consumed bytes."""
        reader = ByteReader(io.BytesIO(b"0123456789"), chunk_size=2)
        reader.read(5)
        tail = reader.read(4)

        reader.unread(tail)

        assert reader.read(10) == b"56789"

    def test_read_through(self):
        """Test collecting input through a marker."""
        reader = ByteReader(io.BytesIO(b"![CDATA[a<b]]>tail"), chunk_size=5)

        data, found = reader.read_through(b"]]>")

        assert found is True
        assert data == b"![CDATA[a<b]]>"
        assert reader.read(10) == b"tail"

    def test_read_through_missing_marker(self):
        """Test that everything is returned when the marker never appears."""
        reader = ByteReader(io.BytesIO(b"!-- open"), chunk_size=3)

        data, found = reader.read_through(b"-->")

        assert found is False
        assert data == b"!-- open"

    def test_position_follows_unread(self):
        """Test that the input offset moves back with pushed-back bytes."""
        reader = ByteReader(io.BytesIO(b"<?xml version"), chunk_size=4)
        assert reader.position == 0

        head = reader.read(5)
        assert reader.position == 5

        reader.unread(head[1:])
        assert reader.position == 1
        assert reader.read(4) == b"?xml"

    def test_text_source_rejected(self):
        """Test that text-mode sources are refused."""
        reader = ByteReader(io.StringIO("<a/>"))
        with pytest.raises(TypeError, match="binary mode"):
            reader.read_byte()

    def test_read_error_propagates(self):
        """Test that I/O errors from the source are not swallowed."""
        source = MagicMock()
        source.read.side_effect = OSError("disk gone")

        reader = ByteReader(source)
        with pytest.raises(OSError, match="disk gone"):
            reader.peek(1)

    def test_invalid_chunk_size(self):
        """Test chunk size validation."""
        with pytest.raises(ValueError):
            ByteReader(io.BytesIO(b""), chunk_size=0)


class TestByteWriter:
    """Test ByteWriter buffering."""

    def test_buffers_until_flush(self):
        """Test that nothing reaches the sink before the buffer fills."""
        sink = io.BytesIO()
        writer = ByteWriter(sink, buffer_size=16)

        writer.write(b"<a>")
        writer.write_byte(ord("x"))
        assert sink.getvalue() == b""

        writer.flush()
        assert sink.getvalue() == b"<a>x"
        assert writer.bytes_written == 4

    def test_flushes_when_full(self):
        """Test automatic flushing at the buffer limit."""
        sink = io.BytesIO()
        writer = ByteWriter(sink, buffer_size=4)

        writer.write(b"&amp;")

        assert sink.getvalue() == b"&amp;"

    def test_write_error_propagates(self):
        """Test that sink errors surface on flush."""
        sink = MagicMock()
        sink.write.side_effect = OSError("disk full")
        writer = ByteWriter(sink)
        writer.write(b"data")

        with pytest.raises(OSError, match="disk full"):
            writer.flush()

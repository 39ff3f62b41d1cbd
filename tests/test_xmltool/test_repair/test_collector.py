"""Tests for the name-collection pass."""

import io
import logging
from unittest.mock import MagicMock

import pytest

from xmltool.repair.collector import MarkupKind, NameCollector
from xmltool.repair.stream import ByteReader
from xmltool.repair.trie import DECLARATION_SEED, NameTrie
from xmltool.shared.config import CollectorConfig
from xmltool.shared.result import DiagnosticSeverity

DODGY = b"<dodgy><hello>Richa&rd</hello><richard.lehane@gmail.com>contracts <>f /M</dodgy>"


def collect(data, **config):
    return NameCollector(CollectorConfig(**config)).collect(io.BytesIO(data))


class TestNameCollector:
    """Test harvesting of tag names."""

    def test_dodgy_document(self):
        """Test the names collected from a typical broken export."""
        trie = collect(DODGY)

        assert trie.render() == [DECLARATION_SEED, b"dodgy", b"hello"]
        assert str(trie) == '?xml version="1.0"? dodgy hello'

    def test_email_in_brackets_is_not_a_name(self):
        """Test that a name run ending at '@' is rejected."""
        trie = collect(b"<a><someone@example.com></a>")
        assert b"someone" not in trie
        assert b"a" in trie

    def test_name_terminators(self):
        """Test names ended by whitespace, '/', '>' and '<'."""
        trie = collect(b'<one attr="1"><two/><three\n/><four><five<six>')

        for name in (b"one", b"two", b"three", b"four", b"five", b"six"):
            assert name in trie

    def test_name_at_end_of_input_is_rejected(self):
        """Test that an unterminated name is not recorded."""
        trie = collect(b"<a>text<trailing")
        assert b"trailing" not in trie

    def test_invalid_name_start(self):
        """Test that names must start with a legal name-start byte."""
        trie = collect(b"<a>1 <2b> <-x> < spaced></a>")
        assert len(trie) == 2
        assert b"2b" not in trie
        assert b"-x" not in trie

    def test_end_tags_contribute_names(self):
        """Test that a name seen only in an end tag is recorded."""
        trie = collect(b"text</orphan>")
        assert b"orphan" in trie

    def test_namespaced_and_non_ascii_names(self):
        """Test names with prefixes, punctuation and UTF-8 bytes."""
        trie = collect("<ns:rec><x.y-z_1/><données/></ns:rec>".encode("utf-8"))

        assert b"ns:rec" in trie
        assert b"x.y-z_1" in trie
        assert "données" in trie

    def test_processing_instruction_targets(self):
        """Test that PI targets are recorded with their '?' and 'xml' is skipped."""
        trie = collect(b'<?xml version="1.0"?><?php echo 1; ?><?style?><a/>')

        assert trie.render() == [DECLARATION_SEED, b"?php", b"?style", b"a"]

    def test_processing_instructions_disabled(self):
        """Test turning off PI harvesting."""
        trie = collect(b"<?php echo 1; ?><a/>", harvest_processing_instructions=False)
        assert b"?php" not in trie
        assert b"a" in trie

    def test_comments_and_cdata_are_skipped(self):
        """Test that names inside comments and CDATA are ignored."""
        trie = collect(
            b"<a><!-- <hidden> --><![CDATA[<alsohidden>]]><b/></a>"
        )

        assert b"hidden" not in trie
        assert b"alsohidden" not in trie
        assert b"b" in trie

    def test_unterminated_comment(self):
        """Test that names after an unterminated comment are still collected."""
        collector = NameCollector()
        trie = collector.collect(io.BytesIO(b"<a><!-- <b> never closed"))

        assert b"a" in trie
        assert b"b" in trie
        assert len(collector.diagnostics) == 1
        assert collector.diagnostics[0].severity == DiagnosticSeverity.WARNING
        assert "Unterminated comment" in collector.diagnostics[0].message
        assert collector.diagnostics[0].offset == len(b"<a><!--")

    def test_unterminated_cdata(self):
        """Test that an unterminated CDATA section does not hide later tags."""
        collector = NameCollector(CollectorConfig(chunk_size=3))
        trie = collector.collect(io.BytesIO(b"<r><![CDATA[ x <b>y</b></r>"))

        assert b"b" in trie
        assert b"r" in trie
        assert "Unterminated CDATA section" in collector.diagnostics[0].message

    def test_doctype_and_bare_brackets(self):
        """Test that '<!DOCTYPE' and stray '<' are passed over."""
        trie = collect(b"<!DOCTYPE note><note>1 < 2 <> <</note>")
        assert trie.render() == [DECLARATION_SEED, b"note"]

    def test_extends_existing_trie(self):
        """Test collecting into a caller-supplied trie."""
        trie = NameTrie()
        trie.insert(b"known")

        result = NameCollector().collect(io.BytesIO(b"<new/>"), trie)

        assert result is trie
        assert trie.render() == [DECLARATION_SEED, b"known", b"new"]

    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 7])
    def test_small_chunks(self, chunk_size):
        """Test that chunk boundaries do not change the result."""
        trie = collect(DODGY, chunk_size=chunk_size)
        assert trie.render() == [DECLARATION_SEED, b"dodgy", b"hello"]

    def test_over_long_name_stalls_with_warning(self, caplog):
        """Test that an over-long name stops collection with a diagnostic."""
        collector = NameCollector(CollectorConfig(max_name_length=8))
        data = b"<short><" + b"n" * 40 + b"><after/>"

        with caplog.at_level(logging.WARNING):
            trie = collector.collect(io.BytesIO(data))

        assert b"short" in trie
        assert b"after" not in trie
        assert len(collector.diagnostics) == 1
        assert collector.diagnostics[0].severity == DiagnosticSeverity.WARNING
        assert any("stopped early" in r.getMessage() for r in caplog.records)

    def test_bytes_read(self):
        """Test that the collector reports how much input it consumed."""
        collector = NameCollector()
        collector.collect(io.BytesIO(DODGY))
        assert collector.bytes_read == len(DODGY)

    def test_read_error_propagates(self):
        """Test that source errors are raised to the caller."""
        source = MagicMock()
        source.read.side_effect = OSError("unreadable")

        with pytest.raises(OSError, match="unreadable"):
            NameCollector().collect(source)


class TestClassify:
    """Test markup classification after '<'."""

    @pytest.mark.parametrize("following,kind", [
        (b"a>", MarkupKind.START_TAG),
        (b"/a>", MarkupKind.END_TAG),
        (b"?pi?>", MarkupKind.PROCESSING_INSTRUCTION),
        (b"!-- c -->", MarkupKind.COMMENT),
        (b"![CDATA[x]]>", MarkupKind.CDATA),
        (b"!DOCTYPE a>", MarkupKind.OTHER),
        (b"> ", MarkupKind.OTHER),
        (b"", MarkupKind.OTHER),
    ])
    def test_classify(self, following, kind):
        """Test each markup kind."""
        reader = ByteReader(io.BytesIO(following))
        assert NameCollector._classify(reader) is kind
        assert reader.read(len(following)) == following

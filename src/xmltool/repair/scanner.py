"""Second repair pass: rewrite a document so every special character is legal.

The scanner streams the document byte by byte as a two-state machine:

- TEXT copies bytes through, escapes stray ``>``, validates ``&`` with the
  EntityValidator and switches to IN_TAG on ``<``.
- IN_TAG feeds the bytes after ``<`` (after ``</`` for end tags) through the
  NameTrie. A complete recorded name followed by ``>``, ``/`` or whitespace is
  real markup and the whole tag is copied verbatim. Anything else escapes the
  ``<`` and pushes the bytes consumed since it back onto the input, so they are
  classified again in TEXT.

Malformed markup never raises; only I/O errors from the source or the sink
propagate.
"""

import re
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import BinaryIO, List, Optional

from xmltool.shared.config import RepairConfig
from xmltool.shared.logging import get_logger
from xmltool.shared.result import DiagnosticEntry, DiagnosticSeverity, RepairStatistics

from .entities import EntityValidator
from .stream import ByteReader, ByteWriter
from .trie import CANONICAL_DECLARATION, DECLARATION_TARGET, NameTrie, TrieNode

AMP = 0x26          # &
LT = 0x3C           # <
GT = 0x3E           # >
SLASH = 0x2F        # /
QUESTION = 0x3F     # ?
BANG = 0x21         # !
EQUALS = 0x3D       # =
LBRACKET = 0x5B     # [
RBRACKET = 0x5D     # ]

WHITESPACE = frozenset(b" \t\r\n")
QUOTES = frozenset(b"\"'")
TAG_NAME_TERMINATORS = WHITESPACE | {GT, SLASH}

ESCAPED_AMP = b"&amp;"
ESCAPED_LT = b"&lt;"
ESCAPED_GT = b"&gt;"

TEXT_RUN = re.compile(rb"[^&<>]+")

XML_DECLARATION = re.compile(
    rb"<\?xml"
    rb"\s+version\s*=\s*([\"'])1\.[0-9]+\1"
    rb"(?:\s+encoding\s*=\s*([\"'])[A-Za-z][A-Za-z0-9._\-]*\2)?"
    rb"(?:\s+standalone\s*=\s*([\"'])(?:yes|no)\3)?"
    rb"\s*\?>"
)

COMMENT_OPEN = b"!--"
COMMENT_CLOSE = b"-->"
CDATA_OPEN = b"![CDATA["
CDATA_CLOSE = b"]]>"
DOCTYPE_OPEN = b"!DOCTYPE"
BYTE_ORDER_MARK = b"\xef\xbb\xbf"


class ScanState(Enum):
    """Macro-states of the repair scanner."""

    TEXT = auto()       # Copying character data
    IN_TAG = auto()     # Matching a candidate name after '<'


@dataclass
class ScanCursor:
    """Traversal state while matching one candidate tag.

    Attributes:
        node: Trie node reached so far, starting at the root; None once dead
        consumed: Bytes read since the triggering '<'
        whole: Whether ``node`` ends a complete recorded name
        dead: Whether the bytes read so far cannot start any recorded name
        closing: Whether the candidate is an end tag
    """

    node: Optional[TrieNode]
    consumed: bytearray = field(default_factory=bytearray)
    whole: bool = False
    dead: bool = False
    closing: bool = False

    @property
    def is_processing_instruction(self) -> bool:
        return self.consumed[:1] == b"?"

    def advance(self, trie: NameTrie, byte: int) -> None:
        self.consumed.append(byte)
        self.node, self.whole = trie.step(self.node, byte)
        self.dead = self.node is None


class RepairScanner:
    """Rewrites one document using a completed NameTrie as its oracle.

    Usage:
        scanner = RepairScanner(trie)
        statistics = scanner.scan(source, sink)
    """

    def __init__(
        self,
        trie: NameTrie,
        config: Optional[RepairConfig] = None,
        correlation_id: Optional[str] = None,
        document: Optional[str] = None,
    ) -> None:
        self.trie = trie
        self.config = config or RepairConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(__name__, correlation_id, "repair_scanner", document)
        self.validator = EntityValidator(
            named_references=self.config.named_references,
            max_length=self.config.max_reference_length,
            validate_character_references=self.config.validate_character_references,
        )
        self._reset_state()

    def _reset_state(self) -> None:
        self.state = ScanState.TEXT
        self.statistics = RepairStatistics()
        self.diagnostics: List[DiagnosticEntry] = []
        self._declaration_offset = 0

    def scan(self, source: BinaryIO, sink: BinaryIO) -> RepairStatistics:
        """Stream ``source`` into ``sink``, escaping stray special characters.

        Args:
            source: Binary stream positioned at the start of the document
            sink: Binary stream receiving the repaired document

        Returns:
            RepairStatistics for this pass

        Raises:
            OSError: if reading the source or writing the sink fails
        """
        start_time = time.time()
        self._reset_state()
        reader = ByteReader(source, self.config.chunk_size)
        writer = ByteWriter(sink, self.config.output_buffer_size)
        # A declaration may only open the document, after an optional BOM
        if reader.peek(len(BYTE_ORDER_MARK)) == BYTE_ORDER_MARK:
            self._declaration_offset = len(BYTE_ORDER_MARK)

        while True:
            run = reader.read_run(TEXT_RUN)
            if run:
                writer.write(run)
            byte = reader.read_byte()
            if byte is None:
                break
            if byte == AMP:
                self._process_ampersand(reader, writer)
            elif byte == LT:
                self._process_tag(reader, writer)
            else:
                writer.write(ESCAPED_GT)
                self.statistics.greater_thans_escaped += 1

        writer.flush()
        self.statistics.bytes_read = reader.bytes_read
        self.statistics.bytes_written = writer.bytes_written

        self.logger.debug(
            "Repair scan completed",
            extra={
                "bytes_read": self.statistics.bytes_read,
                "bytes_written": self.statistics.bytes_written,
                "escapes": self.statistics.total_escapes,
                "tags_matched": self.statistics.tags_matched,
                "processing_time": time.time() - start_time,
            },
        )
        return self.statistics

    def _process_ampersand(self, reader: ByteReader, writer: ByteWriter) -> None:
        length = self.validator.match(reader.peek(self.validator.max_length))
        if length:
            writer.write_byte(AMP)
            writer.write(reader.read(length))
            self.statistics.references_passed += 1
        else:
            writer.write(ESCAPED_AMP)
            self.statistics.ampersands_escaped += 1

    def _process_tag(self, reader: ByteReader, writer: ByteWriter) -> None:
        """Decide whether the '<' just read opens real markup."""
        self.state = ScanState.IN_TAG
        cursor = ScanCursor(node=self.trie.root)
        at_document_start = reader.position - 1 == self._declaration_offset

        if (
            self.config.preserve_markup_declarations
            and reader.peek(1) == b"!"
            and self._copy_markup_declaration(reader, writer)
        ):
            self.state = ScanState.TEXT
            return

        byte = reader.read_byte()
        if byte == SLASH:
            cursor.closing = True
            cursor.consumed.append(byte)
            byte = reader.read_byte()

        while byte is not None:
            if (
                at_document_start
                and not cursor.closing
                and cursor.consumed == DECLARATION_TARGET
                and (byte in WHITESPACE or byte == QUESTION)
            ):
                self._process_declaration(reader, writer, cursor, byte)
                return

            if byte in TAG_NAME_TERMINATORS or (
                byte == QUESTION and cursor.is_processing_instruction
            ):
                if cursor.whole:
                    self._commit_tag(reader, writer, cursor, byte)
                else:
                    cursor.consumed.append(byte)
                    self._abandon_tag(reader, writer, cursor)
                return

            cursor.advance(self.trie, byte)
            if cursor.dead:
                self._abandon_tag(reader, writer, cursor)
                return
            byte = reader.read_byte()

        # End of input inside a candidate name.
        self._abandon_tag(reader, writer, cursor)

    def _commit_tag(
        self, reader: ByteReader, writer: ByteWriter, cursor: ScanCursor, terminator: int
    ) -> None:
        writer.write_byte(LT)
        writer.write(cursor.consumed)
        writer.write_byte(terminator)
        self.statistics.tags_matched += 1
        if terminator != GT:
            self._copy_tag_remainder(reader, writer)
        self.state = ScanState.TEXT

    def _abandon_tag(self, reader: ByteReader, writer: ByteWriter, cursor: ScanCursor) -> None:
        """Escape the '<' and replay everything read after it as text."""
        writer.write(ESCAPED_LT)
        self.statistics.less_thans_escaped += 1
        reader.unread(bytes(cursor.consumed))
        self.state = ScanState.TEXT

    @staticmethod
    def _copy_tag_remainder(reader: ByteReader, writer: ByteWriter) -> None:
        """Copy the rest of a verified tag through its closing '>'.

        A quote directly after '=' opens an attribute value that is copied as a
        unit; a '<' inside a value marks it as broken and ends the value.
        """
        quote: Optional[int] = None
        after_equals = False
        while True:
            byte = reader.read_byte()
            if byte is None:
                return
            writer.write_byte(byte)
            if quote is not None:
                if byte == quote or byte == LT:
                    quote = None
                continue
            if byte == GT:
                return
            if byte == EQUALS:
                after_equals = True
            elif after_equals and byte in QUOTES:
                quote = byte
                after_equals = False
            elif byte not in WHITESPACE:
                after_equals = False

    def _process_declaration(
        self, reader: ByteReader, writer: ByteWriter, cursor: ScanCursor, byte: int
    ) -> None:
        """Copy a well-formed XML declaration, or normalize a defective one.

        Only a declaration closed by ``?>`` is normalized. A truncated one is
        escaped like any other unmatched ``<`` so none of its bytes are lost.
        """
        body = bytearray((byte,))
        complete = byte == GT
        while not complete and len(body) < self.config.max_declaration_length:
            following = reader.read_byte()
            if following is None:
                break
            if following == LT:
                reader.unread(b"<")
                break
            body.append(following)
            complete = following == GT

        declaration = b"<" + DECLARATION_TARGET + bytes(body)
        if complete and XML_DECLARATION.fullmatch(declaration):
            writer.write(declaration)
            self.statistics.tags_matched += 1
            self.state = ScanState.TEXT
            return

        if not (complete and body.endswith(b"?>") and self.config.normalize_declaration):
            cursor.consumed += body
            self._abandon_tag(reader, writer, cursor)
            return

        writer.write(CANONICAL_DECLARATION)
        self.statistics.declarations_normalized += 1
        self.logger.warning(
            "Replaced defective XML declaration",
            extra={"declaration": declaration.decode("utf-8", errors="replace")},
        )
        self.diagnostics.append(DiagnosticEntry(
            severity=DiagnosticSeverity.WARNING,
            message="Replaced defective XML declaration",
            component="repair_scanner",
            details={"original": declaration.decode("utf-8", errors="replace")},
            correlation_id=self.correlation_id,
        ))
        self.state = ScanState.TEXT

    def _copy_markup_declaration(self, reader: ByteReader, writer: ByteWriter) -> bool:
        """Copy a comment, CDATA section or DOCTYPE verbatim.

        Returns:
            False if what follows '<!' is none of these or is unterminated; the
            input is then left untouched
        """
        lookahead = reader.peek(len(CDATA_OPEN))
        if lookahead.startswith(COMMENT_OPEN):
            opener, marker = COMMENT_OPEN, COMMENT_CLOSE
        elif lookahead.startswith(CDATA_OPEN):
            opener, marker = CDATA_OPEN, CDATA_CLOSE
        elif lookahead.startswith(DOCTYPE_OPEN):
            return self._copy_doctype(reader, writer)
        else:
            return False

        reader.read(len(opener))
        data, found = reader.read_through(marker)
        if not found:
            reader.unread(opener + data)
            return False
        writer.write_byte(LT)
        writer.write(opener)
        writer.write(data)
        return True

    def _copy_doctype(self, reader: ByteReader, writer: ByteWriter) -> bool:
        consumed = bytearray()
        depth = 0
        quote: Optional[int] = None
        while True:
            byte = reader.read_byte()
            if byte is None:
                reader.unread(bytes(consumed))
                return False
            consumed.append(byte)
            if quote is not None:
                if byte == quote:
                    quote = None
            elif byte in QUOTES:
                quote = byte
            elif byte == LBRACKET:
                depth += 1
            elif byte == RBRACKET and depth:
                depth -= 1
            elif byte == GT and not depth:
                writer.write_byte(LT)
                writer.write(consumed)
                return True

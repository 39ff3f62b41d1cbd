"""First repair pass: harvest the tag names a document actually uses.

The collector runs a permissive byte-level tokenizer over a document that may
not be well-formed. It only looks at what follows a ``<``: start tags, end
tags and processing instructions contribute their names to a NameTrie, while
text, attribute values, comments and CDATA sections are passed over.

A candidate counts as a name only when it is a legal XML name whose run is
stopped by whitespace, ``/``, ``>`` or another ``<``. This keeps bracketed
text such as ``<someone@example.com>`` out of the vocabulary.
"""

import logging
import re
import time
from enum import Enum, auto
from typing import BinaryIO, List, Optional

from xmltool.shared.config import CollectorConfig
from xmltool.shared.logging import get_logger
from xmltool.shared.result import DiagnosticEntry, DiagnosticSeverity

from .stream import ByteReader
from .trie import DECLARATION_TARGET, NameTrie

LT = 0x3C           # <
GT = 0x3E           # >
SLASH = 0x2F        # /
QUESTION = 0x3F     # ?
BANG = 0x21         # !

WHITESPACE = frozenset(b" \t\r\n")
NAME_TERMINATORS = WHITESPACE | {SLASH, GT, LT}
PI_TERMINATORS = WHITESPACE | {QUESTION}

NAME_RUN = re.compile(rb"[A-Za-z0-9_:.\-\x80-\xff]+")
NAME_START = re.compile(rb"[A-Za-z_:\x80-\xff]")
TEXT_RUN = re.compile(rb"[^<]+")

COMMENT_OPEN = b"!--"
COMMENT_CLOSE = b"-->"
CDATA_OPEN = b"![CDATA["
CDATA_CLOSE = b"]]>"


class MarkupKind(Enum):
    """Kinds of markup opening the collector recognizes after a ``<``."""

    START_TAG = auto()
    END_TAG = auto()
    PROCESSING_INSTRUCTION = auto()
    COMMENT = auto()
    CDATA = auto()
    OTHER = auto()


class CollectorStalled(Exception):
    """Raised when the tokenizer cannot make further progress."""

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(message)
        self.offset = offset


class NameCollector:
    """Builds the name vocabulary of one document.

    Collection never fails on malformed markup. If the tokenizer stalls the
    names gathered so far are kept and a warning diagnostic is recorded;
    I/O errors from the source propagate to the caller.
    """

    def __init__(
        self,
        config: Optional[CollectorConfig] = None,
        correlation_id: Optional[str] = None,
        document: Optional[str] = None,
    ) -> None:
        self.config = config or CollectorConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(__name__, correlation_id, "name_collector", document)
        self.diagnostics: List[DiagnosticEntry] = []
        self.bytes_read = 0

    def collect(self, source: BinaryIO, trie: Optional[NameTrie] = None) -> NameTrie:
        """Stream ``source`` once and record every tag name found.

        Args:
            source: Binary stream positioned at the start of the document
            trie: Existing trie to extend; a freshly seeded one by default

        Returns:
            The populated NameTrie
        """
        start_time = time.time()
        trie = trie if trie is not None else NameTrie()
        reader = ByteReader(source, self.config.chunk_size)
        self.diagnostics = []

        try:
            self._tokenize(reader, trie)
        except CollectorStalled as e:
            self.logger.warning(
                "Name collection stopped early",
                extra={"offset": e.offset, "reason": str(e), "names": len(trie)},
            )
            self._warn(f"Name collection stopped early: {e}", e.offset)
        finally:
            self.bytes_read = reader.bytes_read

        self.logger.debug(
            "Name collection completed",
            extra={
                "names": len(trie),
                "bytes_read": self.bytes_read,
                "processing_time": time.time() - start_time,
            },
        )
        return trie

    def _tokenize(self, reader: ByteReader, trie: NameTrie) -> None:
        while True:
            reader.read_run(TEXT_RUN)
            if reader.read_byte() is None:
                return

            kind = self._classify(reader)
            if kind is MarkupKind.COMMENT:
                reader.read(len(COMMENT_OPEN))
                self._skip_section(reader, COMMENT_CLOSE, "comment")
            elif kind is MarkupKind.CDATA:
                reader.read(len(CDATA_OPEN))
                self._skip_section(reader, CDATA_CLOSE, "CDATA section")
            elif kind is MarkupKind.PROCESSING_INSTRUCTION:
                reader.read_byte()
                target = self._read_name(reader, PI_TERMINATORS)
                if (
                    target is not None
                    and self.config.harvest_processing_instructions
                    and b"?" + target != DECLARATION_TARGET
                ):
                    self._record(trie, b"?" + target)
            elif kind is MarkupKind.END_TAG:
                reader.read_byte()
                name = self._read_name(reader, NAME_TERMINATORS)
                if name is not None:
                    self._record(trie, name)
            elif kind is MarkupKind.START_TAG:
                name = self._read_name(reader, NAME_TERMINATORS)
                if name is not None:
                    self._record(trie, name)
            # MarkupKind.OTHER: resume scanning text at the next byte

    @staticmethod
    def _classify(reader: ByteReader) -> MarkupKind:
        """Decide what kind of markup follows a ``<`` without consuming it."""
        lookahead = reader.peek(len(CDATA_OPEN))
        if not lookahead:
            return MarkupKind.OTHER
        first = lookahead[0]
        if first == SLASH:
            return MarkupKind.END_TAG
        if first == QUESTION:
            return MarkupKind.PROCESSING_INSTRUCTION
        if first == BANG:
            if lookahead.startswith(COMMENT_OPEN):
                return MarkupKind.COMMENT
            if lookahead.startswith(CDATA_OPEN):
                return MarkupKind.CDATA
            return MarkupKind.OTHER
        if NAME_START.match(lookahead, 0, 1):
            return MarkupKind.START_TAG
        return MarkupKind.OTHER

    def _read_name(self, reader: ByteReader, terminators: frozenset) -> Optional[bytes]:
        """Read a name run and accept it only if a terminator follows.

        The terminator itself is left unread.
        """
        if not NAME_START.match(reader.peek(1)):
            return None
        name = reader.read_run(NAME_RUN, limit=self.config.max_name_length)
        if len(name) > self.config.max_name_length:
            raise CollectorStalled(
                f"name longer than {self.config.max_name_length} bytes",
                reader.bytes_read,
            )
        following = reader.peek(1)
        if not following or following[0] not in terminators:
            return None
        return name

    def _record(self, trie: NameTrie, name: bytes) -> None:
        if trie.insert(name) and self.logger.is_enabled_for(logging.DEBUG):
            self.logger.debug(
                "Recorded name",
                extra={"tag_name": name.decode("utf-8", errors="replace")},
            )

    def _skip_section(self, reader: ByteReader, close: bytes, label: str) -> None:
        """Pass over a comment or CDATA body.

        An unterminated section is not markup: its bytes are pushed back and
        tokenizing resumes right after the opener, so names that follow it
        are still collected.
        """
        offset = reader.position
        data, found = reader.read_through(close)
        if found:
            return
        reader.unread(data)
        self.logger.warning(f"Unterminated {label}", extra={"offset": offset})
        self._warn(f"Unterminated {label}; names after it were still collected", offset)

    def _warn(self, message: str, offset: int) -> None:
        self.diagnostics.append(DiagnosticEntry(
            severity=DiagnosticSeverity.WARNING,
            message=message,
            component="name_collector",
            offset=offset,
            correlation_id=self.correlation_id,
        ))

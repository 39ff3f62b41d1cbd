"""Common machinery for audits of well-formed XML.

Audits are driven by lxml's parser target interface: the document is fed to
an XMLParser in chunks and the parser calls start(), end() and data() on a
target object as tokens arrive, so large files are never built into a tree.
Character data is delivered to the audit in one piece per run of text,
between two pieces of markup.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from lxml import etree

from xmltool.shared.config import AuditConfig
from xmltool.shared.logging import get_logger

PathLike = Union[str, Path]


class AuditError(Exception):
    """Raised when an audited document is not well-formed XML."""

    def __init__(self, message: str, document: Optional[str] = None,
                 line: Optional[int] = None):
        super().__init__(message)
        self.document = document
        self.line = line


def local_name(tag: str) -> str:
    """Strip a ``{namespace}`` prefix from an lxml tag name."""
    return etree.QName(tag).localname


class _AuditTarget:
    """lxml parser target that forwards tokens to an audit."""

    def __init__(self, audit: "BaseAudit") -> None:
        self._audit = audit
        self._text: List[str] = []

    def start(self, tag, attrib, nsmap=None) -> None:
        self.flush()
        self._audit.start_element(local_name(tag))

    def end(self, tag) -> None:
        self.flush()
        self._audit.end_element(local_name(tag))

    def data(self, data: str) -> None:
        self._text.append(data)

    def comment(self, text) -> None:
        self.flush()

    def pi(self, target, data=None) -> None:
        self.flush()

    def close(self) -> None:
        self.flush()

    def flush(self) -> None:
        if self._text:
            content = "".join(self._text)
            self._text = []
            self._audit.character_data(content)


class BaseAudit(ABC):
    """Accumulates statistics over one or more XML documents.

    Subclasses receive element and character-data events through
    start_element(), end_element() and character_data(). add() may be called
    repeatedly to audit a set of documents into one result.
    """

    def __init__(self, config: Optional[AuditConfig] = None) -> None:
        self.config = config or AuditConfig()
        self.documents = 0
        self.logger = get_logger(__name__, component=self.__class__.__name__)

    def add(self, source: BinaryIO, document: Optional[str] = None) -> None:
        """Audit one document read from a binary stream.

        Statistics gathered before a syntax error are kept.

        Args:
            source: Binary stream with a well-formed XML document
            document: Name of the document for error messages

        Raises:
            AuditError: if the document is not well-formed
            OSError: if reading the source fails
        """
        self.documents += 1
        self.begin_document(document)
        target = _AuditTarget(self)
        parser = etree.XMLParser(target=target, resolve_entities=False, no_network=True)

        fed = False
        try:
            while True:
                chunk = source.read(self.config.chunk_size)
                if not chunk:
                    break
                fed = True
                parser.feed(chunk)
            if fed:
                parser.close()
        except etree.XMLSyntaxError as e:
            line = getattr(e, "lineno", None)
            self.logger.debug(
                "Audit stopped at syntax error",
                extra={"document": document, "line": line, "error": str(e)},
            )
            raise AuditError(
                f"{document or 'document'} is not well-formed: {e}",
                document=document,
                line=line,
            ) from e

        self.logger.debug("Audited document", extra={"document": document})

    def add_file(self, path: PathLike) -> None:
        """Audit one file; the file is closed on every exit path."""
        path = Path(path)
        with path.open("rb") as source:
            self.add(source, document=str(path))

    def begin_document(self, document: Optional[str]) -> None:
        """Hook called before the tokens of each document."""

    @abstractmethod
    def start_element(self, name: str) -> None:
        """Handle an element start tag."""

    @abstractmethod
    def end_element(self, name: str) -> None:
        """Handle an element end tag."""

    @abstractmethod
    def character_data(self, content: str) -> None:
        """Handle a run of character data."""

    @abstractmethod
    def to_text(self) -> str:
        """Render the audit as plain text."""

    @abstractmethod
    def to_html(self) -> str:
        """Render the audit as a simple HTML page."""

    def render(self, html: bool = False) -> str:
        return self.to_html() if html else self.to_text()

    def __str__(self) -> str:
        return self.to_text()

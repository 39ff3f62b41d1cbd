"""Entry points for the two-pass repair engine.

Progressive API disclosure:
- Level 1: Simple functions - repair_bytes(), repair_file(), repair()
- Level 2: RepairSession for explicit control over both passes
"""

import shutil
import tempfile
import time
import uuid
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Union

from xmltool.shared.config import XMLToolConfig
from xmltool.shared.logging import get_logger
from xmltool.shared.result import RepairResult

from .collector import NameCollector
from .scanner import RepairScanner
from .trie import NameTrie

PathLike = Union[str, Path]


class RepairSession:
    """One repair of one document: name collection followed by the repair scan.

    A session owns its NameTrie; nothing is shared between sessions, so
    several documents can be repaired concurrently with one session each.
    """

    def __init__(
        self,
        config: Optional[XMLToolConfig] = None,
        correlation_id: Optional[str] = None,
        document: Optional[str] = None,
    ) -> None:
        """Initialize the session.

        Args:
            config: Tool configuration; defaults are used when omitted
            correlation_id: Correlation ID for logging; generated when tracking
                is enabled and none is given
            document: Name of the document, used in log records
        """
        self.config = config or XMLToolConfig()
        if correlation_id is None and self.config.global_.enable_correlation_tracking:
            correlation_id = uuid.uuid4().hex[:12]
        self.correlation_id = correlation_id
        self.document = document
        self.logger = get_logger(__name__, correlation_id, "repair_session", document)
        self.trie: Optional[NameTrie] = None

    def run(self, first: BinaryIO, second: BinaryIO, sink: BinaryIO) -> RepairResult:
        """Repair a document supplied as two readers over identical content.

        Args:
            first: Reader consumed by the name-collection pass
            second: Reader consumed by the repair pass
            sink: Binary stream receiving the repaired document

        Returns:
            RepairResult with the rendered names, statistics and diagnostics

        Raises:
            OSError: on the first read or write failure
        """
        start_time = time.time()
        result = RepairResult(correlation_id=self.correlation_id)

        collector = NameCollector(
            self.config.collector, self.correlation_id, self.document
        )
        self.trie = collector.collect(first)
        result.diagnostics.extend(collector.diagnostics)

        scanner = RepairScanner(
            self.trie, self.config.repair, self.correlation_id, self.document
        )
        result.statistics = scanner.scan(second, sink)
        result.diagnostics.extend(scanner.diagnostics)

        result.names = self.trie.render_text()
        result.processing_time_ms = (time.time() - start_time) * 1000.0

        self.logger.info(
            "Repaired document",
            extra={
                "names": len(result.names),
                "escapes": result.statistics.total_escapes,
                "processing_time_ms": result.processing_time_ms,
            },
        )
        return result

    def repair(self, source: BinaryIO, sink: BinaryIO) -> RepairResult:
        """Repair a single readable source.

        A seekable source is rewound between the passes. Anything else is first
        copied to a spooled temporary file, which stays in memory up to
        ``repair.spool_max_size`` bytes.
        """
        if _is_seekable(source):
            return self._run_rewinding(source, source.tell(), sink)

        with tempfile.SpooledTemporaryFile(
            max_size=self.config.repair.spool_max_size
        ) as spool:
            shutil.copyfileobj(source, spool)
            spool.seek(0)
            return self._run_rewinding(spool, 0, sink)

    def _run_rewinding(self, source: BinaryIO, start: int, sink: BinaryIO) -> RepairResult:
        rewinding = _RewindingReader(source, start)
        return self.run(source, rewinding, sink)


class _RewindingReader:
    """Reader that seeks its source back to ``start`` before the first read."""

    def __init__(self, source: BinaryIO, start: int) -> None:
        self._source = source
        self._start = start
        self._rewound = False

    def read(self, size: int = -1) -> bytes:
        if not self._rewound:
            self._source.seek(self._start)
            self._rewound = True
        return self._source.read(size)


def _is_seekable(source: BinaryIO) -> bool:
    seekable = getattr(source, "seekable", None)
    return bool(seekable and seekable())


def repair(
    source: BinaryIO,
    sink: BinaryIO,
    config: Optional[XMLToolConfig] = None,
    correlation_id: Optional[str] = None,
) -> RepairResult:
    """Repair a malformed XML document.

    Args:
        source: Binary stream with the document
        sink: Binary stream receiving the repaired document
        config: Tool configuration
        correlation_id: Optional correlation ID for logging

    Returns:
        RepairResult for the document

    Raises:
        OSError: on the first read or write failure
    """
    return RepairSession(config, correlation_id).repair(source, sink)


def repair_bytes(data: bytes, config: Optional[XMLToolConfig] = None) -> bytes:
    """Repair an in-memory document and return the repaired bytes."""
    sink = BytesIO()
    RepairSession(config).repair(BytesIO(data), sink)
    return sink.getvalue()


def repair_file(
    in_path: PathLike,
    out_path: Optional[PathLike] = None,
    sink: Optional[BinaryIO] = None,
    config: Optional[XMLToolConfig] = None,
    correlation_id: Optional[str] = None,
) -> RepairResult:
    """Repair a file into another file or an open binary sink.

    Exactly one of ``out_path`` and ``sink`` must be given. Both files are
    closed on every exit path.
    """
    if (out_path is None) == (sink is None):
        raise ValueError("Give exactly one of out_path and sink")

    in_path = Path(in_path)
    session = RepairSession(config, correlation_id, document=str(in_path))
    with in_path.open("rb") as source:
        if sink is not None:
            return session.repair(source, sink)
        with Path(out_path).open("wb") as out_file:
            return session.repair(source, out_file)


def collect_names(
    source: BinaryIO,
    config: Optional[XMLToolConfig] = None,
    correlation_id: Optional[str] = None,
) -> NameTrie:
    """Run only the name-collection pass over ``source``."""
    config = config or XMLToolConfig()
    return NameCollector(config.collector, correlation_id).collect(source)

"""Result objects and diagnostic types for xmltool.

This module defines the result objects returned by the repair engine, carrying
per-document statistics and diagnostics alongside the rendered name set.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostic entries."""

    DEBUG = auto()      # Debug-level information
    INFO = auto()       # Informational messages
    WARNING = auto()    # Recovered problems worth a look


@dataclass
class DiagnosticEntry:
    """Single diagnostic entry with context information."""

    severity: DiagnosticSeverity
    message: str
    component: str
    offset: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate diagnostic entry."""
        if not self.message:
            raise ValueError("Diagnostic message cannot be empty")
        if not self.component:
            raise ValueError("Diagnostic component cannot be empty")


@dataclass
class RepairStatistics:
    """Counters gathered while repairing one document."""

    bytes_read: int = 0
    bytes_written: int = 0
    ampersands_escaped: int = 0
    less_thans_escaped: int = 0
    greater_thans_escaped: int = 0
    references_passed: int = 0
    tags_matched: int = 0
    declarations_normalized: int = 0

    @property
    def total_escapes(self) -> int:
        """Total number of special characters escaped."""
        return (
            self.ampersands_escaped
            + self.less_thans_escaped
            + self.greater_thans_escaped
        )

    @property
    def changed(self) -> bool:
        """Whether the repair altered the document."""
        return self.total_escapes > 0 or self.declarations_normalized > 0


@dataclass
class RepairResult:
    """Outcome of a two-pass repair of a single document."""

    names: List[str] = field(default_factory=list)
    statistics: RepairStatistics = field(default_factory=RepairStatistics)
    processing_time_ms: float = 0.0
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)
    correlation_id: Optional[str] = None

    @property
    def warnings(self) -> List[DiagnosticEntry]:
        return [
            diag for diag in self.diagnostics
            if diag.severity == DiagnosticSeverity.WARNING
        ]

    def summary(self) -> Dict[str, Any]:
        """Summarize the result as a JSON-friendly dictionary."""
        stats = self.statistics
        return {
            "names": len(self.names),
            "bytes_read": stats.bytes_read,
            "bytes_written": stats.bytes_written,
            "ampersands_escaped": stats.ampersands_escaped,
            "less_thans_escaped": stats.less_thans_escaped,
            "greater_thans_escaped": stats.greater_thans_escaped,
            "references_passed": stats.references_passed,
            "tags_matched": stats.tags_matched,
            "declarations_normalized": stats.declarations_normalized,
            "processing_time_ms": round(self.processing_time_ms, 3),
            "warnings": [diag.message for diag in self.warnings],
        }

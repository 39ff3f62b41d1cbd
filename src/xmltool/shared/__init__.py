"""Shared utilities for xmltool.

This module provides configuration objects, result types and logging helpers
used by the repair engine, the audit component and the command surface.
"""

from .config import (
    AuditConfig,
    CollectorConfig,
    ConfigError,
    ConfigValidationError,
    GlobalConfig,
    RepairConfig,
    XMLToolConfig,
)
from .logging import (
    CorrelationLogger,
    configure_logging,
    get_logger,
)
from .result import (
    DiagnosticEntry,
    DiagnosticSeverity,
    RepairResult,
    RepairStatistics,
)

__all__ = [
    "AuditConfig",
    "CollectorConfig",
    "ConfigError",
    "ConfigValidationError",
    "GlobalConfig",
    "RepairConfig",
    "XMLToolConfig",
    "CorrelationLogger",
    "configure_logging",
    "get_logger",
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "RepairResult",
    "RepairStatistics",
]

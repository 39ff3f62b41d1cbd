"""xmltool.

Cleans up generic XML files exported by databases, which often contain raw
'&', '<' and '>' characters inside element content, and audits well-formed XML
files by counting the occurrence and content of their elements.

Progressive API Disclosure:
- Level 1: Simple functions - repair_bytes(), repair_file(), audit_single()
- Level 2: Configured sessions - RepairSession, XMLAudit, TagAudit
- Level 3: Individual passes - NameCollector, RepairScanner
"""

__version__ = "1.0.0"
__author__ = "xmltool Team"

# Progressive API disclosure - Level 1: Simple functions
from .audit import AuditError, TagAudit, XMLAudit, audit_single, tag_audit_single

# Progressive API disclosure - Level 2 and 3: Sessions and passes
from .repair import (
    NameCollector,
    NameTrie,
    RepairScanner,
    RepairSession,
    collect_names,
    repair,
    repair_bytes,
    repair_file,
)

# Configuration classes for advanced usage
from .shared.config import XMLToolConfig

# Core result objects
from .shared.result import RepairResult, RepairStatistics

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple functions
    "repair",
    "repair_bytes",
    "repair_file",
    "collect_names",
    "audit_single",
    "tag_audit_single",

    # Level 2: Sessions and audits
    "RepairSession",
    "XMLAudit",
    "TagAudit",

    # Level 3: Individual passes
    "NameCollector",
    "NameTrie",
    "RepairScanner",

    # Results, errors and configuration
    "RepairResult",
    "RepairStatistics",
    "AuditError",
    "XMLToolConfig",
]

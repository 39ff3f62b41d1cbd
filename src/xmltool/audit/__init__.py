"""Reports on the contents of well-formed XML files.

Key Components:
    XMLAudit: Per-tag occurrence and content statistics
    TagAudit: Literal content of selected, non-nested tags
"""

from .base import AuditError, BaseAudit, local_name
from .contents import TagAudit, TagContents, tag_audit_single
from .tags import TagStatistics, XMLAudit, audit_single

__all__ = [
    "AuditError",
    "BaseAudit",
    "TagAudit",
    "TagContents",
    "TagStatistics",
    "XMLAudit",
    "audit_single",
    "local_name",
    "tag_audit_single",
]

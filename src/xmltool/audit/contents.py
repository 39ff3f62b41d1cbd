"""Tag-content audit.

Records the literal content of selected elements for manual inspection. The
watched elements must not nest inside each other: content is attributed to
the most recently opened watched element until its end tag.
"""

import html
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional

from xmltool.shared.config import AuditConfig

from .base import BaseAudit


@dataclass
class TagContents:
    """Content strings collected for one watched element name."""

    name: str
    contents: List[str] = field(default_factory=list)


class TagAudit(BaseAudit):
    """Collects the non-blank character content of the given element names."""

    def __init__(self, *names: str, config: Optional[AuditConfig] = None) -> None:
        if not names:
            raise ValueError("TagAudit needs at least one element name")
        super().__init__(config)
        self.watched: Dict[str, TagContents] = {name: TagContents(name) for name in names}
        self._current = ""

    def begin_document(self, document: Optional[str]) -> None:
        self._current = ""

    def start_element(self, name: str) -> None:
        if name in self.watched:
            self._current = name

    def end_element(self, name: str) -> None:
        if name == self._current:
            self._current = ""

    def character_data(self, content: str) -> None:
        if self._current and content.strip():
            self.watched[self._current].contents.append(content)

    def contents_of(self, name: str) -> List[str]:
        return self.watched[name].contents

    def to_text(self) -> str:
        lines = []
        for tag in self.watched.values():
            lines.append(tag.name)
            lines.append("Contents:")
            lines.extend(tag.contents)
            lines.append("")
        return "".join(line + "\n" for line in lines)

    def to_html(self) -> str:
        title = html.escape(self.config.html_title)
        parts = [f"<html><head><title>{title}</title></head><body>"]
        for tag in self.watched.values():
            parts.append(f"<h1>{html.escape(tag.name)}</h1>")
            parts.append("<h2>Contents</h2>\n")
            for content in tag.contents:
                parts.append(f"<p>{html.escape(content)}</p>")
        parts.append("</body></html>")
        return "".join(parts)


def tag_audit_single(
    source: BinaryIO, *names: str, config: Optional[AuditConfig] = None
) -> TagAudit:
    """Tag-audit a single document. For several, create a TagAudit and add() each."""
    audit = TagAudit(*names, config=config)
    audit.add(source)
    return audit

"""Tag-frequency audit.

Counts, per element name, how often the element occurs, how often it has
non-blank character content, one example of that content, and in how many of
the audited files it appears.

Example:
    audit = audit_single(source)
    print(audit)
"""

import html
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterator, List, Optional, Set

from xmltool.shared.config import AuditConfig

from .base import BaseAudit


@dataclass
class TagStatistics:
    """Statistics for one element name."""

    name: str
    occurs: int = 0
    contents: int = 0
    example: str = ""
    files: int = 0


class XMLAudit(BaseAudit):
    """Tag-frequency audit over one or more documents.

    Character data is attributed to the most recently opened element until
    the next end tag; text following a child's end tag is not counted.
    """

    def __init__(self, config: Optional[AuditConfig] = None) -> None:
        super().__init__(config)
        self.tags: Dict[str, TagStatistics] = {}
        self._current = ""
        self._seen: Set[str] = set()

    def begin_document(self, document: Optional[str]) -> None:
        self._current = ""
        self._seen = set()

    def start_element(self, name: str) -> None:
        self._current = name
        tag = self.tags.get(name)
        if tag is None:
            tag = TagStatistics(name)
            self.tags[name] = tag
        tag.occurs += 1
        if name not in self._seen:
            tag.files += 1
            self._seen.add(name)

    def end_element(self, name: str) -> None:
        self._current = ""

    def character_data(self, content: str) -> None:
        if not self._current or not content.strip():
            return
        tag = self.tags[self._current]
        tag.contents += 1
        if tag.contents == 1:
            tag.example = content

    def sorted_tags(self) -> List[TagStatistics]:
        """Tags by descending content count; ties keep first-seen order."""
        return sorted(self.tags.values(), key=lambda tag: -tag.contents)

    def to_text(self) -> str:
        lines = []
        for tag in self.sorted_tags():
            lines.append(f"{tag.name}\n")
            lines.append(
                f"Occurs {tag.occurs} times in total, {tag.contents} times "
                f"with contents, in {tag.files} files"
            )
            if tag.contents > 0:
                lines.append(f"\nExample content: {tag.example}")
            lines.append("\n\n")
        return "".join(lines)

    def to_html(self) -> str:
        title = html.escape(self.config.html_title)
        parts = [f"<html><head><title>{title}</title></head><body>"]
        for tag in self.sorted_tags():
            parts.append(f"<h1>{html.escape(tag.name)}</h1>")
            parts.append(
                f"<p>Occurs {tag.occurs} times in total, {tag.contents} times "
                f"with contents, in {tag.files} files</p>"
            )
            if tag.contents > 0:
                parts.append("<p>Example content:</p>")
                parts.append(f"<p>{html.escape(tag.example)}</p>")
        parts.append("</body></html>")
        return "".join(parts)

    def __getitem__(self, name: str) -> TagStatistics:
        return self.tags[name]

    def __contains__(self, name: object) -> bool:
        return name in self.tags

    def __len__(self) -> int:
        return len(self.tags)

    def __iter__(self) -> Iterator[TagStatistics]:
        return iter(self.sorted_tags())


def audit_single(source: BinaryIO, config: Optional[AuditConfig] = None) -> XMLAudit:
    """Audit a single document. To audit several, create an XMLAudit and add() each."""
    audit = XMLAudit(config)
    audit.add(source)
    return audit

"""Classification of ``&``-introduced sequences.

An ampersand is kept only when it starts a predefined entity reference or a
numeric character reference closed by ``;`` within a short, fixed window.
Anything else is a stray ampersand that the repair pass escapes.

XML 1.0 Specification (Section 2.2 Characters):
  Char ::= #x9 | #xA | #xD | [#x20-#xD7FF] | [#xE000-#xFFFD] | [#x10000-#x10FFFF]
"""

import re
from typing import FrozenSet, Iterable, Optional

from xmltool.shared.config import DEFAULT_NAMED_REFERENCES

DEFAULT_MAX_REFERENCE_LENGTH = 10

_DECIMAL_REFERENCE = re.compile(rb"#([0-9]+);")
_HEX_REFERENCE = re.compile(rb"#[xX]([0-9A-Fa-f]+);")


def is_xml_char(code_point: int) -> bool:
    """Check whether a code point is a legal XML 1.0 character."""
    return (
        code_point in (0x9, 0xA, 0xD)
        or 0x20 <= code_point <= 0xD7FF
        or 0xE000 <= code_point <= 0xFFFD
        or 0x10000 <= code_point <= 0x10FFFF
    )


class EntityValidator:
    """Recognizes legal entity and character references after an ``&``.

    Usage:
        validator = EntityValidator()
        validator.match(b"amp; and more")   # 4
        validator.match(b"rd</hello>")      # 0
    """

    __slots__ = ("max_length", "_names", "_validate_chars")

    def __init__(
        self,
        named_references: Iterable[str] = DEFAULT_NAMED_REFERENCES,
        max_length: int = DEFAULT_MAX_REFERENCE_LENGTH,
        validate_character_references: bool = True,
    ) -> None:
        """Initialize the validator.

        Args:
            named_references: Entity names accepted without a DTD
            max_length: Number of bytes after the ``&`` that may be examined
            validate_character_references: Reject numeric references to
                code points that are not legal XML characters
        """
        self.max_length = max_length
        self._names: FrozenSet[bytes] = frozenset(
            name.encode("ascii") + b";" for name in named_references
        )
        self._validate_chars = validate_character_references

    def match(self, window: bytes) -> int:
        """Measure the reference at the start of ``window``.

        Args:
            window: Bytes immediately following an ``&``; only the first
                ``max_length`` bytes are considered

        Returns:
            Length of the reference including its ``;`` (the ``&`` excluded),
            or 0 when the ampersand does not start a legal reference
        """
        window = window[:self.max_length]
        end = window.find(b";")
        if end < 0:
            return 0
        candidate = bytes(window[:end + 1])

        if candidate in self._names:
            return len(candidate)

        code_point = self._numeric_value(candidate)
        if code_point is None:
            return 0
        if self._validate_chars and not is_xml_char(code_point):
            return 0
        return len(candidate)

    @staticmethod
    def _numeric_value(candidate: bytes) -> Optional[int]:
        match = _DECIMAL_REFERENCE.fullmatch(candidate)
        if match:
            return int(match.group(1))
        match = _HEX_REFERENCE.fullmatch(candidate)
        if match:
            return int(match.group(1), 16)
        return None


"""Trie over byte sequences recording the tag names seen in a document.

The repair pass uses the trie as an oracle: after a ``<`` it feeds the
following bytes one at a time through step() and only treats the bracket as
markup when the bytes spell a complete recorded name.

The root is always seeded with the canonical XML declaration token so that a
declaration can be recognized even when the collector never saw one.
"""

from typing import Iterator, List, Optional, Tuple, Union

DECLARATION_SEED = b'?xml version="1.0"?'
DECLARATION_TARGET = b"?xml"
CANONICAL_DECLARATION = b"<" + DECLARATION_SEED + b">"

NameLike = Union[bytes, bytearray, str]


class TrieNode:
    """Single node in the trie."""

    __slots__ = ("children", "is_terminal", "order")

    def __init__(self) -> None:
        self.children = {}  # byte -> TrieNode, in insertion order
        self.is_terminal = False
        self.order = -1  # first-insertion sequence number of a terminal node


class NameTrie:
    """Set of recognized element and processing-instruction names.

    Usage:
        trie = NameTrie()
        trie.insert(b"dodgy")

        node, whole = trie.root, False
        for byte in b"dodgy":
            node, whole = trie.step(node, byte)
        # whole is True, node is the terminal node for "dodgy"
    """

    __slots__ = ("root", "_count")

    def __init__(self) -> None:
        self.root = TrieNode()
        self._count = 0
        self.insert(DECLARATION_SEED)

    @staticmethod
    def _as_bytes(name: NameLike) -> bytes:
        if isinstance(name, str):
            return name.encode("utf-8")
        return bytes(name)

    def insert(self, name: NameLike) -> bool:
        """Record a complete name.

        Args:
            name: Name as bytes (or str, encoded as UTF-8)

        Returns:
            True if the name was new, False if it was already recorded
        """
        data = self._as_bytes(name)
        if not data:
            raise ValueError("Cannot insert an empty name")

        node = self.root
        children = node.children
        for byte in data:
            child = children.get(byte)
            if child is None:
                child = TrieNode()
                children[byte] = child
            node = child
            children = node.children

        if node.is_terminal:
            return False
        node.is_terminal = True
        node.order = self._count
        self._count += 1
        return True

    def step(self, node: TrieNode, byte: int) -> Tuple[Optional[TrieNode], bool]:
        """Advance a cursor by one byte.

        Args:
            node: Current node; pass ``root`` to start a walk
            byte: Next byte of the candidate name

        Returns:
            tuple: (child reached or None when no name continues with this byte,
            whether the child ends a complete name)

        Raises:
            ValueError: If node is None, i.e. the cursor already fell off the trie
        """
        if node is None:
            raise ValueError("cannot step a dead cursor")
        child = node.children.get(byte)
        if child is None:
            return None, False
        return child, child.is_terminal

    def __contains__(self, name: NameLike) -> bool:
        """Check whether a complete name is recorded."""
        node: Optional[TrieNode] = self.root
        for byte in self._as_bytes(name):
            node = node.children.get(byte)
            if node is None:
                return False
        return node.is_terminal

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.render())

    def render(self) -> List[bytes]:
        """List recorded names in first-insertion order.

        Names are rebuilt from root-to-terminal paths, so the listing reflects
        exactly what step() will accept.
        """
        found: List[Tuple[int, bytes]] = []
        stack = [(self.root, b"")]
        while stack:
            node, prefix = stack.pop()
            if node.is_terminal:
                found.append((node.order, prefix))
            for byte, child in reversed(node.children.items()):
                stack.append((child, prefix + bytes((byte,))))
        found.sort()
        return [name for _, name in found]

    def render_text(self) -> List[str]:
        """Like render() but decoded for display."""
        return [name.decode("utf-8", errors="replace") for name in self.render()]

    def __str__(self) -> str:
        return " ".join(self.render_text())

    def __repr__(self) -> str:
        return f"NameTrie({self.render_text()!r})"

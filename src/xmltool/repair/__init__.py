"""Two-pass repair engine for XML exports with unescaped special characters.

Key Components:
    NameTrie: Names recognized as real tags in one document
    NameCollector: First pass, harvests tag names from possibly malformed input
    RepairScanner: Second pass, escapes every '&', '<' and '>' that is not markup
    EntityValidator: Recognizes legal entity and character references
    RepairSession: Runs both passes over one document
"""

from .api import RepairSession, collect_names, repair, repair_bytes, repair_file
from .collector import CollectorStalled, MarkupKind, NameCollector
from .entities import EntityValidator, is_xml_char
from .scanner import RepairScanner, ScanCursor, ScanState
from .stream import ByteReader, ByteWriter
from .trie import CANONICAL_DECLARATION, DECLARATION_SEED, NameTrie, TrieNode

__all__ = [
    "ByteReader",
    "ByteWriter",
    "CANONICAL_DECLARATION",
    "CollectorStalled",
    "DECLARATION_SEED",
    "EntityValidator",
    "MarkupKind",
    "NameCollector",
    "NameTrie",
    "RepairScanner",
    "RepairSession",
    "ScanCursor",
    "ScanState",
    "TrieNode",
    "collect_names",
    "is_xml_char",
    "repair",
    "repair_bytes",
    "repair_file",
]

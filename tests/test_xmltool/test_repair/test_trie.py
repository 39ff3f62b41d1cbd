"""Tests for the name trie."""

import pytest

from xmltool.repair.trie import CANONICAL_DECLARATION, DECLARATION_SEED, NameTrie


def walk(trie, name):
    """Feed a name through step() and return the final (node, whole) pair."""
    node, whole = trie.root, False
    for byte in name:
        node, whole = trie.step(node, byte)
        if node is None:
            break
    return node, whole


class TestNameTrie:
    """Test NameTrie insertion, lookup and rendering."""

    def test_new_trie_holds_declaration_seed(self):
        """Test that a fresh trie contains only the declaration token."""
        trie = NameTrie()

        assert len(trie) == 1
        assert DECLARATION_SEED in trie
        assert trie.render() == [DECLARATION_SEED]
        assert CANONICAL_DECLARATION == b'<?xml version="1.0"?>'

    def test_insert_reports_new_names(self):
        """Test that insert() returns whether the name was new."""
        trie = NameTrie()
        assert trie.insert(b"dodgy") is True
        assert trie.insert(b"dodgy") is False
        assert trie.insert("dodgy") is False
        assert len(trie) == 2

    def test_insert_empty_name(self):
        """Test that empty names are rejected."""
        with pytest.raises(ValueError):
            NameTrie().insert(b"")

    def test_step_through_complete_name(self):
        """Test walking a recorded name one byte at a time."""
        trie = NameTrie()
        trie.insert(b"dodgy")
        trie.insert(b"hello")

        node, whole = walk(trie, b"dodgy")
        assert node is not None
        assert whole is True

        node, whole = walk(trie, b"hello")
        assert node is not None
        assert whole is True

    def test_step_prefix_is_not_whole(self):
        """Test that a prefix of a name is reachable but not complete."""
        trie = NameTrie()
        trie.insert(b"dodgy")

        node, whole = walk(trie, b"dod")
        assert node is not None
        assert whole is False

    def test_step_unknown_byte(self):
        """Test that an unknown continuation kills the cursor."""
        trie = NameTrie()
        trie.insert(b"dodgy")

        assert trie.step(trie.root, ord("x")) == (None, False)
        node, whole = walk(trie, b"dodgyx")
        assert node is None
        assert whole is False

    def test_dead_cursor_cannot_step(self):
        """Test that a cursor which fell off the trie is not restarted at the root."""
        trie = NameTrie()
        trie.insert(b"b")

        node, _ = trie.step(trie.root, ord("x"))
        assert node is None
        with pytest.raises(ValueError, match="dead cursor"):
            trie.step(node, ord("b"))

    def test_name_that_is_prefix_of_another(self):
        """Test names that share a prefix."""
        trie = NameTrie()
        trie.insert(b"item")
        trie.insert(b"items")

        assert walk(trie, b"item")[1] is True
        assert walk(trie, b"items")[1] is True
        assert b"ite" not in trie

    def test_contains(self):
        """Test membership checks for bytes and str."""
        trie = NameTrie()
        trie.insert("naïve")

        assert "naïve" in trie
        assert "naïve".encode("utf-8") in trie
        assert "naive" not in trie

    def test_render_in_first_insertion_order(self):
        """Test that names are listed in the order first seen."""
        trie = NameTrie()
        for name in (b"zeta", b"alpha", b"zebra", b"alpha", b"a"):
            trie.insert(name)

        assert trie.render() == [DECLARATION_SEED, b"zeta", b"alpha", b"zebra", b"a"]
        assert list(trie) == trie.render()

    def test_string_form(self):
        """Test the space-separated display form."""
        trie = NameTrie()
        trie.insert(b"dodgy")
        trie.insert(b"hello")

        assert str(trie) == '?xml version="1.0"? dodgy hello'
        assert trie.render_text() == ['?xml version="1.0"?', "dodgy", "hello"]
        assert "dodgy" in repr(trie)

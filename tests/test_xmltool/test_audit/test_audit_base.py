"""Tests for the shared audit driver."""

import io

import pytest

from xmltool.audit.base import AuditError, BaseAudit, local_name
from xmltool.shared.config import AuditConfig


class RecordingAudit(BaseAudit):
    """Audit that records the events it receives."""

    def __init__(self, config=None):
        super().__init__(config)
        self.events = []

    def begin_document(self, document):
        self.events.append(("begin", document))

    def start_element(self, name):
        self.events.append(("start", name))

    def end_element(self, name):
        self.events.append(("end", name))

    def character_data(self, content):
        self.events.append(("data", content))

    def to_text(self):
        return "text"

    def to_html(self):
        return "<html/>"


class TestBaseAudit:
    """Test the lxml target driver."""

    def test_event_sequence(self):
        """Test the events delivered for a small document."""
        audit = RecordingAudit()
        audit.add(io.BytesIO(b"<a>x<b>y</b>z</a>"), document="doc.xml")

        assert audit.events == [
            ("begin", "doc.xml"),
            ("start", "a"),
            ("data", "x"),
            ("start", "b"),
            ("data", "y"),
            ("end", "b"),
            ("data", "z"),
            ("end", "a"),
        ]

    def test_character_data_joined_across_chunks(self):
        """Test that a run of text split over many chunks arrives in one piece."""
        audit = RecordingAudit(AuditConfig(chunk_size=3))
        audit.add(io.BytesIO(b"<a>a long run of text &amp; more</a>"))

        assert ("data", "a long run of text & more") in audit.events

    def test_comments_split_character_data(self):
        """Test that a comment ends a run of text."""
        audit = RecordingAudit()
        audit.add(io.BytesIO(b"<a>one<!-- c -->two<?pi x?>three</a>"))

        data = [content for kind, content in audit.events if kind == "data"]
        assert data == ["one", "two", "three"]

    def test_cdata_is_character_data(self):
        """Test that CDATA content is delivered as text."""
        audit = RecordingAudit()
        audit.add(io.BytesIO(b"<a><![CDATA[1 < 2]]></a>"))
        assert ("data", "1 < 2") in audit.events

    def test_syntax_error_line(self):
        """Test that the error line is reported."""
        audit = RecordingAudit()
        with pytest.raises(AuditError) as exc_info:
            audit.add(io.BytesIO(b"<a>\n<b>\n</a>"))
        assert exc_info.value.line is not None
        assert exc_info.value.__cause__ is not None

    def test_missing_file(self, tmp_path):
        """Test that I/O errors are not wrapped."""
        with pytest.raises(FileNotFoundError):
            RecordingAudit().add_file(tmp_path / "missing.xml")

    def test_render(self):
        """Test render() dispatch."""
        audit = RecordingAudit()
        assert audit.render() == "text"
        assert audit.render(html=True) == "<html/>"
        assert str(audit) == "text"


class TestLocalName:
    """Test local_name()."""

    @pytest.mark.parametrize("tag,expected", [
        ("plain", "plain"),
        ("{urn:example}item", "item"),
    ])
    def test_local_name(self, tag, expected):
        """Test stripping namespace URIs."""
        assert local_name(tag) == expected

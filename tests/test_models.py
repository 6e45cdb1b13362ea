"""Tests for okidoki.models and okidoki.exceptions."""

import pytest

from okidoki.exceptions import (
    GenerationCancelled,
    GenerationError,
    SpanNotFoundError,
    ValidationError,
    handle_error,
)
from okidoki.models import (
    DocType,
    GenerationSettings,
    Hierarchy,
    PRDTemplate,
    QuickAction,
    Rect,
    SelectionSnapshot,
    Tone,
)


class TestGenerationSettings:
    def test_defaults(self):
        settings = GenerationSettings.from_dict(None)
        assert settings.tone is Tone.BALANCED
        assert settings.doc_type is DocType.SINGLE
        assert settings.hierarchy is Hierarchy.ONE_LEVEL

    def test_parses_client_keys(self):
        settings = GenerationSettings.from_dict({"tone": "concise", "docType": "project", "hierarchy": "3-levels"})
        assert settings.tone is Tone.CONCISE
        assert settings.doc_type is DocType.PROJECT
        assert settings.hierarchy is Hierarchy.THREE_LEVELS

    def test_unknown_tone_rejected(self):
        with pytest.raises(ValidationError, match="angry"):
            GenerationSettings.from_dict({"tone": "angry"})

    def test_unknown_hierarchy_rejected(self):
        with pytest.raises(ValidationError):
            GenerationSettings.from_dict({"hierarchy": "7-levels"})

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError):
            GenerationSettings.from_dict(["concise"])


class TestPRDTemplate:
    def test_empty_is_none(self):
        assert PRDTemplate.from_dict(None) is None

    def test_parses(self):
        template = PRDTemplate.from_dict({"name": "RFC", "sections": ["Context", "Proposal"]})
        assert template.name == "RFC"
        assert template.sections == ["Context", "Proposal"]

    def test_requires_name(self):
        with pytest.raises(ValidationError):
            PRDTemplate.from_dict({"sections": ["Context"]})


class TestQuickAction:
    @pytest.mark.parametrize("value,expected", [
        ("shorter", QuickAction.SHORTER),
        ("Longer", QuickAction.LONGER),
        ("More detailed", QuickAction.MORE_DETAILED),
        ("more_detailed", QuickAction.MORE_DETAILED),
        ("Rethink better", QuickAction.RETHINK),
    ])
    def test_parse(self, value, expected):
        assert QuickAction.parse(value) is expected

    def test_unknown(self):
        with pytest.raises(ValidationError):
            QuickAction.parse("translate")


class TestSelectionModels:
    def test_rect_from_dom_rect(self):
        rect = Rect.from_dict({"left": 10, "top": 20, "width": 100, "height": 16})
        assert (rect.right, rect.bottom) == (110, 36)

    def test_rect_invalid(self):
        with pytest.raises(ValidationError):
            Rect.from_dict({"left": "wide"})

    def test_snapshot_empty(self):
        assert SelectionSnapshot().is_empty
        assert not SelectionSnapshot(visible_text="abc").is_empty


class TestErrors:
    def test_kinds_and_statuses(self):
        assert handle_error(SpanNotFoundError()) == (
            {"error": "Selected text not found in the document", "kind": "span_not_found"}, 409)
        assert handle_error(GenerationError())[1] == 502
        assert handle_error(GenerationCancelled()) == (
            {"error": "Improvement cancelled", "kind": "cancelled"}, 409)
        assert handle_error(ValidationError("bad"))[0] == {"error": "bad", "kind": "validation"}

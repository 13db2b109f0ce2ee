"""
Tests for the post-hoc consistency validator.
"""

import json

import pytest
from unittest.mock import Mock

from lorememory.core.errors import CompletionError, StoreError, ValidationDegraded
from lorememory.llm.completion import CompletionClient
from lorememory.memory.archive import ArchiveService
from lorememory.memory.consistency import (
    NO_FACTS_MESSAGE,
    VALIDATION_FAILED_MESSAGE,
    ConsistencyValidator,
    ConsistencyVerdict,
    extract_json_object,
    parse_verdict,
)
from lorememory.vector.types import ArchiveHit


@pytest.fixture
def archive():
    archive = Mock(spec=ArchiveService)
    archive.persona_facts.return_value = [ArchiveHit(score=0.9, text="Mipha is a Zora princess.")]
    return archive


@pytest.fixture
def judge():
    return Mock(spec=CompletionClient)


class TestConsistencyValidator:

    def test_no_facts_skips_completion(self, archive, judge):
        archive.persona_facts.return_value = []
        validator = ConsistencyValidator(archive, judge)

        verdict = validator.validate("I am a Goron.", "mipha")

        judge.complete.assert_not_called()
        assert verdict.to_dict() == {"hasConflict": False, "message": NO_FACTS_MESSAGE}

    def test_uses_persona_facts(self, archive, judge):
        judge.complete.return_value = '{"hasConflict": false, "conflictDetails": "no conflict", "suggestion": "none"}'
        validator = ConsistencyValidator(archive, judge, top_k=5)

        validator.validate("I am a Zora.", "mipha")

        archive.persona_facts.assert_called_once_with("I am a Zora.", "mipha", top_k=5)
        prompt = judge.complete.call_args.args[0][-1]["content"]
        assert "Mipha is a Zora princess." in prompt
        assert "I am a Zora." in prompt

    def test_prose_wrapped_json(self, archive, judge):
        judge.complete.return_value = (
            'Sure, here is my review:\n{"hasConflict": true, "conflictDetails": "Mipha is a Zora, not a Goron", '
            '"suggestion": "Say Zora"}\nLet me know if you need more.'
        )
        validator = ConsistencyValidator(archive, judge)

        verdict = validator.validate("I am a Goron.", "mipha")

        assert verdict.to_dict() == {
            "hasConflict": True,
            "conflictDetails": "Mipha is a Zora, not a Goron",
            "suggestion": "Say Zora",
        }

    def test_no_json_degrades(self, archive, judge):
        judge.complete.return_value = "Looks fine to me."
        validator = ConsistencyValidator(archive, judge)

        verdict = validator.validate("I am a Zora.", "mipha")

        assert verdict.degraded
        assert verdict.to_dict() == {"hasConflict": False, "message": VALIDATION_FAILED_MESSAGE}

    def test_judge_failure_degrades(self, archive, judge):
        judge.complete.side_effect = CompletionError("Completion request failed: timeout")
        validator = ConsistencyValidator(archive, judge)

        verdict = validator.validate("I am a Zora.", "mipha")

        assert verdict.to_dict() == {"hasConflict": False, "message": VALIDATION_FAILED_MESSAGE}

    def test_archive_failure_propagates(self, archive, judge):
        archive.persona_facts.side_effect = StoreError("Vector query failed")
        validator = ConsistencyValidator(archive, judge)

        with pytest.raises(StoreError):
            validator.validate("I am a Zora.", "mipha")


class TestVerdictParsing:

    def test_braces_inside_strings(self):
        raw = ('Result: {"hasConflict": false, "conflictDetails": "uses {braces} and \\"quotes}\\"", '
               '"suggestion": "none"} trailing }')

        region = extract_json_object(raw)

        assert json.loads(region)["conflictDetails"] == 'uses {braces} and "quotes}"'
        assert parse_verdict(raw).has_conflict is False

    def test_first_object_wins_over_greedy_match(self):
        raw = '{"hasConflict": true, "conflictDetails": "x", "suggestion": "y"} and later {"other": 1}'

        verdict = parse_verdict(raw)

        assert verdict.has_conflict is True
        assert verdict.conflict_details == "x"

    def test_unbalanced_text_has_no_object(self):
        assert extract_json_object('{"hasConflict": true') is None
        assert extract_json_object("") is None
        assert extract_json_object("no braces here") is None

    def test_invalid_json_degrades(self):
        assert parse_verdict("{hasConflict: yes}").message == VALIDATION_FAILED_MESSAGE

    def test_string_flag_accepted(self):
        verdict = ConsistencyVerdict.from_payload({"hasConflict": "True", "conflictDetails": "d"})

        assert verdict.has_conflict is True
        assert verdict.suggestion == ""

    def test_missing_flag_rejected(self):
        with pytest.raises(ValidationDegraded):
            ConsistencyVerdict.from_payload({"conflictDetails": "d"})
        with pytest.raises(ValidationDegraded):
            ConsistencyVerdict.from_payload(["not", "an", "object"])

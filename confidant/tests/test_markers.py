"""Tests for trailing CONFIDENCE / SUGGESTED_SKILL marker parsing."""

from confidant.common.schemas import ConfidenceLevel
from confidant.query.markers import parse_response_markers


class TestParseResponseMarkers:
    def test_confidence_stripped(self):
        parsed = parse_response_markers("We ship on Friday.\n\nCONFIDENCE: HIGH")
        assert parsed.answer == "We ship on Friday."
        assert parsed.confidence == ConfidenceLevel.HIGH
        assert parsed.suggested_skill_name is None

    def test_unable_with_skill(self):
        raw = "I can't tell from these emails.\nCONFIDENCE: UNABLE\nSUGGESTED_SKILL: calendar lookup\n\n"
        parsed = parse_response_markers(raw)
        assert parsed.answer == "I can't tell from these emails."
        assert parsed.confidence == ConfidenceLevel.UNABLE
        assert parsed.suggested_skill_name == "calendar lookup"

    def test_skill_before_confidence(self):
        parsed = parse_response_markers("Not sure.\nSUGGESTED_SKILL: CRM search\nCONFIDENCE: UNABLE")
        assert parsed.answer == "Not sure."
        assert parsed.suggested_skill_name == "CRM search"

    def test_case_insensitive_keyword(self):
        parsed = parse_response_markers("Answer.\nconfidence: medium")
        assert parsed.confidence == ConfidenceLevel.MEDIUM
        assert parsed.answer == "Answer."

    def test_mid_answer_mention_left_alone(self):
        raw = "CONFIDENCE: LOW\nis what the vendor wrote in their report.\nCONFIDENCE: HIGH"
        parsed = parse_response_markers(raw)
        assert parsed.answer == "CONFIDENCE: LOW\nis what the vendor wrote in their report."
        assert parsed.confidence == ConfidenceLevel.HIGH

    def test_unknown_level_not_consumed(self):
        parsed = parse_response_markers("Answer.\nCONFIDENCE: VERY HIGH")
        assert parsed.confidence is None
        assert parsed.answer.endswith("CONFIDENCE: VERY HIGH")

    def test_no_markers(self):
        parsed = parse_response_markers("Just an answer.")
        assert parsed.answer == "Just an answer."
        assert parsed.confidence is None

    def test_empty(self):
        assert parse_response_markers(None).answer == ""

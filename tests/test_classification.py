"""
Tests for reliance classification:
- generative-request fast path (no oracle round-trip)
- rubric label parsing (digit, category name, generative fallback)
- failure handling (oracle errors and unparseable labels yield no level)
"""

import logging

import pytest

from tutorbot.api.classification import (
    GenerativeRequestStrategy,
    OracleRubricStrategy,
    RelianceClassifier,
    match_generative_request,
    parse_label_substring,
    parse_rubric_digit,
)


# =============================================================================
# Generative fast path
# =============================================================================

class TestGenerativeRequest:

    @pytest.mark.parametrize(
        "text",
        [
            "write me an essay about X",
            "create a 2 paragraph story about Y",
            "generate code for Z",
            "Could you please DRAFT the whole report for me?",
            "compose a short poem",
        ],
    )
    def test_matches(self, text):
        assert match_generative_request(text) == 5

    @pytest.mark.parametrize(
        "text",
        [
            "Can you explain photosynthesis?",
            "I wrote an essay, what do you think of my thesis?",
            "write down the formula for the area of a circle please, thanks, I think",
            "",
            None,
        ],
    )
    def test_does_not_match(self, text):
        assert match_generative_request(text) is None

    async def test_fast_path_skips_oracle(self, oracle):
        oracle.label = "1. No AI"
        classifier = RelianceClassifier(oracle)

        assert await classifier.classify("write me an essay about rivers") == 5
        assert oracle.classify_calls == []

    async def test_strategy_is_callable(self):
        assert await GenerativeRequestStrategy()("generate code for a parser") == 5


# =============================================================================
# Label parsing
# =============================================================================

class TestLabelParsing:

    @pytest.mark.parametrize(
        "label, level",
        [("5. Full AI", 5), ("Level 3 - AI Editing", 3), ("1", 1), ("10", None), ("", None), (None, None)],
    )
    def test_rubric_digit(self, label, level):
        assert parse_rubric_digit(label) == level

    @pytest.mark.parametrize(
        "label, level",
        [
            ("Full AI", 5),
            ("AI + Human Evaluation", 4),
            ("ai+human", 4),
            ("AI Editing", 3),
            ("Ideas and Structure", 2),
            ("No AI", 1),
            ("banana", None),
        ],
    )
    def test_label_substring(self, label, level):
        assert parse_label_substring(label) == level


# =============================================================================
# Oracle rubric strategy
# =============================================================================

class TestOracleRubric:

    async def test_digit_label(self, oracle):
        oracle.label = "3. AI Editing"
        assert await RelianceClassifier(oracle).classify("fix my grammar") == 3
        assert oracle.classify_calls == ["fix my grammar"]

    async def test_name_only_label(self, oracle):
        oracle.label = "Ideas and Structure"
        assert await RelianceClassifier(oracle).classify("how should I structure this?") == 2

    async def test_generative_label_fallback(self, oracle):
        oracle.label = "They want you to write an essay"
        assert await OracleRubricStrategy(oracle)("help") == 5

    async def test_unparseable_label_is_logged_and_empty(self, oracle, caplog):
        oracle.label = "banana"
        with caplog.at_level(logging.ERROR, logger="tutorbot.api.classification"):
            assert await RelianceClassifier(oracle).classify("hmm") is None
        assert "Invalid assessment result" in caplog.text

    async def test_oracle_failure_is_empty(self, oracle):
        oracle.fail_classify = True
        assert await RelianceClassifier(oracle).classify("explain recursion") is None

    async def test_no_oracle_only_fast_path(self):
        classifier = RelianceClassifier()
        assert await classifier.classify("explain recursion") is None
        assert await classifier.classify("write a story") == 5

    async def test_custom_strategy_order(self):
        async def always_two(text):
            return 2

        classifier = RelianceClassifier(strategies=[always_two, GenerativeRequestStrategy()])
        assert await classifier.classify("write me an essay") == 2

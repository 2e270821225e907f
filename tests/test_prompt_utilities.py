"""
Tests for oracle input preparation and document-mode helpers.
"""

from datetime import date

from tutorbot.api.prompt_utilities import (
    ASSESSMENT_CRITERIA,
    ASSESSMENT_PROMPT,
    build_reference_text,
    build_transcript,
    clean_for_oracle,
    parse_criteria_statuses,
    trim_at_references,
)


class TestCleanForOracle:

    def test_strips_markup_and_inline_images(self):
        assert clean_for_oracle('<p>hi <img src="data:image/png;base64,AAAA"></p>', 100) == "hi"

    def test_caps_length(self):
        assert clean_for_oracle("abcdef", 3) == "abc"

    def test_none(self):
        assert clean_for_oracle(None, 10) == ""


class TestBuildTranscript:

    def test_appends_latest_user_text(self):
        prior = [
            {"role": "user", "content": "What is osmosis?"},
            {"role": "assistant", "content": "<p>Water moving across a membrane.</p>"},
        ]
        transcript = build_transcript(prior, "And diffusion?", turn_cap=100, budget=1000)

        assert transcript == [
            {"role": "user", "content": "What is osmosis?"},
            {"role": "assistant", "content": "Water moving across a membrane."},
            {"role": "user", "content": "And diffusion?"},
        ]

    def test_accepts_stored_records(self):
        transcript = build_transcript([{"role": "assistant", "message": "<p>stored</p>"}], "next", 100, 1000)
        assert transcript[0] == {"role": "assistant", "content": "stored"}

    def test_skips_empty_turns(self):
        prior = [{"role": "assistant", "content": ""}, {"role": "user", "content": "<p></p>"}]
        assert build_transcript(prior, "hi", 100, 1000) == [{"role": "user", "content": "hi"}]

    def test_each_turn_is_capped(self):
        transcript = build_transcript([{"role": "user", "content": "x" * 50}], "y" * 50, turn_cap=10, budget=1000)
        assert [len(turn["content"]) for turn in transcript] == [10, 10]

    def test_oldest_dropped_first(self):
        prior = [
            {"role": "user", "content": "a" * 10},
            {"role": "assistant", "content": "b" * 10},
            {"role": "user", "content": "c" * 10},
        ]
        transcript = build_transcript(prior, "d" * 10, turn_cap=100, budget=30)
        assert [turn["content"][0] for turn in transcript] == ["b", "c", "d"]

    def test_latest_always_kept(self):
        transcript = build_transcript([{"role": "user", "content": "old"}], "z" * 20, turn_cap=100, budget=5)
        assert transcript == [{"role": "user", "content": "z" * 20}]


class TestTrimAtReferences:

    def test_cuts_heading_container(self):
        markup = "<p>Body text</p><p><strong>References</strong></p><p>Smith 2020</p>"
        assert trim_at_references(markup) == "<p>Body text</p>"

    def test_heading_element(self):
        assert trim_at_references("<p>Essay</p><h2> references </h2><ul><li>x</li></ul>") == "<p>Essay</p>"

    def test_without_references(self):
        assert trim_at_references("<p>Only body</p>") == "<p>Only body</p>"

    def test_empty(self):
        assert trim_at_references("") == ""


class TestCriteria:

    def test_prompt_lists_every_criterion(self):
        for key in ASSESSMENT_CRITERIA:
            assert f"{key}:" in ASSESSMENT_PROMPT

    def test_statuses(self):
        feedback = "P1: Merit - good structure\nP2: Not met - missing sources\nM2: Distinction\n"
        assert parse_criteria_statuses(feedback) == {"P1": "merit", "P2": "fail", "M2": "distinction", "D1": None}

    def test_empty_feedback(self):
        assert parse_criteria_statuses("") == {key: None for key in ASSESSMENT_CRITERIA}


class TestReferenceText:

    def test_with_prompt(self):
        text = build_reference_text("Explain   osmosis\n", when=date(2024, 3, 5))
        assert text == (
            'OpenAI (2024) ChatGPT [AI language model]. Response generated to the prompt: "Explain osmosis". '
            "Available at: https://chat.openai.com/ (Accessed: 5 March 2024)."
        )

    def test_without_prompt(self):
        text = build_reference_text(when=date(2025, 11, 20))
        assert text == (
            "OpenAI (2025) ChatGPT [AI language model]. "
            "Available at: https://chat.openai.com/ (Accessed: 20 November 2025)."
        )

"""
Tests for channel contracts:
- inbound `ChannelRequest` shapes and legacy aliases
- outbound frames serialize with camelCase keys
- prompt evidence normalization into `TextPrompt | ImagePrompt`
"""

import pytest
from pydantic import ValidationError

from tutorbot.api.models import (
    ChannelRequest,
    FeedbackFrame,
    HistoryTurn,
    ImagePrompt,
    TextPrompt,
    TurnFinalizedFrame,
    normalize_prompt,
    normalize_prompts,
)


# =============================================================================
# Channel requests
# =============================================================================

class TestChannelRequest:

    def test_submit(self):
        request = ChannelRequest.model_validate_json('{"conversationId": 4, "text": "hi"}')
        assert request.conversation_id == 4
        assert request.text == "hi"
        assert request.action is None

    def test_history_request(self):
        request = ChannelRequest.model_validate_json('{"conversationId": 4}')
        assert request.text is None

    def test_legacy_keys(self):
        request = ChannelRequest.model_validate({"session_id": "7", "content": "hello", "action": "generateFeedback"})
        assert request.conversation_id == 7
        assert request.text == "hello"
        assert request.action == "assess"

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationError):
            ChannelRequest.model_validate({"action": "delete-everything"})

    def test_invalid_json_rejected(self):
        with pytest.raises(ValidationError):
            ChannelRequest.model_validate_json("{not json")

    def test_non_numeric_conversation_rejected(self):
        with pytest.raises(ValidationError):
            ChannelRequest.model_validate({"conversationId": "abc", "text": "x"})


# =============================================================================
# Frames
# =============================================================================

class TestFrames:

    def test_turn_finalized_alias(self):
        assert TurnFinalizedFrame(turn_id=42).model_dump(by_alias=True) == {"kind": "turnFinalized", "turnId": 42}

    def test_feedback_frame(self):
        frame = FeedbackFrame(text="Try again", turn_id=3).model_dump(by_alias=True)
        assert frame == {"kind": "feedback", "text": "Try again", "turnId": 3, "format": "markdown", "criteria": None}

    def test_history_turn_from_record(self):
        record = {
            "id": 1,
            "role": "assistant",
            "message": "<p>x</p>",
            "collapsed": True,
            "scale_level": 4,
            "references": ["ref"],
            "prompts": ["Explain osmosis", "data:image/png;base64,AAAA"],
            "footer_removed": None,
        }
        turn = HistoryTurn.from_record(record).model_dump(by_alias=True)
        assert turn["scaleLevel"] == 4
        assert turn["content"] == "<p>x</p>"
        assert turn["prompts"] == [
            {"type": "text", "text": "Explain osmosis"},
            {"type": "image", "src": "data:image/png;base64,AAAA", "alt": ""},
        ]


# =============================================================================
# Prompt normalization
# =============================================================================

class TestNormalizePrompt:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("  Explain osmosis ", TextPrompt(text="Explain osmosis")),
            ("data:image/png;base64,AAAA", ImagePrompt(src="data:image/png;base64,AAAA")),
            ("https://cdn.example.com/shot.PNG?v=2", ImagePrompt(src="https://cdn.example.com/shot.PNG?v=2")),
            ({"src": "/uploads/a.jpg", "alt": "chart"}, ImagePrompt(src="/uploads/a.jpg", alt="chart")),
            ({"dataUrl": "data:image/jpeg;base64,BBBB"}, ImagePrompt(src="data:image/jpeg;base64,BBBB")),
            ({"image": {"src": "data:image/gif;base64,CCCC"}}, ImagePrompt(src="data:image/gif;base64,CCCC")),
            ({"type": "text", "text": "Summarise this"}, TextPrompt(text="Summarise this")),
            ({"type": "image", "src": "https://host/uploads/abc"}, ImagePrompt(src="https://host/uploads/abc")),
            ({"type": "image", "src": "/uploads/abc", "alt": "graph"}, ImagePrompt(src="/uploads/abc", alt="graph")),
            ({"type": "image", "src": "javascript:alert(1)"}, None),
            ({"type": "image", "src": "//evil.example/x"}, None),
            ({"src": "https://host/uploads/abc"}, None),
            ({"text": "  "}, None),
            ("", None),
            (42, None),
        ],
    )
    def test_shapes(self, raw, expected):
        assert normalize_prompt(raw) == expected

    def test_script_url_src_dropped(self):
        assert normalize_prompt({"src": "javascript:alert(1)"}) is None

    def test_normalize_list(self):
        items = ["a", None, {"base64": "data:image/webp;base64,DDDD", "alt": "x"}]
        assert normalize_prompts(items) == [
            {"type": "text", "text": "a"},
            {"type": "image", "src": "data:image/webp;base64,DDDD", "alt": "x"},
        ]

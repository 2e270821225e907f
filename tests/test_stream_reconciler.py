"""
Tests for the client-side stream reconciler:
- placeholder container while streaming, durable id after finalization
- bounded-rate reveal, sticky HTML format, idle guard
- seed merging in document mode, history and lock state
"""

import pytest

from tutorbot.api.stream_reconciler import (
    IDLE_TIMEOUT,
    MARKDOWN_CHUNK,
    PLACEHOLDER_ID,
    ReconcilerState,
    StreamReconciler,
)


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reconciler(clock):
    return StreamReconciler(clock=clock)


def delta(text, fmt="markdown"):
    return {"kind": "assistantDelta", "text": text, "format": fmt}


# =============================================================================
# Streaming and finalization
# =============================================================================

class TestStreaming:

    def test_first_delta_creates_placeholder(self, reconciler):
        assert reconciler.state == ReconcilerState.EMPTY
        reconciler.handle(delta("Hel"))

        assert reconciler.state == ReconcilerState.STREAMING
        assert reconciler.turns[-1].id == PLACEHOLDER_ID
        assert not reconciler.turns[-1].has_durable_id

    @pytest.mark.parametrize("chunks", [["Hel", "lo wo", "rld"], ["Hello world"], list("Hello world")])
    def test_reconciles_regardless_of_chunking(self, reconciler, chunks):
        for chunk in chunks:
            reconciler.handle(delta(chunk))
        reconciler.handle({"kind": "levelObserved", "levels": [1]})
        reconciler.handle({"kind": "turnFinalized", "turnId": 42})

        turn = reconciler.turns[-1]
        assert turn.html == "<p>Hello world</p>"
        assert turn.id == 42
        assert reconciler.state == ReconcilerState.FINALIZED
        assert len(reconciler.turns) == 1

    def test_level_observed_drains(self, reconciler):
        reconciler.handle(delta("x" * 100))
        reconciler.handle({"kind": "levelObserved", "levels": [2]})

        assert reconciler.state == ReconcilerState.FINALIZING
        assert reconciler.active.visible == "x" * 100
        assert reconciler.tick() is False

    def test_finalized_without_id_keeps_no_durable_id(self, reconciler):
        reconciler.handle(delta("partial"))
        reconciler.handle({"kind": "levelObserved", "levels": []})
        reconciler.handle({"kind": "turnFinalized", "turnId": None})

        assert reconciler.turns[-1].id is None
        assert reconciler.turns[-1].html == "<p>partial</p>"

    def test_fallback_to_latest_unanchored_container(self, reconciler):
        reconciler.handle(delta("first"))
        reconciler.active = None  # lost track of the placeholder
        reconciler.handle({"kind": "turnFinalized", "turnId": 7})

        assert reconciler.turns[-1].id == 7

    def test_next_exchange_starts_new_container(self, reconciler):
        for turn_id, text in ((1, "one"), (2, "two")):
            reconciler.handle(delta(text))
            reconciler.handle({"kind": "levelObserved", "levels": [1]})
            reconciler.handle({"kind": "turnFinalized", "turnId": turn_id})

        assert [(turn.id, turn.html) for turn in reconciler.turns] == [(1, "<p>one</p>"), (2, "<p>two</p>")]


# =============================================================================
# Render timer
# =============================================================================

class TestRenderTimer:

    def test_reveals_bounded_chunks(self, reconciler, clock):
        reconciler.handle(delta("a" * 60))

        assert reconciler.tick(0.0) is True
        assert len(reconciler.active.visible) == MARKDOWN_CHUNK
        reconciler.tick(0.06)
        assert len(reconciler.active.visible) == 2 * MARKDOWN_CHUNK
        assert reconciler.active.html == "<p>" + "a" * 2 * MARKDOWN_CHUNK + "</p>"

    def test_html_is_sticky(self, reconciler):
        reconciler.handle(delta("<p>Intro</p>", fmt="html"))
        reconciler.handle(delta(" then *plain* text"))
        reconciler.handle({"kind": "levelObserved", "levels": [1]})

        assert reconciler.active.format == "html"
        assert reconciler.active.html == "<p>Intro</p> then *plain* text"

    def test_preview_is_sanitized(self, reconciler):
        reconciler.handle(delta('<img src="x.png" onerror="steal()">', fmt="html"))
        reconciler.tick(0.0)

        assert reconciler.active.html == '<img src="x.png">'

    def test_idle_guard_renders_everything(self, reconciler, clock):
        reconciler.handle(delta("b" * 200))
        reconciler.tick(0.0)
        assert len(reconciler.active.visible) < 200

        assert reconciler.tick(IDLE_TIMEOUT + 0.01) is False
        assert reconciler.active.visible == "b" * 200
        assert reconciler.state == ReconcilerState.STREAMING

        clock.now = 1.0
        reconciler.handle(delta("c"))
        assert reconciler.tick(1.0) is True

    async def test_pump_stops_when_idle(self):
        reconciler = StreamReconciler()
        reconciler.handle(delta("short reply"))

        await reconciler.pump()

        assert reconciler.active.visible == "short reply"


# =============================================================================
# Levels, feedback, history
# =============================================================================

class TestProfileAndHistory:

    def test_high_level_locks_outside_document_mode(self, reconciler):
        reconciler.handle(delta("essay"))
        reconciler.handle({"kind": "levelObserved", "levels": [5]})
        reconciler.handle({"kind": "feedback", "text": "Try a level 2 prompt", "turnId": 9})
        reconciler.handle({"kind": "turnFinalized", "turnId": 9})

        turn = reconciler.turns[-1]
        assert turn.locked and turn.collapsed
        assert reconciler.locked_turns == [turn]
        assert reconciler.feedback[0]["turn_id"] == 9

    def test_scale_profile(self, reconciler):
        for levels in ([3], [1], [3], [5]):
            reconciler.handle({"kind": "levelObserved", "levels": levels})
        assert reconciler.scale_profile == [1, 3, 5]

    def test_document_seed_merged_not_duplicated(self, clock):
        reconciler = StreamReconciler(clock=clock)
        reconciler.handle({
            "kind": "history",
            "conversationId": 3,
            "isDocument": True,
            "turns": [{"id": 11, "role": "assistant", "content": "", "scaleLevel": 1}],
            "feedback": [],
            "levels": [1],
        })
        reconciler.handle(delta("Plan"))
        reconciler.handle({"kind": "levelObserved", "levels": [5]})
        reconciler.handle({"kind": "turnFinalized", "turnId": 11})

        assert len(reconciler.turns) == 1
        seed = reconciler.turns[0]
        assert seed.id == 11
        assert seed.html == "<p>Plan</p>"
        assert seed.is_seed
        assert not seed.locked

    def test_history_restores_turns_and_locks(self, reconciler):
        reconciler.handle({
            "kind": "history",
            "conversationId": 4,
            "isDocument": False,
            "turns": [
                {"id": 1, "role": "user", "content": "write me <an> essay", "scaleLevel": 1},
                {"id": 2, "role": "assistant", "content": "<p>Essay</p>", "collapsed": True, "scaleLevel": 5},
            ],
            "feedback": [{"id": 1, "turnId": 2, "content": "Plan it yourself"}],
            "levels": [1, 5],
        })

        user, assistant = reconciler.turns
        assert user.html == "write me &lt;an&gt; essay"
        assert assistant.html == "<p>Essay</p>"
        assert assistant.locked
        assert assistant.feedback == ["Plan it yourself"]
        assert reconciler.scale_profile == [1, 5]
        assert reconciler.conversation_id == 4

    def test_error_and_started_frames(self, reconciler):
        reconciler.handle({"kind": "conversationStarted", "conversationId": 8, "isDocument": False})
        reconciler.handle({"kind": "error", "success": False, "message": "Conversation not found"})

        assert reconciler.conversation_id == 8
        assert reconciler.errors == ["Conversation not found"]

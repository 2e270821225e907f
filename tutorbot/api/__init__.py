"""
API Package — FastAPI Router • Channel Models • Lifecycle • Oracle • Rendering
==============================================================================

Mission
-------
This package defines the tutor's HTTP/WebSocket interface and the message
lifecycle behind it: every user request is streamed to the oracle, scored for
AI reliance, rendered safely and persisted.

Contents
--------
- fast_api
    FastAPI router (cookie-authenticated) for conversations, turns and feedback:
      • start-session / start-document, conversations, messages
      • rename-conversation, delete-conversation
      • save-feedback, save-session, update-message, update-message-collapsed

- models
    Pydantic contracts: the inbound `ChannelRequest`, outbound `*Frame` models,
    the `TextPrompt | ImagePrompt` union with `normalize_prompt`, REST bodies.

- lifecycle
    `ChannelSession` (per-connection state) and `MessageLifecycleController`
    (submit → stream → classify → finalize, history, document assessment).

- classification
    Reliance scale (1-5) as an ordered strategy chain: generative-request fast
    path, then the oracle rubric with label parsers.

- llm_pipeline
    `TutorOracle`: LangChain/OpenAI chat models for streaming answers, rubric
    labels and short feedback.

- prompt_utilities
    System prompts, transcript capping, References trimming, criterion parsing
    and reference-text generation.

- rendering
    `render(text) -> safe HTML` used both when persisting and while streaming.

- stream_reconciler
    Client-side state machine that reconciles streamed deltas with durable ids.

- utils
    JWT helpers:
      • create_access_token(payload) — issues signed JWTs with exp
      • verify_token(token) — validates JWTs and extracts the owner identity
"""

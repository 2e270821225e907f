"""
Prompts & Oracle Input Preparation
==================================

Purpose
-------
Fixed prompts used by the tutor and the helpers that turn stored or streamed
turns into bounded, plain-text oracle input.

Key Functions
-------------
- clean_for_oracle        : Strip data URIs and markup from one turn and cap its length.
- build_transcript        : Build the capped (role, content) transcript for a completion.
- trim_at_references      : Cut a document draft at its References section.
- parse_criteria_statuses : Map criterion-by-criterion assessment text to traffic lights.
- build_reference_text    : Citation string for an AI-assisted passage in document mode.

Prompts
-------
COMPLETION_SYSTEM_PROMPT, RELIANCE_RUBRIC_PROMPT, FEEDBACK_PROMPT and
ASSESSMENT_PROMPT are module constants so tests and the controller share them.
"""

import re
from datetime import date
from typing import Iterable, Optional
from tutorbot.api.rendering import strip_markup

COMPLETION_SYSTEM_PROMPT = """
You are a supportive academic tutor helping a student with their coursework.
Answer clearly and accurately. Prefer short paragraphs and use Markdown for
structure: '#' headings, '**bold**' for key terms, and blank lines between
paragraphs. Do not use HTML unless the student explicitly asks for it.
Encourage the student to think for themselves and to credit any AI assistance
they rely on.
""".strip()

RELIANCE_RUBRIC_PROMPT = """
Assess the User input according to the following scale:
1. No AI: This represents tasks or processes that are done entirely by humans without any AI involvement.
2. Ideas and Structure: This level indicates that AI is used to generate ideas or structure content, but the primary content creation is still human-driven.
3. AI Editing: At this stage, AI is used to assist with editing or refining content that has been primarily generated by a human.
4. AI + Human Evaluation: Here, both AI and humans are involved in creating and evaluating the content. This stage likely involves a collaborative effort where AI generates content or makes suggestions, and humans refine or approve it. This does not include examples where AI generates most of the content.
5. Full AI: AI is almost fully responsible for the task or process with little to no human intervention. For example: create me a essay about ... or create me a paragraph about...
Please return only the number and category (e.g., '5. Full AI') that the user's messages correspond to.
""".strip()

FEEDBACK_PROMPT = """
As a supportive chatbot, suggest an alternative prompt based on the user's input that avoids meeting either of the following criteria:
AI + Human Evaluation: Where AI generates content or suggestions, and humans refine or approve it.
Full AI Responsibility: Where AI is fully responsible for the task with minimal or no human intervention.
Create a 50 word maximum prompt example that aligns with either:
Ideas and Structure: AI is used to generate ideas or structure content, but the primary creation remains human-driven; or
Research: AI is utilized as a research tool to find credible resources on a given topic.
Word this as a direct request and not a question. For example: 'Please generate ideas for an essay about (insert topic here)'.
""".strip()

ASSESSMENT_CRITERIA = {
    "P1": "Use research to identify a range of potential diseases for each patient (at least 4 per patient).",
    "P2": "Create a detailed method: tests, techniques, equipment (sizes/quantities/PPE) informed by suspected diseases.",
    "M2": "Explain the rationale for tests and techniques chosen based on suspected diseases (builds on P2/M1).",
    "D1": "Justify the choice and settings of appropriate equipment for chosen tests and techniques.",
}

ASSESSMENT_PROMPT = (
    "You are a fair and encouraging assessor. Mark the student's draft against these specific criteria:\n"
    + "\n".join(f"{key}: {tip}" for key, tip in ASSESSMENT_CRITERIA.items())
    + "\nReply with exactly one line per criterion, in the form '<criterion>: <Distinction|Merit|Pass|Not met> - "
    "<one sentence of guidance>'. Do not rewrite the draft for the student."
)

STATUS_PATTERNS = (
    ("distinction", re.compile(r"distinction|excellent|strong")),
    ("merit", re.compile(r"merit|good|adequate")),
    ("pass", re.compile(r"pass|meets|basic|minimal")),
    ("fail", re.compile(r"not met|missing|insufficient|needs")),
)

_REFERENCES_RE = re.compile(r">\s*references\s*<", re.IGNORECASE)


def clean_for_oracle(text: Optional[str], cap: int) -> str:
    """
    Reduce a turn to plain text suitable for the oracle.

    Args:
        text (str | None): Stored or raw turn text (may be HTML with inline images).
        cap (int): Maximum number of characters kept.

    Returns:
        str: Plain text without data URIs or tags, at most `cap` characters.
    """
    cleaned = strip_markup(text or "")
    if cap > 0 and len(cleaned) > cap:
        cleaned = cleaned[:cap]
    return cleaned


def build_transcript(
    turns: Iterable[dict],
    latest_user_text: str,
    turn_cap: int,
    budget: int,
) -> list[dict]:
    """
    Build the oracle transcript for one completion request.

    Every prior turn is cleaned and capped individually; empty turns are
    skipped. The newest user text is cleaned the same way and always kept.
    Prior turns are then dropped oldest first until the total character count
    fits `budget`.

    Args:
        turns (Iterable[dict]): Prior turns with 'role' and 'content' (or 'message').
        latest_user_text (str): The just-submitted user line.
        turn_cap (int): Per-turn character cap.
        budget (int): Total character budget across the transcript.

    Returns:
        list[dict]: [{'role': ..., 'content': ...}, ...] oldest to newest,
        ending with the newest user turn.
    """
    latest = {"role": "user", "content": clean_for_oracle(latest_user_text, turn_cap)}
    prior = []
    for turn in turns:
        content = clean_for_oracle(turn.get("content", turn.get("message")), turn_cap)
        if content:
            prior.append({"role": turn.get("role", "user"), "content": content})

    remaining = budget - len(latest["content"])
    kept = []
    for turn in reversed(prior):
        if len(turn["content"]) > remaining:
            break
        kept.append(turn)
        remaining -= len(turn["content"])
    kept.reverse()
    return kept + [latest]


def trim_at_references(markup: str) -> str:
    """Drop everything from the element that holds the 'References' heading onwards."""
    if not markup:
        return ""
    match = _REFERENCES_RE.search(markup)
    if not match:
        return markup
    start = markup.rfind("<", 0, match.start() + 1)
    # walk back past the opening tags of the heading container, e.g. <p><strong>
    while start > 0 and markup[start - 1] == ">":
        previous = markup.rfind("<", 0, start - 1)
        if previous < 0 or markup[previous + 1:previous + 2] == "/":
            break
        start = previous
    return markup[:max(start, 0)]


def parse_criteria_statuses(feedback: str) -> dict[str, Optional[str]]:
    """
    Read traffic-light statuses out of criterion-by-criterion feedback.

    Args:
        feedback (str): Assessment text with lines such as 'P1: Merit - ...'.

    Returns:
        dict[str, str | None]: criterion key → 'distinction' | 'merit' | 'pass' | 'fail',
        or None when the criterion is missing or its status is unclear.
    """
    lines = [line.strip() for line in (feedback or "").splitlines() if line.strip()]
    statuses = {}
    for key in ASSESSMENT_CRITERIA:
        line = next((line for line in lines if line.upper().startswith(f"{key}:")), "")
        lowered = line.lower()
        statuses[key] = next(
            (status for status, pattern in STATUS_PATTERNS if pattern.search(lowered)), None
        )
    return statuses


def build_reference_text(prompt_text: str = "", when: Optional[date] = None) -> str:
    """
    Harvard-style citation for AI-generated content.

    Args:
        prompt_text (str): Prompt the response was generated from; whitespace is
            collapsed and the text is capped at 2000 characters.
        when (date | None): Access date, today by default.

    Returns:
        str: The citation line.
    """
    when = when or date.today()
    accessed = f"{when.day} {when.strftime('%B')} {when.year}"
    prompt = re.sub(r"\s+", " ", prompt_text or "").strip()[:2000]
    prompt_line = f' Response generated to the prompt: "{prompt}".' if prompt else ""
    return (
        f"OpenAI ({when.year}) ChatGPT [AI language model].{prompt_line} "
        f"Available at: https://chat.openai.com/ (Accessed: {accessed})."
    )

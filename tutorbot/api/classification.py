"""
Reliance Classification
=======================

Scores how much of a user's request delegates authorship to AI, on a 1-5 scale:

1. No AI
2. Ideas and Structure
3. AI Editing
4. AI + Human Evaluation
5. Full AI

Only the user's own request is scored, never the assistant's answer.

`RelianceClassifier` runs an ordered list of strategies; each returns a level
or None and the first level wins:

- GenerativeRequestStrategy : "write me an essay", "generate code", ... → 5, no oracle call.
- OracleRubricStrategy      : asks the oracle with the fixed rubric, then parses the label
                              with `parse_rubric_digit`, `parse_label_substring` and finally
                              the generative-request pattern applied to the label.

A failed oracle call or an unparseable label is logged and yields None; it
never raises into the exchange.
"""

import logging
import re
from typing import Callable, Optional, Sequence
from tutorbot.api.prompt_utilities import RELIANCE_RUBRIC_PROMPT

logger = logging.getLogger(__name__)

FULL_AI_LEVEL = 5

GENERATIVE_VERBS = ("create", "write", "generate", "compose", "draft", "produce", "make", "build")
GENERATIVE_NOUNS = (
    r"essays?", r"paragraphs?", r"reports?", r"articles?", r"poems?", r"stor(?:y|ies)",
    r"code", r"programs?", r"scripts?", r"presentations?", r"slides?",
)
GENERATIVE_TOKEN_WINDOW = 5
"""Maximum number of words allowed between the verb and the content noun."""

GENERATIVE_PATTERN = re.compile(
    r"\b(?:%s)\b(?:\W+\w+){0,%d}?\W+(?:%s)\b"
    % ("|".join(GENERATIVE_VERBS), GENERATIVE_TOKEN_WINDOW, "|".join(GENERATIVE_NOUNS)),
    re.IGNORECASE,
)

_RUBRIC_DIGIT_RE = re.compile(r"(?<!\d)([1-5])(?!\d)")

LABEL_SUBSTRINGS = (
    ("full ai", 5),
    ("ai + human", 4),
    ("ai+human", 4),
    ("editing", 3),
    ("ideas", 2),
    ("structure", 2),
    ("no ai", 1),
)


def match_generative_request(text: Optional[str]) -> Optional[int]:
    """Return 5 if `text` asks the AI to produce a whole piece of content, else None."""
    if text and GENERATIVE_PATTERN.search(text):
        return FULL_AI_LEVEL
    return None


def parse_rubric_digit(label: Optional[str]) -> Optional[int]:
    """First standalone digit 1-5 in the oracle label (e.g. '5. Full AI' → 5)."""
    match = _RUBRIC_DIGIT_RE.search(label or "")
    return int(match.group(1)) if match else None


def parse_label_substring(label: Optional[str]) -> Optional[int]:
    """Map a digit-less label to a level by its category name."""
    lowered = (label or "").lower()
    for needle, level in LABEL_SUBSTRINGS:
        if needle in lowered:
            return level
    return None


class GenerativeRequestStrategy:
    """Fast path: unambiguous full-authorship requests skip the oracle."""

    name = "generative-request"

    async def __call__(self, text: str) -> Optional[int]:
        return match_generative_request(text)


class OracleRubricStrategy:
    """
    Ask the oracle to label the request against the reliance rubric.

    Args:
        oracle: Object exposing ``async classify(rubric_prompt, text) -> str``.
        rubric_prompt (str): Rubric system prompt.
        label_parsers (Sequence[Callable]): Tried in order on the returned label.
    """

    name = "oracle-rubric"

    def __init__(
        self,
        oracle,
        rubric_prompt: str = RELIANCE_RUBRIC_PROMPT,
        label_parsers: Sequence[Callable[[str], Optional[int]]] = (
            parse_rubric_digit,
            parse_label_substring,
            match_generative_request,
        ),
    ):
        self.oracle = oracle
        self.rubric_prompt = rubric_prompt
        self.label_parsers = tuple(label_parsers)

    async def __call__(self, text: str) -> Optional[int]:
        try:
            label = await self.oracle.classify(self.rubric_prompt, text)
        except Exception:
            logger.exception("Reliance classification call failed")
            return None
        label = str(label or "").strip()
        for parser in self.label_parsers:
            level = parser(label)
            if level is not None:
                logger.debug("Label %r parsed as level %s by %s", label, level, parser.__name__)
                return level
        logger.error("Invalid assessment result: %r", label)
        return None


class RelianceClassifier:
    """
    Ordered strategy chain producing at most one reliance level per request.

    Args:
        oracle: Classification oracle used by the default rubric strategy.
        strategies: Optional explicit strategy list (async callables
            ``(text) -> int | None``), overriding the default chain.
    """

    def __init__(self, oracle=None, strategies: Optional[Sequence] = None):
        if strategies is None:
            strategies = [GenerativeRequestStrategy()]
            if oracle is not None:
                strategies.append(OracleRubricStrategy(oracle))
        self.strategies = list(strategies)

    async def classify(self, text: str) -> Optional[int]:
        """
        Classify a user request.

        Args:
            text (str): The (cleaned) latest user text.

        Returns:
            int | None: Level 1-5, or None when no strategy produced one.
        """
        for strategy in self.strategies:
            level = await strategy(text)
            if level is not None:
                logger.info("Reliance level %s from %s", level, getattr(strategy, "name", strategy))
                return level
        return None

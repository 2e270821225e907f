"""
Tutor Oracle: Streaming Completion • Reliance Labelling • Corrective Feedback
============================================================================

Purpose
-------
This module wraps the chat models the tutor talks to behind one small object,
so the lifecycle controller depends on three coroutines rather than on a
vendor SDK:

- classify        : label a user request against the reliance rubric.
- complete_streaming : stream the tutor's answer delta by delta.
- short_feedback  : produce a short corrective suggestion (or a rubric assessment).

Any object exposing the same three coroutines can be injected instead (tests
use in-memory doubles).

Configuration (settings)
------------------------
- settings.API_KEY          : OpenAI API key.
- settings.OPEN_AI_MODEL    : Chat model used for answers and feedback.
- settings.CLASSIFIER_MODEL : Chat model used for reliance labelling.
"""

import logging
from typing import AsyncIterator, List
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from tutorbot.database.config.config import settings

logger = logging.getLogger(__name__)


def to_langchain_messages(system_prompt: str, transcript: List[dict]) -> List[BaseMessage]:
    """
    Convert a (role, content) transcript into LangChain messages.

    Args:
        system_prompt (str): Instruction placed first.
        transcript (List[dict]): Items with 'role' ('user' | 'assistant') and 'content'.

    Returns:
        List[BaseMessage]: SystemMessage followed by Human/AI messages; empty turns are skipped.
    """
    messages: List[BaseMessage] = [SystemMessage(content=system_prompt)]
    for turn in transcript:
        content = turn.get("content") or ""
        if not content:
            continue
        if turn.get("role") == "assistant":
            messages.append(AIMessage(content=content))
        else:
            messages.append(HumanMessage(content=content))
    return messages


class TutorOracle():
    """
    LangChain-backed oracle for the tutor.

    Args:
        model (ChatOpenAI | None): Chat model for answers and feedback.
        classifier_model (ChatOpenAI | None): Chat model for rubric labelling (deterministic).
    """
    def __init__(self, model: ChatOpenAI | None = None, classifier_model: ChatOpenAI | None = None):
        self.model = model or ChatOpenAI(model=settings.OPEN_AI_MODEL, api_key=settings.API_KEY, temperature=0.7)
        self.classifier_model = classifier_model or ChatOpenAI(
            model=settings.CLASSIFIER_MODEL, api_key=settings.API_KEY, temperature=0
        )

    async def classify(self, rubric_prompt: str, text: str) -> str:
        """
        Label a user request against the reliance rubric.

        Args:
            rubric_prompt (str): The rubric system prompt.
            text (str): Cleaned user text.

        Returns:
            str: Raw label, e.g. '5. Full AI'.
        """
        response = await self.classifier_model.ainvoke(
            [SystemMessage(content=rubric_prompt), HumanMessage(content=text)]
        )
        label = str(response.content).strip()
        logger.info("Assessment result: %s", label)
        return label

    async def complete_streaming(self, system_prompt: str, transcript: List[dict]) -> AsyncIterator[str]:
        """
        Stream the tutor's answer.

        Args:
            system_prompt (str): Style/format instruction.
            transcript (List[dict]): Capped transcript ending with the newest user turn.

        Yields:
            str: Text deltas as they arrive; empty chunks are skipped.
        """
        async for chunk in self.model.astream(to_langchain_messages(system_prompt, transcript)):
            content = chunk.content if hasattr(chunk, 'content') else str(chunk)
            if content:
                yield content

    async def short_feedback(self, prompt: str, text: str) -> str:
        """
        Generate short feedback for `text` under `prompt`.

        Args:
            prompt (str): Feedback or assessment instruction.
            text (str): The user's request, or the document draft being assessed.

        Returns:
            str: Feedback text (may be empty).
        """
        response = await self.model.ainvoke([SystemMessage(content=prompt), HumanMessage(content=text)])
        feedback = str(response.content).strip()
        logger.debug("Generated feedback: %s", feedback)
        return feedback

"""
AI assistant: prompt assembly, generation and response clean-up.

The model is treated as a black box from prompt to text. Whatever it
returns is reduced to a small HTML allow-list before it leaves this module,
and failures come back as an inline error bubble instead of an exception.
"""

import asyncio
import html
import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import nh3
from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic, AuthenticationError, RateLimitError

from insightnotes.config import Settings, sanitize_error
from insightnotes.errors import AIConfigurationError, AITransportError, InsightNotesError
from insightnotes.schemas.assistant import ChatMessage, Insight

logger = logging.getLogger(__name__)

# Transient error types that warrant retrying
_RETRYABLE_ERRORS = (APIConnectionError, RateLimitError)

_GREETING_PATTERN = re.compile(
    r"^(hi|hello|hey|greetings|good\s+(morning|afternoon|evening))\b",
    re.IGNORECASE,
)

_CODE_FENCE_PATTERN = re.compile(r"^\s*```[a-zA-Z]*\s*\n?|\n?\s*```\s*$")

ALLOWED_TAGS = {"h1", "h2", "h3", "h4", "p", "ul", "ol", "li", "b", "strong", "em", "i", "br"}

ACADEMIC_PREAMBLE = (
    "You are a helpful academic assistant. Answer the user's question, grounding "
    "it in their notes when they are relevant and naming the note(s) you used."
)
CREATIVE_PREAMBLE = (
    "You are a creative writing assistant helping with stories, poetry and other "
    "creative works. Reference the user's writings when they are relevant."
)

FORMATTING_DIRECTIVES = """FORMATTING REQUIREMENTS:
1. Respond with HTML fragments only, using just these elements:
   - <h3> for section headings
   - <p> for paragraphs and short introductions
   - <ul><li> for bullet points
   - <ol><li> for sequential steps
   - <b> for key terms
2. Do NOT use markdown syntax (no *, #, or backticks).
3. Do NOT wrap the response in code blocks or ```html fences.
4. Break information into digestible sections with clear headings when appropriate.
5. If the user asks for study material (MCQs, quizzes), base it strictly on the provided context."""

INSIGHTS_INSTRUCTIONS = """Generate 3 to 5 insightful questions a student should be able to answer from these notes, each with an answer.

Return ONLY a JSON array, no prose around it, in this shape:
[{"question": "...", "answer": "<p>...</p>"}]

Answers are HTML fragments using only <p>, <ul>, <ol>, <li> and <b>."""


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters for one completion."""

    temperature: float
    max_output_tokens: int
    top_p: float | None = None
    top_k: int | None = None

    @classmethod
    def for_mode(cls, settings: Settings, is_creative: bool) -> "GenerationConfig":
        """Creative mode samples hotter than academic mode."""
        return cls(
            temperature=settings.llm_temperature_creative if is_creative else settings.llm_temperature_academic,
            max_output_tokens=settings.llm_max_tokens,
            top_p=settings.llm_top_p,
            top_k=settings.llm_top_k,
        )


def is_greeting(query: str) -> bool:
    """Small talk ("hi", "good morning", ...) skips the notes context."""
    return bool(_GREETING_PATTERN.match(query.strip()))


def _serialize_item(item: Any, index: int, max_chars: int) -> str:
    content = getattr(item, "content", "") or ""
    if len(content) > max_chars:
        content = content[:max_chars] + "\n[... content truncated ...]"

    lines = [f"--- ITEM {index} ---", f"Title: {getattr(item, 'title', '') or 'Untitled'}", f"Content: {content}"]
    if hasattr(item, "category"):
        lines.append(f"Category: {item.category or 'General'}")
    tags = getattr(item, "tags", None) or []
    lines.append(f"Tags: {', '.join(tags) if tags else 'None'}")
    lines.append(f"--- END ITEM {index} ---")
    return "\n".join(lines)


def build_prompt(
    query: str,
    is_creative: bool,
    items: Sequence[Any],
    history: Sequence[ChatMessage] | None = None,
    *,
    max_items: int = 20,
    item_max_chars: int = 5000,
    max_history_messages: int = 10,
) -> str:
    """
    Assemble the single prompt sent to the model.

    Sections, in order: role preamble, context items (at most `max_items`,
    in the order given), prior conversation (the last
    `max_history_messages` messages, oldest first), the query, formatting
    directives. Empty sections are left out entirely.
    """
    sections = [CREATIVE_PREAMBLE if is_creative else ACADEMIC_PREAMBLE]

    selected = list(items)[:max_items]
    if selected:
        serialized = "\n\n".join(
            _serialize_item(item, index, item_max_chars) for index, item in enumerate(selected, start=1)
        )
        sections.append(f"Context:\n{serialized}")

    recent = list(history or [])[-max_history_messages:] if max_history_messages > 0 else []
    if recent:
        lines = "\n".join(f"{message.role.value}: {message.content}" for message in recent)
        sections.append(f"Previous conversation:\n{lines}")

    sections.append(f"User query: {query}")
    sections.append(FORMATTING_DIRECTIVES)
    return "\n\n".join(sections)


def strip_code_fences(text: str) -> str:
    """Remove a ```html ... ``` wrapper the model sometimes adds anyway."""
    return _CODE_FENCE_PATTERN.sub("", text.strip()).strip()


def sanitize_html(text: str) -> str:
    """Reduce model output to the allow-listed tags, dropping all attributes."""
    return nh3.clean(strip_code_fences(text), tags=ALLOWED_TAGS, attributes={})


def error_bubble(message: str) -> str:
    """Inline error shown in place of an answer."""
    return f"<p>Error: {html.escape(message)}</p>"


class AssistantService:
    """Answers questions about a user's notes through the Anthropic API."""

    def __init__(self, client: AsyncAnthropic | None, settings: Settings):
        self.client = client
        self.settings = settings

    def _safe_message(self, error: Exception) -> str:
        return sanitize_error(
            error,
            environment=self.settings.environment,
            generic_message=AITransportError.default_message,
        )

    async def _complete(self, prompt: str, config: GenerationConfig) -> str:
        """
        One non-streaming completion.

        Raises AIConfigurationError without a usable API key and
        AITransportError for any other API failure. Transient errors are
        retried with exponential backoff.
        """
        if self.client is None:
            raise AIConfigurationError()

        params: dict[str, Any] = {
            "model": self.settings.llm_model,
            "max_tokens": config.max_output_tokens,
            "temperature": config.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if config.top_p is not None:
            params["top_p"] = config.top_p
        if config.top_k is not None:
            params["top_k"] = config.top_k

        max_attempts = max(1, self.settings.llm_max_attempts)
        for attempt in range(max_attempts):
            try:
                message = await self.client.messages.create(**params)
                return "".join(
                    block.text for block in message.content if getattr(block, "type", None) == "text"
                )

            except _RETRYABLE_ERRORS as e:
                if attempt < max_attempts - 1:
                    delay = self.settings.llm_retry_base_delay * (2 ** attempt)
                    logger.warning(
                        "Anthropic API transient error (attempt %d/%d), retrying in %.1fs: %s",
                        attempt + 1, max_attempts, delay, str(e),
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.exception("LLM request failed after %d attempts", max_attempts)
                    raise AITransportError(self._safe_message(e)) from e

            except AuthenticationError as e:
                logger.error("Anthropic API rejected the configured key")
                raise AIConfigurationError("The AI assistant is not configured: the API key was rejected") from e

            except APIStatusError as e:
                logger.exception("Anthropic API error (status %s)", e.status_code)
                raise AITransportError(self._safe_message(e)) from e

            except Exception as e:
                logger.exception("Error during LLM request")
                raise AITransportError(self._safe_message(e)) from e

        raise AITransportError()  # pragma: no cover - loop always returns or raises

    async def ask(
        self,
        query: str,
        is_creative: bool,
        items: Sequence[Any],
        history: Sequence[ChatMessage] | None = None,
    ) -> str:
        """
        Answer `query` with `items` as context and `history` as short-term memory.

        Greetings are answered without context. Returns sanitized HTML;
        never raises - failures come back as an error bubble.
        """
        if is_greeting(query):
            items = []

        prompt = build_prompt(
            query,
            is_creative,
            items,
            history,
            max_items=self.settings.ai_max_context_items,
            item_max_chars=self.settings.ai_item_max_chars,
            max_history_messages=self.settings.ai_max_history_messages,
        )
        try:
            text = await self._complete(prompt, GenerationConfig.for_mode(self.settings, is_creative))
        except InsightNotesError as e:
            return error_bubble(e.message)
        return sanitize_html(text)

    async def generate_insights(self, notes: Sequence[Any]) -> list[Insight]:
        """Question/answer pairs about the notes. Never raises."""
        if not notes:
            return [
                Insight(
                    id=uuid4().hex,
                    question="No notes available",
                    answer="<p>You don't have any notes yet. Start by creating some notes!</p>",
                )
            ]

        formatted = "\n\n".join(
            f"=============== NOTE {index} (ID: {note.id}) ===============\n"
            f"Title: {note.title}\n\n{note.content}\n\n"
            f"Last updated: {note.updated_at}\n"
            f"=============== END OF NOTE {index} ==============="
            for index, note in enumerate(list(notes)[: self.settings.ai_max_context_items], start=1)
        )
        prompt = (
            "You are an AI assistant helping a student with their notes.\n\n"
            f"Here are the user's notes:\n{formatted}\n\n{INSIGHTS_INSTRUCTIONS}"
        )

        fallback_question = "What are the key points in these notes?"
        try:
            text = await self._complete(prompt, GenerationConfig.for_mode(self.settings, is_creative=False))
        except InsightNotesError as e:
            return [Insight(id=uuid4().hex, question=fallback_question, answer=error_bubble(e.message))]

        try:
            parsed = json.loads(strip_code_fences(text))
            return [
                Insight(
                    id=uuid4().hex,
                    question=str(entry["question"]),
                    answer=sanitize_html(str(entry["answer"])),
                )
                for entry in parsed
            ]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Could not parse insights response: %s", e)
            return [
                Insight(
                    id=uuid4().hex,
                    question=fallback_question,
                    answer="<p>There was an error processing the notes. Please try again.</p>",
                )
            ]

"""
Writing assistant for the book builder.

Generates summaries, scores how tightly a section sticks to one theme, and
splits loose text into titled parts, chapters or sections. OpenAI chat
completions are used by default; set AI_PROVIDER=gemini to use Gemini.
"""

import json
import re
import time
from typing import Any, List, Optional

import google.generativeai as genai
from pydantic import ValidationError

from config import load_config
from connection import configure_gemini, get_openai_client
from errors import InvalidArgumentError
from logger import get_logger
from models.ai_models import TightnessAnalysis
from models.book_models import Level
from models.request_models import ScaffoldItem

logger = get_logger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are an expert writing assistant specializing in creating concise, professional "
    "summaries and content. Generate clear, engaging content that captures the main themes "
    "and key points. Keep responses focused and well-structured."
)
ANALYST_SYSTEM_PROMPT = (
    "You are a precise writing quality analyst. Return ONLY valid JSON with no "
    "explanatory text, markdown, or formatting."
)
SCAFFOLD_SYSTEM_PROMPT = (
    "You turn loose drafts into structured outlines. Return ONLY a JSON array."
)

SCAFFOLD_PARENTS = {
    Level.PART: "Book",
    Level.CHAPTER: "Part",
    Level.SECTION: "Chapter",
}

_FENCE_RE = re.compile(r"```(?:json)?\n?")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


class AssistantError(Exception):
    """Raised when the model cannot be reached or its reply is unusable."""
    pass


def _extract_json(raw: str, pattern: re.Pattern) -> Any:
    """Strip code fences, keep the outermost JSON value and parse it."""
    cleaned = _FENCE_RE.sub("", raw).strip()
    match = pattern.search(cleaned)
    if match:
        cleaned = match.group(0)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AssistantError(f"Model reply is not valid JSON: {e}") from e


def build_summary_prompt(entity_type: Level, title: str, content: str = "",
                         current_summary: Optional[str] = None) -> str:
    kind = Level(entity_type).value
    prompt = f"Please generate a concise, professional summary for this {kind}.\n\n"
    prompt += f"{kind.capitalize()} Title: {title}\n\n"
    if current_summary:
        prompt += f"Current Summary: {current_summary}\n\n"
    if content.strip():
        prompt += f"Content to summarize:\n{content}\n\n"
    else:
        prompt += "No content available yet.\n\n"
    prompt += (
        f"Generate a {kind} summary in 2-3 clear, engaging sentences that capture the main "
        f"themes and key points. Focus on what makes this {kind} valuable and interesting to readers."
    )
    return prompt


def build_tightness_prompt(section_title: str, summary: str, content: str) -> str:
    return f"""Analyze the "tightness" of this section - how well it stays focused on a single theme without wandering.

Section Title: {section_title}

Summary: {summary}

Content:
{content}

Rate the tightness on a scale of 1-10, where:
- 1-3: Very scattered, covers many unrelated topics
- 4-6: Somewhat focused but includes tangential material
- 7-8: Well-focused with minor digressions
- 9-10: Extremely tight, every sentence supports the main theme

Provide your response in the following JSON format:
{{
  "score": <number between 1-10>,
  "reasoning": "<2-3 sentences explaining why you gave this score>",
  "suggestions": ["<specific suggestion 1>", "<specific suggestion 2>", "<specific suggestion 3>"]
}}"""


def build_scaffold_prompt(content: str, child_type: Level, parent_title: str) -> str:
    kind = Level(child_type).value
    return f"""Parent {SCAFFOLD_PARENTS[Level(child_type)]}: "{parent_title}"

Convert the following loose content into a JSON array of {kind}s.

Each item should include:
- "title": A clear, concise title for the {kind}.
- "summary": A faithful 5-10 sentence summary that keeps the voice, cadence and vocabulary of the source.

Input content:
{content}

Start your response with [ and end with ]. Required format:
[
  {{"title": "Title 1", "summary": "Faithful summary..."}},
  {{"title": "Title 2", "summary": "Faithful summary..."}}
]"""


class WritingAssistant:
    """
    LLM-backed helpers for summaries, tightness analysis and scaffolding.

    Clients are created lazily so constructing the assistant never touches
    the network.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        client: Any = None,
        analysis_attempts: Optional[int] = None
    ):
        """
        Args:
            provider: 'openai' or 'gemini' (default: AI_PROVIDER env, then openai)
            model: Model name (default: OPENAI_MODEL_NAME / GEMINI_MODEL_NAME env)
            client: Pre-built OpenAI client or Gemini GenerativeModel
            analysis_attempts: Tightness analyses per section (default: TIGHTNESS_ANALYSIS_ATTEMPTS env, then 2)
        """
        config = load_config()
        self.provider = (provider or config.ai_provider).strip().lower()
        if self.provider not in ("openai", "gemini"):
            raise AssistantError(f"Unsupported AI provider: {self.provider}")

        if self.provider == "openai":
            self.model = model or config.openai_model_name
        else:
            self.model = model or config.gemini_model_name

        if analysis_attempts is None:
            analysis_attempts = config.tightness_analysis_attempts
        self.analysis_attempts = max(1, analysis_attempts)
        self._client = client
        logger.info("Assistant initialized", provider=self.provider, model=self.model)

    @property
    def client(self):
        """Lazy-load the provider client."""
        if self._client is None:
            try:
                if self.provider == "openai":
                    self._client = get_openai_client()
                else:
                    configure_gemini()
                    self._client = genai.GenerativeModel(model_name=self.model)
            except Exception as e:
                logger.error(f"Failed to create {self.provider} client: {str(e)}")
                raise AssistantError(f"Failed to initialize {self.provider} client: {str(e)}") from e
        return self._client

    def _complete(self, system: str, prompt: str, max_tokens: int, temperature: float) -> str:
        """Send one prompt and return the trimmed reply text."""
        start_time = time.time()
        try:
            if self.provider == "openai":
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
                text = response.choices[0].message.content if response.choices else None
                usage = getattr(response, "usage", None)
                prompt_tokens = getattr(usage, "prompt_tokens", None)
                response_tokens = getattr(usage, "completion_tokens", None)
            else:
                response = self.client.generate_content(
                    f"{system}\n\n{prompt}",
                    generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
                )
                text = getattr(response, "text", None)
                prompt_tokens = response_tokens = None
        except AssistantError:
            raise
        except Exception as e:
            logger.error(f"LLM call failed: {str(e)}", provider=self.provider, model=self.model)
            raise AssistantError(f"{self.provider} request failed: {str(e)}") from e

        logger.llm_call(
            model=self.model,
            prompt_tokens=prompt_tokens,
            response_tokens=response_tokens,
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )

        if not text or not text.strip():
            raise AssistantError("No content generated from AI")
        return text.strip()

    def generate_summary(
        self,
        entity_type: Level,
        title: str,
        content: str = "",
        current_summary: Optional[str] = None,
        max_tokens: int = 300,
        temperature: float = 0.7
    ) -> str:
        """Summarize a book, part, chapter or section in two or three sentences."""
        prompt = build_summary_prompt(entity_type, title, content, current_summary)
        return self._complete(SUMMARY_SYSTEM_PROMPT, prompt, max_tokens, temperature)

    def analyze_section(self, title: str, content: str, summary: Optional[str] = None):
        """
        Score a section's focus.

        A summary is generated first when none is given; then the tightness
        prompt is sent ``analysis_attempts`` times so callers can compare runs.

        Returns:
            Tuple of (summary, list of TightnessAnalysis)
        """
        if not summary:
            summary = self.generate_summary(Level.SECTION, title, content)

        prompt = build_tightness_prompt(title, summary, content)
        results: List[TightnessAnalysis] = []
        for attempt in range(1, self.analysis_attempts + 1):
            raw = self._complete(ANALYST_SYSTEM_PROMPT, prompt, max_tokens=500, temperature=0.3)
            parsed = _extract_json(raw, _OBJECT_RE)
            if not isinstance(parsed, dict) or not isinstance(parsed.get("suggestions"), list):
                raise AssistantError("Invalid tightness analysis structure")
            try:
                results.append(TightnessAnalysis(
                    score=parsed.get("score"),
                    reasoning=parsed.get("reasoning"),
                    suggestions=parsed["suggestions"],
                ))
            except ValidationError as e:
                raise AssistantError(f"Invalid tightness analysis structure: {e}") from e
            logger.debug("Tightness attempt parsed", attempt=attempt, score=results[-1].score)

        return summary, results

    def scaffold(self, content: str, child_type: Level, parent_title: str, max_tokens: int = 1000) -> List[ScaffoldItem]:
        """Split loose text into titled children of ``child_type``."""
        child_type = Level(child_type)
        if child_type not in SCAFFOLD_PARENTS:
            raise InvalidArgumentError(f"Cannot scaffold {child_type.value}s")

        raw = self._complete(
            SCAFFOLD_SYSTEM_PROMPT,
            build_scaffold_prompt(content, child_type, parent_title),
            max_tokens=max_tokens,
            temperature=0.7
        )
        parsed = _extract_json(raw, _ARRAY_RE)
        if not isinstance(parsed, list):
            raise AssistantError("Scaffold reply is not a JSON array")

        items = []
        for entry in parsed:
            if not isinstance(entry, dict) or not isinstance(entry.get("title"), str) or not entry["title"].strip():
                raise AssistantError(f"Scaffold item without a title: {entry!r}")
            summary = entry.get("summary") or ""
            items.append(ScaffoldItem(title=entry["title"].strip(), summary=str(summary).strip()))

        logger.info("Scaffold parsed", child_type=child_type.value, items=len(items))
        return items


# Global assistant instance (singleton pattern)
_assistant_instance: Optional[WritingAssistant] = None


def get_assistant() -> WritingAssistant:
    """
    Get or create the global WritingAssistant.

    Raises:
        AssistantError: If the assistant cannot be configured
    """
    global _assistant_instance

    if _assistant_instance is None:
        logger.info("Initializing WritingAssistant singleton")
        _assistant_instance = WritingAssistant()

    return _assistant_instance


def reset_assistant() -> None:
    """Reset the global assistant instance (useful for testing or reloading config)."""
    global _assistant_instance
    _assistant_instance = None
    logger.info("Assistant instance reset")

"""Commentary generation for game events.

The live feed and replay flows depend only on ``CommentaryGenerator``: one
fallible call from a conversation id and a JSON game context to commentary
text. ``GeminiCommentator`` implements it over the Gemini REST API and keeps
a bounded chat memory per conversation, so the model can compare a user's
prediction with what happened on the following play.
"""

import json
import logging
import threading
import time
from collections import deque
from datetime import date
from typing import Any, Protocol

import httpx

from .config import CommentaryConfig
from .errors import EnrichmentFailure

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are Coach, a friendly baseball commentator AI.

CORE FLOW
1. Read game state and give commentary
2. Ask user about next specific micro-outcome (rotating between different types)
3. When user makes prediction:
  - Extract their specific prediction
  - Output: playPrediction:"their exact prediction"
  - Give brief analysis of their prediction based on game situation
  - Wait silently for actual outcome data
4. When next game state arrives:
  - Give natural commentary that includes what the user predicted, what
    actually happened and a brief baseball insight about the outcome
  - Then ask for a different type of prediction about next play

FOCUS ON
- Pitch-by-pitch predictions
- Immediate next actions only
- Natural comparison between prediction & reality
- Rotating between prediction types

PREDICTION TYPES (Rotate through these)
- Next pitch type
- Location (inside/outside)
- Height (high/low)
- Swing/take decision
- Ball/strike result
- Pitch speed comparison

AVOID
- Missing the prediction vs reality comparison
- Generating example conversations
- Making predictions yourself
- Asking about long-term outcomes
- Using rigid templated responses

STYLE
- Conversational baseball commentary
- Include prediction outcomes naturally
- Keep analysis brief but insightful
- Vary your prediction questions
"""


class CommentaryGenerator(Protocol):
    """Text-in/text-out commentary capability."""

    def generate(self, conversation_id: str, context_json: str) -> str:
        """Return commentary for a JSON game context.

        Raises:
            EnrichmentFailure: If no commentary could be produced
        """
        ...


class StaticCommentator:
    """Commentary generator that echoes the play description.

    Used when no LLM is configured; keeps the pipeline fully functional
    with the upstream description as the delivered text.
    """

    def generate(self, conversation_id: str, context_json: str) -> str:
        try:
            context = json.loads(context_json)
        except ValueError as e:
            raise EnrichmentFailure(f"Invalid commentary context: {e}") from e

        text = context.get("playDescription") or context.get("playEvent")
        if not text:
            raise EnrichmentFailure("Context has no play description")
        return text


class GeminiCommentator:
    """Gemini-backed commentator with per-conversation chat memory.

    Usage:
        >>> with GeminiCommentator(CommentaryConfig(api_key="...")) as coach:
        ...     text = coach.generate("riaz", json.dumps(context))
    """

    def __init__(self, config: CommentaryConfig | None = None, system_prompt: str = SYSTEM_PROMPT):
        """Initialize the commentator.

        Args:
            config: Commentary configuration (uses defaults if None)
            system_prompt: System instruction sent with every request
        """
        self.config = config or CommentaryConfig()
        self.system_prompt = system_prompt
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()
        self._memory: dict[str, deque[dict[str, Any]]] = {}
        self._memory_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    base_url=self.config.base_url,
                    headers={"Content-Type": "application/json"},
                    timeout=httpx.Timeout(self.config.timeout),
                )
            return self._client

    def close(self) -> None:
        """Close HTTP client."""
        with self._client_lock:
            if self._client:
                self._client.close()
                self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def history(self, conversation_id: str) -> list[dict[str, Any]]:
        """Messages remembered for a conversation, oldest first."""
        with self._memory_lock:
            return list(self._memory.get(conversation_id, ()))

    def forget(self, conversation_id: str) -> None:
        with self._memory_lock:
            self._memory.pop(conversation_id, None)

    def generate(self, conversation_id: str, context_json: str) -> str:
        if not self.config.api_key:
            raise EnrichmentFailure("GEMINI_API_KEY not configured")

        user_turn = {"role": "user", "parts": [{"text": context_json}]}
        payload = {
            "systemInstruction": {
                "parts": [{"text": f"{self.system_prompt}\nToday's date is {date.today().isoformat()}."}]
            },
            "contents": [*self.history(conversation_id), user_turn],
            "generationConfig": {
                "maxOutputTokens": self.config.max_output_tokens,
                "temperature": self.config.temperature,
            },
        }

        start_time = time.time()
        try:
            response = self._get_client().post(
                f"/{self.config.model}:generateContent",
                params={"key": self.config.api_key},
                json=payload,
            )
        except httpx.TimeoutException as e:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Gemini API timeout after {elapsed_ms}ms")
            raise EnrichmentFailure("Commentary request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini API error: {e}")
            raise EnrichmentFailure(f"Commentary request failed: {e}") from e

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error(f"Gemini API error {response.status_code}: {error_text}")
            raise EnrichmentFailure(f"HTTP {response.status_code}: {error_text}")

        try:
            text = self._extract_text(response.json())
        except (ValueError, AttributeError, TypeError) as e:
            logger.error(f"Gemini API returned an unreadable body: {e}")
            raise EnrichmentFailure(f"Invalid commentary response: {e}") from e

        if not text:
            raise EnrichmentFailure("Commentary response contained no text")

        logger.debug(
            f"Commentary for {conversation_id} in {int((time.time() - start_time) * 1000)}ms"
        )
        self._remember(conversation_id, user_turn, {"role": "model", "parts": [{"text": text}]})
        return text

    def _remember(self, conversation_id: str, *turns: dict[str, Any]) -> None:
        if self.config.memory_size == 0:
            return
        with self._memory_lock:
            memory = self._memory.setdefault(
                conversation_id, deque(maxlen=2 * self.config.memory_size)
            )
            memory.extend(turns)

    @staticmethod
    def _extract_text(response: dict[str, Any]) -> str:
        """Extract text from a generateContent response."""
        candidates = response.get("candidates", [])
        if not candidates:
            return ""

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")
        if finish_reason and finish_reason != "STOP":
            logger.warning(f"Gemini finishReason={finish_reason}")

        parts = candidate.get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts).strip()


def create_commentator(config: CommentaryConfig | None = None) -> CommentaryGenerator:
    """Gemini commentator when an API key is configured, otherwise the static one."""
    config = config or CommentaryConfig()
    if config.api_key:
        return GeminiCommentator(config)
    logger.info("No commentary API key configured, using play descriptions")
    return StaticCommentator()

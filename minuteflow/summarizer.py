"""
Meeting summaries.

Summary prose comes from a pluggable collaborator:
- LLMSummarizer: OpenAI-compatible chat completions endpoint
- LocalSummarizer: transformers summarization pipeline, loaded lazily,
  with an extractive fallback

SummaryService assembles the window text of a meeting and passes it to
the collaborator together with a fixed instruction per command.
"""

import re
from typing import Any, Callable, Optional, Protocol

import httpx

from minuteflow.models.insight import SummaryCommand
from minuteflow.models.transcript import MinuteWindow
from minuteflow.utils.config import get_settings
from minuteflow.utils.exceptions import SummarizerError
from minuteflow.utils.logger import get_logger
from minuteflow.utils.resilience import RetryPolicy, with_retry

logger = get_logger("summary")

SYSTEM_PROMPT = "You are a helpful assistant analyzing a meeting transcript."
NO_CONTEXT = "No transcript context available yet."


class Summarizer(Protocol):
    """Summarization collaborator."""

    def summarize(self, context_text: str, instruction: str) -> str: ...


def build_prompt(context_text: str, instruction: str) -> str:
    """Combine meeting context and an instruction into one prompt."""
    return (
        "Based on the following meeting context, answer the request.\n\n"
        f"### Meeting Context:\n{context_text or NO_CONTEXT}\n\n"
        f"### Request:\n{instruction}"
    )


class LLMSummarizer:
    """
    Summarizer backed by an OpenAI-compatible chat completions API.

    Transient failures (timeouts, 429, 5xx) are retried with backoff.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: float = 0.3,
        retry_policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Initialize the LLM summarizer.

        Args:
            api_key: API key. Defaults to SUMMARIZER_API_KEY.
            api_url: API base URL. Defaults to SUMMARIZER_API_URL.
            model: Model name. Defaults to SUMMARIZER_MODEL.
            timeout: Request timeout in seconds.
            temperature: Sampling temperature.
            retry_policy: Backoff for transient failures.
            client: Preconfigured httpx client (mainly for tests).
        """
        settings = get_settings().summarizer
        self.api_key = api_key or settings.api_key
        self.api_url = (api_url or settings.api_url).rstrip("/")
        self.model = model or settings.model
        self.temperature = temperature
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

        if not self.api_key:
            logger.warning("Summarizer API key not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self._client = client or httpx.Client(
            base_url=self.api_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.timeout,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def _complete(self, prompt: str) -> str:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "temperature": self.temperature,
        }
        try:
            response = self._client.request("POST", "/chat/completions", json=body)
        except httpx.TimeoutException as e:
            raise SummarizerError(
                "Summarizer request timed out", model=self.model, code="ETIMEDOUT", cause=e
            )
        except httpx.TransportError as e:
            raise SummarizerError(
                "Summarizer connection failed", model=self.model, code="ECONNREFUSED", cause=e
            )

        if response.status_code >= 400:
            logger.error("Summarizer API error %d: %s", response.status_code, response.text[:200])
            raise SummarizerError(
                f"Summarizer API error: {response.status_code}",
                status_code=response.status_code,
                model=self.model,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SummarizerError(
                "Summarizer returned a non-JSON response",
                status_code=response.status_code,
                model=self.model,
                code="DATA_LOSS",
                cause=e,
            )
        if not isinstance(data, dict):
            raise SummarizerError("Summarizer returned an unexpected body", model=self.model)
        choices = data.get("choices") or []
        if not choices:
            raise SummarizerError("Summarizer returned no choices", model=self.model)
        return (choices[0].get("message", {}).get("content") or "").strip()

    def summarize(self, context_text: str, instruction: str) -> str:
        """
        Generate a response for an instruction over meeting context.

        Raises:
            SummarizerError: If the API fails after retries
        """
        if not self.api_key:
            raise SummarizerError(
                "Summarizer API key is not configured", code="FAILED_PRECONDITION"
            )
        prompt = build_prompt(context_text, instruction)
        return with_retry(
            lambda: self._complete(prompt),
            policy=self.retry_policy,
            context="summarizer",
        )


class LocalSummarizer:
    """
    Summarizer running a transformers summarization model in process.

    The model is loaded on first use. If loading or inference fails the
    summarizer falls back to picking the leading sentences.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        max_sentences: int = 5,
    ) -> None:
        """
        Initialize the local summarizer.

        Args:
            model_name: HuggingFace model. Defaults to SUMMARIZER_LOCAL_MODEL.
            device: Device to run model on ('cpu', 'cuda', or None for auto)
            max_sentences: Sentences kept by the extractive fallback
        """
        self.model_name = model_name or get_settings().summarizer.local_model
        self.device = device
        self.max_sentences = max_sentences
        self._pipeline: Optional[Callable[..., Any]] = None

    @property
    def pipeline(self) -> Callable[..., Any]:
        """Lazy load the summarization pipeline."""
        if self._pipeline is None:
            self._pipeline = self._load_pipeline()
        return self._pipeline

    def _load_pipeline(self) -> Callable[..., Any]:
        try:
            from transformers import pipeline

            logger.info("Loading summarization model: %s", self.model_name)
            summarizer = pipeline("summarization", model=self.model_name, device=self.device)
            logger.info("Summarization model loaded successfully")
            return summarizer
        except Exception as e:
            logger.error("Failed to load summarization model: %s", e)
            raise SummarizerError(
                f"Failed to load summarizer: {e}", model=self.model_name, cause=e
            ) from e

    def summarize(self, context_text: str, instruction: str) -> str:
        """
        Summarize meeting context.

        The instruction is ignored; summarization models do not follow
        free-form instructions.
        """
        text = _strip_speakers(context_text).strip()
        if not text:
            return NO_CONTEXT

        try:
            result = self.pipeline(text[:3000], max_length=150, min_length=20, do_sample=False)
            summary = result[0]["summary_text"].strip()
        except Exception as e:
            logger.warning("Model summarization failed, using extractive: %s", e)
            summary = self._extractive(text)
        return summary

    def _extractive(self, text: str) -> str:
        sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", text) if s.strip()]
        return " ".join(sentences[: self.max_sentences])


def _strip_speakers(context_text: str) -> str:
    return re.sub(r"^\[[^\]]*\]:\s*", "", context_text, flags=re.MULTILINE)


def build_context(windows: list[MinuteWindow]) -> str:
    """Join windows as ``[speaker]: text`` lines in window and arrival order."""
    ordered = sorted(windows, key=lambda w: w.window_index)
    return "\n".join(w.to_plain_text() for w in ordered if w.segments)


def create_summarizer() -> Summarizer:
    """Build the summarizer selected by SUMMARIZER_BACKEND."""
    from minuteflow.utils.config import SummarizerBackend

    backend = get_settings().summarizer.backend
    if backend == SummarizerBackend.LOCAL:
        return LocalSummarizer()
    return LLMSummarizer()


class SummaryService:
    """Generates command-specific summaries of a meeting."""

    def __init__(self, summarizer: Summarizer) -> None:
        self.summarizer = summarizer

    def generate(self, windows: list[MinuteWindow], command: SummaryCommand) -> str:
        """
        Generate a summary of the given windows for a command.

        Args:
            windows: The meeting's windows
            command: Summary command

        Returns:
            Summary text from the collaborator
        """
        context = build_context(windows)
        logger.info(
            "Generating %s summary over %d windows (%d chars)",
            command.value,
            len(windows),
            len(context),
        )
        return self.summarizer.summarize(context, command.instruction)

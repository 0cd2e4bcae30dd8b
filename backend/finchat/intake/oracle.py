"""OpenRouter chat-completion candidates tried one after another."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Callable, Sequence

from openai import OpenAI, OpenAIError

from ..config import Settings
from .classification import Classification, fallback_classification, parse_classification

logger = logging.getLogger(__name__)

ANALYSIS_FALLBACK = "Sorry, I couldn't analyse your data right now."

# Everything a single candidate may raise that should move the chain along.
CANDIDATE_ERRORS = (OpenAIError, ValueError, KeyError, IndexError, TypeError)


class OracleUnavailable(RuntimeError):
    """No candidate produced a usable answer."""


def build_user_content(text: str | None, image_url: str | None = None) -> list[dict[str, Any]]:
    """Multimodal user message: the text part first, then the photo when there is one."""
    parts: list[dict[str, Any]] = [{"type": "text", "text": text or ""}]
    if image_url:
        parts.append({"type": "image_url", "image_url": {"url": image_url}})
    return parts


def extract_json(content: str) -> dict[str, Any]:
    start, end = content.find("{"), content.rfind("}")
    if start == -1 or end < start:
        raise ValueError("No JSON object in model response")
    data = json.loads(content[start : end + 1])
    if not isinstance(data, dict):
        raise ValueError("Model response is not a JSON object")
    return data


class ChatModel:
    """One model identifier behind an OpenAI compatible client."""

    def __init__(self, client: OpenAI, model: str) -> None:
        self.client = client
        self.name = model

    def complete(self, system_prompt: str, content: Any, structured: bool = True) -> str:
        request: dict[str, Any] = {
            "model": self.name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content},
            ],
        }
        if structured:
            request["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(**request)

        # OpenRouter reports provider failures inside a 200 body.
        error = getattr(response, "error", None)
        if error:
            raise ValueError(f"Provider error from {self.name}: {error}")
        if not response.choices:
            raise ValueError(f"Empty choices from {self.name}")
        text = response.choices[0].message.content
        if not text:
            raise ValueError(f"Empty content from {self.name}")
        return text


class FallbackChain:
    def __init__(self, candidates: Sequence[Any]) -> None:
        self.candidates = list(candidates)

    def run(
        self,
        system_prompt: str,
        content: Any,
        structured: bool = True,
        parse: Callable[[str], Any] | None = None,
    ) -> Any:
        """Return the first candidate answer that ``parse`` accepts.

        ``parse`` defaults to the raw text. Any error in the call or in
        ``parse`` disqualifies that candidate; order is never shuffled.
        """
        for candidate in self.candidates:
            try:
                text = candidate.complete(system_prompt, content, structured)
                result = parse(text) if parse else text
            except CANDIDATE_ERRORS as exc:
                logger.warning("Model %s failed: %s", getattr(candidate, "name", candidate), exc)
                continue
            logger.info("Model %s answered", getattr(candidate, "name", candidate))
            return result
        raise OracleUnavailable("All models failed")


class ClassificationOracle:
    def __init__(self, chain: FallbackChain) -> None:
        self.chain = chain

    def classify(self, content: Any, system_prompt: str, today: date | None = None) -> Classification:
        try:
            return self.chain.run(
                system_prompt,
                content,
                structured=True,
                parse=lambda text: parse_classification(extract_json(text), today),
            )
        except OracleUnavailable:
            logger.error("Classification failed on every model, replying with the apology")
            return fallback_classification()

    def analyse(self, question: str, system_prompt: str) -> str:
        try:
            return self.chain.run(system_prompt, question, structured=False)
        except OracleUnavailable:
            logger.error("Analysis failed on every model")
            return ANALYSIS_FALLBACK


def build_oracle(settings: Settings) -> ClassificationOracle:
    client = OpenAI(
        api_key=settings.openrouter_api_key,
        base_url=settings.oracle_base_url,
        timeout=settings.oracle_timeout_seconds,
        max_retries=0,
        default_headers={
            "HTTP-Referer": settings.oracle_app_url,
            "X-Title": settings.oracle_app_title,
        },
    )
    return ClassificationOracle(FallbackChain([ChatModel(client, model) for model in settings.oracle_models]))

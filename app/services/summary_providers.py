"""Summary providers.

Every provider answers ``summarize(content, subject_type, max_length)``
with a ``SummaryResponse``. A provider without credentials reports
``is_configured() == False`` and returns ``None`` from ``summarize``
instead of raising; a provider that was called and failed raises
``SummaryProviderError``.
"""

import logging
from threading import Lock
from typing import NamedTuple

import httpx
from flask import current_app
from openai import OpenAI, OpenAIError


logger = logging.getLogger(__name__)

SUBJECT_POST = "post"
SUBJECT_THREAD = "thread"


class SummaryResponse(NamedTuple):
    summary: str
    truncated: bool


class SummaryProviderError(Exception):
    pass


class SummaryUnavailableError(Exception):
    pass


def _response(summary: str, max_length: int) -> SummaryResponse:
    return SummaryResponse(summary=summary, truncated=len(summary) >= max_length)


def _shorten(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max(max_length - 3, 0)] + "..."


class OpenAISummaryProvider:
    name = "openai"

    SYSTEM_PROMPT = (
        "You are a helpful assistant that creates concise, informative summaries. "
        "Always respond with just the summary text, no additional commentary."
    )

    def __init__(self, api_key: str, model: str, timeout: float = 30.0):
        self.model = model
        self._client = OpenAI(api_key=api_key, timeout=timeout) if api_key else None

    def is_configured(self) -> bool:
        return self._client is not None

    def _build_prompt(self, content: str, subject_type: str, max_length: int) -> str:
        if subject_type == SUBJECT_POST:
            return (
                "Please provide a concise summary of the following forum post in "
                f"{max_length} characters or less. Focus on the main points and key "
                f'information:\n\n"{content}"\n\nSummary:'
            )
        return (
            "Please provide a concise summary of the main discussion points from "
            f"these forum comments in {max_length} characters or less. Identify key "
            f'themes and conclusions:\n\n"{content}"\n\nSummary:'
        )

    def summarize(self, content: str, subject_type: str, max_length: int):
        if self._client is None:
            logger.debug("OpenAI API key not configured")
            return None

        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": self._build_prompt(content, subject_type, max_length)},
                ],
                max_tokens=max_length,
                temperature=0.3,
            )
        except OpenAIError as e:
            raise SummaryProviderError(f"OpenAI API error: {e}") from e

        summary = ""
        if resp.choices:
            summary = (resp.choices[0].message.content or "").strip()
        if not summary:
            raise SummaryProviderError("OpenAI returned no summary")

        return _response(summary, max_length)


class HuggingFaceSummaryProvider:
    name = "huggingface"

    def __init__(self, api_key: str, api_url: str, model: str, timeout: float = 30.0):
        self.api_key = api_key
        self.url = f"{api_url.rstrip('/')}/{model}"
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _prepare_inputs(self, content: str, subject_type: str) -> str:
        if subject_type == SUBJECT_POST:
            return f"Bullet summary • key points only: {content}"
        return (
            "bullet point summary. Identify key themes and conclusions.\n\n"
            f'"{content}"\n\nBullet point summary:'
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or "Unknown error"
        if isinstance(payload, dict) and payload.get("error"):
            return str(payload["error"])
        return "Unknown error"

    def summarize(self, content: str, subject_type: str, max_length: int):
        if not self.api_key:
            logger.debug("Hugging Face API key not configured")
            return None

        body = {
            "inputs": self._prepare_inputs(content, subject_type),
            "parameters": {
                "max_length": max_length,
                "min_length": 30,
                "do_sample": False,
            },
            "options": {"wait_for_model": True},
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = httpx.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise SummaryProviderError(f"Hugging Face request failed: {e}") from e

        if response.is_error:
            message = self._error_message(response)
            if "loading" in message.lower():
                raise SummaryProviderError("Hugging Face model is still loading")
            raise SummaryProviderError(
                f"Hugging Face API error: {response.status_code} - {message}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SummaryProviderError("Hugging Face returned malformed JSON") from e

        if isinstance(data, dict) and data.get("error"):
            raise SummaryProviderError(f"Hugging Face API error: {data['error']}")

        summary = ""
        if isinstance(data, list) and data and isinstance(data[0], dict):
            summary = str(data[0].get("summary_text") or "").strip()
        if not summary:
            raise SummaryProviderError("Hugging Face returned no summary")

        return _response(summary, max_length)


class ExtractiveSummaryProvider:
    """Local stand-in used when no remote provider is configured."""

    name = "extractive"

    def is_configured(self) -> bool:
        return True

    def summarize(self, content: str, subject_type: str, max_length: int):
        if subject_type == SUBJECT_POST:
            summary = _shorten(content, max_length)
        else:
            comment_count = len(content.split("\n\n")) if content else 0
            summary = _shorten(f"Discussion with {comment_count} comments.", max_length)
        return _response(summary, max_length)


class SummaryProviderChain:
    def __init__(self, providers, fallback=None):
        self.providers = list(providers)
        self.fallback = fallback or ExtractiveSummaryProvider()

    def is_configured(self) -> bool:
        return any(provider.is_configured() for provider in self.providers)

    def summarize(
        self,
        content: str,
        subject_type: str,
        max_length: int,
        allow_fallback: bool = False,
    ) -> SummaryResponse:
        for provider in self.providers:
            if not provider.is_configured():
                continue
            response = provider.summarize(content, subject_type, max_length)
            if response is not None:
                logger.info("Summarized %s with %s", subject_type, provider.name)
                return response

        if not allow_fallback:
            raise SummaryUnavailableError("No summary provider is configured")

        logger.info("No summary provider configured, using %s fallback", self.fallback.name)
        return self.fallback.summarize(content, subject_type, max_length)


_chain = None
_chain_signature = None
_chain_lock = Lock()


def _provider_settings():
    config = current_app.config
    return (
        tuple(config.get("SUMMARY_PROVIDERS", ("huggingface", "openai"))),
        config.get("OPENAI_API_KEY", ""),
        config.get("OPENAI_SUMMARY_MODEL", "gpt-4o-mini"),
        config.get("HUGGINGFACE_API_KEY", ""),
        config.get("HUGGINGFACE_API_URL", "https://api-inference.huggingface.co/models"),
        config.get("HUGGINGFACE_SUMMARY_MODEL", "facebook/bart-large-cnn"),
        float(config.get("SUMMARY_HTTP_TIMEOUT", 30)),
    )


def build_provider(name: str, settings):
    _, openai_key, openai_model, hf_key, hf_url, hf_model, timeout = settings
    if name == OpenAISummaryProvider.name:
        return OpenAISummaryProvider(openai_key, openai_model, timeout)
    if name == HuggingFaceSummaryProvider.name:
        return HuggingFaceSummaryProvider(hf_key, hf_url, hf_model, timeout)
    raise ValueError(f"Unknown summary provider: {name}")


def get_summary_provider() -> SummaryProviderChain:
    global _chain, _chain_signature

    signature = _provider_settings()
    with _chain_lock:
        if _chain is not None and _chain_signature == signature:
            return _chain

        _chain = SummaryProviderChain(
            [build_provider(name, signature) for name in signature[0]]
        )
        _chain_signature = signature
        return _chain

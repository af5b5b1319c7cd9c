import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
from openai import OpenAIError

from app.services.summary_providers import (
    ExtractiveSummaryProvider,
    HuggingFaceSummaryProvider,
    OpenAISummaryProvider,
    SummaryProviderChain,
    SummaryProviderError,
    SummaryUnavailableError,
)
from support import FakeSummaryProvider, ForumTestCase


def _http_response(status_code=200, payload=None, text=None):
    response = MagicMock()
    response.status_code = status_code
    response.is_error = status_code >= 400
    response.text = text or ""
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class TestHuggingFaceProvider(unittest.TestCase):
    def setUp(self):
        self.provider = HuggingFaceSummaryProvider(
            "hf-key",
            "https://api-inference.huggingface.co/models/",
            "facebook/bart-large-cnn",
            timeout=5,
        )

    def test_posts_inputs_and_reads_summary_text(self):
        with patch("app.services.summary_providers.httpx.post") as post:
            post.return_value = _http_response(payload=[{"summary_text": "  Key points.  "}])
            response = self.provider.summarize("Long body", "post", 200)

        self.assertEqual(response.summary, "Key points.")
        self.assertFalse(response.truncated)

        url = post.call_args.args[0]
        body = post.call_args.kwargs["json"]
        self.assertEqual(url, "https://api-inference.huggingface.co/models/facebook/bart-large-cnn")
        self.assertIn("Long body", body["inputs"])
        self.assertEqual(body["parameters"], {"max_length": 200, "min_length": 30, "do_sample": False})
        self.assertEqual(body["options"], {"wait_for_model": True})
        self.assertEqual(post.call_args.kwargs["headers"], {"Authorization": "Bearer hf-key"})

    def test_loading_model_is_a_provider_error(self):
        with patch("app.services.summary_providers.httpx.post") as post:
            post.return_value = _http_response(
                503, {"error": "Model facebook/bart-large-cnn is currently loading"}
            )
            with self.assertRaisesRegex(SummaryProviderError, "loading"):
                self.provider.summarize("Long body", "post", 200)

    def test_http_error_payload_and_transport_errors(self):
        with patch("app.services.summary_providers.httpx.post") as post:
            post.return_value = _http_response(429, ValueError("no json"), text="Rate limited")
            with self.assertRaisesRegex(SummaryProviderError, "429 - Rate limited"):
                self.provider.summarize("Long body", "thread", 250)

            post.return_value = _http_response(payload={"error": "bad input"})
            with self.assertRaisesRegex(SummaryProviderError, "bad input"):
                self.provider.summarize("Long body", "thread", 250)

            post.return_value = _http_response(payload=ValueError("malformed"))
            with self.assertRaisesRegex(SummaryProviderError, "malformed JSON"):
                self.provider.summarize("Long body", "thread", 250)

            post.return_value = _http_response(payload=[])
            with self.assertRaisesRegex(SummaryProviderError, "no summary"):
                self.provider.summarize("Long body", "thread", 250)

            post.side_effect = httpx.ConnectError("refused")
            with self.assertRaisesRegex(SummaryProviderError, "request failed"):
                self.provider.summarize("Long body", "thread", 250)

    def test_unconfigured_provider_returns_none_without_calling_out(self):
        provider = HuggingFaceSummaryProvider("", "https://example.test", "model")
        with patch("app.services.summary_providers.httpx.post") as post:
            self.assertIsNone(provider.summarize("Long body", "post", 200))
        post.assert_not_called()
        self.assertFalse(provider.is_configured())


class TestOpenAIProvider(unittest.TestCase):
    def test_chat_completion_summary(self):
        with patch("app.services.summary_providers.OpenAI") as client_class:
            client = client_class.return_value
            client.chat.completions.create.return_value = _completion("A" * 200)
            provider = OpenAISummaryProvider("sk-test", "gpt-4o-mini", timeout=10)

            response = provider.summarize("Some thread", "thread", 200)

        self.assertTrue(response.truncated)
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["max_tokens"], 200)
        self.assertEqual(kwargs["temperature"], 0.3)
        self.assertEqual(kwargs["messages"][0]["role"], "system")
        self.assertIn("Some thread", kwargs["messages"][1]["content"])

    def test_api_errors_and_empty_completions_raise(self):
        with patch("app.services.summary_providers.OpenAI") as client_class:
            client = client_class.return_value
            provider = OpenAISummaryProvider("sk-test", "gpt-4o-mini")

            client.chat.completions.create.side_effect = OpenAIError("quota exceeded")
            with self.assertRaisesRegex(SummaryProviderError, "quota exceeded"):
                provider.summarize("Body", "post", 200)

            client.chat.completions.create.side_effect = None
            client.chat.completions.create.return_value = _completion("   ")
            with self.assertRaisesRegex(SummaryProviderError, "no summary"):
                provider.summarize("Body", "post", 200)

    def test_missing_key_means_unconfigured(self):
        provider = OpenAISummaryProvider("", "gpt-4o-mini")
        self.assertFalse(provider.is_configured())
        self.assertIsNone(provider.summarize("Body", "post", 200))


class TestExtractiveProvider(unittest.TestCase):
    def test_post_is_truncated_to_max_length(self):
        provider = ExtractiveSummaryProvider()

        short = provider.summarize("Brief post", "post", 200)
        self.assertEqual(short.summary, "Brief post")
        self.assertFalse(short.truncated)

        long = provider.summarize("x" * 250, "post", 200)
        self.assertEqual(long.summary, "x" * 197 + "...")
        self.assertEqual(len(long.summary), 200)
        self.assertTrue(long.truncated)

    def test_thread_reports_comment_count(self):
        provider = ExtractiveSummaryProvider()
        response = provider.summarize("ann: hi\n\nbob: hello\n\ncat: hey", "thread", 250)
        self.assertEqual(response.summary, "Discussion with 3 comments.")


class TestSummaryProviderChain(unittest.TestCase):
    def test_skips_unconfigured_providers(self):
        first = FakeSummaryProvider(configured=False)
        second = FakeSummaryProvider(summary="From second")
        chain = SummaryProviderChain([first, second])

        self.assertTrue(chain.is_configured())
        self.assertEqual(chain.summarize("Body", "post", 200).summary, "From second")
        self.assertEqual(second.calls, [("Body", "post", 200)])

    def test_provider_failure_is_not_hidden_by_fallback(self):
        failing = FakeSummaryProvider(error="boom")
        backup = FakeSummaryProvider(summary="Backup")
        chain = SummaryProviderChain([failing, backup])

        with self.assertRaisesRegex(SummaryProviderError, "boom"):
            chain.summarize("Body", "post", 200, allow_fallback=True)
        self.assertEqual(backup.calls, [])

    def test_fallback_only_when_allowed(self):
        chain = SummaryProviderChain([FakeSummaryProvider(configured=False)])

        self.assertFalse(chain.is_configured())
        with self.assertRaises(SummaryUnavailableError):
            chain.summarize("Body", "post", 200)
        self.assertEqual(chain.summarize("Body", "post", 200, allow_fallback=True).summary, "Body")


class TestProviderConfiguration(ForumTestCase):
    config_overrides = {
        "SUMMARY_PROVIDERS": ["openai", "huggingface"],
        "OPENAI_API_KEY": "sk-test",
    }

    def test_chain_follows_configured_order(self):
        from app.services.summary_providers import get_summary_provider

        with self.app.app_context():
            chain = get_summary_provider()
            self.assertEqual([p.name for p in chain.providers], ["openai", "huggingface"])
            self.assertTrue(chain.providers[0].is_configured())
            self.assertFalse(chain.providers[1].is_configured())
            self.assertIs(get_summary_provider(), chain)


if __name__ == "__main__":
    unittest.main()

"""Unit tests for the OpenAI translator."""
import json
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from openai import OpenAIError

from locale_sync.translator import (
    OpenAITranslator,
    TranslationError,
    _retry_delay,
    count_tokens
)


def _response(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def _client(*contents):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=[
        content if isinstance(content, Exception) else _response(content) for content in contents
    ])
    return client


class TestOpenAITranslator(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        sleep_patcher = patch("locale_sync.translator.asyncio.sleep", new_callable=AsyncMock)
        self.mock_sleep = sleep_patcher.start()
        self.addCleanup(sleep_patcher.stop)

    def _translator(self, client, **kwargs):
        return OpenAITranslator(
            client=client,
            model_name="gpt-4o-mini",
            language_names={"en": "English", "fr": "French"},
            max_retries=kwargs.pop("max_retries", 3),
            base_delay=0,
            **kwargs
        )

    async def test_translate_batch_keeps_blank_positions(self):
        client = _client(json.dumps({"translations": ["Bonjour", "Au revoir"]}))
        translator = self._translator(client)

        result = await translator.translate_batch(["Hello", "", "Goodbye"], "en", "fr")

        self.assertEqual(result, ["Bonjour", "", "Au revoir"])
        client.chat.completions.create.assert_awaited_once()
        kwargs = client.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})
        user_prompt = kwargs["messages"][1]["content"]
        self.assertIn("from English to French", user_prompt)
        self.assertIn('"Goodbye"', user_prompt)

    async def test_translate_batch_of_blanks_makes_no_request(self):
        client = _client()
        translator = self._translator(client)

        result = await translator.translate_batch(["", "  "], "en", "fr")

        self.assertEqual(result, ["", "  "])
        client.chat.completions.create.assert_not_awaited()

    async def test_translate_batch_returns_mismatched_length_as_is(self):
        client = _client(json.dumps({"translations": ["Bonjour"]}))
        translator = self._translator(client)

        with self.assertLogs('locale_sync', level='WARNING'):
            result = await translator.translate_batch(["Hello", "Goodbye"], "en", "fr")

        self.assertEqual(result, ["Bonjour"])

    async def test_invalid_json_is_retried(self):
        client = _client("not json", json.dumps({"translations": ["Oui"]}))
        translator = self._translator(client)

        with self.assertLogs('locale_sync', level='ERROR'):
            result = await translator.translate_batch(["Yes"], "en", "fr")

        self.assertEqual(result, ["Oui"])
        self.assertEqual(client.chat.completions.create.await_count, 2)
        self.mock_sleep.assert_awaited_once()

    async def test_schema_violation_fails_after_max_retries(self):
        client = _client(
            json.dumps({"translated": ["Oui"]}),
            json.dumps({"translations": "Oui"})
        )
        translator = self._translator(client, max_retries=2)

        with self.assertLogs('locale_sync', level='ERROR'):
            with self.assertRaises(TranslationError):
                await translator.translate_batch(["Yes"], "en", "fr")

        self.assertEqual(client.chat.completions.create.await_count, 2)

    async def test_api_error_is_retried(self):
        client = _client(OpenAIError("connection reset"), json.dumps({"translations": ["Oui"]}))
        translator = self._translator(client)

        with self.assertLogs('locale_sync', level='ERROR') as cm:
            result = await translator.translate_batch(["Yes"], "en", "fr")

        self.assertEqual(result, ["Oui"])
        self.assertIn("API error occurred: OpenAIError", cm.output[0])

    async def test_empty_response_is_retried(self):
        client = _client("", json.dumps({"translations": ["Oui"]}))
        translator = self._translator(client)

        result = await translator.translate_batch(["Yes"], "en", "fr")

        self.assertEqual(result, ["Oui"])

    async def test_translate_tree(self):
        tree = {"title": "Hello", "items": ["One"]}
        client = _client(json.dumps({"translation": {"title": "Bonjour", "items": ["Un"]}}))
        translator = self._translator(client)

        with patch("locale_sync.translator.count_tokens", return_value=10):
            result = await translator.translate_tree(tree, "en", "fr")

        self.assertEqual(result, {"title": "Bonjour", "items": ["Un"]})

    async def test_translate_tree_rejects_oversized_input(self):
        client = _client()
        translator = self._translator(client, max_model_tokens=2000)

        with patch("locale_sync.translator.count_tokens", return_value=1500):
            with self.assertRaises(TranslationError):
                await translator.translate_tree({"a": "A"}, "en", "fr")

        client.chat.completions.create.assert_not_awaited()

    async def test_translate_tree_rejects_scalar_answer(self):
        client = _client(json.dumps({"translation": "Bonjour"}))
        translator = self._translator(client, max_retries=1)

        with patch("locale_sync.translator.count_tokens", return_value=10):
            with self.assertLogs('locale_sync', level='ERROR'):
                with self.assertRaises(TranslationError):
                    await translator.translate_tree({"a": "Hello"}, "en", "fr")

    def test_language_name_falls_back_to_code(self):
        translator = self._translator(_client())

        self.assertEqual(translator.language_name("fr"), "French")
        self.assertEqual(translator.language_name("pt"), "pt")


class TestRetryDelay(unittest.TestCase):

    def _api_error(self, headers):
        error = MagicMock()
        error.response.headers = headers
        return error

    def test_retry_after_seconds(self):
        self.assertEqual(_retry_delay(1, 1.0, self._api_error({"Retry-After": "7"})), 7.0)

    def test_retry_after_milliseconds(self):
        self.assertEqual(_retry_delay(1, 1.0, self._api_error({"Retry-After": "1500ms"})), 1.5)

    def test_exponential_backoff(self):
        delay = _retry_delay(3, 2.0)

        self.assertGreaterEqual(delay, 8.0)
        self.assertLessEqual(delay, 9.0)


class TestCountTokens(unittest.TestCase):

    def test_falls_back_to_whitespace_split(self):
        with patch("locale_sync.translator.tiktoken.encoding_for_model", side_effect=KeyError("model")):
            with patch("locale_sync.translator.tiktoken.get_encoding", side_effect=ValueError("offline")):
                self.assertEqual(count_tokens("three little words"), 3)

    def test_uses_model_encoding(self):
        encoding = MagicMock()
        encoding.encode.return_value = [1, 2, 3, 4]

        with patch("locale_sync.translator.tiktoken.encoding_for_model", return_value=encoding):
            self.assertEqual(count_tokens("anything", "gpt-4o-mini"), 4)


if __name__ == '__main__':
    unittest.main()

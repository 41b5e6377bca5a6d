"""
Translation capability used by the sync workflow.

``Translator`` is the interface the core depends on: a batch-of-strings call
used to fill fragments added to existing files, and a whole-tree call used for
files that do not exist yet in the target language. ``OpenAITranslator``
implements both on top of the OpenAI chat completions API.
"""
import asyncio
import json
import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import jsonschema
import tiktoken
from aiolimiter import AsyncLimiter
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError,
    RateLimitError
)
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

logger = logging.getLogger(__name__)

# The model must answer {"translations": ["...", ...]} for batch requests.
BATCH_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "translations": {"type": "array", "items": {"type": "string"}}
    },
    "required": ["translations"]
}

# The model must answer {"translation": <object or array>} for whole trees.
TREE_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "translation": {"type": ["object", "array"]}
    },
    "required": ["translation"]
}

# Tokens kept free for the instructions and the model's answer.
RESERVED_PROMPT_TOKENS = 1000


class TranslationError(Exception):
    """Raised when the translation backend cannot produce a usable result."""


class Translator(ABC):
    """A machine translation backend."""

    @abstractmethod
    async def translate_batch(self, texts: List[str], source_lang: str, target_lang: str) -> List[str]:
        """
        Translate a list of strings.

        Returns:
            One translated string per input string, in the same order.

        Raises:
            TranslationError: If the batch could not be translated.
        """

    @abstractmethod
    async def translate_tree(self, tree: Any, source_lang: str, target_lang: str) -> Any:
        """
        Translate every string value of a JSON tree, keeping its shape.

        Raises:
            TranslationError: If the tree could not be translated.
        """


def count_tokens(text: str, model_name: str = 'gpt-4o-mini') -> int:
    """Count the number of tokens in ``text`` for ``model_name``.

    ``tiktoken.encoding_for_model`` occasionally attempts a network request to
    download model data if it is not already cached. If obtaining the encoding
    for the requested model fails, the function falls back to ``gpt2`` which
    ships with ``tiktoken``. As a last resort, a simple whitespace split is used.
    """
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except Exception:
        try:
            encoding = tiktoken.get_encoding("gpt2")
        except Exception:
            return len(text.split())

    try:
        return len(encoding.encode(text))
    except Exception:
        return len(text.split())


def _retry_delay(attempt: int, base_delay: float, api_exc: Optional[Exception] = None) -> float:
    """
    Compute how long to wait before the next attempt.

    Honours a ``Retry-After`` header (seconds or milliseconds) when the API
    sent one, and falls back to exponential backoff with jitter.
    """
    try:
        headers = getattr(getattr(api_exc, "response", None), "headers", None) or {}
        retry_after_header = headers.get("Retry-After") if api_exc is not None else None
        if retry_after_header:
            if retry_after_header.isdigit():
                return float(retry_after_header)
            if retry_after_header.endswith("ms"):
                return float(retry_after_header[:-2]) / 1000
    except (AttributeError, ValueError) as exc:
        logger.warning("Failed to parse Retry-After header: %s. Falling back to exponential backoff.", exc)
    return base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1)


class OpenAITranslator(Translator):
    """Translator backed by an OpenAI chat model answering in JSON mode."""

    def __init__(
            self,
            client: AsyncOpenAI,
            model_name: str,
            language_names: Optional[Dict[str, str]] = None,
            max_model_tokens: int = 4000,
            max_concurrent_api_calls: int = 1,
            requests_per_minute: int = 60,
            max_retries: int = 5,
            base_delay: float = 1.0
    ):
        self.client = client
        self.model_name = model_name
        self.language_names = language_names or {}
        self.max_model_tokens = max_model_tokens
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.semaphore = asyncio.Semaphore(max_concurrent_api_calls)
        self.rate_limiter = AsyncLimiter(max_rate=requests_per_minute, time_period=60)

    def language_name(self, code: str) -> str:
        return self.language_names.get(code, code)

    async def translate_batch(self, texts: List[str], source_lang: str, target_lang: str) -> List[str]:
        # Blank entries are passed through so that positions stay aligned.
        positions = [i for i, text in enumerate(texts) if isinstance(text, str) and text.strip()]
        if not positions:
            return list(texts)
        to_send = [texts[i] for i in positions]

        prompt = (
            f"Translate the following list of {len(to_send)} text strings from "
            f"{self.language_name(source_lang)} to {self.language_name(target_lang)}.\n"
            "IMPORTANT: Preserve any interpolation placeholders exactly as they appear in the source text "
            "(e.g., {{variable}}, {variable}, %s, %{variable}, :value). Do not translate the content within placeholders.\n"
            'Return ONLY a JSON object of the form {"translations": ["...", "..."]} where each element is the '
            "translation of the input string at the same position.\n\n"
            f"Input Texts:\n{json.dumps(to_send, ensure_ascii=False, indent=2)}"
        )
        payload = await self._request_json(prompt, BATCH_RESPONSE_SCHEMA, f"batch of {len(to_send)} strings")
        translated = payload["translations"]
        if len(translated) != len(to_send):
            # Returned as is; the caller rejects batches of the wrong length.
            logger.warning(
                "Batch response has %d items for %d input strings.", len(translated), len(to_send)
            )
            return translated

        results = list(texts)
        for position, value in zip(positions, translated):
            results[position] = value
        return results

    async def translate_tree(self, tree: Any, source_lang: str, target_lang: str) -> Any:
        source_json = json.dumps(tree, ensure_ascii=False, indent=2)
        prompt_tokens = count_tokens(source_json, self.model_name)
        if prompt_tokens > self.max_model_tokens - RESERVED_PROMPT_TOKENS:
            raise TranslationError(
                f"Tree of {prompt_tokens} tokens is too large for a single request "
                f"(limit {self.max_model_tokens - RESERVED_PROMPT_TOKENS})."
            )

        prompt = (
            f"Translate the text values within the following JSON value from "
            f"{self.language_name(source_lang)} to {self.language_name(target_lang)}.\n"
            "IMPORTANT INSTRUCTIONS:\n"
            "1. Preserve the exact JSON structure (all keys, nesting, arrays, etc.).\n"
            "2. Translate only the user-facing string values. Do not translate keys or non-string values.\n"
            "3. Preserve any interpolation placeholders exactly as they appear "
            "(e.g., {{variable}}, %s, :value). Do not translate inside placeholders.\n"
            '4. Return ONLY a JSON object of the form {"translation": <translated JSON value>}.\n\n'
            f"Source JSON:\n{source_json}"
        )
        logger.info("Sending JSON structure for translation (%s -> %s)...", source_lang, target_lang)
        payload = await self._request_json(prompt, TREE_RESPONSE_SCHEMA, "JSON structure")
        return payload["translation"]

    async def _request_json(self, prompt: str, schema: Dict[str, Any], description: str) -> Dict[str, Any]:
        """
        Send one prompt and return the validated JSON answer, retrying on API
        errors and on invalid answers.

        Raises:
            TranslationError: When every attempt failed.
        """
        system_prompt = (
            "You are an expert translator specializing in software localization. "
            "Keep translations brief and consistent with typical software terminology. "
            "Do not add explanations, markdown or any text outside the JSON object."
        )
        async with self.semaphore, self.rate_limiter:
            for attempt in range(1, self.max_retries + 1):
                api_exc: Optional[Exception] = None
                response_text = ""
                try:
                    response = await self.client.chat.completions.create(
                        model=self.model_name,
                        messages=[
                            ChatCompletionSystemMessageParam(role="system", content=system_prompt),
                            ChatCompletionUserMessageParam(role="user", content=prompt)
                        ],
                        temperature=0.3,
                        response_format={"type": "json_object"},
                        timeout=120.0,
                    )
                    response_text = (response.choices[0].message.content or "").strip()
                    if not response_text:
                        raise TranslationError(f"Empty response for {description}.")
                    parsed_json = json.loads(response_text)
                    jsonschema.validate(instance=parsed_json, schema=schema)
                    return parsed_json
                except json.JSONDecodeError as json_exc:
                    logger.error("Translation of %s failed: response is not valid JSON. Error: %s", description, json_exc)
                    logger.debug("Invalid response:\n---\n%s\n---", response_text)
                except jsonschema.ValidationError as schema_exc:
                    logger.error(
                        "Translation of %s failed: response does not match the expected schema. Error: %s",
                        description, schema_exc.message
                    )
                    logger.debug("Invalid response:\n---\n%s\n---", response_text)
                except TranslationError as empty_exc:
                    logger.warning("%s", empty_exc)
                except (RateLimitError, APITimeoutError, APIConnectionError, APIStatusError, OpenAIError) as exc:
                    logger.error("API error occurred: %s - %s", exc.__class__.__name__, exc)
                    api_exc = exc

                if attempt < self.max_retries:
                    delay = _retry_delay(attempt, self.base_delay, api_exc)
                    logger.info(
                        "Retrying translation of %s in %.2f seconds (Attempt %d/%d)",
                        description, delay, attempt, self.max_retries
                    )
                    await asyncio.sleep(delay)

        raise TranslationError(f"Translation of {description} failed after {self.max_retries} attempts.")

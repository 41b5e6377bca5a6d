import logging
from typing import Any, Awaitable, Callable, Iterator, List, Optional

from locale_sync.placeholder_validator import compare_placeholders
from locale_sync.translator import TranslationError

logger = logging.getLogger(__name__)

# How many strings are sent per translation request.
BATCH_SIZE = 30

TranslateBatch = Callable[[List[str], str, str], Awaitable[List[str]]]


def collect_strings(node: Any) -> List[str]:
    """
    Collects every non-blank string of a tree in pre-order.

    Object members are visited in insertion order and arrays by index. This
    order is what ``reconstruct_structure`` relies on to put translations back.
    """
    strings: List[str] = []

    def visit(value: Any) -> None:
        if isinstance(value, dict):
            for child in value.values():
                visit(child)
        elif isinstance(value, list):
            for element in value:
                visit(element)
        elif isinstance(value, str) and value.strip():
            strings.append(value)

    visit(node)
    return strings


def reconstruct_structure(node: Any, translations: Iterator[str]) -> Any:
    """
    Rebuilds a tree, replacing each non-blank string with the next translation.

    Args:
        node: The tree that ``collect_strings`` was called on.
        translations: Iterator over one replacement per collected string.

    Returns:
        A new tree; the input is not modified.
    """
    if isinstance(node, dict):
        return {key: reconstruct_structure(child, translations) for key, child in node.items()}
    if isinstance(node, list):
        return [reconstruct_structure(element, translations) for element in node]
    if isinstance(node, str) and node.strip():
        return next(translations, node)
    return node


def _batches(strings: List[str], batch_size: int) -> Iterator[List[str]]:
    for i in range(0, len(strings), batch_size):
        yield strings[i:i + batch_size]


async def translate_fragment(
        fragment: Any,
        source_lang: str,
        target_lang: str,
        translate_batch: TranslateBatch,
        batch_size: int = BATCH_SIZE,
        log: Optional[logging.Logger] = None
) -> Any:
    """
    Translates the strings of a fragment in fixed-size batches.

    A fragment is translated completely or not at all: if any batch fails or
    comes back with the wrong number of strings, TranslationError is raised and
    nothing of the fragment is used. Individual translations that do not keep
    the placeholders of their source string are replaced by the source string.

    Args:
        fragment: The subtree to translate (any JSON value).
        source_lang: Source language code.
        target_lang: Target language code.
        translate_batch: Coroutine function translating a list of strings.
        batch_size: Maximum number of strings per call.
        log: Logger receiving warnings and errors.

    Returns:
        A translated copy of the fragment, or the fragment itself when it holds
        no non-blank string.

    Raises:
        TranslationError: If a batch failed or returned the wrong number of strings.
    """
    log = log or logger
    original_strings = collect_strings(fragment)
    if not original_strings:
        return fragment

    accepted: List[str] = []
    for batch_number, batch in enumerate(_batches(original_strings, batch_size), start=1):
        try:
            translated_batch = await translate_batch(batch, source_lang, target_lang)
        except TranslationError as e:
            log.error("Batch %d translation to '%s' failed: %s. Aborting fragment translation.", batch_number, target_lang, e)
            raise TranslationError(f"Batch {batch_number} translation to '{target_lang}' failed.") from e
        except Exception as e:
            log.error(
                "Unexpected error translating batch %d to '%s': %s. Aborting fragment translation.",
                batch_number, target_lang, e, exc_info=True
            )
            raise TranslationError(f"Batch {batch_number} translation to '{target_lang}' failed.") from e

        if not isinstance(translated_batch, list) or len(translated_batch) != len(batch):
            log.error(
                "Batch translation returned %s items for %d strings. Aborting fragment translation.",
                len(translated_batch) if isinstance(translated_batch, list) else 'no list of',
                len(batch)
            )
            raise TranslationError(f"Batch {batch_number} returned a result of the wrong size.")

        for source_text, translated_text in zip(batch, translated_batch):
            index = len(accepted)
            if not isinstance(translated_text, str):
                log.warning("Batch item index %d is not a string. Keeping the source text.", index)
                accepted.append(source_text)
            elif compare_placeholders(source_text, translated_text, f"batch item index {index}", log):
                accepted.append(translated_text)
            else:
                log.warning("Reverting translation for batch item index %d due to placeholder mismatch.", index)
                accepted.append(source_text)

    return reconstruct_structure(fragment, iter(accepted))

import logging
import re
from typing import Any, List, Optional

from locale_sync.tree_path import ROOT_PATH, index_path, key_path

logger = logging.getLogger(__name__)

# {{ name }}, { name }, %s / %d, %{name} and :name.
# ICU message syntax such as {count, plural, ...} is not recognized.
PLACEHOLDER_PATTERN = re.compile(r'(\{\{\s*[\w.]+\s*\}\}|\{\s*[\w.]+\s*\}|%[sd]|%\{[\w.]+\}|:\w+)')


def extract_placeholders(text: Any) -> List[str]:
    """
    Extracts the unique placeholders of a string, sorted.

    Args:
        text: The text to scan. Anything that is not a string has no placeholders.

    Returns:
        A sorted list of unique placeholder tokens.
    """
    if not isinstance(text, str):
        return []
    return sorted(set(PLACEHOLDER_PATTERN.findall(text)))


def compare_placeholders(
        source_text: str,
        candidate_text: str,
        identifier: str = '',
        log: Optional[logging.Logger] = None
) -> bool:
    """
    Checks that a translation kept the placeholders of its source string.

    The comparison is order independent: translations may move placeholders
    around, but the set of distinct placeholders must be identical.

    Args:
        source_text: The source language string.
        candidate_text: The translated string.
        identifier: Path or index used in the warning message.
        log: Logger receiving mismatch warnings.

    Returns:
        True if the source has no placeholders or both sets match, False otherwise.
    """
    source_placeholders = extract_placeholders(source_text)
    if not source_placeholders:
        return True
    candidate_placeholders = extract_placeholders(candidate_text)
    if source_placeholders == candidate_placeholders:
        return True

    log = log or logger
    kind = 'count' if len(source_placeholders) != len(candidate_placeholders) else 'content'
    log.warning(
        "Placeholder %s mismatch at '%s': source [%s], translation [%s].",
        kind,
        identifier,
        ', '.join(source_placeholders),
        ', '.join(candidate_placeholders)
    )
    return False


def revert_placeholder_mismatches(
        source: Any,
        translated: Any,
        path: str = ROOT_PATH,
        log: Optional[logging.Logger] = None
) -> Any:
    """
    Returns a copy of a translated tree where every string that lost or gained
    placeholders is replaced by its source string.

    Only positions present in both trees with the same container type are
    checked; anything else is copied from ``translated`` as is.
    """
    if isinstance(source, dict) and isinstance(translated, dict):
        return {
            key: (revert_placeholder_mismatches(source[key], value, key_path(path, key), log)
                  if key in source else value)
            for key, value in translated.items()
        }
    if isinstance(source, list) and isinstance(translated, list):
        return [
            revert_placeholder_mismatches(source[i], element, index_path(path, i), log)
            if i < len(source) else element
            for i, element in enumerate(translated)
        ]
    if isinstance(source, str) and isinstance(translated, str):
        if not compare_placeholders(source, translated, path, log):
            (log or logger).warning("Reverting '%s' to source text due to placeholder mismatch.", path)
            return source
    return translated

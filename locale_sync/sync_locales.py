"""
Generate and synchronize target language JSON files from the source language.

``generate`` (re)creates every target file from the source files. ``sync``
keeps existing target files: new content is added (and translated when a
translator is available), content removed from the source is deleted, and
existing translations are left alone.
"""
import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from tqdm import tqdm

from locale_sync.app_config import AppConfig, load_app_config, validate_language_codes
from locale_sync.batch_translation import collect_strings, translate_fragment
from locale_sync.json_files import (
    compare_directories,
    delete_json_file,
    ensure_directory,
    list_json_files,
    read_json_file,
    write_json_file
)
from locale_sync.placeholder_validator import revert_placeholder_mismatches
from locale_sync.translator import OpenAITranslator, TranslationError, Translator
from locale_sync.tree_merge import AddedNode, find_empty_strings, merge_trees
from locale_sync.tree_path import PathStep, set_value_at_steps
from locale_sync.tree_structure import build_empty, is_container

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Counts of what a generate or sync run did."""
    files_added: int = 0
    files_deleted: int = 0
    files_updated: int = 0
    files_unchanged: int = 0
    failed_files: Dict[str, str] = field(default_factory=dict)

    @property
    def operations(self) -> int:
        return self.files_added + self.files_deleted + self.files_updated

    def record_failure(self, name: str, error: Any) -> None:
        self.failed_files[name] = str(error)


def create_translator(config: AppConfig) -> Optional[Translator]:
    """Build the translator for a run, or None when translation is disabled."""
    if not config.enable_translation or config.openai_client is None:
        return None
    return OpenAITranslator(
        client=config.openai_client,
        model_name=config.model_name,
        language_names=config.language_codes,
        max_model_tokens=config.max_model_tokens,
        max_concurrent_api_calls=config.max_concurrent_api_calls,
        requests_per_minute=config.requests_per_minute
    )


def _is_within(steps: Tuple[PathStep, ...], prefix: Tuple[PathStep, ...]) -> bool:
    return steps[:len(prefix)] == prefix


async def translate_new_tree(
        source_tree: Any,
        source_lang: str,
        target_lang: str,
        translator: Optional[Translator]
) -> Any:
    """
    Produce the content of a target file that does not exist yet.

    The whole tree is translated in one request. Without a translator, or when
    translation fails, the empty structure of the source is used instead. The
    result always has the source's structure, and strings whose placeholders
    were damaged are reverted to the source text.
    """
    if translator is None or not is_container(source_tree):
        return build_empty(source_tree)

    try:
        translated = await translator.translate_tree(source_tree, source_lang, target_lang)
    except TranslationError as e:
        logger.warning("Whole-file translation to '%s' failed: %s. Creating empty structure.", target_lang, e)
        return build_empty(source_tree)
    except Exception as e:
        logger.error("Unexpected error translating to '%s': %s. Creating empty structure.", target_lang, e, exc_info=True)
        return build_empty(source_tree)

    added_nodes: List[AddedNode] = []
    result = merge_trees(source_tree, translated, added_nodes=added_nodes)
    if added_nodes:
        logger.warning(
            "Translated structure for '%s' differed from the source at %d place(s); those parts were left empty.",
            target_lang, len(added_nodes)
        )
    return revert_placeholder_mismatches(source_tree, result.merged_node)


async def add_file(
        config: AppConfig,
        translator: Optional[Translator],
        filename: str,
        target_lang: str,
        source_tree: Any
) -> None:
    target_path = os.path.join(config.target_dir(target_lang), filename)
    action = 'Adding & Translating file' if translator else 'Adding file'
    logger.info("%s: %s/%s", action, target_lang, filename)
    target_tree = await translate_new_tree(source_tree, config.source_language, target_lang, translator)
    write_json_file(target_path, target_tree, config.dry_run)


async def sync_file(
        config: AppConfig,
        translator: Optional[Translator],
        filename: str,
        target_lang: str,
        source_tree: Any
) -> bool:
    """
    Bring one existing target file in line with its source file.

    Args:
        config: The run configuration.
        translator: Translator for added content, or None.
        filename: File name inside the language directories.
        target_lang: Target language code.
        source_tree: The parsed source file.

    Returns:
        True if the target file was (or in dry-run mode, would be) rewritten.

    Raises:
        OSError: If the target file cannot be read or written.
    """
    target_path = os.path.join(config.target_dir(target_lang), filename)
    source_lang = config.source_language

    try:
        target_tree = read_json_file(target_path)
    except json.JSONDecodeError as e:
        logger.warning(
            "Invalid JSON in target file '%s'. Overwriting with %s source structure. Error: %s",
            target_path, 'translated' if translator else 'empty', e
        )
        replacement = await translate_new_tree(source_tree, source_lang, target_lang, translator)
        write_json_file(target_path, replacement, config.dry_run)
        return True

    added_nodes: List[AddedNode] = []
    result = merge_trees(source_tree, target_tree, added_nodes=added_nodes)
    merged = result.merged_node
    changed = result.changed

    pending = list(added_nodes)
    if translator is not None and config.fill_empty_strings:
        pending.extend(
            node for node in find_empty_strings(source_tree, merged)
            if not any(_is_within(node.steps, added.steps) for added in added_nodes)
        )

    if translator is not None and pending:
        logger.info("Translating %d added structure(s)/key(s) for %s/%s...", len(pending), target_lang, filename)
        translation_applied = False
        for node in pending:
            if not collect_strings(node.source_value):
                continue
            try:
                translated = await translate_fragment(
                    node.source_value, source_lang, target_lang, translator.translate_batch, config.batch_size
                )
            except TranslationError:
                # The empty placeholder stays for the next run.
                continue
            if not node.steps:
                merged = translated
                translation_applied = True
            elif set_value_at_steps(merged, node.steps, translated):
                translation_applied = True
        if translation_applied:
            logger.info("Finished translating added part(s) for %s/%s.", target_lang, filename)
        changed = changed or translation_applied

    if not changed:
        logger.info("No structural changes or translations needed for %s/%s.", target_lang, filename)
        return False

    logger.info("Applying changes to %s/%s.", target_lang, filename)
    write_json_file(target_path, merged, config.dry_run)
    return True


def _load_source_trees(source_dir: str, filenames: List[str], report: SyncReport) -> Dict[str, Any]:
    """Parse every source file once; unparseable files are reported and left out."""
    trees: Dict[str, Any] = {}
    for filename in filenames:
        source_path = os.path.join(source_dir, filename)
        try:
            trees[filename] = read_json_file(source_path)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Error reading source file '%s': %s. It will be skipped.", source_path, e)
            report.record_failure(filename, e)
    return trees


def _require_source_dir(source_dir: str) -> List[str]:
    if not os.path.isdir(source_dir):
        raise FileNotFoundError(f"Source directory not found: {source_dir}")
    source_files = list_json_files(source_dir)
    if source_files:
        logger.info("Found source JSON files: %s", ', '.join(source_files))
    else:
        logger.warning("No JSON files found in '%s'.", source_dir)
    return source_files


async def run_generate(config: AppConfig, translator: Optional[Translator] = None) -> SyncReport:
    """
    Create (or overwrite) every target language file from the source files.

    Raises:
        FileNotFoundError: If the source directory does not exist.
        PermissionError: If the source directory cannot be read.
    """
    mode = 'Translation (Whole JSON Mode)' if translator else 'Generation'
    logger.info("Running Structure %s", mode)
    report = SyncReport()
    source_trees = _load_source_trees(config.source_dir, _require_source_dir(config.source_dir), report)

    for target_lang in config.target_languages:
        if target_lang == config.source_language:
            logger.warning("Skipping source language '%s' listed as a target language.", target_lang)
            continue
        try:
            ensure_directory(config.target_dir(target_lang), config.dry_run)
        except OSError as e:
            logger.error("Error creating directory for '%s': %s", target_lang, e)
            report.record_failure(target_lang, e)
            continue

        for filename in tqdm(list(source_trees), desc=f"Generating {target_lang}", unit="file"):
            try:
                await add_file(config, translator, filename, target_lang, source_trees[filename])
                report.files_added += 1
            except OSError as e:
                logger.error("Error writing file %s for %s: %s", filename, target_lang, e)
                report.record_failure(f"{target_lang}/{filename}", e)

    return report


async def sync_language(
        config: AppConfig,
        translator: Optional[Translator],
        target_lang: str,
        source_trees: Dict[str, Any],
        report: SyncReport
) -> None:
    """Add, delete and sync the files of one target language."""
    target_dir = config.target_dir(target_lang)
    diff = compare_directories(config.source_dir, target_dir, config.dry_run)

    work = (
        [('add', filename) for filename in diff.files_to_add]
        + [('delete', filename) for filename in diff.files_to_delete]
        + [('sync', filename) for filename in diff.files_to_sync]
    )
    for action, filename in tqdm(work, desc=f"Syncing {target_lang}", unit="file"):
        name = f"{target_lang}/{filename}"
        if action != 'delete' and filename not in source_trees:
            continue
        try:
            if action == 'add':
                await add_file(config, translator, filename, target_lang, source_trees[filename])
                report.files_added += 1
            elif action == 'delete':
                logger.info("Deleting file: %s", name)
                delete_json_file(os.path.join(target_dir, filename), config.dry_run)
                report.files_deleted += 1
            elif await sync_file(config, translator, filename, target_lang, source_trees[filename]):
                report.files_updated += 1
            else:
                report.files_unchanged += 1
        except OSError as e:
            logger.error("Error processing file %s: %s", name, e)
            report.record_failure(name, e)


async def run_sync(config: AppConfig, translator: Optional[Translator] = None) -> SyncReport:
    """
    Synchronize every target language directory with the source directory.

    Raises:
        FileNotFoundError: If the source directory does not exist.
        PermissionError: If the source directory cannot be read.
    """
    mode = 'Translation & Sync' if translator else 'Sync'
    logger.info("Starting Structure %s...", mode)
    report = SyncReport()
    source_trees = _load_source_trees(config.source_dir, _require_source_dir(config.source_dir), report)

    for target_lang in config.target_languages:
        if target_lang == config.source_language:
            logger.info("Skipping sync for source language: %s", target_lang)
            continue
        logger.info("Syncing language: %s", target_lang)
        operations_before = report.operations
        try:
            await sync_language(config, translator, target_lang, source_trees, report)
        except OSError as e:
            logger.error("Failed to sync language %s: %s", target_lang, e)
            report.record_failure(target_lang, e)
            continue
        performed = report.operations - operations_before
        if performed:
            logger.info("Finished syncing %s. Operations performed: %d", target_lang, performed)
        else:
            logger.info("Finished syncing %s. No operations were needed.", target_lang)

    return report


def log_report(command: str, report: SyncReport) -> None:
    logger.info(
        "%s complete: %d added, %d deleted, %d updated, %d unchanged.",
        command.capitalize(), report.files_added, report.files_deleted, report.files_updated, report.files_unchanged
    )
    if report.failed_files:
        logger.warning("%d item(s) could not be processed:", len(report.failed_files))
        for name, error in report.failed_files.items():
            logger.warning("  - %s: %s", name, error)


COMMANDS = {
    'generate': run_generate,
    'sync': run_sync,
}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='locale-sync',
        description="Generate or synchronize per-language JSON files from a source language."
    )
    parser.add_argument('command', choices=sorted(COMMANDS), help="generate: recreate target files; sync: update them")
    parser.add_argument('--config', default=None, help="Path to the YAML configuration file")
    parser.add_argument('--base-dir', default=None, help="Directory containing one folder per language")
    parser.add_argument('--source', default=None, help="Source language code, e.g. en")
    parser.add_argument('--targets', default=None, help="Comma-separated target language codes, e.g. fr,de")
    parser.add_argument('--translate', action=argparse.BooleanOptionalAction, default=None,
                        help="Translate new content with OpenAI (requires OPENAI_API_KEY)")
    parser.add_argument('--dry-run', action='store_true', default=None, help="Only log what would change")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command line entry point.

    Returns:
        The process exit code.
    """
    args = build_arg_parser().parse_args(argv)
    config = load_app_config(args.config, overrides={
        'base_dir': args.base_dir,
        'source_language': args.source,
        'target_languages': args.targets,
        'enable_translation': args.translate,
        'dry_run': args.dry_run,
    })

    errors = validate_language_codes(config.source_language, config.target_languages)
    if errors:
        for error in errors:
            logger.error(error)
        return 2

    translator = create_translator(config)
    try:
        report = asyncio.run(COMMANDS[args.command](config, translator))
    except (FileNotFoundError, PermissionError) as e:
        logger.critical("%s failed: %s", args.command.capitalize(), e)
        return 1

    log_report(args.command, report)
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()

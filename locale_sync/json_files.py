import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, List

logger = logging.getLogger(__name__)


@dataclass
class DirectoryDiff:
    """File names (not paths) to add to, delete from and sync in a target directory."""
    files_to_add: List[str] = field(default_factory=list)
    files_to_delete: List[str] = field(default_factory=list)
    files_to_sync: List[str] = field(default_factory=list)


def read_json_file(file_path: str) -> Any:
    """
    Read and parse a UTF-8 JSON file.

    Raises:
        OSError: If the file cannot be read.
        json.JSONDecodeError: If the content is not valid JSON.
    """
    with open(file_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def serialize_json(tree: Any) -> str:
    """Pretty-print a tree with two-space indentation, keeping key order and non-ASCII text."""
    return json.dumps(tree, ensure_ascii=False, indent=2) + '\n'


def write_json_file(file_path: str, tree: Any, dry_run: bool = False) -> None:
    """
    Write a tree to a JSON file, creating the parent directory if needed.

    Args:
        file_path: Destination path.
        tree: The tree to serialize.
        dry_run: If True, only log what would be written.
    """
    if dry_run:
        logger.info("[Dry Run] Would write '%s'.", file_path)
        return
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(file_path, 'w', encoding='utf-8') as f:
        f.write(serialize_json(tree))


def delete_json_file(file_path: str, dry_run: bool = False) -> None:
    if dry_run:
        logger.info("[Dry Run] Would delete '%s'.", file_path)
        return
    os.remove(file_path)


def list_json_files(directory: str) -> List[str]:
    """
    List the ``*.json`` files of a directory, sorted by name.

    Raises:
        FileNotFoundError: If the directory does not exist.
        PermissionError: If the directory cannot be read.
    """
    return sorted(
        entry.name for entry in os.scandir(directory)
        if entry.is_file() and entry.name.endswith('.json')
    )


def ensure_directory(directory: str, dry_run: bool = False) -> None:
    if os.path.isdir(directory):
        return
    if dry_run:
        logger.info("[Dry Run] Would create directory '%s'.", directory)
        return
    os.makedirs(directory, exist_ok=True)
    logger.info("Created directory '%s'.", directory)


def compare_directories(source_dir: str, target_dir: str, dry_run: bool = False) -> DirectoryDiff:
    """
    Work out which files a target language directory is missing, which it no
    longer needs and which it shares with the source directory.

    A missing target directory is created, and then every source file is
    reported as missing.

    Args:
        source_dir: The source language directory.
        target_dir: The target language directory.
        dry_run: If True, a missing target directory is not created.

    Returns:
        The sorted file lists.

    Raises:
        FileNotFoundError: If the source directory does not exist.
        PermissionError: If the source directory cannot be read.
    """
    source_files = set(list_json_files(source_dir))

    target_files: set = set()
    if os.path.isdir(target_dir):
        try:
            target_files = set(list_json_files(target_dir))
        except OSError as e:
            logger.warning("Could not read target directory '%s': %s", target_dir, e)
    else:
        logger.info("Target directory '%s' not found. Will create it and add all source files.", target_dir)
        ensure_directory(target_dir, dry_run)

    return DirectoryDiff(
        files_to_add=sorted(source_files - target_files),
        files_to_delete=sorted(target_files - source_files),
        files_to_sync=sorted(source_files & target_files)
    )

"""
Structural merge of a target language tree against the source language tree.

The merge adds what the source has and the target lacks, removes what the
target has and the source no longer has, replaces branches whose container
type changed, and leaves every other value of the target untouched. Each point
where new content was introduced is reported as an ``AddedNode`` so that the
caller can translate exactly that content afterwards.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from locale_sync.tree_path import ROOT_PATH, IndexStep, KeyStep, PathStep, index_path, key_path
from locale_sync.tree_structure import CONTAINER_TYPES, TreeNode, build_empty, node_type

logger = logging.getLogger(__name__)


@dataclass
class DiffResult:
    merged_node: TreeNode
    changed: bool


@dataclass
class AddedNode:
    """
    A subtree introduced by the merge.

    ``steps`` locates it in the merged tree; ``path`` is the same location as
    a string, for logs and reports.
    """
    path: str
    source_value: TreeNode
    steps: Tuple[PathStep, ...] = field(default=(), compare=False)


def merge_trees(
        source: TreeNode,
        target: TreeNode,
        path: str = ROOT_PATH,
        added_nodes: Optional[List[AddedNode]] = None,
        log: Optional[logging.Logger] = None,
        steps: Tuple[PathStep, ...] = ()
) -> DiffResult:
    """
    Recursively reconcile ``target`` with the structure of ``source``.

    Args:
        source: Node of the source language tree.
        target: Node at the same position in the target language tree.
        path: Path of this node, used for reporting.
        added_nodes: List collecting one AddedNode per addition point, in the
            order they are discovered. Pass the same list for the whole merge.
        log: Logger receiving the added/removed/replaced messages.
        steps: Typed steps of this node; empty at the root.

    Returns:
        DiffResult with the merged node and whether anything changed.
    """
    if added_nodes is None:
        added_nodes = []
    log = log or logger

    source_type = node_type(source)
    target_type = node_type(target)

    if source_type != target_type:
        if source_type in CONTAINER_TYPES or target_type in CONTAINER_TYPES:
            log.warning(
                "Structural mismatch at '%s'. Type changed from '%s' to '%s'. "
                "Replacing target branch with empty structure.",
                path, target_type, source_type
            )
            added_nodes.append(AddedNode(path, source, steps))
            return DiffResult(build_empty(source), True)
        # Scalar drift such as string -> number keeps the target's value.
        return DiffResult(target, False)

    if source_type == 'array':
        return _merge_arrays(source, target, path, steps, added_nodes, log)
    if source_type == 'object':
        return _merge_objects(source, target, path, steps, added_nodes, log)
    return DiffResult(target, False)


def _merge_arrays(
        source: List[Any],
        target: List[Any],
        path: str,
        steps: Tuple[PathStep, ...],
        added_nodes: List[AddedNode],
        log: logging.Logger
) -> DiffResult:
    merged = []
    changed = False
    for i in range(max(len(source), len(target))):
        element_path = index_path(path, i)
        element_steps = steps + (IndexStep(i),)
        if i < len(source) and i < len(target):
            result = merge_trees(source[i], target[i], element_path, added_nodes, log, element_steps)
            merged.append(result.merged_node)
            changed = changed or result.changed
        elif i < len(source):
            log.info("Added structure at '%s'", element_path)
            merged.append(build_empty(source[i]))
            added_nodes.append(AddedNode(element_path, source[i], element_steps))
            changed = True
        else:
            log.info("Removed structure at '%s'", element_path)
            changed = True
    return DiffResult(merged, changed)


def _merge_objects(
        source: dict,
        target: dict,
        path: str,
        steps: Tuple[PathStep, ...],
        added_nodes: List[AddedNode],
        log: logging.Logger
) -> DiffResult:
    merged = dict(target)
    changed = False

    for key, source_child in source.items():
        child_path = key_path(path, key)
        child_steps = steps + (KeyStep(key),)
        if key in target:
            result = merge_trees(source_child, target[key], child_path, added_nodes, log, child_steps)
            if result.changed:
                merged[key] = result.merged_node
                changed = True
        else:
            log.info("Added key: '%s'", child_path)
            merged[key] = build_empty(source_child)
            added_nodes.append(AddedNode(child_path, source_child, child_steps))
            changed = True

    # Deletions are computed from the original target keys, never from `merged`.
    for key in target:
        if key not in source:
            log.info("Removed key: '%s'", key_path(path, key))
            del merged[key]
            changed = True

    return DiffResult(merged, changed)


def find_empty_strings(
        source: TreeNode,
        merged: TreeNode,
        path: str = ROOT_PATH,
        steps: Tuple[PathStep, ...] = ()
) -> List[AddedNode]:
    """
    Find strings that are empty in a merged tree but have content in the source.

    These are left behind by earlier runs whose translation failed or that ran
    without translation. Only positions where both trees have the same type are
    considered, so this is meant to run on the output of ``merge_trees``.

    Args:
        source: The source language tree.
        merged: A tree with the same structure as ``source``.
        path: Path of this node.
        steps: Typed steps of this node; empty at the root.

    Returns:
        One AddedNode per empty string, in pre-order.
    """
    found: List[AddedNode] = []
    if isinstance(source, dict) and isinstance(merged, dict):
        for key, source_child in source.items():
            if key in merged:
                found.extend(find_empty_strings(
                    source_child, merged[key], key_path(path, key), steps + (KeyStep(key),)
                ))
    elif isinstance(source, list) and isinstance(merged, list):
        for i, (source_element, merged_element) in enumerate(zip(source, merged)):
            found.extend(find_empty_strings(
                source_element, merged_element, index_path(path, i), steps + (IndexStep(i),)
            ))
    elif isinstance(source, str) and isinstance(merged, str):
        if source.strip() and not merged.strip():
            found.append(AddedNode(path, source, steps))
    return found

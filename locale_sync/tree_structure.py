from typing import Any, Dict, List, Union

# A JSON-shaped value as produced by json.load.
TreeNode = Union[Dict[str, Any], List[Any], str, int, float, bool, None]

CONTAINER_TYPES = ('object', 'array')


def node_type(value: Any) -> str:
    """
    Classify a JSON value for structural comparison.

    Args:
        value: Any value produced by json.load.

    Returns:
        One of 'object', 'array', 'string', 'number', 'boolean' or 'null'.
    """
    # bool must be tested before numbers, isinstance(True, int) is True.
    if isinstance(value, bool):
        return 'boolean'
    if value is None:
        return 'null'
    if isinstance(value, dict):
        return 'object'
    if isinstance(value, list):
        return 'array'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, (int, float)):
        return 'number'
    raise TypeError(f"Unsupported JSON value of type '{type(value).__name__}'.")


def is_container(value: Any) -> bool:
    """Return True if the value is a JSON object or array."""
    return isinstance(value, (dict, list))


def build_empty(value: TreeNode) -> TreeNode:
    """
    Build a new tree mirroring the input structure with every string blanked.

    Objects keep their keys in insertion order, arrays keep their length,
    numbers, booleans and null are returned as they are. The input is never
    modified.

    Args:
        value: The tree (or scalar) to mirror.

    Returns:
        The mirrored tree.
    """
    if isinstance(value, dict):
        return {key: build_empty(child) for key, child in value.items()}
    if isinstance(value, list):
        return [build_empty(element) for element in value]
    if isinstance(value, str):
        return ""
    return value

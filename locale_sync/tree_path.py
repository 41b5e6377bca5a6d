"""
Path addressing for JSON trees.

Paths are written as ``root`` followed by ``.key`` steps for object members and
``[index]`` steps for array elements, e.g. ``root.menu.items[2].label``. The
string form is what gets logged and reported; internally a path is a tuple of
typed steps.

Keys that themselves contain ``.`` or ``[`` cannot be addressed unambiguously in
string form, so writes go through typed steps (``set_value_at_steps``).
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

ROOT_PATH = 'root'


class PathSyntaxError(ValueError):
    """Raised when a path string cannot be parsed."""


@dataclass(frozen=True)
class KeyStep:
    key: str

    def __str__(self) -> str:
        return f".{self.key}"


@dataclass(frozen=True)
class IndexStep:
    index: int

    def __str__(self) -> str:
        return f"[{self.index}]"


PathStep = Union[KeyStep, IndexStep]


def key_path(path: str, key: str) -> str:
    """Extend a path string with an object member step."""
    return f"{path}.{key}"


def index_path(path: str, index: int) -> str:
    """Extend a path string with an array element step."""
    return f"{path}[{index}]"


def format_path(steps: Tuple[PathStep, ...]) -> str:
    """Render typed steps back to their string form."""
    return ROOT_PATH + ''.join(str(step) for step in steps)


def parse_path(path: str) -> Tuple[PathStep, ...]:
    """
    Parse a path string into typed steps.

    A leading ``root`` token is optional: ``root.a[0]`` and ``a[0]`` both
    parse to ``(KeyStep('a'), IndexStep(0))``.

    Args:
        path: The path string.

    Returns:
        The ordered steps; empty for ``root``.

    Raises:
        PathSyntaxError: If the string is not a well-formed path.
    """
    if not isinstance(path, str):
        raise PathSyntaxError(f"Path must be a string, got {type(path).__name__}.")

    if path == ROOT_PATH or path.startswith((ROOT_PATH + '.', ROOT_PATH + '[')):
        remainder = path[len(ROOT_PATH):]
    elif path.startswith('['):
        remainder = path
    else:
        remainder = '.' + path

    steps: List[PathStep] = []
    position = 0
    length = len(remainder)
    while position < length:
        char = remainder[position]
        if char == '.':
            end = position + 1
            while end < length and remainder[end] not in '.[':
                end += 1
            steps.append(KeyStep(remainder[position + 1:end]))
            position = end
        elif char == '[':
            close = remainder.find(']', position)
            if close == -1:
                raise PathSyntaxError(f"Unterminated index in path '{path}'.")
            digits = remainder[position + 1:close]
            if not digits.isdigit():
                raise PathSyntaxError(f"Invalid array index '{digits}' in path '{path}'.")
            steps.append(IndexStep(int(digits)))
            position = close + 1
        else:
            raise PathSyntaxError(f"Unexpected character '{char}' at offset {position} in path '{path}'.")
    return tuple(steps)


def _container_for(step: PathStep) -> Any:
    return [] if isinstance(step, IndexStep) else {}


def _fits(container: Any, step: PathStep) -> bool:
    if isinstance(step, IndexStep):
        return isinstance(container, list)
    return isinstance(container, dict)


def _read_child(container: Any, step: PathStep) -> Any:
    if isinstance(step, IndexStep):
        return container[step.index] if step.index < len(container) else None
    return container.get(step.key)


def _write_child(container: Any, step: PathStep, value: Any) -> None:
    if isinstance(step, IndexStep):
        if step.index >= len(container):
            container.extend([None] * (step.index + 1 - len(container)))
        container[step.index] = value
    else:
        container[step.key] = value


def get_value_at_path(tree: Any, path: str) -> Any:
    """
    Read the value at a path.

    Raises:
        PathSyntaxError: If the path is malformed.
        KeyError, IndexError, TypeError: If the path does not exist in the tree.
    """
    current = tree
    for step in parse_path(path):
        if isinstance(step, IndexStep):
            if not isinstance(current, list):
                raise TypeError(f"Expected an array before '{step}' in path '{path}'.")
            current = current[step.index]
        else:
            if not isinstance(current, dict):
                raise TypeError(f"Expected an object before '{step}' in path '{path}'.")
            current = current[step.key]
    return current


def _has_child(container: Any, step: PathStep) -> bool:
    if isinstance(step, IndexStep):
        return step.index < len(container)
    return step.key in container


def _kind(step: PathStep) -> str:
    return 'array' if isinstance(step, IndexStep) else 'object'


def set_value_at_steps(
        tree: Any,
        steps: Tuple[PathStep, ...],
        value: Any,
        log: Optional[logging.Logger] = None
) -> bool:
    """
    Set a value at a sequence of typed steps, modifying the tree in place.

    Missing intermediate positions are created as arrays when the next step is
    an index and as objects otherwise. An existing intermediate value of the
    wrong kind, ``null`` included, is overwritten with a fresh container and a
    warning is logged. An empty step sequence or a root of the wrong kind
    cannot be handled in place; the error is logged and nothing changes.

    Args:
        tree: The root object or array to modify.
        steps: The typed steps, e.g. from ``parse_path`` or ``AddedNode.steps``.
        value: The value to store.
        log: Logger receiving warnings and errors.

    Returns:
        True if the value was set, False if the call was abandoned.
    """
    log = log or logger
    path = format_path(steps)

    if not steps:
        log.error("Cannot set value at '%s': the root cannot be replaced in place.", path)
        return False

    if not _fits(tree, steps[0]):
        log.error(
            "Cannot set value at '%s': root is %s but the first step '%s' needs an %s.",
            path, type(tree).__name__, steps[0], _kind(steps[0])
        )
        return False

    current = tree
    for i, step in enumerate(steps[:-1]):
        next_step = steps[i + 1]
        exists = _has_child(current, step)
        child = _read_child(current, step)
        if exists and not _fits(child, next_step):
            log.warning(
                "Path type mismatch at '%s'. Expected %s, found %s. Overwriting.",
                format_path(steps[:i + 1]),
                _kind(next_step),
                'null' if child is None else type(child).__name__
            )
            child = None
        if child is None:
            child = _container_for(next_step)
            _write_child(current, step, child)
        current = child

    _write_child(current, steps[-1], value)
    return True


def set_value_at_path(tree: Any, path: str, value: Any, log: Optional[logging.Logger] = None) -> bool:
    """
    Set a value at a path string, modifying the tree in place.

    Keys containing ``.`` or ``[`` cannot be expressed this way; use
    ``set_value_at_steps`` with the steps recorded during the merge.

    Returns:
        True if the value was set, False if the path is malformed or the call
        was abandoned (see ``set_value_at_steps``).
    """
    log = log or logger
    try:
        steps = parse_path(path)
    except PathSyntaxError as e:
        log.error("Cannot set value: %s", e)
        return False
    return set_value_at_steps(tree, steps, value, log)

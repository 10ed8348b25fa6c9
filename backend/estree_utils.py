"""
Small helpers for working with ESTree trees held as plain dicts.
"""

from typing import Any, Optional

from contract_errors import TreeTooDeepError


def is_node(value: Any) -> bool:
    """True for a dict carrying an ESTree ``type`` discriminant."""
    return isinstance(value, dict) and "type" in value


def node_type(value: Any) -> str:
    """Return the node kind, or a readable stand-in for non-node values."""
    if is_node(value):
        return value["type"]
    if value is None:
        return "null"
    return type(value).__name__


def node_line(node: Any) -> Optional[int]:
    """Start line of a node parsed with locations, otherwise None."""
    if not isinstance(node, dict):
        return None
    loc = node.get("loc") or {}
    start = loc.get("start") or {}
    return start.get("line")


def check_depth(depth: int, max_depth: int) -> None:
    if depth > max_depth:
        raise TreeTooDeepError(max_depth)

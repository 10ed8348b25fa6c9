"""
Identifier sanitization for contract ASTs.

Every identifier a contract writes is renamed with a fixed prefix, so a
contract that assigns `gamma = 0` touches `sanitized_gamma` instead of
the runtime's own counter. Two things are left alone: names in the
exclusion set (contract lifecycle and intrinsic names) and plain member
accesses on the host namespace (`UltraDark.chargeGamma`), so host API
calls still resolve after sanitization.

Sanitization runs exactly once, before instrumentation. Running it twice
prefixes every name twice.
"""

import copy
from typing import AbstractSet, Any, Dict, Optional

from config import (
    DEFAULT_EXCLUDED_IDENTIFIERS,
    DEFAULT_HOST_NAMESPACE,
    DEFAULT_MAX_TREE_DEPTH,
    DEFAULT_SANITIZE_PREFIX,
)
from estree_utils import check_depth, node_type


class ContractSanitizer:
    def __init__(
        self,
        excluded_identifiers: Optional[AbstractSet[str]] = None,
        prefix: str = DEFAULT_SANITIZE_PREFIX,
        host_namespace: str = DEFAULT_HOST_NAMESPACE,
        max_depth: int = DEFAULT_MAX_TREE_DEPTH,
    ):
        self.excluded_identifiers = frozenset(
            DEFAULT_EXCLUDED_IDENTIFIERS if excluded_identifiers is None else excluded_identifiers
        )
        self.prefix = prefix
        self.host_namespace = host_namespace
        self.max_depth = max_depth

    def sanitize(self, computation: Any, depth: int = 0) -> Any:
        check_depth(depth, self.max_depth)

        if isinstance(computation, list):
            return [self.sanitize(item, depth + 1) for item in computation]
        if not isinstance(computation, dict):
            return computation

        kind = computation.get("type")
        if kind == "Identifier":
            return self._sanitize_identifier(computation)
        if kind == "MemberExpression" and self.is_host_access(computation):
            return copy.deepcopy(computation)
        return {key: self.sanitize(value, depth + 1) for key, value in computation.items()}

    def is_host_access(self, member: Dict[str, Any]) -> bool:
        """`Host.name` is exempt; `Host[expr]` is not, since expr is contract code."""
        obj = member.get("object")
        return (
            not member.get("computed", False)
            and node_type(obj) == "Identifier"
            and obj.get("name") == self.host_namespace
        )

    def _sanitize_identifier(self, identifier: Dict[str, Any]) -> Dict[str, Any]:
        name = identifier.get("name")
        if name in self.excluded_identifiers:
            return copy.deepcopy(identifier)
        return {**copy.deepcopy(identifier), "name": f"{self.prefix}{name}"}


def sanitize_computation(
    tree: Any,
    excluded_identifiers: Optional[AbstractSet[str]] = None,
    prefix: str = DEFAULT_SANITIZE_PREFIX,
    host_namespace: str = DEFAULT_HOST_NAMESPACE,
    max_depth: int = DEFAULT_MAX_TREE_DEPTH,
) -> Any:
    sanitizer = ContractSanitizer(
        excluded_identifiers=excluded_identifiers,
        prefix=prefix,
        host_namespace=host_namespace,
        max_depth=max_depth,
    )
    return sanitizer.sanitize(tree)

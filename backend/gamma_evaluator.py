"""
Gamma evaluation for ESTree computations.

Gamma is computed by structural case analysis on the node kind:
operators are priced from the cost table, statements cost what they
wrap, literal declarations pay for the bytes they store.

Unknown node kinds are a soft failure by default: a warning is logged
and recorded on the evaluator, and the node costs 0. Strict evaluators
raise UnhandledNodeError instead so the contract is rejected.
"""

import json
from typing import Any, Callable, Dict, List, Optional

from config import DEFAULT_MAX_TREE_DEPTH, configure_logger
from contract_errors import LiteralNotCostedError, UnhandledNodeError
from estree_utils import check_depth, is_node, node_type
from gamma_model import gamma_for_operator

logger = configure_logger(__name__)

# Storage price of a declared literal
GAMMA_PER_BYTE = 2_500

# Node kinds that execute nothing on their own
ZERO_GAMMA_NODES = frozenset({
    "Literal",
    "Identifier",
    "ThisExpression",
    "EmptyStatement",
    "FunctionDeclaration",
    "BreakStatement",
    "ContinueStatement",
    # Statements inside a block carry their own charges
    "BlockStatement",
})


def serialize_literal(value: Any) -> bytes:
    """Deterministic byte encoding of a literal value (compact JSON, UTF-8).

    Raises:
        LiteralNotCostedError: The value has no JSON encoding
    """
    # esprima reads decimal literals as floats; `5` must serialize as `5`
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    try:
        encoded = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except TypeError:
        raise LiteralNotCostedError(type(value).__name__) from None
    return encoded.encode("utf-8")


def gamma_for_declaration(value: Any) -> int:
    """Gamma needed to store a declared literal: 2500 per serialized byte."""
    return len(serialize_literal(value)) * GAMMA_PER_BYTE


class GammaEvaluator:
    """Computes the gamma of a node or a sequence of nodes.

    One evaluator per compilation: ``warnings`` accumulates the soft
    failures seen so far and is never shared between contracts.
    """

    def __init__(self, strict: bool = False, max_depth: int = DEFAULT_MAX_TREE_DEPTH):
        self.strict = strict
        self.max_depth = max_depth
        self.warnings: List[str] = []

    def gamma_for(self, computation: Any, depth: int = 0) -> int:
        check_depth(depth, self.max_depth)

        if isinstance(computation, list):
            return sum(self.gamma_for(item, depth + 1) for item in computation)

        kind = node_type(computation)
        if kind in ZERO_GAMMA_NODES:
            return 0

        handler = self._HANDLERS.get(kind) if is_node(computation) else None
        if handler is None:
            return self._unhandled(kind)
        return handler(self, computation, depth + 1)

    # --- Node handlers ---

    def _operator(self, node: Dict[str, Any], depth: int) -> int:
        return gamma_for_operator(node["operator"])

    def _expression_statement(self, node: Dict[str, Any], depth: int) -> int:
        return self.gamma_for(node["expression"], depth)

    def _return_statement(self, node: Dict[str, Any], depth: int) -> int:
        if node.get("argument") is None:
            return 0
        return self.gamma_for(node["argument"], depth)

    def _variable_declaration(self, node: Dict[str, Any], depth: int) -> int:
        return self.gamma_for(node.get("declarations", []), depth)

    def _variable_declarator(self, node: Dict[str, Any], depth: int) -> int:
        init = node.get("init")
        if init is None:
            return 0
        if node_type(init) == "Literal":
            # A regex literal stores its source; `value` holds a host-compiled pattern
            if init.get("regex"):
                return gamma_for_declaration(init["regex"])
            return gamma_for_declaration(init.get("value"))
        # Non-literal initializers pay for the expression they evaluate
        return self.gamma_for(init, depth)

    def _assignment(self, node: Dict[str, Any], depth: int) -> int:
        gamma = self.gamma_for(node.get("right"), depth)
        operator = node.get("operator", "=")
        if operator != "=":
            gamma += gamma_for_operator(operator[:-1])
        return gamma

    def _call(self, node: Dict[str, Any], depth: int) -> int:
        return 0

    def _test(self, node: Dict[str, Any], depth: int) -> int:
        if node.get("test") is None:
            return 0
        return self.gamma_for(node["test"], depth)

    def _for(self, node: Dict[str, Any], depth: int) -> int:
        gamma = self._test(node, depth)
        if node.get("init") is not None:
            gamma += self.gamma_for(node["init"], depth)
        return gamma

    def _do_while(self, node: Dict[str, Any], depth: int) -> int:
        # The body runs before the first test; every test is paid per iteration
        return 0

    def gamma_per_iteration(self, loop: Dict[str, Any], depth: int = 0) -> int:
        """
        Gamma a loop spends between two passes through its body.

        This is the `test` evaluated after each pass, plus the `update` of a
        `for` loop. The instrumenter charges it at the top of the loop body,
        so every iteration pays for itself.
        """
        check_depth(depth, self.max_depth)
        gamma = self._test(loop, depth + 1)
        if loop.get("update") is not None:
            gamma += self.gamma_for(loop["update"], depth + 1)
        return gamma

    def _unhandled(self, kind: str) -> int:
        message = f"Gamma for computation not implemented for: {kind}"
        if self.strict:
            raise UnhandledNodeError(kind)
        logger.warning(message)
        self.warnings.append(message)
        return 0

    _HANDLERS: Dict[str, Callable[["GammaEvaluator", Dict[str, Any], int], int]] = {
        "BinaryExpression": _operator,
        "UpdateExpression": _operator,
        "ExpressionStatement": _expression_statement,
        "ReturnStatement": _return_statement,
        "VariableDeclaration": _variable_declaration,
        "VariableDeclarator": _variable_declarator,
        "AssignmentExpression": _assignment,
        "CallExpression": _call,
        "IfStatement": _test,
        "WhileStatement": _test,
        "DoWhileStatement": _do_while,
        "ForStatement": _for,
    }


def gamma_for_computation(
    computation: Any,
    strict: bool = False,
    max_depth: int = DEFAULT_MAX_TREE_DEPTH,
    warnings: Optional[List[str]] = None,
) -> int:
    """
    Compute the gamma of a node or node sequence with a fresh evaluator.

    Args:
        computation: An ESTree node dict or a list of them
        strict: Reject unhandled node kinds instead of costing them at 0
        max_depth: Nesting ceiling for the walk
        warnings: Optional list that receives the evaluator's warnings

    Returns:
        Non-negative gamma cost
    """
    evaluator = GammaEvaluator(strict=strict, max_depth=max_depth)
    gamma = evaluator.gamma_for(computation)
    if warnings is not None:
        warnings.extend(evaluator.warnings)
    return gamma

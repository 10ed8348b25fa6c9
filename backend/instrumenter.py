"""
Gamma instrumentation for contract ASTs.

Walks an ESTree tree and places a call to the host metering primitive
(`UltraDark.chargeGamma(amount)` by default) in front of every statement,
priced by GammaEvaluator. Execution therefore cannot reach a computation
without paying for it first. Loops also carry a charge at the top of
their body for the test and update run between iterations.

The pass runs once, after sanitization. Running it again would charge
every statement twice.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import (
    DEFAULT_GAMMA_PRIMITIVE,
    DEFAULT_HOST_NAMESPACE,
    DEFAULT_MAX_TREE_DEPTH,
    configure_logger,
)
from estree_utils import check_depth, is_node, node_line, node_type
from gamma_evaluator import GammaEvaluator

logger = configure_logger(__name__)

# Nodes whose `body` is an ordered statement list
SEQUENCE_CONTAINERS = frozenset({"Program", "BlockStatement", "ClassBody", "StaticBlock"})

# Nodes whose `body` is a single nested node (function body, class body, ...)
BODY_CONTAINERS = frozenset({
    "FunctionDeclaration",
    "FunctionExpression",
    "ArrowFunctionExpression",
    "ClassDeclaration",
    "ClassExpression",
    "CatchClause",
    "LabeledStatement",
})

# Loops whose test (and update) run again after every pass through the body
METERED_LOOPS = frozenset({"WhileStatement", "DoWhileStatement", "ForStatement"})

# Nodes whose `body` sits in statement position and may be a bare statement
STATEMENT_BODY_CONTAINERS = frozenset({
    "ForInStatement",
    "ForOfStatement",
    "WithStatement",
})

# Nodes wrapping a single sub-node under `value`
VALUE_CONTAINERS = frozenset({"MethodDefinition"})

# Declaration headers never get a charge of their own
UNCHARGED_DECLARATIONS = frozenset({"MethodDefinition", "ClassDeclaration"})


@dataclass
class ChargeRecord:
    """One metering call placed by the instrumenter."""
    statement: str
    gamma: int
    line: Optional[int] = None


@dataclass
class GammaCharges:
    """All charges placed during one instrumentation run."""
    records: List[ChargeRecord] = field(default_factory=list)

    def add(self, statement: Dict[str, Any], gamma: int, label: Optional[str] = None) -> None:
        self.records.append(
            ChargeRecord(statement=label or node_type(statement), gamma=gamma, line=node_line(statement))
        )

    @property
    def total_gamma(self) -> int:
        return sum(record.gamma for record in self.records)

    def to_dict(self) -> List[Dict[str, Any]]:
        return [
            {"statement": record.statement, "line": record.line, "gamma": record.gamma}
            for record in self.records
        ]


def generate_gamma_charge(
    amount: int,
    host_namespace: str = DEFAULT_HOST_NAMESPACE,
    primitive: str = DEFAULT_GAMMA_PRIMITIVE,
) -> Dict[str, Any]:
    """Build the statement `<host>.<primitive>(amount);` as an ESTree node."""
    return {
        "type": "ExpressionStatement",
        "expression": {
            "type": "CallExpression",
            "callee": {
                "type": "MemberExpression",
                "computed": False,
                "object": {"type": "Identifier", "name": host_namespace},
                "property": {"type": "Identifier", "name": primitive},
            },
            "arguments": [{"type": "Literal", "value": amount, "raw": str(amount)}],
        },
    }


def is_gamma_charge(
    statement: Any,
    host_namespace: str = DEFAULT_HOST_NAMESPACE,
    primitive: str = DEFAULT_GAMMA_PRIMITIVE,
) -> bool:
    """True if the statement is a metering call produced by generate_gamma_charge."""
    if node_type(statement) != "ExpressionStatement":
        return False
    call = statement.get("expression")
    if node_type(call) != "CallExpression":
        return False
    callee = call.get("callee")
    return (
        node_type(callee) == "MemberExpression"
        and not callee.get("computed", False)
        and node_type(callee.get("object")) == "Identifier"
        and callee["object"].get("name") == host_namespace
        and node_type(callee.get("property")) == "Identifier"
        and callee["property"].get("name") == primitive
    )


class GammaInstrumenter:
    """Rewrites a tree so every costed statement is preceded by a gamma charge."""

    def __init__(
        self,
        evaluator: Optional[GammaEvaluator] = None,
        host_namespace: str = DEFAULT_HOST_NAMESPACE,
        primitive: str = DEFAULT_GAMMA_PRIMITIVE,
        max_depth: int = DEFAULT_MAX_TREE_DEPTH,
    ):
        self.evaluator = evaluator or GammaEvaluator(max_depth=max_depth)
        self.host_namespace = host_namespace
        self.primitive = primitive
        self.max_depth = max_depth
        self.charges = GammaCharges()

    def remap_with_gamma(self, node: Any, depth: int = 0) -> Any:
        """Return an instrumented copy of ``node``; anything that is not a container comes back as is."""
        check_depth(depth, self.max_depth)
        if not is_node(node):
            return node

        kind = node["type"]
        if kind in SEQUENCE_CONTAINERS:
            return {**node, "body": self._remap_sequence(node.get("body", []), depth + 1)}
        if kind in BODY_CONTAINERS:
            return {**node, "body": self.remap_with_gamma(node.get("body"), depth + 1)}
        if kind in METERED_LOOPS:
            return self._remap_loop(node, depth)
        if kind in STATEMENT_BODY_CONTAINERS:
            return {**node, "body": self._remap_statement(node.get("body"), depth + 1)}
        if kind in VALUE_CONTAINERS:
            return {**node, "value": self.remap_with_gamma(node.get("value"), depth + 1)}
        if kind == "IfStatement":
            return {
                **node,
                "consequent": self._remap_statement(node.get("consequent"), depth + 1),
                "alternate": self._remap_statement(node.get("alternate"), depth + 1),
            }
        if kind == "TryStatement":
            return {
                **node,
                "block": self.remap_with_gamma(node.get("block"), depth + 1),
                "handler": self.remap_with_gamma(node.get("handler"), depth + 1),
                "finalizer": self.remap_with_gamma(node.get("finalizer"), depth + 1),
            }
        if kind == "SwitchStatement":
            return {
                **node,
                "cases": [
                    {**case, "consequent": self._remap_sequence(case.get("consequent", []), depth + 2)}
                    for case in node.get("cases", [])
                ],
            }
        return node

    def _remap_sequence(self, statements: List[Any], depth: int) -> List[Any]:
        check_depth(depth, self.max_depth)
        new_ast: List[Any] = []
        for statement in statements:
            computation = self.remap_with_gamma(statement, depth + 1)
            if node_type(computation) in UNCHARGED_DECLARATIONS:
                new_ast.append(computation)
                continue
            gamma = self.evaluator.gamma_for(computation)
            self.charges.add(computation, gamma)
            new_ast.append(generate_gamma_charge(gamma, self.host_namespace, self.primitive))
            new_ast.append(computation)
        return new_ast

    def _remap_loop(self, loop: Dict[str, Any], depth: int) -> Dict[str, Any]:
        """Charge the loop's per-iteration work at the top of its body.

        The charge in front of the loop only pays for entering it (`init`
        and the first `test`); each pass through the body pays for the
        `test` and `update` that follow it.
        """
        gamma = self.evaluator.gamma_per_iteration(loop, depth + 1)
        self.charges.add(loop, gamma, label=f"{loop['type']} iteration")
        body = self._remap_statement(loop.get("body") or {"type": "BlockStatement", "body": []}, depth + 1)
        body = {**body, "body": [generate_gamma_charge(gamma, self.host_namespace, self.primitive), *body["body"]]}
        return {**loop, "body": body}

    def _remap_statement(self, statement: Any, depth: int) -> Any:
        # A bare statement in a loop or branch gets a block so it can carry its charge
        if statement is None or node_type(statement) == "BlockStatement":
            return self.remap_with_gamma(statement, depth)
        return {"type": "BlockStatement", "body": self._remap_sequence([statement], depth + 1)}


def remap_with_gamma(
    tree: Any,
    evaluator: Optional[GammaEvaluator] = None,
    host_namespace: str = DEFAULT_HOST_NAMESPACE,
    primitive: str = DEFAULT_GAMMA_PRIMITIVE,
    max_depth: int = DEFAULT_MAX_TREE_DEPTH,
) -> Any:
    """
    Instrument a tree with gamma charges using a fresh instrumenter.

    Args:
        tree: Program node, statement list, or any ESTree node
        evaluator: Evaluator pricing each statement (default: lenient)
        host_namespace: Object exposing the metering primitive
        primitive: Name of the metering primitive
        max_depth: Nesting ceiling for the walk

    Returns:
        The instrumented tree; the input is left untouched
    """
    instrumenter = GammaInstrumenter(
        evaluator=evaluator, host_namespace=host_namespace, primitive=primitive, max_depth=max_depth
    )
    if isinstance(tree, list):
        return instrumenter._remap_sequence(tree, 0)
    return instrumenter.remap_with_gamma(tree)

"""
Gamma cost table for contract operators.

Each operator belongs to exactly one tier; operators outside every tier
have no price and reject the contract.
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping

from contract_errors import OperatorNotCostedError


class GammaTier(Enum):
    """Fixed gamma price of each operator tier."""
    BASE = 2
    LOW = 3
    MEDIUM = 5
    MEDIUM_HIGH = 6


BASE_OPERATORS: FrozenSet[str] = frozenset({
    "^", "==", "!=", "===", "!==", "<=", "<", ">", ">=",
    "instanceof", "|", "&", "<<", ">>", ">>>", "in",
})
LOW_OPERATORS: FrozenSet[str] = frozenset({"+", "-"})
MEDIUM_OPERATORS: FrozenSet[str] = frozenset({"*", "/", "%"})
MEDIUM_HIGH_OPERATORS: FrozenSet[str] = frozenset({"++", "--"})

TIER_OPERATORS: Mapping[GammaTier, FrozenSet[str]] = MappingProxyType({
    GammaTier.BASE: BASE_OPERATORS,
    GammaTier.LOW: LOW_OPERATORS,
    GammaTier.MEDIUM: MEDIUM_OPERATORS,
    GammaTier.MEDIUM_HIGH: MEDIUM_HIGH_OPERATORS,
})


def _build_operator_table() -> Mapping[str, int]:
    table: Dict[str, int] = {}
    for tier, operators in TIER_OPERATORS.items():
        for operator in operators:
            table[operator] = tier.value
    return MappingProxyType(table)


OPERATOR_GAMMA: Mapping[str, int] = _build_operator_table()


def gamma_for_operator(operator: str) -> int:
    """Return the gamma price of an operator, or raise OperatorNotCostedError."""
    try:
        return OPERATOR_GAMMA[operator]
    except KeyError:
        raise OperatorNotCostedError(operator) from None


def is_costed(operator: str) -> bool:
    return operator in OPERATOR_GAMMA

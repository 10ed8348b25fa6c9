"""
Rejection errors raised while compiling a contract.

Every error here means the contract must not be deployed. The HTTP layer
maps SourceTooLargeError to a 413 response and every other rejection to 422.
"""

from typing import Optional


class ContractRejectedError(Exception):
    """Base class for anything that rejects a contract at compile time."""


class OperatorNotCostedError(ContractRejectedError):
    """An operator has no entry in the gamma cost table."""

    def __init__(self, operator: str):
        super().__init__(f"No gamma cost defined for operator: {operator}")
        self.operator = operator


class UnhandledNodeError(ContractRejectedError):
    """Raised in strict mode when the evaluator cannot cost a node kind."""

    def __init__(self, node_type: str):
        super().__init__(f"Gamma for computation not implemented for: {node_type}")
        self.node_type = node_type


class LiteralNotCostedError(ContractRejectedError):
    """A declared literal has no byte encoding to price its storage by."""

    def __init__(self, value_type: str):
        super().__init__(f"No gamma cost defined for literal of type: {value_type}")
        self.value_type = value_type


class ContractSyntaxError(ContractRejectedError):
    """The contract source could not be parsed."""

    def __init__(self, description: str, line: Optional[int] = None, column: Optional[int] = None):
        location = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(f"Contract syntax error{location}: {description}")
        self.description = description
        self.line = line
        self.column = column


class SourceTooLargeError(ContractRejectedError):
    """The contract source is longer than the configured limit."""

    def __init__(self, length: int, max_length: int):
        super().__init__(f"Contract source is {length} characters long, the limit is {max_length}")
        self.length = length
        self.max_length = max_length


class TreeTooDeepError(ContractRejectedError):
    """The contract nests deeper than the configured ceiling, or than the parser can follow."""

    def __init__(self, max_depth: Optional[int] = None):
        if max_depth is None:
            message = "Contract nests deeper than the parser can follow"
        else:
            message = f"Contract exceeds the maximum nesting depth of {max_depth}"
        super().__init__(message)
        self.max_depth = max_depth

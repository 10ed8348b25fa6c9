"""
Contract source -> ESTree AST, using esprima.

The tree is returned as plain nested dicts (esprima's `toDict()` form) so
the sanitizer and instrumenter can rebuild it without knowing esprima's
node classes.
"""

from typing import Any, Dict

import esprima
from esprima.error_handler import Error as EsprimaError

from config import configure_logger
from contract_errors import ContractSyntaxError, TreeTooDeepError

logger = configure_logger(__name__)


def generate_from_source(source: str, with_locations: bool = False) -> Dict[str, Any]:
    """
    Parse contract source into an ESTree Program dict.

    Args:
        source: Contract source text (script goal, not a module)
        with_locations: Attach `loc` start/end positions to every node

    Returns:
        The Program node as a dict

    Raises:
        ContractSyntaxError: The source does not parse
        TreeTooDeepError: The source nests deeper than the parser can follow
    """
    options = {"loc": True} if with_locations else None
    try:
        return esprima.parseScript(source, options).toDict()
    except EsprimaError as e:
        description = getattr(e, "description", None) or str(e)
        line = getattr(e, "lineNumber", None)
        column = getattr(e, "column", None)
        logger.info(f"Rejected contract source at line {line}: {description}")
        raise ContractSyntaxError(description, line=line, column=column) from e
    except RecursionError as e:
        logger.info("Rejected contract source: parser recursion limit reached")
        raise TreeTooDeepError() from e

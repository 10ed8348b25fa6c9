"""
Contract compilation pipeline: parse -> sanitize -> instrument.

Sanitization always runs before instrumentation so the metering calls
the instrumenter inserts are never renamed. Each compilation builds its
own sanitizer, evaluator and instrumenter; nothing is shared between
contracts.
"""

import json
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from api_types import CompileOptions
from config import MAX_DUMP_LENGTH, CompilerSettings, configure_logger, get_settings
from contract_errors import ContractRejectedError, SourceTooLargeError
from contract_parser import generate_from_source
from gamma_evaluator import GammaEvaluator
from instrumenter import GammaCharges, GammaInstrumenter
from sanitizer import ContractSanitizer
from templates import LOG_TEMPLATE, REPORT_FOOTER

logger = configure_logger(__name__)


@dataclass
class CompilationResult:
    """Instrumented tree plus everything learned while building it."""
    ast: Dict[str, Any]
    charges: GammaCharges = field(default_factory=GammaCharges)
    warnings: List[str] = field(default_factory=list)

    @property
    def gamma_total(self) -> int:
        return self.charges.total_gamma

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ast": self.ast,
            "gamma_total": self.gamma_total,
            "charges": self.charges.to_dict(),
            "warnings": self.warnings,
        }


def check_source_length(source_code: str, settings: CompilerSettings) -> None:
    if len(source_code) > settings.max_source_length:
        raise SourceTooLargeError(len(source_code), settings.max_source_length)


def build_sanitizer(settings: CompilerSettings) -> ContractSanitizer:
    return ContractSanitizer(
        excluded_identifiers=settings.excluded_identifiers,
        prefix=settings.sanitize_prefix,
        host_namespace=settings.host_namespace,
        max_depth=settings.max_tree_depth,
    )


def sanitize_source(source_code: str, settings: Optional[CompilerSettings] = None) -> Dict[str, Any]:
    """Parse and sanitize a contract without instrumenting it."""
    settings = settings or get_settings()
    check_source_length(source_code, settings)
    tree = generate_from_source(source_code)
    return build_sanitizer(settings).sanitize(tree)


def compile_contract(
    source_code: str,
    options: Optional[CompileOptions] = None,
    settings: Optional[CompilerSettings] = None,
) -> CompilationResult:
    """
    Compile a contract into its sanitized, gamma-instrumented AST.

    Args:
        source_code: Contract source text
        options: Per-request options (strict evaluation, report)
        settings: Compiler settings (default: from the environment)

    Returns:
        CompilationResult with the instrumented tree, charges and warnings

    Raises:
        ContractRejectedError: The contract must not be deployed
    """
    settings = settings or get_settings()
    options = options or CompileOptions()
    strict = options.strict or settings.strict_gamma

    logger.info(
        LOG_TEMPLATE.format(
            strict=strict,
            include_report=options.include_report,
            host_namespace=settings.host_namespace,
            max_depth=settings.max_tree_depth,
            source_length=len(source_code),
        )
    )

    check_source_length(source_code, settings)
    tree = generate_from_source(source_code, with_locations=True)
    sanitized = build_sanitizer(settings).sanitize(tree)

    evaluator = GammaEvaluator(strict=strict, max_depth=settings.max_tree_depth)
    instrumenter = GammaInstrumenter(
        evaluator=evaluator,
        host_namespace=settings.host_namespace,
        primitive=settings.gamma_primitive,
        max_depth=settings.max_tree_depth,
    )
    instrumented = instrumenter.remap_with_gamma(sanitized)

    return CompilationResult(ast=instrumented, charges=instrumenter.charges, warnings=list(evaluator.warnings))


def format_report(result: CompilationResult) -> str:
    """Format a human-readable gamma report for a compiled contract."""
    report = [
        "## Gamma Estimation",
        "",
        "### Summary",
        f"- **Total Gamma:** {result.gamma_total:,}",
        f"- **Metering Calls:** {len(result.charges.records)}",
        "",
        "### Breakdown by Statement",
        "",
        "| Line | Statement | Gamma |",
        "|------|-----------|-------|",
    ]

    for record in result.charges.records:
        line = record.line if record.line is not None else "-"
        report.append(f"| {line} | {record.statement} | {record.gamma:,} |")

    if result.warnings:
        report.extend([
            "",
            "### ⚠️ Notes",
            "",
        ])
        for warning in result.warnings:
            report.append(f"- {warning}")

    report.extend(["", REPORT_FOOTER])
    return "\n".join(report)


def estimate_gamma(
    source_code: str,
    strict: bool = False,
    settings: Optional[CompilerSettings] = None,
) -> Dict[str, Any]:
    """
    Estimate the gamma a contract will be charged, statement by statement.

    Returns:
        Dictionary with breakdown, total_gamma, warnings and a Markdown report
    """
    result = compile_contract(source_code, CompileOptions(strict=strict), settings)
    return {
        "breakdown": result.charges.to_dict(),
        "total_gamma": result.gamma_total,
        "warnings": result.warnings,
        "report": format_report(result),
    }


def truncate_for_dump(text: str) -> str:
    if len(text) > MAX_DUMP_LENGTH:
        return text[:MAX_DUMP_LENGTH] + "\n\n[Content truncated due to size limit]"
    return text


def dump_compilation(
    source_code: str,
    options: CompileOptions,
    result: CompilationResult,
    dump_dir: Optional[str],
) -> Optional[str]:
    """
    Dumps the compilation details to a JSON file under `dump_dir`.

    Returns the path written, or None when dumping is off or failed.
    """
    if not dump_dir:
        return None

    # Oversized fields are cut before encoding so the dump stays valid JSON
    ast_text = json.dumps(result.ast, default=str)
    content = json.dumps(
        {
            "options": options.model_dump(),
            "source_code": truncate_for_dump(source_code),
            "gamma_total": result.gamma_total,
            "warnings": result.warnings,
            "ast": result.ast if len(ast_text) <= MAX_DUMP_LENGTH else truncate_for_dump(ast_text),
        },
        indent=2,
        default=str,
    )

    try:
        os.makedirs(dump_dir, exist_ok=True)
        nanosecond_timestamp = time.time_ns()
        dump_file = os.path.join(dump_dir, f"compilation_{nanosecond_timestamp}.json")
        with open(dump_file, "x", encoding="utf-8") as f:
            f.write(content)
        return dump_file
    except OSError as e:
        logger.error(f"Failed to dump compilation: {e}")
        return None


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python compile_service.py <contract.js> [--strict]")
        return 1

    file_path = argv[0]
    strict = "--strict" in argv[1:]

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            source_code = f.read()
        result = compile_contract(source_code, CompileOptions(strict=strict))
    except FileNotFoundError:
        print(f"✗ Error: File not found: {file_path}")
        return 1
    except ContractRejectedError as e:
        print(f"✗ Contract rejected: {e}")
        return 1

    print(json.dumps(result.ast, indent=2, default=str))
    print(format_report(result), file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())

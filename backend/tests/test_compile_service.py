"""
Unit tests for compile_service.py

Tests cover:
- the parse -> sanitize -> instrument pipeline
- strict evaluation and rejection paths
- the Markdown gamma report
- compilation dumps
- the command line entry point
"""

import json
import os

import pytest

from api_types import CompileOptions
from compile_service import (
    CompilationResult,
    compile_contract,
    dump_compilation,
    estimate_gamma,
    format_report,
    main,
    sanitize_source,
)
from config import CompilerSettings
from contract_errors import (
    ContractSyntaxError,
    OperatorNotCostedError,
    SourceTooLargeError,
    UnhandledNodeError,
)
from instrumenter import is_gamma_charge


@pytest.fixture
def settings():
    return CompilerSettings()


def charge_amounts(body):
    return [s["expression"]["arguments"][0]["value"] for s in body if is_gamma_charge(s)]


class TestCompileContract:
    """Tests for the full compilation pipeline."""

    def test_binary_statement(self, settings):
        result = compile_contract("a + b;", settings=settings)
        body = result.ast["body"]
        assert len(body) == 2
        assert charge_amounts(body) == [3]
        expression = body[1]["expression"]
        assert expression["left"]["name"] == "sanitized_a"
        assert expression["right"]["name"] == "sanitized_b"
        assert result.gamma_total == 3

    def test_update_statement(self, settings):
        result = compile_contract("x++;", settings=settings)
        assert charge_amounts(result.ast["body"]) == [6]
        assert result.ast["body"][1]["expression"]["argument"]["name"] == "sanitized_x"

    def test_literal_declaration(self, settings):
        result = compile_contract("var x = 5;", settings=settings)
        assert charge_amounts(result.ast["body"]) == [2500]

    def test_runtime_counter_cannot_be_reset(self, settings):
        result = compile_contract("gamma = 0;", settings=settings)
        assignment = result.ast["body"][1]["expression"]
        assert assignment["left"]["name"] == "sanitized_gamma"

    def test_metering_calls_are_not_sanitized(self, settings):
        result = compile_contract("a + b;", settings=settings)
        callee = result.ast["body"][0]["expression"]["callee"]
        assert callee["object"]["name"] == "UltraDark"
        assert callee["property"]["name"] == "chargeGamma"

    def test_host_calls_keep_their_names(self, settings):
        result = compile_contract("UltraDark.transfer(to, amount);", settings=settings)
        call = result.ast["body"][1]["expression"]
        assert call["callee"]["object"]["name"] == "UltraDark"
        assert call["callee"]["property"]["name"] == "transfer"
        assert [arg["name"] for arg in call["arguments"]] == ["sanitized_to", "sanitized_amount"]

    def test_class_contract(self, settings):
        source = """
class Token {
  constructor() {
    this.supply = 100;
  }
  mint(amount) {
    this.supply = this.supply + amount;
  }
}
"""
        result = compile_contract(source, settings=settings)
        assert len(result.ast["body"]) == 1
        methods = result.ast["body"][0]["body"]["body"]
        assert methods[0]["key"]["name"] == "constructor"
        assert methods[1]["key"]["name"] == "sanitized_mint"
        mint_body = methods[1]["value"]["body"]["body"]
        assert charge_amounts(mint_body) == [3]
        assert mint_body[1]["expression"]["left"]["property"]["name"] == "sanitized_supply"

    def test_charges_carry_source_lines(self, settings):
        result = compile_contract("a + b;\n\nx++;", settings=settings)
        assert [c.line for c in result.charges.records] == [1, 3]
        assert result.to_dict()["charges"][1] == {"statement": "ExpressionStatement", "line": 3, "gamma": 6}

    def test_empty_loop_is_charged_per_iteration(self, settings):
        result = compile_contract("for (var i = 0; i < 1000000000; i++) {}", settings=settings)
        entry_charge, loop = result.ast["body"]
        assert charge_amounts([entry_charge]) == [2500 + 2]
        assert charge_amounts(loop["body"]["body"]) == [2 + 6]
        assert result.to_dict()["charges"] == [
            {"statement": "ForStatement iteration", "line": 1, "gamma": 8},
            {"statement": "ForStatement", "line": 1, "gamma": 2502},
        ]

    def test_break_and_continue_pass_strict_mode(self, settings):
        source = "while (a < b) { if (a == 1) { break; } continue; }"
        result = compile_contract(source, CompileOptions(strict=True), settings)
        assert result.warnings == []

    def test_regex_declaration_pays_for_its_source(self, settings):
        short = compile_contract("var r = /a/;", settings=settings).gamma_total
        flagged = compile_contract("var r = /a/gim;", settings=settings).gamma_total
        assert flagged - short == 3 * 2500

    def test_unhandled_node_warns(self, settings):
        result = compile_contract("throw err;", settings=settings)
        assert result.gamma_total == 0
        assert result.warnings == ["Gamma for computation not implemented for: ThrowStatement"]

    def test_strict_option_rejects(self, settings):
        with pytest.raises(UnhandledNodeError):
            compile_contract("throw err;", CompileOptions(strict=True), settings)

    def test_strict_setting_rejects(self):
        with pytest.raises(UnhandledNodeError):
            compile_contract("throw err;", settings=CompilerSettings(strict_gamma=True))

    def test_unknown_operator_rejects(self, settings):
        with pytest.raises(OperatorNotCostedError):
            compile_contract("x ** 2;", settings=settings)

    def test_syntax_error_rejects(self, settings):
        with pytest.raises(ContractSyntaxError):
            compile_contract("var = ;", settings=settings)

    def test_source_too_large(self):
        with pytest.raises(SourceTooLargeError):
            compile_contract("a + b + c;", settings=CompilerSettings(max_source_length=5))

    def test_custom_host(self):
        settings = CompilerSettings(host_namespace="Host", gamma_primitive="meter", sanitize_prefix="u_")
        result = compile_contract("Host.pay(x);", settings=settings)
        charge, call = result.ast["body"]
        assert is_gamma_charge(charge, "Host", "meter")
        assert call["expression"]["callee"]["object"]["name"] == "Host"
        assert call["expression"]["arguments"][0]["name"] == "u_x"


class TestSanitizeSource:

    def test_sanitizes_without_instrumenting(self, settings):
        tree = sanitize_source("a + b;", settings=settings)
        assert len(tree["body"]) == 1
        assert tree["body"][0]["expression"]["left"]["name"] == "sanitized_a"

    def test_excluded_identifiers_from_settings(self):
        settings = CompilerSettings(excluded_identifiers=frozenset({"constructor", "push", "a"}))
        tree = sanitize_source("a + b;", settings=settings)
        assert tree["body"][0]["expression"]["left"]["name"] == "a"


class TestReport:
    """Tests for the Markdown gamma report."""

    def test_report_lists_every_charge(self, settings):
        report = format_report(compile_contract("a + b;\nvar x = 5;", settings=settings))
        assert "## Gamma Estimation" in report
        assert "**Total Gamma:** 2,503" in report
        assert "**Metering Calls:** 2" in report
        assert "| Line | Statement | Gamma |" in report
        assert "| 1 | ExpressionStatement | 3 |" in report
        assert "| 2 | VariableDeclaration | 2,500 |" in report
        assert "Notes" not in report

    def test_report_includes_warnings(self, settings):
        report = format_report(compile_contract("throw err;", settings=settings))
        assert "Notes" in report
        assert "- Gamma for computation not implemented for: ThrowStatement" in report

    def test_report_without_lines(self):
        result = CompilationResult(ast={"type": "Program", "body": []})
        result.charges.add({"type": "ExpressionStatement"}, 6)
        assert "| - | ExpressionStatement | 6 |" in format_report(result)

    def test_estimate_gamma(self, settings):
        estimate = estimate_gamma("a + b;\nx++;", settings=settings)
        assert estimate["total_gamma"] == 9
        assert [c["gamma"] for c in estimate["breakdown"]] == [3, 6]
        assert estimate["warnings"] == []
        assert estimate["report"].startswith("## Gamma Estimation")


class TestDumpCompilation:

    def test_dump_disabled(self, settings):
        result = compile_contract("a + b;", settings=settings)
        assert dump_compilation("a + b;", CompileOptions(), result, None) is None

    def test_dump_written(self, settings, tmp_path):
        result = compile_contract("a + b;", settings=settings)
        path = dump_compilation("a + b;", CompileOptions(strict=True), result, str(tmp_path / "dumps"))
        assert path is not None
        assert os.path.basename(path).startswith("compilation_")
        with open(path, encoding="utf-8") as f:
            dumped = json.load(f)
        assert dumped["source_code"] == "a + b;"
        assert dumped["gamma_total"] == 3
        assert dumped["options"] == {"strict": True, "include_report": False}
        assert dumped["ast"]["type"] == "Program"

    def test_oversized_dump_is_still_valid_json(self, settings, tmp_path, monkeypatch):
        monkeypatch.setattr("compile_service.MAX_DUMP_LENGTH", 40)
        source = "a + b;\n" * 20
        result = compile_contract(source, settings=settings)
        path = dump_compilation(source, CompileOptions(), result, str(tmp_path))
        with open(path, encoding="utf-8") as f:
            dumped = json.load(f)
        assert dumped["source_code"].startswith(source[:40])
        assert dumped["source_code"].endswith("[Content truncated due to size limit]")
        assert isinstance(dumped["ast"], str)
        assert dumped["ast"].endswith("[Content truncated due to size limit]")
        assert dumped["gamma_total"] == 60

    def test_dump_failure_is_logged(self, settings, tmp_path, caplog):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        result = compile_contract("a + b;", settings=settings)
        assert dump_compilation("a + b;", CompileOptions(), result, str(blocker)) is None
        assert "Failed to dump compilation" in caplog.text


class TestMain:
    """Tests for the command line entry point."""

    def test_usage(self, capsys):
        assert main([]) == 1
        assert "Usage" in capsys.readouterr().out

    def test_compiles_file(self, tmp_path, capsys):
        contract = tmp_path / "contract.js"
        contract.write_text("a + b;\n", encoding="utf-8")
        assert main([str(contract)]) == 0
        captured = capsys.readouterr()
        tree = json.loads(captured.out)
        assert tree["type"] == "Program"
        assert len(tree["body"]) == 2
        assert "## Gamma Estimation" in captured.err

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.js")]) == 1
        assert "File not found" in capsys.readouterr().out

    def test_strict_flag(self, tmp_path, capsys):
        contract = tmp_path / "contract.js"
        contract.write_text("throw err;", encoding="utf-8")
        assert main([str(contract)]) == 0
        capsys.readouterr()
        assert main([str(contract), "--strict"]) == 1
        assert "Contract rejected" in capsys.readouterr().out

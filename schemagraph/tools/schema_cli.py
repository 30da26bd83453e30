"""
Schema CLI tool for schemagraph.

This tool works on JSON Schema documents (JSON or YAML files):
- validate: Run the pre-import checks
- summary: Count fields, definitions and conditionals
- compile: Import a document and print what the graph compiles to
- ui-schema: Print the generated UI schema
- check: Verify that a document survives a graph round trip

Usage:
    schemagraph-cli validate form.json
    schemagraph-cli compile form.yaml --bundle
    schemagraph-cli check form.json

Invariants:
    - Failed checks and rejected imports cause a non-zero exit code
    - Output keeps the key order of the compiled document

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from ..compiler import (
    compile_graph,
    decompile_document,
    export_graph,
    generate_ui_schema,
    import_combined,
    import_document,
    summarize_document,
    validate_combined,
    validate_document,
)
from ..compiler.import_validator import ValidationResult
from ..config import CompilerConfig, TupleItemsPolicy
from ..errors import ImportMalformedError
from ..graph.model import Graph, fingerprint
from ..graph.validator import check_graph
from ..widgets.registry import create_default_registry

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = (".yaml", ".yml")


def load_document(path: str) -> Any:
    """Read a JSON or YAML document; ``-`` reads JSON or YAML from stdin."""
    if path == "-":
        return yaml.safe_load(sys.stdin.read())
    text = Path(path).read_text(encoding="utf-8")
    if path.endswith(_YAML_SUFFIXES):
        return yaml.safe_load(text)
    return json.loads(text)


def dump_document(data: Any, output_format: str = "json") -> str:
    if output_format == "yaml":
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    return json.dumps(data, indent=2)


def is_combined(data: Any) -> bool:
    """Whether ``data`` is a ``{schema, uiSchema?, formData?}`` bundle."""
    return isinstance(data, Mapping) and isinstance(data.get("schema"), Mapping)


class SchemaCLI:
    """CLI tool for schema documents.

    Example:
        >>> cli = SchemaCLI()
        >>> cli.validate({"type": "object"}).valid
        True
    """

    def __init__(self, config: CompilerConfig | None = None) -> None:
        self.config = config or CompilerConfig()
        self.registry = create_default_registry(freeze=True)

    def validate(self, data: Any) -> ValidationResult:
        if is_combined(data):
            return validate_combined(data)
        return validate_document(data)

    def summary(self, data: Any) -> dict[str, int]:
        schema = data["schema"] if is_combined(data) else data
        return summarize_document(schema).to_dict()

    def load_graph(self, data: Any) -> tuple[Graph, list[str]]:
        """Import a plain document or a combined bundle.

        Raises:
            ImportMalformedError: If the import is rejected
        """
        if is_combined(data):
            result = import_combined(data, self.config, self.registry)
            return result.graph, result.warnings
        return import_document(data, self.config)

    def compile(self, data: Any, bundle: bool = False) -> tuple[dict[str, Any], list[str]]:
        graph, warnings = self.load_graph(data)
        exported = export_graph(graph, self.config, self.registry)
        warnings = warnings + exported.warnings
        if bundle:
            return exported.to_dict(), warnings
        return exported.schema, warnings

    def ui_schema(self, data: Any) -> dict[str, Any]:
        graph, _ = self.load_graph(data)
        return generate_ui_schema(graph, self.registry)

    def check(self, data: Any) -> list[str]:
        """Round-trip ``data`` and report every problem found.

        Returns:
            List of issues (empty when the document round-trips cleanly)
        """
        graph, _ = self.load_graph(data)
        issues = check_graph(graph)
        compiled = compile_graph(graph, self.config)
        reimported, _ = decompile_document(compiled, self.config)
        if fingerprint(reimported) != fingerprint(graph):
            issues.append(
                "Round trip changed the graph: "
                f"{fingerprint(graph)} != {fingerprint(reimported)}"
            )
        return issues


def _print_problems(title: str, problems: list[str]) -> None:
    print(f"{title} ({len(problems)}):", file=sys.stderr)
    for problem in problems:
        print(f"  - {problem}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the schema tool."""
    parser = argparse.ArgumentParser(description="schemagraph schema document tool")
    parser.add_argument(
        "--format", choices=["json", "yaml"], default="json", help="Output format"
    )
    parser.add_argument(
        "--tuple-items",
        choices=["reject", "first"],
        default=None,
        help="Tuple-form items handling (default: SCHEMAGRAPH_TUPLE_ITEMS or reject)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Run pre-import checks")
    validate_parser.add_argument("file", help="Schema file (JSON or YAML), or - for stdin")

    summary_parser = subparsers.add_parser("summary", help="Count fields and conditionals")
    summary_parser.add_argument("file", help="Schema file (JSON or YAML), or - for stdin")

    compile_parser = subparsers.add_parser("compile", help="Import and recompile a document")
    compile_parser.add_argument("file", help="Schema file (JSON or YAML), or - for stdin")
    compile_parser.add_argument(
        "--bundle", action="store_true", help="Print schema, uiSchema, summary and warnings"
    )
    compile_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    ui_parser = subparsers.add_parser("ui-schema", help="Generate the UI schema")
    ui_parser.add_argument("file", help="Schema file (JSON or YAML), or - for stdin")

    check_parser = subparsers.add_parser("check", help="Verify a lossless round trip")
    check_parser.add_argument("file", help="Schema file (JSON or YAML), or - for stdin")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.ERROR)

    config = CompilerConfig.from_env()
    if args.tuple_items:
        config = dataclasses.replace(
            config, tuple_items=TupleItemsPolicy.from_str(args.tuple_items)
        )
    cli = SchemaCLI(config)

    try:
        data = load_document(args.file)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        if args.command == "validate":
            result = cli.validate(data)
            if result.warnings:
                _print_problems("Warnings", result.warnings)
            if result.valid:
                print("Schema is valid")
                sys.exit(0)
            _print_problems("Schema validation failed", result.errors)
            sys.exit(1)

        elif args.command == "summary":
            print(dump_document(cli.summary(data), args.format))

        elif args.command == "compile":
            output, warnings = cli.compile(data, bundle=args.bundle)
            if warnings:
                _print_problems("Warnings", warnings)
            text = dump_document(output, args.format)
            if args.output:
                Path(args.output).write_text(text + "\n", encoding="utf-8")
                print(f"Schema written to {args.output}", file=sys.stderr)
            else:
                print(text)

        elif args.command == "ui-schema":
            print(dump_document(cli.ui_schema(data), args.format))

        elif args.command == "check":
            issues = cli.check(data)
            if not issues:
                print("Schema round-trips cleanly")
                sys.exit(0)
            _print_problems("Round trip check FAILED", issues)
            sys.exit(1)

    except ImportMalformedError as e:
        _print_problems("Import rejected", e.issues)
        sys.exit(1)


if __name__ == "__main__":
    main()

# src/xml_introspect/cli.py
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from lxml import etree

from xml_introspect.introspector import DocumentDecodeError, XMLIntrospector
from xml_introspect.managers.config_manager import config_manager
from xml_introspect.model import FormDefault, SamplingOptions, SamplingStrategy, SchemaOptions
from xml_introspect.services.report_service import ProfileReportService
from xml_introspect.utils.configure_logging import configure_logger
from xml_introspect.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

# --- HELP TEXT ---

cli_help_text = """
  xml-introspect [--log-level <level>] <command> ...

  analyze <file> [--json]
                      Prints the structural profile of an XML file
                      (plain, .gz, .xz, .bz2 or tar archive).

  sample <file> [-o <out>] [--max-elements <n>] [--strategy <s>] [--seed <n>]
         [--no-preserve-types] [--no-relationships] [--no-attributes]
                      Writes a small, structurally faithful sample document.
                      Strategies: balanced, random, first, preserve-all-types.

  schema <file> [-o <out>] [--target-namespace <ns>] [--element-form <f>]
         [--attribute-form <f>]
                      Infers an XSD describing the document's vocabulary.

  validate <xml> <xsd> [--timeout <seconds>]
                      Validates a document against a schema.

  report <file> -o <out.csv|out.json>
                      Exports per-tag statistics as CSV or JSON.
""".strip()


# --- HELPERS ---

def _write_or_print(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        print(f"✅ Written to {output}")
    else:
        print(text, end="" if text.endswith("\n") else "\n")


def _print_profile(profile, as_json: bool) -> None:
    summary = ProfileReportService.summary(profile)
    if as_json:
        print(json.dumps(summary, indent=2))
        return
    print(f"Root element:   {summary['root_element']}")
    print(f"Total elements: {summary['total_elements']}")
    print(f"Max depth:      {summary['max_depth']}")
    print(f"Distinct tags:  {summary['distinct_tags']}")
    if summary["namespaces"]:
        print("Namespaces:")
        for prefix, uri in summary["namespaces"].items():
            print(f"   {prefix or '(default)'}: {uri}")
    print("Most common elements:")
    for entry in summary["common_elements"][:10]:
        print(f"   {entry['name']:<30} {entry['count']}")
    if profile.partial:
        print(f"⚠️  Partial profile ({profile.parse_mode} parse):")
        for message in profile.diagnostics:
            print(f"   {message}")


# --- HANDLERS ---

def _handle_analyze(args: argparse.Namespace, introspector: XMLIntrospector) -> int:
    profile = introspector.analyze_file(args.file)
    _print_profile(profile, args.json)
    return 0


def _handle_sample(args: argparse.Namespace, introspector: XMLIntrospector) -> int:
    options = SamplingOptions.from_config(
        max_elements=args.max_elements,
        strategy=args.strategy,
        random_seed=args.seed,
        preserve_all_types=False if args.no_preserve_types else None,
        preserve_relationships=False if args.no_relationships else None,
        preserve_attributes=False if args.no_attributes else None,
    )
    profile = introspector.analyze_file(args.file)
    sample, selection = introspector.generate_sample_with_report(profile, options)

    output = args.output or str(PathUtils.with_suffix_replaced(Path(args.file), ".sample.xml"))
    _write_or_print(sample, output)
    print(f"   Elements:   {len(selection.elements)} (max {options.max_elements}, strategy {options.strategy.value})")
    if selection.unresolved_references:
        print(f"⚠️  {len(selection.unresolved_references)} unresolved reference(s)")
    return 0


def _handle_schema(args: argparse.Namespace, introspector: XMLIntrospector) -> int:
    options = SchemaOptions.from_config(
        target_namespace=args.target_namespace,
        element_form=args.element_form,
        attribute_form=args.attribute_form,
    )
    profile = introspector.analyze_file(args.file)
    _write_or_print(introspector.generate_schema(profile, options), args.output)
    return 0


def _handle_validate(args: argparse.Namespace, introspector: XMLIntrospector) -> int:
    xml_text = introspector.decode_file(args.xml)
    xsd_text = Path(args.xsd).read_text(encoding="utf-8")
    result = introspector.validate(xml_text, xsd_text, timeout=args.timeout)
    for warning in result.warnings:
        print(f"⚠️  {warning}")
    if result.valid:
        print("✅ Document is valid." if not result.fallback else "✅ Document is well-formed.")
        return 0
    print("❌ Document is not valid:")
    for error in result.errors:
        print(f"   {error}")
    return 1


def _handle_report(args: argparse.Namespace, introspector: XMLIntrospector) -> int:
    profile = introspector.analyze_file(args.file)
    path = ProfileReportService().export(profile, args.output)
    print(f"✅ Report written to {path}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xml-introspect", add_help=False)
    parser.add_argument("--log-level")
    subparsers = parser.add_subparsers(dest="command")

    analyze_parser = subparsers.add_parser("analyze", add_help=False)
    analyze_parser.add_argument("file")
    analyze_parser.add_argument("--json", action="store_true")
    analyze_parser.set_defaults(func=_handle_analyze)

    sample_parser = subparsers.add_parser("sample", add_help=False)
    sample_parser.add_argument("file")
    sample_parser.add_argument("-o", "--output")
    sample_parser.add_argument("--max-elements", type=int)
    sample_parser.add_argument("--strategy", choices=[s.value for s in SamplingStrategy])
    sample_parser.add_argument("--seed", type=int)
    sample_parser.add_argument("--no-preserve-types", action="store_true")
    sample_parser.add_argument("--no-relationships", action="store_true")
    sample_parser.add_argument("--no-attributes", action="store_true")
    sample_parser.set_defaults(func=_handle_sample)

    schema_parser = subparsers.add_parser("schema", add_help=False)
    schema_parser.add_argument("file")
    schema_parser.add_argument("-o", "--output")
    schema_parser.add_argument("--target-namespace")
    schema_parser.add_argument("--element-form", choices=[f.value for f in FormDefault])
    schema_parser.add_argument("--attribute-form", choices=[f.value for f in FormDefault])
    schema_parser.set_defaults(func=_handle_schema)

    validate_parser = subparsers.add_parser("validate", add_help=False)
    validate_parser.add_argument("xml")
    validate_parser.add_argument("xsd")
    validate_parser.add_argument("--timeout", type=float)
    validate_parser.set_defaults(func=_handle_validate)

    report_parser = subparsers.add_parser("report", add_help=False)
    report_parser.add_argument("file")
    report_parser.add_argument("-o", "--output", required=True)
    report_parser.set_defaults(func=_handle_report)

    return parser


def handle_cli(args: List[str], introspector: Optional[XMLIntrospector] = None) -> int:
    """
    Parses the command line and dispatches to a sub-command handler.
    Returns 0 on success and 1 on any error.
    """
    if not args or args[0] in ["help", "-h", "--help"]:
        print(cli_help_text)
        return 0

    try:
        parsed_args = _build_parser().parse_args(args)
    except SystemExit:
        # Argparse calls sys.exit() on error; show our own help instead
        print(cli_help_text)
        return 1

    configure_logger(parsed_args.log_level or config_manager.get_nested("debug.level", "WARNING"))

    if not hasattr(parsed_args, "func"):
        print(cli_help_text)
        return 1

    try:
        return parsed_args.func(parsed_args, introspector or XMLIntrospector())
    except (ValueError, OSError, DocumentDecodeError, etree.XMLSyntaxError, TimeoutError) as e:
        logger.debug("Command '%s' failed", parsed_args.command, exc_info=True)
        print(f"❌ Error: {e}")
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    return handle_cli(list(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Clinical Coding Rules Engine - Demo CLI

Runs one finding set through the full coding pipeline and prints the
certified sequence, warnings, audit trail, rationale and confidence.

Usage:
    python demo_cli.py --sample urosepsis     # Encode a built-in sample
    python demo_cli.py --file findings.json   # Encode a finding set from a file
    python demo_cli.py --sample charcot --json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from coding_engine.core.config import settings
from coding_engine.core.exceptions import CodeMetadataUnavailableError, InvalidFindingsError
from coding_engine.schemas.findings import Findings
from coding_engine.services.rules_engine import EncodeResult, run_rules_engine

logger = logging.getLogger("demo_cli")

EXIT_OK = 0
EXIT_ENCODE_ERRORS = 1
EXIT_INVALID_INPUT = 2
EXIT_METADATA_UNAVAILABLE = 3

# ============================================================================
# Sample Finding Sets
# ============================================================================

SAMPLES: dict[str, dict] = {
    # "Patient presents with urosepsis and septic shock"
    "urosepsis": {
        "infection": {"site": "urinary", "sepsis": {"present": True, "shock": True}},
    },
    # "Type 2 diabetes with CKD stage 4"
    "diabetes_ckd": {
        "diabetes": {"diabetes_type": "type2", "complications": ["ckd"], "ckd_stage": "4"},
    },
    # "Drug-induced diabetes with hyperglycemia from adverse effect of medication"
    "drug_induced": {
        "diabetes": {"diabetes_type": "drug_induced", "complications": ["hyperglycemia"]},
        "poisoning": {"intent": "adverse_effect", "encounter": "initial"},
    },
    # "Type 2 diabetes with Charcot joint"
    "charcot": {
        "diabetes": {"diabetes_type": "type2", "complications": ["charcot"]},
    },
    "empty": {},
}


# ============================================================================
# Display Functions
# ============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'
    GRAY = '\033[90m'


def print_header(text: str, char: str = "="):
    """Print a formatted header."""
    width = 80
    print()
    print(f"{Colors.BOLD}{Colors.CYAN}{char * width}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{text.center(width)}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{char * width}{Colors.END}")


def print_subheader(text: str):
    """Print a formatted subheader."""
    print()
    print(f"{Colors.BOLD}{Colors.YELLOW}{'─' * 80}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.YELLOW}  {text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.YELLOW}{'─' * 80}{Colors.END}")


def print_warning(text: str):
    print(f"  {Colors.YELLOW}!{Colors.END} {text}")


def print_error(text: str):
    print(f"  {Colors.RED}✗{Colors.END} {text}")


def display_result(result: EncodeResult):
    """Display an encode result in human-readable form."""
    print_subheader("CODE SEQUENCE")
    if not result.sequence:
        print(f"  {Colors.GRAY}No codes assigned{Colors.END}")
    for position, item in enumerate(result.sequence, start=1):
        hcc = f" {Colors.BLUE}[HCC]{Colors.END}" if item.hcc else ""
        print(
            f"  {position:2d}. {Colors.GREEN}{item.code:10s}{Colors.END} {item.label}{hcc}"
            f" {Colors.GRAY}({item.triggered_by}, score {item.score}){Colors.END}"
        )

    if result.warnings:
        print_subheader("WARNINGS")
        for warning in result.warnings:
            print_warning(warning)

    if result.errors:
        print_subheader("ERRORS")
        for error in result.errors:
            print_error(error)

    if result.applied_rules:
        print_subheader("SEQUENCING RULES APPLIED")
        for rule in result.applied_rules:
            print(f"  {Colors.CYAN}●{Colors.END} {rule}")

    print_subheader("RATIONALE")
    for rationale in result.rationale.rationales:
        print(f"  {Colors.BOLD}{rationale.code}{Colors.END}: {rationale.clinical_justification}")
        if rationale.guideline_reference:
            ref = rationale.guideline_reference
            print(f"    {Colors.GRAY}Guideline {ref.section} ({ref.title}){Colors.END}")
        if rationale.sequencing_reason:
            print(f"    {Colors.GRAY}{rationale.sequencing_reason}{Colors.END}")
    print(f"\n  {result.rationale.summary}")

    confidence = result.confidence
    print_subheader(f"CONFIDENCE: {confidence.overall_confidence}%")
    for factor in confidence.factors:
        sign = "+" if factor.weight >= 0 else ""
        print(f"  {factor.factor:25s} {sign}{factor.weight:4d}  {Colors.GRAY}{factor.description}{Colors.END}")
    print(f"\n  {confidence.explanation}")

    print_subheader("AUDIT TRAIL")
    for line in result.audit:
        print(f"  {line}")
    print()


# ============================================================================
# Input Handling
# ============================================================================

def parse_findings(payload: dict) -> Findings:
    """Validate a raw finding payload.

    Raises:
        InvalidFindingsError: If the payload does not match the finding schema.
    """
    try:
        return Findings.model_validate(payload)
    except ValidationError as e:
        raise InvalidFindingsError(f"Invalid findings: {e.error_count()} error(s)", errors=e.errors()) from e


def load_findings_file(path: Path) -> Findings:
    """Read and validate a finding set from a JSON file.

    Raises:
        InvalidFindingsError: If the file is missing, not JSON, or invalid.
    """
    if not path.exists():
        raise InvalidFindingsError(f"File not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidFindingsError(f"File is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidFindingsError("Findings file must contain a JSON object")
    return parse_findings(payload)


# ============================================================================
# Main Entry Point
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Clinical Coding Rules Engine - Demo CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python demo_cli.py --sample urosepsis         # Encode a sample
  python demo_cli.py --file findings.json       # Encode a file
  python demo_cli.py --sample charcot --json    # Machine-readable output
""",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--file', '-f', help='Path to a findings JSON file')
    source.add_argument('--sample', '-s', choices=sorted(SAMPLES), help='Use a built-in sample finding set')
    parser.add_argument('--json', '-j', action='store_true', help='Print the result as JSON')
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=settings.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.sample:
            title = f"ENCODING SAMPLE: {args.sample}"
            findings = parse_findings(SAMPLES[args.sample])
        else:
            path = Path(args.file)
            title = f"ENCODING: {path.name}"
            findings = load_findings_file(path)
    except InvalidFindingsError as e:
        logger.error(str(e))
        for detail in e.errors:
            logger.error(f"  {'.'.join(str(part) for part in detail.get('loc', ()))}: {detail.get('msg')}")
        return EXIT_INVALID_INPUT

    try:
        result = run_rules_engine(findings)
    except CodeMetadataUnavailableError as e:
        logger.error(f"Code metadata unavailable: {e}")
        return EXIT_METADATA_UNAVAILABLE

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_header(title)
        display_result(result)

    return EXIT_ENCODE_ERRORS if result.errors else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

"""High-risk compliance checks.

Advisory audit checks run over a certified sequence. Each check looks for
a code pattern that auditors commonly flag and returns a message, which
the engine adds to the warnings prefixed with the check id. Checks never
remove codes and never fail an encode.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from coding_engine.services.code_types import SequencedCode, strip_decimal

logger = logging.getLogger(__name__)

MANIFESTATION_PREFIXES = ("F02", "G21", "I32", "N16", "B95", "B96", "B97")
PAIRED_ORGAN_PREFIXES = ("C50", "C34", "S42", "S52", "S72", "S82")
PRIMARY_MALIGNANCY_PATTERN = re.compile(r"^C([0-6]\d|7[0-5]|80\.1|8[1-9]|9[0-6])")


def _has_prefix(codes: list[SequencedCode], *prefixes: str) -> bool:
    return any(item.code.startswith(prefixes) for item in codes)


def _first_with_prefix(codes: list[SequencedCode], *prefixes: str) -> SequencedCode | None:
    return next((item for item in codes if item.code.startswith(prefixes)), None)


# ============================================================================
# Checks
# ============================================================================


def check_place_of_occurrence(codes: list[SequencedCode]) -> str | None:
    place = _first_with_prefix(codes, "Y92")
    if place is None:
        return None
    has_initial_injury = any(
        item.code.startswith(("S", "T")) and len(strip_decimal(item.code)) >= 7 and item.code.endswith("A")
        for item in codes
    )
    if has_initial_injury:
        return None
    return (
        f"Place of occurrence code ({place.code}) is typically only reported on the initial "
        f"encounter (7th character A)"
    )


def check_unlinked_diabetes_ckd(codes: list[SequencedCode]) -> str | None:
    if _has_prefix(codes, "E11.9") and _has_prefix(codes, "N18"):
        return "Diabetes and CKD are presumed linked; replace E11.9 with E11.22 when N18.- is present"
    return None


def check_diabetes_type_conflict(codes: list[SequencedCode]) -> str | None:
    if _has_prefix(codes, "E10") and _has_prefix(codes, "E11"):
        return "Type 1 (E10) and type 2 (E11) diabetes should not be coded on the same record"
    return None


def check_unlinked_hypertension_ckd(codes: list[SequencedCode]) -> str | None:
    if _has_prefix(codes, "I10") and _has_prefix(codes, "N18"):
        return "Hypertension and CKD are presumed linked; use I12.- instead of I10"
    return None


def check_hypertension_heart_ckd(codes: list[SequencedCode]) -> str | None:
    if _has_prefix(codes, "I10") and _has_prefix(codes, "I50") and _has_prefix(codes, "N18"):
        return "Hypertension (I10), heart failure (I50) and CKD (N18) require an I13.- combination code"
    return None


def check_manifestation_principal(codes: list[SequencedCode]) -> str | None:
    if codes and codes[0].code.startswith(MANIFESTATION_PREFIXES):
        return (
            f"Code {codes[0].code} is a manifestation code and cannot be principal; "
            f"sequence the underlying condition first"
        )
    return None


def check_laterality(codes: list[SequencedCode]) -> str | None:
    unspecified = []
    for item in codes:
        if not item.code.startswith(PAIRED_ORGAN_PREFIXES):
            continue
        label = item.label.lower()
        if "unspecified side" in label or (
            "unspecified" in label and "left" not in label and "right" not in label
        ):
            unspecified.append(item.code)
    if not unspecified:
        return None
    return f"Laterality unspecified for: {', '.join(unspecified)}. Specify right, left or bilateral"


def check_orphan_secondary_malignancy(codes: list[SequencedCode]) -> str | None:
    secondary = _first_with_prefix(codes, "C78", "C79")
    if secondary is None:
        return None
    has_primary = any(PRIMARY_MALIGNANCY_PATTERN.match(item.code) for item in codes)
    if has_primary or _has_prefix(codes, "Z85"):
        return None
    return (
        f"Secondary malignancy ({secondary.code}) requires a primary site code "
        f"or a Z85 personal history code"
    )


def check_normal_delivery_exclusivity(codes: list[SequencedCode]) -> str | None:
    if not _has_prefix(codes, "O80"):
        return None
    other = next((item for item in codes if item.code.startswith("O") and item.code != "O80"), None)
    if other is None:
        return None
    return f"O80 (normal delivery) cannot be used with pregnancy complication {other.code}; remove O80"


def check_delivery_outcome(codes: list[SequencedCode]) -> str | None:
    if _has_prefix(codes, "O80", "O81", "O82") and not _has_prefix(codes, "Z37"):
        return "Delivery encounters require a Z37.- outcome of delivery code"
    return None


@dataclass(frozen=True)
class ComplianceCheck:
    rule_id: str
    name: str
    check: Callable[[list[SequencedCode]], str | None]


COMPLIANCE_CHECKS: list[ComplianceCheck] = [
    ComplianceCheck("EXT-002", "Place of occurrence frequency limit", check_place_of_occurrence),
    ComplianceCheck("DM-001", "Diabetes and CKD linkage", check_unlinked_diabetes_ckd),
    ComplianceCheck("DM-002", "Diabetes type conflict", check_diabetes_type_conflict),
    ComplianceCheck("CKD-001", "Hypertension and CKD linkage", check_unlinked_hypertension_ckd),
    ComplianceCheck("CKD-002", "Hypertension, heart failure and CKD", check_hypertension_heart_ckd),
    ComplianceCheck("SEQ-001", "Manifestation code principal", check_manifestation_principal),
    ComplianceCheck("LAT-001", "Laterality required", check_laterality),
    ComplianceCheck("NEO-001", "Secondary malignancy without primary", check_orphan_secondary_malignancy),
    ComplianceCheck("PREG-002", "Normal delivery exclusivity", check_normal_delivery_exclusivity),
    ComplianceCheck("OB-002", "Outcome of delivery required", check_delivery_outcome),
]


def run_compliance_checks(codes: list[SequencedCode], warnings: list[str]) -> list[str]:
    """Return the compliance warnings for a certified sequence.

    LAT-001 is skipped when a resolver already warned about laterality.
    """
    laterality_warned = any("laterality" in warning.lower() for warning in warnings)
    results = []
    for check in COMPLIANCE_CHECKS:
        if check.rule_id == "LAT-001" and laterality_warned:
            continue
        message = check.check(codes)
        if message:
            logger.debug(f"Compliance check {check.rule_id} flagged: {message}")
            results.append(f"{check.rule_id}: {message}")
    return results

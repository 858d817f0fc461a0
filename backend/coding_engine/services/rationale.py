"""Per-code rationale with official guideline references."""

import re
from dataclasses import asdict, dataclass, field

from coding_engine.services.code_types import SequencedCode, is_external_cause, strip_decimal


@dataclass(frozen=True)
class GuidelineReference:
    section: str
    title: str
    description: str


# ============================================================================
# ICD-10-CM Official Guidelines for Coding and Reporting
# ============================================================================

GUIDELINES: dict[str, GuidelineReference] = {
    "sepsis": GuidelineReference(
        "I.C.1.d",
        "Sepsis, Severe Sepsis, and Septic Shock",
        "Code first the underlying systemic infection, followed by R65.21 for septic shock if present, "
        "then localized infection",
    ),
    "post_procedural_sepsis": GuidelineReference(
        "I.C.1.d.5.b",
        "Sepsis Due to a Postprocedural Infection",
        "T81.44 must be sequenced first, followed by the sepsis code, then organ dysfunction and source infection",
    ),
    "diabetes": GuidelineReference(
        "I.C.4.a",
        "Diabetes Mellitus",
        "Use as many codes as necessary to identify all associated conditions. "
        "Assign combination codes when available.",
    ),
    "diabetes_manifestation": GuidelineReference(
        "I.C.4.a.6",
        "Secondary Diabetes Mellitus",
        "Diabetes code must precede the manifestation code (e.g., E11.22 before N18.x for diabetic CKD)",
    ),
    "hypertension": GuidelineReference(
        "I.C.9.a",
        "Hypertension",
        "Use combination codes (I11, I12, I13) when hypertension is documented with heart disease, CKD, or both",
    ),
    "hypertensive_combination": GuidelineReference(
        "I.C.9.a.3",
        "Hypertensive Heart and Chronic Kidney Disease",
        "I13 requires additional codes for heart failure (I50.-) and CKD stage (N18.-)",
    ),
    "mi": GuidelineReference(
        "I.C.9.e",
        "Acute Myocardial Infarction (AMI)",
        "I21 codes are for STEMI and NSTEMI within 4 weeks of onset",
    ),
    "copd": GuidelineReference(
        "I.C.10.a",
        "Chronic Obstructive Pulmonary Disease (COPD) and Asthma",
        "J44.0 is assigned for COPD with acute lower respiratory infection. Code also the infection.",
    ),
    "respiratory_failure": GuidelineReference(
        "I.C.10.b",
        "Acute Respiratory Failure",
        "Sequence based on circumstances of admission. May be principal or secondary diagnosis.",
    ),
    "ckd": GuidelineReference(
        "I.C.14.a",
        "Chronic Kidney Disease",
        "N18 codes require documentation of CKD stage. Use with causal condition codes when applicable.",
    ),
    "obstetrics": GuidelineReference(
        "I.C.15.a",
        "General Rules for Obstetric Cases",
        "O codes have sequencing priority. Use additional codes for weeks of gestation (Z3A) "
        "and outcome of delivery (Z37).",
    ),
    "neoplasm": GuidelineReference(
        "I.C.2.a",
        "Treatment Directed at the Malignancy",
        "Primary malignancy is sequenced first unless treatment is directed at metastasis",
    ),
    "metastatic": GuidelineReference(
        "I.C.2.d",
        "Primary Malignancy Previously Excised",
        "Sequence primary site followed by secondary site(s) for metastatic cancer",
    ),
    "injury_7th": GuidelineReference(
        "I.C.19.a",
        "7th Character for Injury Codes",
        "A = initial encounter, D = subsequent encounter, S = sequela. Use placeholder X when needed.",
    ),
    "fracture": GuidelineReference(
        "I.C.19.c",
        "Coding of Traumatic Fractures",
        "Assign separate codes for each fracture. 7th character indicates encounter type and healing status.",
    ),
    "poisoning": GuidelineReference(
        "I.C.19.e",
        "Adverse Effects, Poisoning, Underdosing and Toxic Effects",
        "Poisoning codes are sequenced first; adverse effect and underdosing codes follow the manifestation",
    ),
    "external_cause": GuidelineReference(
        "I.C.20",
        "External Causes of Morbidity",
        "External cause codes (V, W, X, Y) are sequenced after all diagnosis codes",
    ),
    "pain": GuidelineReference(
        "I.C.6.b.1",
        "Pain - Category G89",
        "G89.11 (acute post-traumatic pain) is sequenced after the injury code",
    ),
    "z_codes": GuidelineReference(
        "I.C.21",
        "Factors Influencing Health Status and Contact with Health Services",
        "Z codes represent reasons for encounters and may be principal or secondary diagnoses",
    ),
    "screening": GuidelineReference(
        "I.C.21.c.5",
        "Screening",
        "Z12 codes are for encounters for screening for malignant neoplasms",
    ),
    "history": GuidelineReference(
        "I.C.21.c.4",
        "History (of)",
        "Z85 codes indicate personal history of malignant neoplasm",
    ),
}

# Evaluated in order; the first match wins
GUIDELINE_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"^A4[01]"), "sepsis"),
    (re.compile(r"^T81\.44"), "post_procedural_sepsis"),
    (re.compile(r"^I13"), "hypertensive_combination"),
    (re.compile(r"^I1[012]"), "hypertension"),
    (re.compile(r"^I21"), "mi"),
    (re.compile(r"^J44"), "copd"),
    (re.compile(r"^J96"), "respiratory_failure"),
    (re.compile(r"^N18"), "ckd"),
    (re.compile(r"^O"), "obstetrics"),
    (re.compile(r"^C7[789]"), "metastatic"),
    (re.compile(r"^C"), "neoplasm"),
    (re.compile(r"^T(3[6-9]|4\d|50|85\.6)"), "poisoning"),
    (re.compile(r"^[ST]"), "injury_7th"),
    (re.compile(r"^G89"), "pain"),
    (re.compile(r"^[VWXY]"), "external_cause"),
    (re.compile(r"^Z12"), "screening"),
    (re.compile(r"^Z85"), "history"),
    (re.compile(r"^Z"), "z_codes"),
]

DIABETES_FAMILY = re.compile(r"^E(08|09|10|11|13)")


def get_guideline_for_code(code: str, triggered_by: str = "", label: str = "") -> GuidelineReference | None:
    if DIABETES_FAMILY.match(code):
        if "manifestation" in triggered_by:
            return GUIDELINES["diabetes_manifestation"]
        return GUIDELINES["diabetes"]
    for pattern, key in GUIDELINE_PATTERNS:
        if pattern.match(code):
            if key == "injury_7th" and "fracture" in label.lower():
                return GUIDELINES["fracture"]
            return GUIDELINES[key]
    return None


@dataclass
class CodeRationale:
    code: str
    label: str
    clinical_justification: str
    guideline_reference: GuidelineReference | None = None
    sequencing_reason: str | None = None
    specificity_notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "label": self.label,
            "clinical_justification": self.clinical_justification,
            "guideline_reference": asdict(self.guideline_reference) if self.guideline_reference else None,
            "sequencing_reason": self.sequencing_reason,
            "specificity_notes": list(self.specificity_notes),
        }


@dataclass
class RationaleResult:
    rationales: list[CodeRationale] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> dict:
        return {"rationales": [r.to_dict() for r in self.rationales], "summary": self.summary}


def _justify(item: SequencedCode) -> tuple[str, str | None]:
    """Clinical justification and role-based sequencing reason from the trigger."""
    trigger = item.triggered_by
    if "diabetes" in trigger:
        reason = None
        if "manifestation" in trigger:
            reason = "Manifestation code follows etiology (diabetes) per ICD-10-CM guidelines"
        return "Diabetes mellitus with documented complication requiring specific code assignment", reason
    if "cardiovascular" in trigger:
        if item.code.startswith("I1"):
            return "Hypertensive disease with documented complications", None
        return "Cardiovascular condition requiring specific code for accurate risk stratification", None
    if "infection" in trigger:
        reason = None
        if "shock" in trigger:
            reason = "Septic shock sequenced after sepsis code per ICD-10-CM Guideline I.C.1.d"
        elif "source" in trigger:
            reason = "Source infection sequenced after sepsis/shock codes"
        return "Infectious disease requiring specific pathogen and site identification", reason
    if "respiratory" in trigger:
        return "Respiratory condition requiring specific code for severity and type", None
    if "neoplasm" in trigger:
        reason = None
        if "metastasis" in trigger:
            reason = "Secondary malignancy sequenced after primary site"
        return "Malignancy requiring specific site and behavior code", reason
    if "trauma" in trigger:
        reason = None
        if "pain" in trigger:
            reason = "Pain code sequenced after injury per ICD-10-CM Guideline I.C.6.b.1"
        elif "external_cause" in trigger:
            reason = "External cause sequenced last per ICD-10-CM Guideline I.C.20"
        return "Injury requiring specific site, laterality, and encounter type", reason
    if "obstetrics" in trigger:
        return "Pregnancy-related condition with trimester and complication documentation", None
    if "renal" in trigger:
        return "Renal condition requiring specific stage and etiology", None
    if "poisoning" in trigger or "pump" in trigger:
        return "Drug event or device complication requiring agent, intent and encounter", None
    if "psychiatric" in trigger:
        return "Mental or behavioral condition requiring episode and severity detail", None
    if trigger == "guideline_companion":
        return "Additional code required by an instructional note of the preceding code", None
    return "Clinical condition documented in medical record", None


def _specificity_notes(item: SequencedCode) -> list[str]:
    notes = []
    length = len(strip_decimal(item.code))
    if length >= 7:
        notes.append("Highly specific code with full character detail")
    elif length <= 4:
        notes.append("Category-level code; consider more specific code if documentation allows")
    if "unspecified" in item.label.lower():
        notes.append("Unspecified code used; query for more specific documentation if possible")
    if item.hcc:
        notes.append("HCC code - captures significant clinical complexity")
    return notes


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def summarize(codes: list[SequencedCode], warnings: list[str]) -> str:
    parts = [f"Assigned {_plural(len(codes), 'code')} based on clinical documentation."]
    hcc_count = sum(1 for item in codes if item.hcc)
    if hcc_count:
        parts.append(f"{_plural(hcc_count, 'HCC code')} identified for risk adjustment.")
    if warnings:
        parts.append(
            f"{_plural(len(warnings), 'warning')} generated - review for documentation improvement opportunities."
        )
    else:
        parts.append("No warnings - all codes meet specificity and compliance requirements.")
    return " ".join(parts)


def generate_rationale(codes: list[SequencedCode], warnings: list[str]) -> RationaleResult:
    rationales = []
    for index, item in enumerate(codes):
        justification, reason = _justify(item)
        if reason is None and index == 0:
            reason = "Principal diagnosis - primary reason for encounter"
        elif reason is None and index == len(codes) - 1 and is_external_cause(item.code):
            reason = "External cause code sequenced last per guidelines"
        rationales.append(
            CodeRationale(
                code=item.code,
                label=item.label,
                clinical_justification=justification,
                guideline_reference=get_guideline_for_code(item.code, item.triggered_by, item.label),
                sequencing_reason=reason,
                specificity_notes=_specificity_notes(item),
            )
        )
    return RationaleResult(rationales=rationales, summary=summarize(codes, warnings))

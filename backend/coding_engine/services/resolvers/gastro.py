"""Gastrointestinal resolver: gallstones, cholecystitis, pancreatitis, gastritis, GI bleed."""

from coding_engine.schemas.base import Acuity, PancreatitisCause
from coding_engine.schemas.findings import Findings, GastroFindings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole

DOMAIN = "gastro"

# (cholecystitis acuity or None, obstruction) -> calculus of gallbladder code
CHOLELITHIASIS_CODES: dict[tuple[Acuity | None, bool], tuple[str, str]] = {
    (Acuity.ACUTE, False): ("K80.00", "Calculus of gallbladder with acute cholecystitis without obstruction"),
    (Acuity.ACUTE, True): ("K80.01", "Calculus of gallbladder with acute cholecystitis with obstruction"),
    (Acuity.CHRONIC, False): ("K80.10", "Calculus of gallbladder with chronic cholecystitis without obstruction"),
    (Acuity.CHRONIC, True): ("K80.11", "Calculus of gallbladder with chronic cholecystitis with obstruction"),
    (Acuity.ACUTE_ON_CHRONIC, False): (
        "K80.12", "Calculus of gallbladder with acute and chronic cholecystitis without obstruction",
    ),
    (Acuity.ACUTE_ON_CHRONIC, True): (
        "K80.13", "Calculus of gallbladder with acute and chronic cholecystitis with obstruction",
    ),
    (Acuity.UNSPECIFIED, False): ("K80.10", "Calculus of gallbladder with chronic cholecystitis without obstruction"),
    (Acuity.UNSPECIFIED, True): ("K80.11", "Calculus of gallbladder with chronic cholecystitis with obstruction"),
    (None, False): ("K80.20", "Calculus of gallbladder without cholecystitis without obstruction"),
    (None, True): ("K80.21", "Calculus of gallbladder without cholecystitis with obstruction"),
}

CHOLECYSTITIS_CODES: dict[Acuity, tuple[str, str]] = {
    Acuity.ACUTE: ("K81.0", "Acute cholecystitis"),
    Acuity.CHRONIC: ("K81.1", "Chronic cholecystitis"),
    Acuity.ACUTE_ON_CHRONIC: ("K81.2", "Acute cholecystitis with chronic cholecystitis"),
    Acuity.UNSPECIFIED: ("K81.9", "Cholecystitis, unspecified"),
}

ACUTE_PANCREATITIS_CODES: dict[PancreatitisCause, tuple[str, str]] = {
    PancreatitisCause.IDIOPATHIC: ("K85.00", "Idiopathic acute pancreatitis without necrosis or infection"),
    PancreatitisCause.BILIARY: ("K85.10", "Biliary acute pancreatitis without necrosis or infection"),
    PancreatitisCause.ALCOHOL: ("K85.20", "Alcohol induced acute pancreatitis without necrosis or infection"),
    PancreatitisCause.UNSPECIFIED: ("K85.90", "Acute pancreatitis without necrosis or infection, unspecified"),
}

CHRONIC_PANCREATITIS_CODES: dict[PancreatitisCause, tuple[str, str]] = {
    PancreatitisCause.ALCOHOL: ("K86.0", "Alcohol-induced chronic pancreatitis"),
    PancreatitisCause.IDIOPATHIC: ("K86.1", "Other chronic pancreatitis"),
    PancreatitisCause.BILIARY: ("K86.1", "Other chronic pancreatitis"),
    PancreatitisCause.UNSPECIFIED: ("K86.1", "Other chronic pancreatitis"),
}

# (acuity, bleeding) -> gastritis code
GASTRITIS_CODES: dict[tuple[Acuity, bool], tuple[str, str]] = {
    (Acuity.ACUTE, False): ("K29.00", "Acute gastritis without bleeding"),
    (Acuity.ACUTE, True): ("K29.01", "Acute gastritis with bleeding"),
    (Acuity.CHRONIC, False): ("K29.50", "Unspecified chronic gastritis without bleeding"),
    (Acuity.CHRONIC, True): ("K29.51", "Unspecified chronic gastritis with bleeding"),
    (Acuity.ACUTE_ON_CHRONIC, False): ("K29.70", "Gastritis, unspecified, without bleeding"),
    (Acuity.ACUTE_ON_CHRONIC, True): ("K29.71", "Gastritis, unspecified, with bleeding"),
    (Acuity.UNSPECIFIED, False): ("K29.70", "Gastritis, unspecified, without bleeding"),
    (Acuity.UNSPECIFIED, True): ("K29.71", "Gastritis, unspecified, with bleeding"),
}

GI_BLEED = ("K92.2", "Gastrointestinal hemorrhage, unspecified")


def _pancreatitis_code(gastro: GastroFindings) -> tuple[str, str]:
    pancreatitis = gastro.pancreatitis
    if pancreatitis.acuity == Acuity.CHRONIC:
        return CHRONIC_PANCREATITIS_CODES[pancreatitis.cause]
    return ACUTE_PANCREATITIS_CODES[pancreatitis.cause]


def resolve_gastro(findings: Findings) -> Resolution | None:
    """Resolve the gastro bundle.

    Precedence: pancreatitis, gallstones (with any cholecystitis as a
    combination code), cholecystitis, gastritis, GI bleed.
    """
    gastro = findings.gastro
    if gastro is None:
        return None

    warnings: list[str] = []
    conditions: list[tuple[tuple[str, str], str]] = []

    if gastro.pancreatitis is not None:
        if gastro.pancreatitis.cause == PancreatitisCause.UNSPECIFIED:
            warnings.append("Pancreatitis etiology not documented; unspecified pancreatitis code assigned")
        conditions.append((_pancreatitis_code(gastro), "Pancreatitis documented"))

    if gastro.cholelithiasis is not None:
        cholecystitis = gastro.cholelithiasis.cholecystitis or gastro.cholecystitis
        conditions.append(
            (
                CHOLELITHIASIS_CODES[(cholecystitis, gastro.cholelithiasis.obstruction)],
                "Gallstones documented; cholecystitis captured in the combination code",
            )
        )
    elif gastro.cholecystitis is not None:
        conditions.append((CHOLECYSTITIS_CODES[gastro.cholecystitis], "Cholecystitis documented"))

    if gastro.gastritis is not None:
        bleeding = gastro.gastritis.bleeding or gastro.gi_bleed
        conditions.append(
            (GASTRITIS_CODES[(gastro.gastritis.acuity, bleeding)], "Gastritis documented")
        )
    elif gastro.gi_bleed:
        warnings.append("GI bleeding source not documented; K92.2 assigned")
        conditions.append((GI_BLEED, "Gastrointestinal hemorrhage documented"))

    if not conditions:
        return None

    (code, label), rationale = conditions[0]
    secondaries = [
        SecondaryCode(
            code=other_code,
            label=other_label,
            role=SecondaryRole.COEXISTING,
            rationale=reason,
            base_score=0.7,
        )
        for (other_code, other_label), reason in conditions[1:]
    ]

    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes={
            "cholelithiasis": gastro.cholelithiasis is not None,
            "pancreatitis": gastro.pancreatitis is not None,
            "gastritis": gastro.gastritis is not None,
            "gi_bleed": gastro.gi_bleed,
        },
        secondary_codes=secondaries,
        warnings=warnings,
        rationale=rationale,
    )

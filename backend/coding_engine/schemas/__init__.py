"""Pydantic schemas for the Clinical Coding Rules Engine."""

from coding_engine.schemas.base import (
    Acuity,
    CKDStage,
    DiabetesComplication,
    DiabetesType,
    EncounterType,
    Laterality,
    Sex,
)
from coding_engine.schemas.coding import (
    BatchEncodeCase,
    BatchEncodeRequest,
    BatchEncodeResponse,
    CodeMetadataResponse,
    ConfidenceResponse,
    EncodeResponse,
    RationaleResponse,
    SequencedCodeResponse,
)
from coding_engine.schemas.findings import (
    CardiovascularFindings,
    DiabetesFindings,
    Findings,
    GastroFindings,
    InfectionFindings,
    InjuryFindings,
    NeoplasmFindings,
    ObstetricFindings,
    PatientFindings,
    PoisoningFindings,
    PsychiatricFindings,
    RenalFindings,
    RespiratoryFindings,
)

__all__ = [
    # Enums
    "Acuity",
    "CKDStage",
    "DiabetesComplication",
    "DiabetesType",
    "EncounterType",
    "Laterality",
    "Sex",
    # Findings
    "Findings",
    "PatientFindings",
    "DiabetesFindings",
    "RenalFindings",
    "CardiovascularFindings",
    "InfectionFindings",
    "GastroFindings",
    "RespiratoryFindings",
    "NeoplasmFindings",
    "InjuryFindings",
    "ObstetricFindings",
    "PsychiatricFindings",
    "PoisoningFindings",
    # API
    "BatchEncodeCase",
    "BatchEncodeRequest",
    "BatchEncodeResponse",
    "CodeMetadataResponse",
    "ConfidenceResponse",
    "EncodeResponse",
    "RationaleResponse",
    "SequencedCodeResponse",
]

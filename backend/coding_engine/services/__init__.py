"""Services for the Clinical Coding Rules Engine.

Pipeline stages, leaves first:
- CodeMetadataService: read-only ICD-10-CM metadata dictionary
- resolvers: one pure function per clinical domain
- aggregate: merges resolver output into one candidate list
- reconcile: Excludes1/Excludes2, hierarchy and domain override rules
- sequence_codes: priority-ordered rewrite rules plus validators
- ClinicalCodingEngine: runs the full pipeline and annotates the result
"""

from coding_engine.services.aggregator import aggregate, collect_warnings
from coding_engine.services.code_metadata import (
    CodeMetadataEntry,
    CodeMetadataService,
    get_code_metadata_service,
    preload_code_metadata,
    reset_code_metadata_service,
)
from coding_engine.services.code_types import (
    CandidateCode,
    Resolution,
    SecondaryCode,
    SecondaryRole,
    SequencedCode,
)
from coding_engine.services.confidence import ConfidenceAssessment, ConfidenceFactor, calculate_confidence
from coding_engine.services.rationale import CodeRationale, RationaleResult, generate_rationale
from coding_engine.services.reconciliation import ReconciliationResult, reconcile
from coding_engine.services.resolvers import RESOLVERS, run_resolvers
from coding_engine.services.rules_engine import (
    ClinicalCodingEngine,
    EncodeResult,
    get_coding_engine,
    reset_coding_engine,
    run_rules_engine,
)
from coding_engine.services.sequencing import SEQUENCING_RULES, SequencingResult, sequence_codes

__all__ = [
    # Metadata
    "CodeMetadataEntry",
    "CodeMetadataService",
    "get_code_metadata_service",
    "preload_code_metadata",
    "reset_code_metadata_service",
    # Code records
    "CandidateCode",
    "Resolution",
    "SecondaryCode",
    "SecondaryRole",
    "SequencedCode",
    # Stages
    "RESOLVERS",
    "run_resolvers",
    "aggregate",
    "collect_warnings",
    "ReconciliationResult",
    "reconcile",
    "SEQUENCING_RULES",
    "SequencingResult",
    "sequence_codes",
    # Annotation
    "ConfidenceAssessment",
    "ConfidenceFactor",
    "calculate_confidence",
    "CodeRationale",
    "RationaleResult",
    "generate_rationale",
    # Engine
    "ClinicalCodingEngine",
    "EncodeResult",
    "get_coding_engine",
    "reset_coding_engine",
    "run_rules_engine",
]

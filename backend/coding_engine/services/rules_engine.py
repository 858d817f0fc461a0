"""Clinical coding rules engine.

Runs the full pipeline for one finding set:

    resolvers -> aggregate -> reconcile -> sequence -> compliance
              -> HCC / score -> rationale, confidence, audit

Every stage is a pure function of its input plus the read-only code
metadata service. A reconciliation or sequencing error yields an empty
sequence with the errors listed; an unavailable metadata dictionary raises
``CodeMetadataUnavailableError`` to the caller.

This module uses a singleton pattern so the API and the CLI share one
engine bound to the process-wide metadata service.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from threading import Lock

from coding_engine.schemas.findings import Findings
from coding_engine.services.aggregator import aggregate, collect_warnings
from coding_engine.services.code_metadata import CodeMetadataService, get_code_metadata_service
from coding_engine.services.code_types import SequencedCode
from coding_engine.services.compliance import run_compliance_checks
from coding_engine.services.confidence import ConfidenceAssessment, calculate_confidence
from coding_engine.services.rationale import RationaleResult, generate_rationale
from coding_engine.services.reconciliation import reconcile
from coding_engine.services.resolvers import run_resolvers
from coding_engine.services.scoring import annotate_sequence, build_audit_trail
from coding_engine.services.sequencing import sequence_codes

logger = logging.getLogger(__name__)

# Singleton instance and lock for thread-safe initialization
_engine_instance: "ClinicalCodingEngine | None" = None
_engine_lock = Lock()


@dataclass
class EncodeResult:
    """Complete annotated output of one encode."""

    sequence: list[SequencedCode] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    audit: list[str] = field(default_factory=list)
    rationale: RationaleResult = field(default_factory=RationaleResult)
    confidence: ConfidenceAssessment = field(
        default_factory=lambda: calculate_confidence([], [])
    )
    applied_rules: list[str] = field(default_factory=list)

    @property
    def codes(self) -> list[str]:
        return [item.code for item in self.sequence]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "sequence": [item.to_dict() for item in self.sequence],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "audit": list(self.audit),
            "rationale": self.rationale.to_dict(),
            "confidence": self.confidence.to_dict(),
            "applied_rules": list(self.applied_rules),
        }


def _extend_unique(target: list[str], values: list[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


class ClinicalCodingEngine:
    """Turns a finding set into a certified, annotated ICD-10-CM sequence.

    Usage:
        engine = ClinicalCodingEngine(metadata)
        result = engine.encode(Findings.model_validate(payload))
    """

    def __init__(self, metadata: CodeMetadataService | None = None) -> None:
        """Initialize the engine.

        Args:
            metadata: Code metadata service. Defaults to the process-wide
                instance, resolved on first use.
        """
        self._metadata = metadata
        self._encode_count = 0
        self._failure_count = 0

    @property
    def metadata(self) -> CodeMetadataService:
        if self._metadata is None:
            self._metadata = get_code_metadata_service()
        return self._metadata

    async def ensure_ready(self) -> None:
        """Make sure the metadata dictionary is loaded without blocking the event loop.

        Raises:
            CodeMetadataUnavailableError: If the metadata dictionary cannot be loaded.
        """
        if self._metadata is None:
            self._metadata = await asyncio.to_thread(get_code_metadata_service)
        await self._metadata.ensure_loaded()

    def encode(self, findings: Findings) -> EncodeResult:
        """Encode one finding set.

        Raises:
            CodeMetadataUnavailableError: If the metadata dictionary cannot be loaded.
        """
        start_time = time.perf_counter()
        self._encode_count += 1

        resolutions = run_resolvers(findings)
        if not resolutions:
            logger.debug("No resolver produced a code; returning empty sequence")
            return self._finish(EncodeResult(), start_time)

        candidates = aggregate(resolutions)
        warnings = collect_warnings(resolutions)
        logger.debug(f"Aggregated candidates: {[c.code for c in candidates]}")

        reconciled = reconcile(candidates, findings, self.metadata)
        _extend_unique(warnings, reconciled.warnings)
        if reconciled.errors:
            return self._finish(self._failed(warnings, reconciled.errors), start_time)
        logger.debug(f"Reconciled candidates: {[c.code for c in reconciled.candidates]}")

        sequenced = sequence_codes([SequencedCode.from_candidate(c) for c in reconciled.candidates])
        if not sequenced.is_valid:
            result = self._failed(warnings, sequenced.errors)
            result.applied_rules = sequenced.applied_rules
            return self._finish(result, start_time)

        _extend_unique(warnings, run_compliance_checks(sequenced.codes, warnings))

        sequence = annotate_sequence(sequenced.codes, warnings)
        result = EncodeResult(
            sequence=sequence,
            warnings=warnings,
            audit=build_audit_trail(sequence, warnings),
            rationale=generate_rationale(sequence, warnings),
            confidence=calculate_confidence(sequence, warnings),
            applied_rules=sequenced.applied_rules,
        )
        return self._finish(result, start_time)

    def _failed(self, warnings: list[str], errors: list[str]) -> EncodeResult:
        """Result for an encode that cannot be certified: no codes, errors listed."""
        self._failure_count += 1
        return EncodeResult(
            warnings=warnings,
            errors=list(errors),
            audit=build_audit_trail([], warnings, errors),
            rationale=generate_rationale([], warnings),
            confidence=calculate_confidence([], warnings),
        )

    def _finish(self, result: EncodeResult, start_time: float) -> EncodeResult:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Encoded {len(result.sequence)} codes, {len(result.warnings)} warnings, "
            f"{len(result.errors)} errors in {duration_ms:.2f}ms"
        )
        return result

    def get_stats(self) -> dict:
        return {
            "encode_count": self._encode_count,
            "failure_count": self._failure_count,
            "metadata": self._metadata.get_stats() if self._metadata else {"loaded": False},
        }


def run_rules_engine(findings: Findings, metadata: CodeMetadataService | None = None) -> EncodeResult:
    """Encode a finding set with the given metadata, or the shared engine."""
    if metadata is not None:
        return ClinicalCodingEngine(metadata).encode(findings)
    return get_coding_engine().encode(findings)


def get_coding_engine() -> ClinicalCodingEngine:
    """Get the singleton ClinicalCodingEngine instance."""
    global _engine_instance

    if _engine_instance is None:
        with _engine_lock:
            # Double-check locking pattern
            if _engine_instance is None:
                logger.info("Creating singleton ClinicalCodingEngine instance")
                _engine_instance = ClinicalCodingEngine()

    return _engine_instance


def reset_coding_engine() -> None:
    """Reset the singleton instance (for testing only)."""
    global _engine_instance
    with _engine_lock:
        _engine_instance = None

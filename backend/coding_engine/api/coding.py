"""Clinical Coding API Endpoints.

Thin HTTP layer over the rules engine:
- Encode: one finding set to a certified ICD-10-CM sequence
- Batch encode: several finding sets, one result per case
- Code metadata: Excludes1/Excludes2, notes and rules of a single code

Clinical problems come back inside the response (warnings, errors); only
an unavailable metadata dictionary is an HTTP failure (503).
"""

import logging
import time

from fastapi import APIRouter, HTTPException, Query, Request

from coding_engine.core.audit import log_encode, log_metadata_lookup
from coding_engine.core.config import settings
from coding_engine.core.exceptions import CodeMetadataUnavailableError
from coding_engine.schemas.coding import (
    BatchEncodeRequest,
    BatchEncodeResponse,
    CodeMetadataResponse,
    EncodeResponse,
)
from coding_engine.schemas.findings import Findings
from coding_engine.services.rules_engine import ClinicalCodingEngine, EncodeResult, get_coding_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coding", tags=["Clinical Coding"])


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


async def _ready_engine() -> ClinicalCodingEngine:
    engine = get_coding_engine()
    try:
        await engine.ensure_ready()
    except CodeMetadataUnavailableError as e:
        logger.error(f"Code metadata unavailable: {e}")
        raise HTTPException(status_code=503, detail=f"Code metadata unavailable: {e}") from e
    return engine


def _to_response(result: EncodeResult, case_id: str | None, processing_time_ms: float) -> EncodeResponse:
    return EncodeResponse.model_validate(
        {**result.to_dict(), "case_id": case_id, "processing_time_ms": round(processing_time_ms, 2)}
    )


# ============================================================================
# Encode Endpoints
# ============================================================================


@router.post(
    "/encode",
    response_model=EncodeResponse,
    summary="Encode findings",
    description="Resolve extracted clinical findings into a sequenced ICD-10-CM code list.",
)
async def encode(
    findings: Findings,
    request: Request,
    case_id: str | None = Query(None, max_length=200, description="Caller-supplied case identifier"),
) -> EncodeResponse:
    """Encode one finding set.

    The response always carries warnings and the audit trail. When the
    engine reports errors (contradictory documentation or a sequencing
    violation) the sequence is empty and the errors are listed.
    """
    engine = await _ready_engine()

    start_time = time.perf_counter()
    result = engine.encode(findings)
    processing_time_ms = (time.perf_counter() - start_time) * 1000

    log_encode(
        case_id=case_id,
        domains=findings.domains(),
        code_count=len(result.sequence),
        warning_count=len(result.warnings),
        errors=result.errors,
        ip_address=_client_ip(request),
    )
    return _to_response(result, case_id, processing_time_ms)


@router.post(
    "/encode/batch",
    response_model=BatchEncodeResponse,
    summary="Encode several finding sets",
)
async def encode_batch(body: BatchEncodeRequest, request: Request) -> BatchEncodeResponse:
    """Encode each case independently, preserving request order."""
    if len(body.cases) > settings.max_batch_size:
        raise HTTPException(
            status_code=413,
            detail=f"Batch of {len(body.cases)} cases exceeds the limit of {settings.max_batch_size}",
        )

    engine = await _ready_engine()
    ip_address = _client_ip(request)
    batch_start = time.perf_counter()

    results = []
    for case in body.cases:
        start_time = time.perf_counter()
        result = engine.encode(case.findings)
        processing_time_ms = (time.perf_counter() - start_time) * 1000
        log_encode(
            case_id=case.case_id,
            domains=case.findings.domains(),
            code_count=len(result.sequence),
            warning_count=len(result.warnings),
            errors=result.errors,
            ip_address=ip_address,
            batch=True,
        )
        results.append(_to_response(result, case.case_id, processing_time_ms))

    failed = sum(1 for item in results if item.errors)
    return BatchEncodeResponse(
        total_cases=len(results),
        successful=len(results) - failed,
        failed=failed,
        results=results,
        total_time_ms=round((time.perf_counter() - batch_start) * 1000, 2),
    )


# ============================================================================
# Code Metadata Endpoint
# ============================================================================


@router.get(
    "/codes/{code}",
    response_model=CodeMetadataResponse,
    summary="Look up code metadata",
)
async def get_code_metadata(code: str, request: Request) -> CodeMetadataResponse:
    """Return the metadata of a code, with notes merged from its ancestor categories."""
    engine = await _ready_engine()
    metadata = engine.metadata

    entry = metadata.get_entry(code)
    log_metadata_lookup(code, found=entry is not None, ip_address=_client_ip(request))
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Code not found: {code}")

    return CodeMetadataResponse(
        code=entry.code,
        description=entry.description,
        chapter=metadata.get_chapter_for_code(entry.code),
        billable=entry.billable,
        excludes1=metadata.get_excludes1_codes(entry.code),
        excludes2=metadata.get_excludes2_codes(entry.code),
        includes=metadata.get_includes_strings(entry.code),
        notes=metadata.get_notes(entry.code),
        rules=metadata.get_rules_strings(entry.code),
    )

"""Request and response schemas for the coding API."""

from pydantic import BaseModel, Field

from coding_engine.schemas.findings import Findings


class SequencedCodeResponse(BaseModel):
    """A code in the certified sequence."""

    code: str = Field(..., description="ICD-10-CM code")
    label: str = Field(..., description="Code description")
    triggered_by: str = Field(..., description="Resolver or rule that produced the code")
    hcc: bool = Field(False, description="Risk-adjustment (HCC) flag")
    score: float | None = Field(None, ge=0, le=1, description="Display-only plausibility score")


class GuidelineReferenceResponse(BaseModel):
    section: str
    title: str
    description: str


class CodeRationaleResponse(BaseModel):
    """Why a code was assigned and where it sits in the sequence."""

    code: str
    label: str
    clinical_justification: str
    guideline_reference: GuidelineReferenceResponse | None = None
    sequencing_reason: str | None = None
    specificity_notes: list[str] = Field(default_factory=list)


class RationaleResponse(BaseModel):
    rationales: list[CodeRationaleResponse] = Field(default_factory=list)
    summary: str = Field("", description="One-paragraph summary of the encode")


class ConfidenceFactorResponse(BaseModel):
    factor: str
    impact: str = Field(..., description="positive, negative or neutral")
    weight: int = Field(..., description="Points added to or removed from the baseline")
    description: str


class ConfidenceResponse(BaseModel):
    overall_confidence: int = Field(..., ge=0, le=100, description="Overall confidence percentage")
    factors: list[ConfidenceFactorResponse] = Field(default_factory=list)
    explanation: str = ""


class EncodeResponse(BaseModel):
    """Result of encoding one finding set.

    When ``errors`` is non-empty the sequence is always empty: a sequence
    that failed validation is never returned.
    """

    case_id: str | None = Field(None, description="Caller-supplied case identifier")
    sequence: list[SequencedCodeResponse] = Field(default_factory=list, description="Ordered codes")
    warnings: list[str] = Field(default_factory=list, description="Advisory documentation warnings")
    errors: list[str] = Field(default_factory=list, description="Errors that blocked the sequence")
    audit: list[str] = Field(default_factory=list, description="Human-readable audit trail")
    rationale: RationaleResponse = Field(default_factory=RationaleResponse)
    confidence: ConfidenceResponse
    applied_rules: list[str] = Field(default_factory=list, description="Sequencing rules that fired")
    processing_time_ms: float = Field(0.0, description="Engine processing time in milliseconds")


class BatchEncodeCase(BaseModel):
    """One case in a batch encode request."""

    case_id: str = Field(..., min_length=1, max_length=200, description="Caller-supplied case identifier")
    findings: Findings = Field(default_factory=Findings, description="Extracted findings for the case")


class BatchEncodeRequest(BaseModel):
    """Request for encoding several finding sets."""

    cases: list[BatchEncodeCase] = Field(..., min_length=1, description="Cases to encode")


class BatchEncodeResponse(BaseModel):
    total_cases: int = Field(..., description="Cases received")
    successful: int = Field(..., description="Cases with a certified sequence")
    failed: int = Field(..., description="Cases that returned errors")
    results: list[EncodeResponse] = Field(..., description="One result per case, in request order")
    total_time_ms: float = Field(..., description="Total processing time")


class CodeMetadataResponse(BaseModel):
    """Metadata view of a single ICD-10-CM code."""

    code: str
    description: str = ""
    chapter: str | None = None
    billable: bool | None = None
    excludes1: list[str] = Field(default_factory=list, description="Merged with ancestor categories")
    excludes2: list[str] = Field(default_factory=list, description="Merged with ancestor categories")
    includes: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    rules: list[str] = Field(default_factory=list, description="Code first / code also / use additional code")

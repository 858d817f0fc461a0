"""Audit logging for encode requests.

Every encode served through the API leaves one structured record on the
dedicated ``audit`` logger:
- which case was encoded and from where
- how many codes, warnings and errors the engine produced
- whether the request produced a certified code sequence

Records carry no clinical free text; finding bundles are summarised by the
domains they contain.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Separate audit logger so deployments can route it to an append-only sink
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    ENCODE = "encode"
    BATCH_ENCODE = "batch_encode"
    METADATA_LOOKUP = "metadata_lookup"
    ERROR = "error"


class AuditEvent(BaseModel):
    """Audit event record."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="Type of resource processed")
    case_id: str | None = Field(None, description="Caller-supplied case identifier")
    ip_address: str | None = Field(None, description="Client IP address")
    domains: list[str] = Field(default_factory=list, description="Finding domains present")
    code_count: int = Field(0, ge=0, description="Codes in the final sequence")
    warning_count: int = Field(0, ge=0, description="Warnings returned")
    error_count: int = Field(0, ge=0, description="Errors returned")
    details: dict | None = Field(None, description="Additional context")
    success: bool = Field(True, description="Whether a certified sequence was returned")


def log_audit(
    action: AuditAction,
    resource_type: str,
    case_id: str | None = None,
    ip_address: str | None = None,
    domains: list[str] | None = None,
    code_count: int = 0,
    warning_count: int = 0,
    error_count: int = 0,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Log an audit event.

    Args:
        action: Type of action being audited
        resource_type: The type of resource being processed
        case_id: Caller-supplied case identifier
        ip_address: Client IP address
        domains: Finding domains present in the request
        code_count: Number of codes returned
        warning_count: Number of warnings returned
        error_count: Number of errors returned
        details: Additional context
        success: Whether the action succeeded

    Returns:
        The created AuditEvent
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        case_id=case_id,
        ip_address=ip_address,
        domains=domains or [],
        code_count=code_count,
        warning_count=warning_count,
        error_count=error_count,
        details=details,
        success=success,
    )

    log_level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        log_level,
        f"AUDIT: {action.value} {resource_type}"
        f"{f'/{case_id}' if case_id else ''}"
        f" codes={code_count} warnings={warning_count} errors={error_count}"
        f" success={success}",
        extra={"audit_event": event.model_dump(mode="json")},
    )

    return event


def log_encode(
    case_id: str | None,
    domains: list[str],
    code_count: int,
    warning_count: int,
    errors: list[str],
    ip_address: str | None = None,
    batch: bool = False,
) -> AuditEvent:
    """Log the outcome of one encode.

    An encode that returned errors is recorded as unsuccessful, with the
    error strings attached so reviewers can see why no codes were issued.
    """
    return log_audit(
        action=AuditAction.BATCH_ENCODE if batch else AuditAction.ENCODE,
        resource_type="findings",
        case_id=case_id,
        ip_address=ip_address,
        domains=domains,
        code_count=code_count,
        warning_count=warning_count,
        error_count=len(errors),
        details={"errors": errors} if errors else None,
        success=not errors,
    )


def log_metadata_lookup(code: str, found: bool, ip_address: str | None = None) -> AuditEvent:
    """Log a code metadata lookup."""
    return log_audit(
        action=AuditAction.METADATA_LOOKUP,
        resource_type="code_metadata",
        case_id=code,
        ip_address=ip_address,
        success=found,
    )

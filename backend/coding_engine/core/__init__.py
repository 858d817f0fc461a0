"""Core application configuration and utilities."""

from coding_engine.core.audit import AuditAction, AuditEvent, log_audit, log_encode, log_metadata_lookup
from coding_engine.core.config import settings
from coding_engine.core.exceptions import (
    CodeMetadataUnavailableError,
    CodingEngineError,
    InvalidFindingsError,
)

__all__ = [
    # Config
    "settings",
    # Errors
    "CodingEngineError",
    "CodeMetadataUnavailableError",
    "InvalidFindingsError",
    # Audit
    "AuditAction",
    "AuditEvent",
    "log_audit",
    "log_encode",
    "log_metadata_lookup",
]

"""
Tamper-evident audit log.

Modules:
    models      AuditEvent / AuditEntry / VerifyResult / ChainReport
    canonical   Pinned line encoding and SHA-256 helpers
    paths       Monthly file path resolver
    chain       Chain state (last hash) and seeding from disk
    writer      Append one line to a file
    verify      Hash chain verification (single file and all months)
    reader      Newest-first reader
    log         AuditLog append serializer and module-level operations
"""

from veritas_audit.core.audit.chain import ChainState
from veritas_audit.core.audit.log import (
    AuditLog,
    append_audit_entry,
    get_current_audit_log_path,
    get_default_audit_log,
    read_recent_audit_entries,
    reset_chain_state,
    set_default_audit_log,
    verify_audit_log,
)
from veritas_audit.core.audit.models import (
    AuditEntry,
    AuditEvent,
    ChainReport,
    ChainStatus,
    VerifyResult,
)
from veritas_audit.core.audit.verify import verify_chain, verify_log_file

__all__ = [
    "AuditEntry",
    "AuditEvent",
    "AuditLog",
    "ChainReport",
    "ChainState",
    "ChainStatus",
    "VerifyResult",
    "append_audit_entry",
    "get_current_audit_log_path",
    "get_default_audit_log",
    "read_recent_audit_entries",
    "reset_chain_state",
    "set_default_audit_log",
    "verify_audit_log",
    "verify_chain",
    "verify_log_file",
]

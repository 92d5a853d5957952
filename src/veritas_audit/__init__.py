"""
Veritas Audit — tamper-evident audit log for a single backend process.

Every security-relevant action (logins, settings changes, administrative
operations) is appended as one JSON line to a monthly file. Each line carries
the SHA-256 of the line before it, so an operator can later prove offline
whether the historical record has been altered.

Package layout (src/veritas_audit/):
  core/         — config, constants, exceptions, logging setup
  core/audit/   — path resolver, chain state, writer, verifier, reader
  cli/          — Click CLI entry point (offline verification tooling)
"""

from veritas_audit.core.audit import (
    AuditEntry,
    AuditEvent,
    AuditLog,
    VerifyResult,
    append_audit_entry,
    get_current_audit_log_path,
    read_recent_audit_entries,
    reset_chain_state,
    verify_audit_log,
    verify_log_file,
)

__version__ = "0.3.0"
__all__ = [
    "__version__",
    "AuditEntry",
    "AuditEvent",
    "AuditLog",
    "VerifyResult",
    "append_audit_entry",
    "get_current_audit_log_path",
    "read_recent_audit_entries",
    "reset_chain_state",
    "verify_audit_log",
    "verify_log_file",
]

"""Veritas Audit constants: filesystem layout, wire format, and limits."""

from __future__ import annotations

from enum import IntEnum

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    INTEGRITY_FAILURE = 6


# ---------------------------------------------------------------------------
# Filesystem layout
# ---------------------------------------------------------------------------

DATA_DIR_ENV = "VERITAS_DATA_DIR"
CONFIG_ENV = "VERITAS_CONFIG"
DEFAULT_DATA_DIR = ".veritas-kanban"
CONFIG_FILENAME = "config.toml"
AUDIT_SUBDIR = "audit"
AUDIT_FILE_PREFIX = "audit-"
AUDIT_FILE_SUFFIX = ".log"

# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

# Serialized field order of one audit line. Part of the hash input; never reorder.
ENTRY_FIELDS = ("timestamp", "action", "actor", "resource", "details", "integrity")
GENESIS_HASH = ""  # integrity of the first entry ever written
HASH_HEX_LENGTH = 64

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------

DEFAULT_RECENT_LIMIT = 100
MAX_RECENT_LIMIT = 1000
TAIL_READ_BLOCK_BYTES = 8192  # backwards read step when seeding from a file tail

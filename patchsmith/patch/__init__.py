"""Patch operation model.

Operations are immutable data describing one change to one file.  The
``OperationApplier`` applies them to a ``ProjectSnapshot`` one at a time and
reports whether each was applied, already satisfied, conflicting, or failed.

Key classes:
    CreateFile / EnsureConfigValue / ListInsert / RawEdit - operation kinds
    OperationApplier   - applies one operation to a snapshot
    OwnershipLedger    - who wrote what during a run (for conflict records)
    ConflictReport     - every conflict and failure of one planning run
"""

from patchsmith.patch.applier import OperationApplier, Outcome, OwnershipLedger, Status
from patchsmith.patch.conflicts import (
    EXISTING_OWNER,
    AlreadyExistsConflict,
    Conflict,
    ConflictReport,
    OperationFailure,
    RawEditOverlapConflict,
    ValueConflict,
)
from patchsmith.patch.operations import (
    CreateFile,
    EnsureConfigValue,
    ListInsert,
    MergeStrategy,
    OperationList,
    PatchOperation,
    RawEdit,
    create_file,
    ensure_config_value,
    list_insert,
    raw_edit,
    same_value,
)

__all__ = [
    # Operations
    "CreateFile",
    "EnsureConfigValue",
    "ListInsert",
    "RawEdit",
    "PatchOperation",
    "OperationList",
    "MergeStrategy",
    "create_file",
    "ensure_config_value",
    "list_insert",
    "raw_edit",
    "same_value",
    # Conflicts
    "EXISTING_OWNER",
    "AlreadyExistsConflict",
    "ValueConflict",
    "RawEditOverlapConflict",
    "Conflict",
    "OperationFailure",
    "ConflictReport",
    # Applier
    "OperationApplier",
    "OwnershipLedger",
    "Outcome",
    "Status",
]

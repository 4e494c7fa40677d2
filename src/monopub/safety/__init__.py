"""Branch safety checks."""

from monopub.safety.branch_state import (
    AuditReport,
    BranchAuditor,
    BranchAuditResult,
    BranchStatus,
    classify,
)
from monopub.safety.sync import (
    SyncResult,
    force_push_with_lease,
    safe_sync,
    verify_force_push_allowed,
)

__all__ = [
    "AuditReport",
    "BranchAuditResult",
    "BranchAuditor",
    "BranchStatus",
    "SyncResult",
    "classify",
    "force_push_with_lease",
    "safe_sync",
    "verify_force_push_allowed",
]

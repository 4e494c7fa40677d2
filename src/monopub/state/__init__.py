"""Publish state, persistence and recovery."""

from monopub.state.models import (
    TERMINAL_STATUSES,
    ErrorInfo,
    PackagePublishState,
    PackageStatus,
    PublishState,
    RunMetrics,
    utc_now_iso,
)
from monopub.state.recovery import (
    RecoveryController,
    RecoveryEntry,
    RecoverySummary,
    StateValidation,
    summarize,
    validate_state,
)
from monopub.state.store import (
    StateStore,
    default_state_path,
    get_packages_needing_recovery,
    get_published_packages,
)

__all__ = [
    "TERMINAL_STATUSES",
    "ErrorInfo",
    "PackagePublishState",
    "PackageStatus",
    "PublishState",
    "RecoveryController",
    "RecoveryEntry",
    "RecoverySummary",
    "RunMetrics",
    "StateStore",
    "StateValidation",
    "default_state_path",
    "get_packages_needing_recovery",
    "get_published_packages",
    "summarize",
    "utc_now_iso",
    "validate_state",
]

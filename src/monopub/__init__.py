"""monopub - publish orchestration for Python monorepos.

Publishes many interdependent packages in dependency order:
- Dependency graph validation and ordering
- Concurrent scheduling with failure propagation to dependents
- Crash-safe publish state with resume and manual recovery
- Branch state audits and guarded syncing before each publish
"""

from monopub.config import MonopubConfig, PublishConfig, RetryConfig, load_config
from monopub.errors import (
    BranchStateError,
    CircularDependencyError,
    ConfigurationError,
    ErrorKind,
    ForcePushRejectedError,
    GitError,
    GraphError,
    MissingDependencyError,
    MonopubError,
    PackageNotFoundError,
    PublishError,
    PullRequestError,
    StateError,
)
from monopub.execution import (
    Outcome,
    PublishScheduler,
    PublishTask,
    SchedulerOptions,
    TaskContext,
    run_publish,
)
from monopub.graph import DependencyGraph, Package, build_graph, topological_sort, validate_graph
from monopub.log import setup_logging
from monopub.safety import BranchAuditor, BranchStatus
from monopub.state import PackageStatus, PublishState, RecoveryController, StateStore
from monopub.workspace import Workspace

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core
    "Workspace",
    "Package",
    "DependencyGraph",
    "build_graph",
    "topological_sort",
    "validate_graph",
    "MonopubConfig",
    "PublishConfig",
    "RetryConfig",
    "load_config",
    "setup_logging",
    # Execution
    "Outcome",
    "PublishScheduler",
    "PublishTask",
    "SchedulerOptions",
    "TaskContext",
    "run_publish",
    # State
    "PackageStatus",
    "PublishState",
    "RecoveryController",
    "StateStore",
    # Safety
    "BranchAuditor",
    "BranchStatus",
    # Errors
    "MonopubError",
    "ErrorKind",
    "ConfigurationError",
    "PackageNotFoundError",
    "StateError",
    "GitError",
    "GraphError",
    "MissingDependencyError",
    "CircularDependencyError",
    "PublishError",
    "PullRequestError",
    "ForcePushRejectedError",
    "BranchStateError",
]

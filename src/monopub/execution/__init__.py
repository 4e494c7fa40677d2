"""Publish execution: tasks, retries and the scheduler."""

from monopub.execution.retry import RetryPolicy
from monopub.execution.runner import CommandResult, package_env, run_command, run_in_package
from monopub.execution.scheduler import PublishScheduler, SchedulerOptions, run_publish
from monopub.execution.tasks import (
    BuildTask,
    CommandTask,
    Outcome,
    PublishPipeline,
    PublishTask,
    PullRequest,
    PullRequestService,
    PullRequestTask,
    RegistryPublishTask,
    TaskContext,
)

__all__ = [
    "BuildTask",
    "CommandResult",
    "CommandTask",
    "Outcome",
    "PublishPipeline",
    "PublishScheduler",
    "PublishTask",
    "PullRequest",
    "PullRequestService",
    "PullRequestTask",
    "RegistryPublishTask",
    "RetryPolicy",
    "SchedulerOptions",
    "TaskContext",
    "package_env",
    "run_command",
    "run_in_package",
    "run_publish",
]

"""Configuration schema for monopub.yaml."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from monopub.errors import ErrorKind

DEFAULT_STATE_FILE = ".monopub/publish-state.json"


class RetryConfig(BaseModel):
    """Automatic retry of recoverable per-package failures.

    Attributes:
        max_attempts: Total attempts per package, including the first.
        delay: Delay before the first retry, in seconds.
        backoff_multiplier: Factor applied to the delay after each retry.
        max_delay: Upper bound for a single delay, in seconds.
        auto_recoverable_error_kinds: Error kinds eligible for retry.
    """

    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=1, ge=1)
    delay: float = Field(default=5.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=60.0, ge=0)
    auto_recoverable_error_kinds: list[ErrorKind] = Field(
        default_factory=lambda: [ErrorKind.TIMEOUT]
    )


class PublishConfig(BaseModel):
    """Publish orchestration settings.

    Attributes:
        max_concurrency: Worker pool size.
        auto_sync: Fast-forward or push branches before publishing.
        push_enabled: Allow auto_sync to push local commits.
        auto_force_with_lease: Allow the ancestor-checked force push path.
        fail_fast: Stop scheduling new work after the first failure.
        task_timeout: Per-package timeout in seconds.
        working_branch: Branch every package is expected to be on.
        target_branch: Branch releases are merged into.
        remote: Git remote to compare against.
        state_file: State record path, relative to the workspace root.
        build_command: Shell command that builds one package.
        publish_command: Shell command that uploads one package.
        retry: Retry settings.
    """

    model_config = ConfigDict(extra="forbid")

    max_concurrency: int = Field(default=4, ge=1)
    auto_sync: bool = False
    push_enabled: bool = False
    auto_force_with_lease: bool = False
    fail_fast: bool = False
    task_timeout: float | None = Field(default=None, gt=0)
    working_branch: str | None = None
    target_branch: str = "main"
    remote: str = "origin"
    state_file: str = DEFAULT_STATE_FILE
    build_command: str | None = "uv build"
    publish_command: str | None = "uv publish"
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("remote", "target_branch")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class MonopubConfig(BaseModel):
    """Root of monopub.yaml.

    Attributes:
        name: Workspace name.
        packages: Glob patterns of package directories.
        publish: Publish settings.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = "workspace"
    packages: list[str] = Field(default_factory=lambda: ["packages/*"])
    publish: PublishConfig = Field(default_factory=PublishConfig)
